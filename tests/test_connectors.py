"""
tests/test_connectors.py

Tests for the upstream connectors using an in-process requests session.

Coverage
--------
- BaseConnector retry/backoff, Retry-After and non-retryable failures
- Notion search order, property extraction and not-found handling
- Zabbix authentication, status/power keys, JSON item fallback and errors
- Ubersmith method fallback, custom field discovery and error envelopes
"""

from __future__ import annotations

import json
from typing import Any

import pytest
import requests

from app.config import NotionSettings, UbersmithSettings, ZabbixSettings
from app.connectors.base import BaseConnector, ConnectorRequestError, stringify_field
from app.connectors.notion_connector import NotionConnector
from app.connectors.ubersmith_connector import UbersmithConnector, extract_service_details, select_service
from app.connectors.zabbix_connector import (
    OntAddress,
    ZabbixConnector,
    format_rx_power,
    rx_power_from_json_item,
)
from app.domain.errors import SourceLookupError
from fakes import FakeResponse, FakeSession


@pytest.fixture()
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    slept: list[float] = []
    monkeypatch.setattr("app.connectors.base.time.sleep", slept.append)
    return slept


# ---------------------------------------------------------------------------
# BaseConnector
# ---------------------------------------------------------------------------


class PlainConnector(BaseConnector):
    def resolve(self, url: str) -> Any:
        return self._request_json(method="GET", url=url)


class TestBaseConnector:
    def test_requires_resolve(self, http_settings) -> None:
        with pytest.raises(TypeError):
            BaseConnector(source="test", http_settings=http_settings)  # type: ignore[abstract]

    def test_paces_requests_at_connector_rate(self, http_settings, no_sleep, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("app.connectors.base.time.monotonic", lambda: 100.0)
        connector = PlainConnector(
            source="test",
            http_settings=http_settings,
            rate_limit_per_second=4.0,
            session=FakeSession(lambda _: FakeResponse({"ok": 1})),
        )

        for _ in range(3):
            connector.resolve("https://example.test")

        assert no_sleep == [0.25, 0.5]

    def test_zero_rate_disables_pacing(self, http_settings, no_sleep) -> None:
        connector = PlainConnector(
            source="test",
            http_settings=http_settings,
            session=FakeSession(lambda _: FakeResponse({"ok": 1})),
        )

        connector.resolve("https://example.test")
        connector.resolve("https://example.test")

        assert no_sleep == []

    def _connector(self, http_settings, handler, *, retries: int = 2) -> BaseConnector:
        settings = type(http_settings)(
            timeout_seconds=http_settings.timeout_seconds,
            max_retries=retries,
            backoff_initial_seconds=0.5,
            backoff_multiplier=2.0,
        )
        return PlainConnector(source="test", http_settings=settings, session=FakeSession(handler))

    def test_retries_server_errors_with_backoff(self, http_settings, no_sleep) -> None:
        responses = iter([FakeResponse({}, status_code=503), FakeResponse({}, status_code=502), FakeResponse({"ok": 1})])
        connector = self._connector(http_settings, lambda _: next(responses))

        assert connector._request_json(method="GET", url="https://example.test") == {"ok": 1}
        assert no_sleep == [0.5, 1.0]

    def test_honours_retry_after(self, http_settings, no_sleep) -> None:
        responses = iter([FakeResponse({}, status_code=429, headers={"Retry-After": "7"}), FakeResponse({"ok": 1})])
        connector = self._connector(http_settings, lambda _: next(responses))

        connector._request_json(method="GET", url="https://example.test")

        assert no_sleep == [7.0]

    def test_retries_timeouts_then_gives_up(self, http_settings, no_sleep) -> None:
        def handler(_: dict[str, Any]) -> FakeResponse:
            raise requests.Timeout("read timed out")

        connector = self._connector(http_settings, handler, retries=1)

        with pytest.raises(ConnectorRequestError, match="after retries"):
            connector._request_json(method="GET", url="https://example.test")
        assert len(no_sleep) == 1

    def test_client_error_is_not_retried(self, http_settings, no_sleep) -> None:
        session = FakeSession(lambda _: FakeResponse({}, status_code=401))
        connector = PlainConnector(source="test", http_settings=http_settings, session=session)

        with pytest.raises(ConnectorRequestError, match="HTTP 401"):
            connector._request_json(method="GET", url="https://example.test")
        assert len(session.requests) == 1
        assert no_sleep == []

    def test_invalid_json_raises(self, http_settings) -> None:
        connector = PlainConnector(
            source="test",
            http_settings=http_settings,
            session=FakeSession(lambda _: FakeResponse(None, text="<html>")),
        )

        with pytest.raises(ConnectorRequestError, match="not valid JSON"):
            connector._request_json(method="GET", url="https://example.test")

    @pytest.mark.parametrize(
        "value, expected",
        [("  abc ", "abc"), ("", None), (210, "210"), (210.0, "210"), (2.5, "2.5"), (True, None), (None, None)],
    )
    def test_stringify_field(self, value, expected) -> None:
        assert stringify_field(value) == expected


# ---------------------------------------------------------------------------
# Notion
# ---------------------------------------------------------------------------


NOTION_SETTINGS = NotionSettings(api_key="secret_abc", database_id="db123", rate_limit_per_second=100.0)


def _notion_page(olt: dict[str, Any] | None, ont_name: str = "</>", ont: str = "1/2/3") -> dict[str, Any]:
    properties: dict[str, Any] = {
        "Description": {"type": "title", "title": [{"plain_text": "fx-157591-cliente"}]},
        ont_name: {"type": "rich_text", "rich_text": [{"plain_text": ont}]},
    }
    if olt is not None:
        properties["OLT"] = olt
    return {"results": [{"properties": properties}]}


class TestNotionConnector:
    def test_resolves_select_olt_and_ont(self, http_settings) -> None:
        page = _notion_page({"type": "select", "select": {"name": "olt-norte-01"}})
        session = FakeSession(lambda _: FakeResponse(page))
        connector = NotionConnector(settings=NOTION_SETTINGS, http_settings=http_settings, session=session)

        info = connector.resolve("157591")

        assert (info.olt_host, info.ont_address) == ("olt-norte-01", "1/2/3")
        sent = session.requests[0]
        assert sent["url"].endswith("/databases/db123/query")
        assert sent["headers"]["Authorization"] == "Bearer secret_abc"
        assert sent["headers"]["Notion-Version"] == "2022-06-28"
        assert sent["json"] == {"filter": {"property": "Description", "title": {"contains": "fx-157591-"}}}

    def test_ont_column_reported_as_empty_name(self, http_settings) -> None:
        page = _notion_page({"type": "rich_text", "rich_text": [{"plain_text": "olt-sur"}]}, ont_name="")
        connector = NotionConnector(
            settings=NOTION_SETTINGS, http_settings=http_settings, session=FakeSession(lambda _: FakeResponse(page))
        )

        assert connector.resolve("157591").ont_address == "1/2/3"

    def test_search_falls_through_patterns_in_order(self, http_settings) -> None:
        page = _notion_page({"select": {"name": "olt-1"}})

        def handler(kwargs: dict[str, Any]) -> FakeResponse:
            condition = kwargs["json"]["filter"].get("rich_text", {})
            if condition.get("contains") == "fx157591":
                return FakeResponse(page)
            return FakeResponse({"results": []})

        session = FakeSession(handler)
        connector = NotionConnector(settings=NOTION_SETTINGS, http_settings=http_settings, session=session)

        connector.resolve("157591")

        tried = [
            (next(key for key in r["json"]["filter"] if key != "property"), r["json"]["filter"])
            for r in session.requests
        ]
        assert [(kind, flt[kind]["contains"]) for kind, flt in tried] == [
            ("title", "fx-157591-"),
            ("rich_text", "fx-157591-"),
            ("title", "fx157591"),
            ("rich_text", "fx157591"),
        ]

    def test_not_found_after_all_patterns(self, http_settings) -> None:
        session = FakeSession(lambda _: FakeResponse({"results": []}))
        connector = NotionConnector(settings=NOTION_SETTINGS, http_settings=http_settings, session=session)

        with pytest.raises(SourceLookupError, match="circuit not found in notion") as excinfo:
            connector.resolve("999")
        assert excinfo.value.source == "notion"
        assert len(session.requests) == 8

    def test_missing_olt_property(self, http_settings) -> None:
        connector = NotionConnector(
            settings=NOTION_SETTINGS,
            http_settings=http_settings,
            session=FakeSession(lambda _: FakeResponse(_notion_page(None))),
        )

        with pytest.raises(SourceLookupError, match="OLT property not found"):
            connector.resolve("157591")

    def test_failed_pattern_query_moves_to_next_pattern(self, http_settings) -> None:
        page = _notion_page({"select": {"name": "olt-1"}})

        def handler(kwargs: dict[str, Any]) -> FakeResponse:
            condition = kwargs["json"]["filter"]
            if condition.get("title", {}).get("contains") == "fx-157591-":
                return FakeResponse({}, status_code=400)
            if condition.get("title", {}).get("contains") == "fx157591":
                return FakeResponse(page)
            return FakeResponse({"results": []})

        session = FakeSession(handler)
        connector = NotionConnector(settings=NOTION_SETTINGS, http_settings=http_settings, session=session)

        assert connector.resolve("157591").olt_host == "olt-1"
        assert [r["json"]["filter"].get("title", {}).get("contains") for r in session.requests] == [
            "fx-157591-",
            "fx157591",
        ]

    def test_failed_bare_cid_query_is_raised(self, http_settings) -> None:
        def handler(kwargs: dict[str, Any]) -> FakeResponse:
            condition = kwargs["json"]["filter"]
            if condition.get("title", {}).get("contains") == "157591":
                return FakeResponse({}, status_code=400)
            return FakeResponse({"results": []})

        connector = NotionConnector(
            settings=NOTION_SETTINGS, http_settings=http_settings, session=FakeSession(handler)
        )

        with pytest.raises(SourceLookupError, match="HTTP 400") as excinfo:
            connector.resolve("157591")
        assert excinfo.value.source == "notion"

    def test_unconfigured_connector_fails_lookup(self, http_settings) -> None:
        connector = NotionConnector(
            settings=NotionSettings(),
            http_settings=http_settings,
            session=FakeSession(lambda _: pytest.fail("no request expected")),
        )

        with pytest.raises(SourceLookupError, match="not configured"):
            connector.resolve("157591")


# ---------------------------------------------------------------------------
# Zabbix
# ---------------------------------------------------------------------------


ZABBIX_SETTINGS = ZabbixSettings(
    url="https://zabbix.example.test/api_jsonrpc.php",
    user="api",
    password="pw",
    rate_limit_per_second=100.0,
)


def _zabbix_handler(items: list[dict[str, str]], *, status_value: str = "online"):
    def handler(kwargs: dict[str, Any]) -> FakeResponse:
        body = kwargs["json"]
        if body["method"] == "user.login":
            return FakeResponse({"jsonrpc": "2.0", "result": "tok-1", "id": body["id"]})
        params = body["params"]
        if "filter" in params:
            key = params["filter"]["key_"]
            result = [{"key_": key, "lastvalue": status_value}]
        else:
            result = items
        return FakeResponse({"jsonrpc": "2.0", "result": result, "id": body["id"]})

    return handler


class TestZabbixConnector:
    def _connector(self, http_settings, handler) -> tuple[ZabbixConnector, FakeSession]:
        session = FakeSession(handler)
        return ZabbixConnector(settings=ZABBIX_SETTINGS, http_settings=http_settings, session=session), session

    def test_resolves_status_and_power(self, http_settings) -> None:
        connector, session = self._connector(
            http_settings,
            _zabbix_handler([{"key_": "rx power:2/3", "lastvalue": "-21.40"}, {"key_": "other", "lastvalue": "1"}]),
        )
        connector.authenticate()

        info = connector.resolve("olt-norte-01", "0/2/3")

        assert info.status == "online"
        assert info.rx_power == "-21.40 dBm"
        login, status_call = session.requests[0]["json"], session.requests[1]["json"]
        assert login["params"] == {"username": "api", "password": "pw"}
        assert "auth" not in login
        assert status_call["auth"] == "tok-1"
        assert status_call["params"]["filter"] == {"key_": "gpon_2_status"}
        assert status_call["params"]["host"] == "olt-norte-01"
        assert session.requests[1]["headers"]["Content-Type"] == "application/json-rpc"

    def test_zero_power_reading_means_no_signal(self, http_settings) -> None:
        connector, _ = self._connector(http_settings, _zabbix_handler([{"key_": "rx power:2/3", "lastvalue": "0"}]))
        connector.authenticate()

        assert connector.resolve("olt", "0/2/3").rx_power is None

    @pytest.mark.parametrize("exact_value", ["0", ""])
    def test_zero_exact_reading_uses_aggregated_item(self, http_settings, exact_value: str) -> None:
        aggregated = json.dumps([{"interface": "2/3", "rx": "-215"}])
        connector, _ = self._connector(
            http_settings,
            _zabbix_handler(
                [
                    {"key_": "rx power:2/3", "lastvalue": exact_value},
                    {"key_": "ms_item_ont_rx_power_7m", "lastvalue": aggregated},
                ]
            ),
        )
        connector.authenticate()

        assert connector.resolve("olt", "0/2/3").rx_power == "-21.5 dBm"

    def test_json_item_fallback(self, http_settings) -> None:
        aggregated = json.dumps(
            [
                {"interface": "2/4", "onustatus": "1", "rx": "-180"},
                {"interface": "2/3", "onustatus": "1", "indice": "7", "rx": "-215"},
            ]
        )
        connector, _ = self._connector(
            http_settings,
            _zabbix_handler([{"key_": "MS_ITEM_ONT_RX_POWER[slot2]", "lastvalue": aggregated}]),
        )
        connector.authenticate()

        assert connector.resolve("olt", "0/2/3").rx_power == "-21.5 dBm"

    def test_call_before_authenticate_fails(self, http_settings) -> None:
        connector, session = self._connector(http_settings, _zabbix_handler([]))

        with pytest.raises(SourceLookupError, match="not authenticated"):
            connector.resolve("olt", "0/2/3")
        assert session.requests == []

    def test_api_error_envelope(self, http_settings) -> None:
        def handler(kwargs: dict[str, Any]) -> FakeResponse:
            return FakeResponse(
                {
                    "jsonrpc": "2.0",
                    "error": {"code": -32602, "message": "Invalid params.", "data": "Login name or password is incorrect."},
                    "id": kwargs["json"]["id"],
                }
            )

        connector, _ = self._connector(http_settings, handler)

        with pytest.raises(SourceLookupError, match="api error -32602: Invalid params.") as excinfo:
            connector.authenticate()
        assert excinfo.value.source == "zabbix"

    def test_invalid_ont_address(self, http_settings) -> None:
        connector, _ = self._connector(http_settings, _zabbix_handler([]))
        connector.authenticate()

        with pytest.raises(SourceLookupError, match="invalid ONT address"):
            connector.resolve("olt", "2/3")

    def test_ont_address_keys(self) -> None:
        address = OntAddress.parse(" 0 / 5 / 12 ")

        assert address.status_key == "gpon_5_status"
        assert address.power_key == "rx power:5/12"

    @pytest.mark.parametrize("raw, expected", [("-19.2", "-19.2 dBm"), ("0", None), ("", None), (None, None)])
    def test_format_rx_power(self, raw, expected) -> None:
        assert format_rx_power(raw) == expected

    def test_json_item_ignores_other_interfaces_and_bad_payloads(self) -> None:
        assert rx_power_from_json_item('[{"interface": "1/1", "rx": "-200"}]', "1/2") is None
        assert rx_power_from_json_item("not json", "1/1") is None
        assert rx_power_from_json_item('{"interface": "1/1"}', "1/1") is None


# ---------------------------------------------------------------------------
# Ubersmith
# ---------------------------------------------------------------------------


UBERSMITH_SETTINGS = UbersmithSettings(
    url="https://billing.example.test/api/2.0/",
    user="api",
    password="pw",
    rate_limit_per_second=100.0,
)


class TestUbersmithConnector:
    def test_direct_service_fields(self, http_settings) -> None:
        payload = {
            "status": True,
            "data": {"service_id": "157591", "pppoe_user": "user157591", "pppoe_pass": "s3cret", "vlan": 210},
        }
        session = FakeSession(lambda _: FakeResponse(payload))
        connector = UbersmithConnector(settings=UBERSMITH_SETTINGS, http_settings=http_settings, session=session)

        details = connector.resolve("157591")

        assert (details.username, details.password, details.vlan) == ("user157591", "s3cret", "210")
        sent = session.requests[0]
        assert sent["method"] == "GET"
        assert sent["params"] == {"method": "client.service_get", "service_id": "157591", "include_custom_fields": 1}
        assert sent["auth"] == ("api", "pw")

    def test_falls_back_through_methods(self, http_settings) -> None:
        def handler(kwargs: dict[str, Any]) -> FakeResponse:
            method = kwargs["params"]["method"]
            if method == "service.get":
                return FakeResponse(
                    {
                        "status": True,
                        "data": {
                            "service_id": "42",
                            "custom_fields": [
                                {"name": "PPPoE Username", "value": "cliente42"},
                                {"name": "PPPoE Password", "value": "pw42"},
                                {"name": "VLAN ID", "value": 300},
                            ],
                        },
                    }
                )
            return FakeResponse({"status": False, "error_code": 1, "error_message": "Invalid method"})

        session = FakeSession(handler)
        connector = UbersmithConnector(settings=UBERSMITH_SETTINGS, http_settings=http_settings, session=session)

        details = connector.resolve("42")

        assert (details.username, details.password, details.vlan) == ("cliente42", "pw42", "300")
        assert [r["params"]["method"] for r in session.requests] == [
            "client.service_get",
            "client.service_get",
            "service.get",
        ]

    def test_reports_last_error_when_every_method_fails(self, http_settings) -> None:
        session = FakeSession(lambda _: FakeResponse({"status": False, "error_message": "Service not found"}))
        connector = UbersmithConnector(settings=UBERSMITH_SETTINGS, http_settings=http_settings, session=session)

        with pytest.raises(SourceLookupError) as excinfo:
            connector.resolve("404")

        assert excinfo.value.source == "ubersmith"
        assert excinfo.value.message == "service.list: Service not found"
        assert len(session.requests) == 6

    def test_string_data_is_rejected(self, http_settings) -> None:
        session = FakeSession(lambda _: FakeResponse({"status": True, "data": "no access"}))
        connector = UbersmithConnector(settings=UBERSMITH_SETTINGS, http_settings=http_settings, session=session)

        with pytest.raises(SourceLookupError, match="data returned as string"):
            connector.resolve("1")

    def test_select_service_from_list_payload(self) -> None:
        data = {"11": {"packid": "11", "username": "a"}, "42": {"packid": "42", "username": "b"}}

        assert select_service(data, "42") == {"packid": "42", "username": "b"}
        assert select_service([{"service_id": 1}], "9") == {"service_id": 1}
        assert select_service("nope", "1") is None

    def test_custom_field_mapping(self) -> None:
        details = extract_service_details(
            {"service_id": "1", "metadata": {"pppoe_user_name": "u1", "pppoe_password_cliente": "p1", "vlan": "77"}}
        )

        assert (details.username, details.password, details.vlan) == ("u1", "p1", "77")
