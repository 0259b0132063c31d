"""
app/connectors/zabbix_connector.py

Zabbix JSON-RPC connector for optical-info lookups
(OLT host + ONT address -> GPON status + rx power).
"""

from __future__ import annotations

import itertools
import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import requests
from pydantic import TypeAdapter, ValidationError

from app.config import ExternalHTTPSettings, ZabbixSettings
from app.connectors.base import BaseConnector, ConnectorRequestError
from app.domain.circuit import OpticalInfo
from app.domain.errors import SourceLookupError
from app.schemas.upstream import ZabbixItem, ZabbixResponse

logger = logging.getLogger(__name__)

RX_POWER_JSON_ITEM_MARKER = "ms_item_ont_rx_power"
_RX_POWER_JSON_SKIP_KEYS = frozenset({"interface", "onustatus", "indice", "contador"})
_ITEM_LIST = TypeAdapter(list[ZabbixItem])


@dataclass(frozen=True)
class ZabbixSession:
    token: str
    authenticated_at: datetime


@dataclass(frozen=True)
class OntAddress:
    """
    `frame/slot/index` address; the status key uses the slot, the power key
    uses slot/index.
    """

    frame: str
    slot: str
    index: str

    @classmethod
    def parse(cls, raw: str) -> "OntAddress":
        parts = [part.strip() for part in raw.strip().split("/")]
        if len(parts) < 3 or not all(parts[:3]):
            raise SourceLookupError(f"invalid ONT address format: {raw!r}", source="zabbix")
        return cls(frame=parts[0], slot=parts[1], index=parts[2])

    @property
    def interface(self) -> str:
        return f"{self.slot}/{self.index}"

    @property
    def status_key(self) -> str:
        return f"gpon_{self.slot}_status"

    @property
    def power_key(self) -> str:
        return f"rx power:{self.interface}"


class ZabbixConnector(BaseConnector):
    """
    Reads GPON status and receive power items from the OLT host in Zabbix.

    `authenticate()` must be called before lookups; the run controller
    re-authenticates at the start of every run since tokens expire.
    """

    def __init__(
        self,
        *,
        settings: ZabbixSettings,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(
            source="zabbix",
            http_settings=http_settings,
            rate_limit_per_second=settings.rate_limit_per_second,
            session=session,
        )
        self._settings = settings
        self._auth: ZabbixSession | None = None
        self._auth_lock = threading.Lock()
        self._request_ids = itertools.count(1)

    def authenticate(self) -> ZabbixSession:
        """
        Log in with `user.login` and replace the cached session token.
        """

        if not self._settings.user or not self._settings.password:
            raise SourceLookupError("ZABBIX_USER / ZABBIX_PASSWORD not configured", source=self.source)

        result = self._call(
            "user.login",
            {"username": self._settings.user, "password": self._settings.password},
            authenticated=False,
        )
        if not isinstance(result, str) or not result:
            raise SourceLookupError("user.login did not return a token", source=self.source)

        session = ZabbixSession(token=result, authenticated_at=datetime.now(timezone.utc))
        with self._auth_lock:
            self._auth = session
        return session

    def resolve(self, olt_host: str, ont_address: str) -> OpticalInfo:
        address = OntAddress.parse(ont_address)
        status = self._fetch_status(olt_host, address)
        rx_power = self._fetch_rx_power(olt_host, address)
        return OpticalInfo(status=status, rx_power=rx_power)

    def _fetch_status(self, olt_host: str, address: OntAddress) -> str | None:
        items = self._get_items(
            {
                "output": ["lastvalue", "key_"],
                "host": olt_host,
                "filter": {"key_": address.status_key},
            }
        )
        for item in items:
            if item.key_ == address.status_key:
                return item.lastvalue or None
        return None

    def _fetch_rx_power(self, olt_host: str, address: OntAddress) -> str | None:
        # The power item filter is unreliable on some OLT templates, so all host
        # items are listed and matched locally.
        try:
            items = self._get_items({"output": ["lastvalue", "key_"], "host": olt_host})
        except SourceLookupError as exc:
            logger.debug("Zabbix rx power lookup failed host=%s ont=%s: %s", olt_host, address.interface, exc)
            return None

        for item in items:
            if item.key_ == address.power_key:
                logger.debug("Zabbix rx power key found key=%r value=%r", item.key_, item.lastvalue)
                value = format_rx_power(item.lastvalue)
                if value is not None:
                    return value
                break

        # A missing or zero per-port reading falls back to the aggregated item.
        for item in items:
            if RX_POWER_JSON_ITEM_MARKER in item.key_.lower():
                value = rx_power_from_json_item(item.lastvalue, address.interface)
                if value is not None:
                    return value
        return None

    def _get_items(self, params: dict[str, Any]) -> list[ZabbixItem]:
        result = self._call("item.get", params)
        try:
            return _ITEM_LIST.validate_python(result)
        except ValidationError as exc:
            raise SourceLookupError(
                f"unexpected item.get response shape: {exc.error_count()} error(s)",
                source=self.source,
            ) from exc

    def _call(self, method: str, params: dict[str, Any], *, authenticated: bool = True) -> Any:
        if not self._settings.url:
            raise SourceLookupError("ZABBIX_URL not configured", source=self.source)

        body: dict[str, Any] = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._request_ids),
        }
        if authenticated:
            with self._auth_lock:
                auth = self._auth
            if auth is None:
                raise SourceLookupError("not authenticated; call authenticate() first", source=self.source)
            body["auth"] = auth.token

        try:
            payload = self._request_json(
                method="POST",
                url=self._settings.url,
                json_body=body,
                headers={"Content-Type": "application/json-rpc"},
            )
            response = ZabbixResponse.model_validate(payload)
        except ConnectorRequestError as exc:
            raise SourceLookupError(str(exc), source=self.source) from exc
        except ValidationError as exc:
            raise SourceLookupError("response was not a JSON-RPC envelope", source=self.source) from exc

        if response.error is not None:
            raise SourceLookupError(
                f"api error {response.error.code}: {response.error.message} {response.error.data}".rstrip(),
                source=self.source,
            )
        return response.result


def format_rx_power(raw: str | None) -> str | None:
    """
    Suffix a reading with dBm; a zero reading means the ONT has no signal.
    """

    value = (raw or "").strip()
    if not value or value == "0":
        return None
    return f"{value} dBm"


def rx_power_from_json_item(raw: str, interface: str) -> str | None:
    """
    Extract one ONT's reading from an aggregated rx power item.

    The item value is a JSON array of objects keyed by `interface` whose
    numeric reading is expressed in tenths of dBm.
    """

    try:
        entries = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(entries, list):
        return None

    for entry in entries:
        if not isinstance(entry, dict) or entry.get("interface") != interface:
            continue
        for key, value in entry.items():
            if key in _RX_POWER_JSON_SKIP_KEYS:
                continue
            try:
                reading = float(value)
            except (TypeError, ValueError):
                continue
            if reading != 0:
                return f"{reading / 10.0:.1f} dBm"
    return None
