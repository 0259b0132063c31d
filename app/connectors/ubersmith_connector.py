"""
app/connectors/ubersmith_connector.py

Ubersmith connector for service-detail lookups
(circuit -> PPPoE username/password and VLAN).

In Ubersmith the circuit CID is the service id. Deployments expose the
service through different API methods and store the PPPoE fields either as
plain service attributes or as named custom fields, so the lookup walks a
list of method candidates and discovers fields by name.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

import requests
from pydantic import ValidationError

from app.config import ExternalHTTPSettings, UbersmithSettings
from app.connectors.base import BaseConnector, ConnectorRequestError, stringify_field
from app.domain.circuit import ServiceDetails
from app.domain.errors import SourceLookupError
from app.logging_utils import mask_secret
from app.schemas.upstream import UbersmithResponse

logger = logging.getLogger(__name__)

# (api method, include_custom_fields)
SERVICE_METHODS: tuple[tuple[str, bool], ...] = (
    ("client.service_get", True),
    ("client.service_get", False),
    ("service.get", False),
    ("uber.service_get", False),
    ("client.service_list", False),
    ("service.list", False),
)

USERNAME_FIELDS = ("username", "pppoe_user", "pppoe_username", "login")
PASSWORD_FIELDS = ("password", "pppoe_pass", "pppoe_password")
VLAN_FIELDS = ("vlan", "vlan_id", "VLAN")
SERVICE_ID_FIELDS = ("service_id", "packid")
CUSTOM_FIELD_CONTAINERS = ("custom_fields", "metadata")


class UbersmithConnector(BaseConnector):
    def __init__(
        self,
        *,
        settings: UbersmithSettings,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(
            source="ubersmith",
            http_settings=http_settings,
            rate_limit_per_second=settings.rate_limit_per_second,
            session=session,
        )
        self._settings = settings

    def resolve(self, circuit_id: str) -> ServiceDetails:
        if not self._settings.url:
            raise SourceLookupError("UBERSMITH_URL not configured", source=self.source)

        last_error = f"service not found for CID {circuit_id}"
        for method, include_custom_fields in SERVICE_METHODS:
            try:
                data = self._call(method, circuit_id, include_custom_fields=include_custom_fields)
            except SourceLookupError as exc:
                logger.debug("Ubersmith method failed cid=%s method=%s: %s", circuit_id, method, exc.message)
                last_error = exc.message
                continue

            service = select_service(data, circuit_id)
            if service is None:
                last_error = f"unexpected data format from {method}"
                continue

            details = extract_service_details(service)
            if details.username or details.password or details.vlan:
                logger.debug(
                    "Ubersmith details found cid=%s method=%s user=%s pass=%s vlan=%s",
                    circuit_id,
                    method,
                    details.username,
                    mask_secret(details.password),
                    details.vlan,
                )
                return details

            logger.debug(
                "Ubersmith service has no PPPoE/VLAN fields cid=%s method=%s keys=%s",
                circuit_id,
                method,
                sorted(service.keys()),
            )
            last_error = f"service found but PPPoE/VLAN fields unavailable for CID {circuit_id}"

        raise SourceLookupError(last_error, source=self.source)

    def _call(self, method: str, circuit_id: str, *, include_custom_fields: bool) -> Any:
        params: dict[str, Any] = {"method": method, "service_id": circuit_id}
        if include_custom_fields:
            params["include_custom_fields"] = 1

        auth = (self._settings.user, self._settings.password or "") if self._settings.user else None
        try:
            payload = self._request_json(
                method="GET",
                url=self._settings.url or "",
                params=params,
                auth=auth,
            )
            response = UbersmithResponse.model_validate(payload)
        except ConnectorRequestError as exc:
            raise SourceLookupError(str(exc), source=self.source) from exc
        except ValidationError as exc:
            raise SourceLookupError(f"{method}: response was not an API envelope", source=self.source) from exc

        if not response.status:
            reason = response.error_message or "status=false"
            raise SourceLookupError(f"{method}: {reason}", source=self.source)
        if response.data is None:
            raise SourceLookupError(f"{method}: 'data' missing from response", source=self.source)
        if isinstance(response.data, str):
            raise SourceLookupError(f"{method}: data returned as string: {response.data}", source=self.source)
        return response.data


def select_service(data: Any, circuit_id: str) -> Mapping[str, Any] | None:
    """
    Pick the service object out of a get-style or list-style `data` payload.
    """

    if isinstance(data, Mapping) and _looks_like_service(data):
        return data

    if isinstance(data, Mapping):
        candidates = [value for value in data.values() if isinstance(value, Mapping)]
    elif isinstance(data, list):
        candidates = [value for value in data if isinstance(value, Mapping)]
    else:
        return None

    if not candidates:
        return None
    for candidate in candidates:
        for key in SERVICE_ID_FIELDS:
            if stringify_field(candidate.get(key)) == circuit_id:
                return candidate
    return candidates[0]


def _looks_like_service(data: Mapping[str, Any]) -> bool:
    known = (*SERVICE_ID_FIELDS, *USERNAME_FIELDS, *PASSWORD_FIELDS, *VLAN_FIELDS, *CUSTOM_FIELD_CONTAINERS)
    return any(key in data for key in known)


def extract_service_details(service: Mapping[str, Any]) -> ServiceDetails:
    username = find_field(service, USERNAME_FIELDS)
    password = find_field(service, PASSWORD_FIELDS)
    vlan = find_field(service, VLAN_FIELDS)

    for name, value in _iter_custom_fields(service):
        text = stringify_field(value)
        if text is None:
            continue
        lowered = name.lower()
        is_pppoe = "pppo" in lowered
        if vlan is None and "vlan" in lowered:
            vlan = text
        elif username is None and is_pppoe and "user" in lowered:
            username = text
        elif password is None and is_pppoe and "pass" in lowered:
            password = text

    return ServiceDetails(username=username, password=password, vlan=vlan)


def find_field(obj: Mapping[str, Any], field_names: Iterable[str]) -> str | None:
    for field_name in field_names:
        value = stringify_field(obj.get(field_name))
        if value is not None:
            return value
    return None


def _iter_custom_fields(service: Mapping[str, Any]) -> Iterable[tuple[str, Any]]:
    """
    Yield (name, value) pairs from `custom_fields`/`metadata` containers,
    given either as a name->value mapping or a list of {name|label, value}.
    """

    for container_key in CUSTOM_FIELD_CONTAINERS:
        container = service.get(container_key)
        if isinstance(container, Mapping):
            for name, value in container.items():
                yield str(name), value
        elif isinstance(container, list):
            for entry in container:
                if not isinstance(entry, Mapping):
                    continue
                name = entry.get("name") or entry.get("label") or entry.get("variable")
                if name:
                    yield str(name), entry.get("value")
