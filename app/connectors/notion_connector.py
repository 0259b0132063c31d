"""
app/connectors/notion_connector.py

Notion connector for network-info lookups (circuit -> OLT host + ONT address).
"""

from __future__ import annotations

import logging
from typing import Any

import requests
from pydantic import ValidationError

from app.config import ExternalHTTPSettings, NotionSettings
from app.connectors.base import BaseConnector, ConnectorRequestError
from app.domain.circuit import NetworkInfo
from app.domain.errors import SourceLookupError
from app.schemas.upstream import NotionPage, NotionQueryResponse

logger = logging.getLogger(__name__)

DESCRIPTION_PROPERTY = "Description"
OLT_PROPERTY = "OLT"
# The ONT column header is "</>", which the API reports as an empty name.
ONT_PROPERTIES = ("", "</>")


class NotionConnector(BaseConnector):
    """
    Looks circuits up in the Notion inventory database.

    Rows are matched on the `Description` property, trying the `fx-<CID>-`
    naming conventions before falling back to the bare CID. Each pattern is
    tried as a title filter, then as a rich_text filter.
    """

    def __init__(
        self,
        *,
        settings: NotionSettings,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(
            source="notion",
            http_settings=http_settings,
            rate_limit_per_second=settings.rate_limit_per_second,
            session=session,
        )
        self._settings = settings

    def resolve(self, circuit_id: str) -> NetworkInfo:
        page = self._find_page(circuit_id)
        if page is None:
            raise SourceLookupError("circuit not found in notion", source=self.source)

        olt_prop = page.properties.get(OLT_PROPERTY)
        if olt_prop is None:
            raise SourceLookupError("OLT property not found in notion page", source=self.source)
        olt_host = olt_prop.first_text(prefer_select=True)
        if not olt_host:
            raise SourceLookupError("OLT property is empty in notion page", source=self.source)

        ont_prop = next(
            (page.properties[name] for name in ONT_PROPERTIES if name in page.properties),
            None,
        )
        if ont_prop is None:
            raise SourceLookupError("ONT (</>) property not found in notion page", source=self.source)
        ont_address = ont_prop.first_text()
        if not ont_address:
            raise SourceLookupError("ONT (</>) property is empty in notion page", source=self.source)

        return NetworkInfo(olt_host=olt_host, ont_address=ont_address)

    def _find_page(self, circuit_id: str) -> NotionPage | None:
        if not self._settings.api_key or not self._settings.database_id:
            raise SourceLookupError("NOTION_API_KEY / NOTION_DATABASE_ID not configured", source=self.source)

        # A failed query on a naming pattern moves on to the next pattern;
        # only failures on the bare CID fallback are raised.
        for pattern in (f"fx-{circuit_id}-", f"fx{circuit_id}", f"fx-{circuit_id}"):
            try:
                page = self._match_pattern(circuit_id, pattern)
            except SourceLookupError as exc:
                logger.debug("Notion query failed cid=%s pattern=%r: %s", circuit_id, pattern, exc)
                continue
            if page is not None:
                return page
        return self._match_pattern(circuit_id, circuit_id)

    def _match_pattern(self, circuit_id: str, pattern: str) -> NotionPage | None:
        for filter_type in ("title", "rich_text"):
            response = self._query(
                {
                    "filter": {
                        "property": DESCRIPTION_PROPERTY,
                        filter_type: {"contains": pattern},
                    }
                }
            )
            if response.results:
                logger.debug(
                    "Notion match cid=%s pattern=%r filter=%s",
                    circuit_id,
                    pattern,
                    filter_type,
                )
                return response.results[0]
        return None

    def _query(self, body: dict[str, Any]) -> NotionQueryResponse:
        url = f"{self._settings.base_url}/databases/{self._settings.database_id}/query"
        try:
            payload = self._request_json(
                method="POST",
                url=url,
                json_body=body,
                headers={
                    "Authorization": f"Bearer {self._settings.api_key}",
                    "Notion-Version": self._settings.api_version,
                    "Content-Type": "application/json",
                },
            )
            return NotionQueryResponse.model_validate(payload)
        except ConnectorRequestError as exc:
            raise SourceLookupError(str(exc), source=self.source) from exc
        except ValidationError as exc:
            raise SourceLookupError(
                f"unexpected query response shape: {exc.error_count()} error(s)",
                source=self.source,
            ) from exc
