"""
app/schemas/upstream.py

Payload schemas for the Notion, Zabbix and Ubersmith APIs.

Only the fields the connectors read are modeled; everything else is ignored.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _UpstreamModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


# ---------------------------------------------------------------------------
# Notion
# ---------------------------------------------------------------------------


class NotionText(_UpstreamModel):
    plain_text: str = ""


class NotionSelect(_UpstreamModel):
    name: str = ""


class NotionProperty(_UpstreamModel):
    """
    One database property; OLT is a `select`, the ONT column is `rich_text`.
    """

    type: str | None = None
    title: list[NotionText] = Field(default_factory=list)
    rich_text: list[NotionText] = Field(default_factory=list)
    select: NotionSelect | None = None

    def first_text(self, *, prefer_select: bool = False) -> str | None:
        if prefer_select and self.select is not None and self.select.name.strip():
            return self.select.name.strip()
        for fragments in (self.rich_text, self.title):
            if fragments and fragments[0].plain_text.strip():
                return fragments[0].plain_text.strip()
        return None


class NotionPage(_UpstreamModel):
    properties: dict[str, NotionProperty] = Field(default_factory=dict)


class NotionQueryResponse(_UpstreamModel):
    results: list[NotionPage] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Zabbix (JSON-RPC 2.0)
# ---------------------------------------------------------------------------


class ZabbixErrorDetail(_UpstreamModel):
    code: int = 0
    message: str = ""
    data: str = ""


class ZabbixResponse(_UpstreamModel):
    result: Any = None
    error: ZabbixErrorDetail | None = None


class ZabbixItem(_UpstreamModel):
    itemid: str | None = None
    name: str | None = None
    key_: str = ""
    lastvalue: str = ""


# ---------------------------------------------------------------------------
# Ubersmith
# ---------------------------------------------------------------------------


class UbersmithResponse(_UpstreamModel):
    status: bool = False
    error_code: int | None = None
    error_message: str | None = None
    data: Any = None
