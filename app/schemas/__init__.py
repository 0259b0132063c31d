"""
app/schemas package marker.
"""

from app.schemas.upstream import (
    NotionProperty,
    NotionQueryResponse,
    UbersmithResponse,
    ZabbixItem,
    ZabbixResponse,
)

__all__ = [
    "NotionProperty",
    "NotionQueryResponse",
    "UbersmithResponse",
    "ZabbixItem",
    "ZabbixResponse",
]
