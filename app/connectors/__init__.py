"""
app/connectors package marker.
"""

from app.connectors.base import BaseConnector, ConnectorRequestError
from app.connectors.notion_connector import NotionConnector
from app.connectors.ubersmith_connector import UbersmithConnector
from app.connectors.zabbix_connector import ZabbixConnector, ZabbixSession

__all__ = [
    "BaseConnector",
    "ConnectorRequestError",
    "NotionConnector",
    "UbersmithConnector",
    "ZabbixConnector",
    "ZabbixSession",
]
