"""IdoSell admin API integration."""

from order_service.infrastructure.idosell.client import IdosellClient

__all__ = ["IdosellClient"]
