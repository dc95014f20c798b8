"""Shared API dependencies."""
from functools import lru_cache

from anoncheckin.core.config import settings
from anoncheckin.services import LedgerServices, build_services, create_wallet


@lru_cache(maxsize=1)
def get_services() -> LedgerServices:
    """Process-wide ledger services built from the startup settings."""
    return build_services(settings, create_wallet(settings))


__all__ = ["get_services"]
