"""API v1 Route modules."""

from backend.routers.v1 import admin, deposits, earnings, shifts

__all__ = ["admin", "deposits", "earnings", "shifts"]
