"""
API routers.

- sessions: open/join/close/clear, join codes, summaries (/api/sessions)
- tables: QR code scan lookup (/api/tables)
- orders: placing, status workflow, attribution (/api/orders)
- admin: delete/restore/purge and session listing (/api/admin)
- health: liveness and dependency checks (/api/health)
"""

from .sessions import router as sessions_router
from .tables import router as tables_router
from .orders import router as orders_router
from .admin import router as admin_router
from .health import router as health_router

__all__ = [
    "sessions_router",
    "tables_router",
    "orders_router",
    "admin_router",
    "health_router",
]
