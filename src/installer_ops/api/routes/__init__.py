"""API routes."""

from installer_ops.api.routes.certificates import router as certificates_router
from installer_ops.api.routes.health import router as health_router
from installer_ops.api.routes.invoices import router as invoices_router
from installer_ops.api.routes.timeline import router as timeline_router
from installer_ops.api.routes.timesheets import router as timesheets_router

__all__ = [
    "certificates_router",
    "health_router",
    "invoices_router",
    "timeline_router",
    "timesheets_router",
]
