"""HTTP routers."""

from quiniela.routes.api import router as api_router
from quiniela.routes.core import router as core_router

__all__ = ["api_router", "core_router"]
