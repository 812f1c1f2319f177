"""Application factory for creating and configuring the FastAPI application.

The service exposes a health endpoint only; host applications mount their
own routes and protect them with `OperationRateLimitGuard`.
"""

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse

from verigate.core.config.settings import settings
from verigate.core.handlers import register_exception_handlers
from verigate.core.lifecycle import create_lifespan_manager
from verigate.domain.interfaces.store import ISharedStore
from verigate.infrastructure.dependency_injection.verification_dependencies import (
    get_shared_store,
)


async def health(store: ISharedStore = Depends(get_shared_store)) -> JSONResponse:
    """Report service health and shared store reachability."""
    store_ok = await store.ping()
    return JSONResponse(
        status_code=200,
        content={
            "status": "ok" if store_ok else "degraded",
            "store": "ok" if store_ok else "unavailable",
            "version": settings.VERSION,
        },
    )


def create_application() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: The configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        lifespan=create_lifespan_manager(),
        default_response_class=JSONResponse,
    )

    register_exception_handlers(app)
    app.add_api_route("/health", health, methods=["GET"], tags=["health"])

    return app
