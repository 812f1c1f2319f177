"""Application lifecycle management.

Startup loads the message catalogs, validates every rate limit policy (an
invalid one aborts startup), checks the shared store and starts the metrics flush task. Shutdown flushes
the remaining metrics and closes the store connection.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from verigate.core.config.settings import settings
from verigate.core.logging import configure_logging, logger
from verigate.infrastructure.dependency_injection.verification_dependencies import (
    get_metrics_publisher,
    get_policy_resolver,
    get_shared_store,
)
from verigate.infrastructure.stores.redis_store import RedisSharedStore
from verigate.utils.i18n import setup_i18n


def create_lifespan_manager():
    """Create the application lifespan manager.

    Returns:
        AsyncContextManager: The lifespan manager for the FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle startup and shutdown of shared resources.

        Args:
            app (FastAPI): The FastAPI application instance

        Raises:
            ConfigurationError: If a rate limit policy is invalid
        """
        configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)

        # Startup
        setup_i18n()
        app.state.policy_resolver = get_policy_resolver()
        store = get_shared_store()
        if not await store.ping():
            # Rate limiting fails open and code operations fail closed until it recovers.
            logger.warning("shared_store_unavailable_on_startup", backend=settings.STORE_BACKEND)
        metrics = get_metrics_publisher()
        metrics.start()
        logger.info("application_startup", env=settings.APP_ENV, version=settings.VERSION)

        yield

        # Shutdown
        await metrics.stop()
        if isinstance(store, RedisSharedStore):
            await store.close()
        logger.info("application_shutdown", env=settings.APP_ENV)

    return lifespan
