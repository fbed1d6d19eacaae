"""HTTP surface: on-demand reconciliation and health."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from print_notifier import __version__
from print_notifier.logging import get_logger
from print_notifier.logging.config import SERVICE_NAME
from print_notifier.logging.context import log_context
from print_notifier.runtime import NotifierRuntime
from print_notifier.store.exceptions import PersistenceError

logger = get_logger(__name__, component="api")


def create_app(runtime: NotifierRuntime, manage_lifecycle: bool = True) -> FastAPI:
    """Build the FastAPI application around a runtime.

    With ``manage_lifecycle`` the lifespan starts the runtime (database,
    scheduler, listener) and stops it on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manage_lifecycle:
            await runtime.start()
        app.state.runtime = runtime
        try:
            yield
        finally:
            if manage_lifecycle:
                await runtime.stop()

    app = FastAPI(title="Print Notifier", version=__version__, lifespan=lifespan)

    @app.get("/check-completed-jobs")
    async def check_completed_jobs():
        with log_context(trigger="on_demand"):
            try:
                outcomes = await runtime.check_completed_jobs()
            except PersistenceError as e:
                logger.error(
                    f"Error checking completed jobs: {e}",
                    extra={"event": "on_demand.failed", "error_type": type(e).__name__},
                )
                return JSONResponse(status_code=500, content={"error": str(e)})
            except Exception as e:
                logger.error(
                    f"Unexpected error checking completed jobs: {e}",
                    extra={"event": "on_demand.failed", "error_type": type(e).__name__},
                    exc_info=True,
                )
                return JSONResponse(status_code=500, content={"error": str(e)})

        return {
            "message": "Processed completed jobs",
            "results": [outcome.to_payload() for outcome in outcomes],
        }

    @app.get("/health")
    async def health():
        store_ok = await runtime.store.ping()
        return {
            "status": "ok" if store_ok else "degraded",
            "service": SERVICE_NAME,
            "store": store_ok,
        }

    return app
