from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from salescrm.api.errors import register_error_handlers
from salescrm.api.routes import router as api_router
from salescrm.core.config import get_settings
from salescrm.core.events import InternalEvent, event_bus
from salescrm.events import DOMAIN_EVENT_TYPES
from salescrm.logging import configure_logging
from salescrm.middleware.correlation_id import CorrelationIdMiddleware
from salescrm.middleware.rate_limit import MutationRateLimitMiddleware
from salescrm.middleware.request_logging import RequestLoggingMiddleware
from salescrm.otel import server_request_hook, setup_otel


settings = get_settings()
configure_logging(settings)
logger = logging.getLogger("salescrm.lifecycle")


def _on_domain_event(event: InternalEvent) -> None:
    logger.info("domain_event", extra={"event_name": event.name, "actor_id": event.payload.get("actor_id")})


@asynccontextmanager
async def lifespan(app: FastAPI):
    for event_name in DOMAIN_EVENT_TYPES:
        event_bus.subscribe(event_name, _on_domain_event)
    logger.info("startup", extra={"event_name": "system.started"})
    yield
    logger.info("shutdown", extra={"event_name": "system.stopped"})


app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
# Starlette runs the last added middleware outermost.
app.add_middleware(MutationRateLimitMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
register_error_handlers(app)
app.include_router(api_router)

setup_otel(settings)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=server_request_hook)
