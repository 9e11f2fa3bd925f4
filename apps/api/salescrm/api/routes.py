from fastapi import APIRouter, Depends
from fastapi.responses import Response

from salescrm.core.auth import get_auth_context
from salescrm.core.config import get_settings
from salescrm.crm.api import call_logs_router, prospects_router, sales_router
from salescrm.errors import NotFoundError
from salescrm.identity.api import auth_router, teams_router, users_router
from salescrm.metrics import generate_metrics_payload, metrics_content_type
from salescrm.payouts.api import router as payouts_router
from salescrm.platform.security.context import AuthContext
from salescrm.platform.security.policies import Resource, ResourceAction, require
from salescrm.reporting.api import router as reports_router
from salescrm.transfer.api import router as transfer_router

router = APIRouter()
router.include_router(auth_router)
router.include_router(users_router)
router.include_router(teams_router)
router.include_router(prospects_router)
router.include_router(sales_router)
router.include_router(call_logs_router)
router.include_router(payouts_router)
router.include_router(transfer_router)
router.include_router(reports_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/metrics", tags=["system"])
def metrics(ctx: AuthContext = Depends(get_auth_context)) -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise NotFoundError("not found")
    require(ctx, Resource.MANAGER_REPORT, ResourceAction.READ, "You do not have permission to read metrics")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
