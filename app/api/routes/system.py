from fastapi import APIRouter, Request
from api.dependencies.rate_limits import SYSTEM_LIMIT, get_limiter
from infrastructure.services import SettingsDep

router = APIRouter(tags=["System"])
limiter = get_limiter()


# Load balancer health checks poll these endpoints, hence the generous limit
@router.get("/version")
@limiter.limit(SYSTEM_LIMIT)
def get_version(request: Request, settings: SettingsDep):  # pylint: disable=unused-argument
    """Get the version of the application."""
    return {"version": settings.GIT_SHA}


@router.get("/health")
@limiter.limit(SYSTEM_LIMIT)
def get_health(request: Request):  # pylint: disable=unused-argument
    """Healthcheck endpoint, including the retry loop's status."""
    service = getattr(request.app.state, "notifications", None)
    if service is None:
        return {"status": "ok"}
    retry_health = service.retry_scheduler.get_health()
    return {
        "status": "ok" if retry_health["status"] == "healthy" else "degraded",
        "retry": retry_health,
    }
