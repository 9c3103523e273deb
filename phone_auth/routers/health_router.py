from fastapi import APIRouter, Request

from ..schemas import HealthResponse
from ..utils import utcnow

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
def health_check(request: Request):
    settings = request.app.state.settings
    return HealthResponse(
        status="healthy" if getattr(request.app.state, "db_init_ok", True) else "degraded",
        service=settings.APP_NAME,
        version=settings.APP_VERSION,
        timestamp=utcnow().isoformat(),
    )
