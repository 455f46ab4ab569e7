from fastapi import APIRouter, Request

from ...core.events import health_check_events
from ...core.setting import get_settings
from ...schemas.order import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Health check endpoint for the order service, including Kafka connectivity."""
    settings = get_settings()
    connection = getattr(request.app.state, "broker_connection", None)
    broker_connected = await health_check_events(connection)
    return HealthResponse(
        status="healthy" if broker_connected else "degraded",
        service=settings.SERVICE_NAME,
        version=settings.APP_VERSION,
        broker_connected=broker_connected,
    )
