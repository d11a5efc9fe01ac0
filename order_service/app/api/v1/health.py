from typing import Any, Dict

from fastapi import APIRouter
from shared.utils.health import ServiceHealthChecker

from ...core.database import get_database_manager
from ...core.events import get_broker
from ...core.settings import get_settings

router = APIRouter()


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """Health check endpoint for the order service."""
    settings = get_settings()
    checker = ServiceHealthChecker(settings.SERVICE_NAME, settings.APP_VERSION)
    checker.add_database_check(get_database_manager().async_engine)
    checker.add_broker_check(get_broker)
    return await checker.run_checks()
