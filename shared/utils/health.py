"""
Fulfillment Health Check Utilities
==================================

Each service registers async checks (database, broker) and exposes the
combined result on ``GET /health``.
"""

import time
from typing import Any, Awaitable, Callable, Dict, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from ..events.base.kafka_client import KafkaBroker

HealthCheck = Callable[[], Awaitable[Dict[str, Any]]]


class ServiceHealthChecker:
    """Runs named health checks and reports an overall status"""

    def __init__(self, service_name: str, version: str = "1.0.0") -> None:
        self.service_name = service_name
        self.version = version
        self.checks: Dict[str, HealthCheck] = {}
        self.start_time = time.time()

    def add_check(self, name: str, check_func: HealthCheck) -> None:
        """Add a health check function"""
        self.checks[name] = check_func

    def add_database_check(self, engine: AsyncEngine) -> None:
        async def database_check() -> Dict[str, Any]:
            try:
                async with engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
            except SQLAlchemyError as e:
                return {"status": "unhealthy", "error": str(e), "component": "database"}
            return {"status": "healthy", "component": "database"}

        self.add_check("database", database_check)

    def add_broker_check(self, broker_getter: Callable[[], Optional[KafkaBroker]]) -> None:
        async def broker_check() -> Dict[str, Any]:
            broker = broker_getter()
            if broker is None or not await broker.health_check():
                return {"status": "unhealthy", "component": "broker"}
            return {"status": "healthy", "component": "broker"}

        self.add_check("broker", broker_check)

    async def run_checks(self) -> Dict[str, Any]:
        """Run all health checks"""
        results = {}
        check_start_time = time.time()

        for name, check_func in self.checks.items():
            individual_start = time.time()
            result = await check_func()
            result["duration_ms"] = round((time.time() - individual_start) * 1000, 2)
            results[name] = result

        total_time = (time.time() - check_start_time) * 1000
        uptime = time.time() - self.start_time

        return {
            "service": self.service_name,
            "version": self.version,
            "status": "healthy"
            if all(r.get("status") == "healthy" for r in results.values())
            else "unhealthy",
            "checks": results,
            "total_duration_ms": round(total_time, 2),
            "uptime_seconds": round(uptime, 2),
            "timestamp": time.time(),
        }
