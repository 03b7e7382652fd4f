"""
Health check utilities for the notifier.
Reports whether the watcher is running and how many listeners are connected.
"""

import time
from typing import Optional, TYPE_CHECKING
from datetime import datetime, timezone
from dataclasses import dataclass, asdict
from aiohttp import web

if TYPE_CHECKING:
    from hot_reload.notifier import Notifier


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class HealthCheckResult:
    """Overall health check result."""
    status: str  # healthy, unhealthy
    timestamp: str
    uptime_seconds: float
    watch_root: str
    watching: bool
    connections: int
    reload_pending: bool
    broadcasts: int
    last_changed: Optional[str] = None


class HealthChecker:
    """Collects notifier status."""

    def __init__(self, notifier: "Notifier"):
        self.notifier = notifier
        self.start_time = time.time()

    def uptime(self) -> float:
        return time.time() - self.start_time

    async def check_health(self) -> HealthCheckResult:
        watching = self.notifier.watcher.running
        return HealthCheckResult(
            status="healthy" if watching else "unhealthy",
            timestamp=_utc_timestamp(),
            uptime_seconds=round(self.uptime(), 3),
            watch_root=str(self.notifier.watcher.root),
            watching=watching,
            connections=len(self.notifier.connections),
            reload_pending=self.notifier.debouncer.pending,
            broadcasts=self.notifier.broadcast_count,
            last_changed=self.notifier.last_changed
        )


class HealthHandler:
    """HTTP handler for health check endpoints."""

    def __init__(self, health_checker: HealthChecker):
        self.health_checker = health_checker

    async def handle_health_check(self, request: web.Request) -> web.Response:
        health_result = await self.health_checker.check_health()
        status_code = 200 if health_result.status == "healthy" else 503
        return web.json_response(asdict(health_result), status=status_code)

    async def handle_readiness_check(self, request: web.Request) -> web.Response:
        """Ready once the watcher is observing the root."""
        ready = self.health_checker.notifier.watcher.running
        return web.json_response(
            {"status": "ready" if ready else "not_ready", "timestamp": _utc_timestamp()},
            status=200 if ready else 503
        )

    async def handle_liveness_check(self, request: web.Request) -> web.Response:
        return web.json_response({
            "status": "alive",
            "timestamp": _utc_timestamp(),
            "uptime_seconds": round(self.health_checker.uptime(), 3)
        })

    def attach_to_app(self, app: web.Application, health_endpoint: str = "/health"):
        """Attach health check routes to the application."""
        app.router.add_get(health_endpoint, self.handle_health_check)
        app.router.add_get(f"{health_endpoint}/ready", self.handle_readiness_check)
        app.router.add_get(f"{health_endpoint}/live", self.handle_liveness_check)
