"""
Health and metrics endpoints.

Response bodies follow the "Health Check Response Format for HTTP APIs"
draft: an overall ``status`` of pass/warn/fail plus one entry per check.
"""

import logging
import os
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Sequence

import psutil
import redis
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ServiceHealth:
    """
    Probe endpoints for one service.

    ``engine`` is the service's own SQLAlchemy engine; readiness runs
    ``SELECT 1`` on it. ``required_config`` maps setting names to their
    current values for the startup probe.
    """

    def __init__(
        self,
        service_name: str,
        version: str = "1.0.0",
        engine: Optional[Engine] = None,
        redis_url: Optional[str] = None,
        required_config: Optional[Dict[str, Any]] = None,
    ):
        self.service_name = service_name
        self.version = version
        self.engine = engine
        self.redis_url = redis_url
        self.required_config = required_config or {}
        self.start_time = time.time()
        self.checks_performed = 0
        self.last_check_time: Optional[float] = None

    def create_health_router(self) -> APIRouter:
        router = APIRouter(tags=["health"])

        @router.get("/health", status_code=status.HTTP_200_OK)
        def health_check() -> Dict[str, Any]:
            return {
                "status": HealthStatus.PASS,
                "service": self.service_name,
                "version": self.version,
                "releaseId": os.getenv("RELEASE_ID", "unknown"),
                "timestamp": _now(),
            }

        @router.get("/health/live", status_code=status.HTTP_200_OK)
        def liveness() -> Dict[str, Any]:
            return {"status": "alive"}

        @router.get("/health/ready")
        def readiness() -> JSONResponse:
            """Dependency checks; 503 only when one of them fails outright."""
            checks = self.readiness_checks()
            overall = self.overall_status(checks)
            code = status.HTTP_503_SERVICE_UNAVAILABLE if overall == HealthStatus.FAIL else status.HTTP_200_OK
            return JSONResponse(
                status_code=code,
                content={
                    "status": overall.value,
                    "version": self.version,
                    "serviceId": self.service_name,
                    "checks": checks,
                    "timestamp": _now(),
                },
            )

        @router.get("/health/startup")
        def startup():
            checks = self.startup_checks()
            if self.overall_status(checks) == HealthStatus.FAIL:
                return JSONResponse(
                    status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                    content={"status": "starting", "checks": checks},
                )
            return {"status": "started", "checks": checks}

        @router.get("/metrics")
        def metrics() -> Dict[str, Any]:
            process = psutil.Process()
            memory = process.memory_info()
            return {
                "service": self.service_name,
                "version": self.version,
                "uptime_seconds": round(time.time() - self.start_time, 3),
                "checks_performed": self.checks_performed,
                "timestamp": _now(),
                "system": {
                    "memory_rss_bytes": memory.rss,
                    "memory_vms_bytes": memory.vms,
                    "cpu_percent": process.cpu_percent(),
                    "num_threads": process.num_threads(),
                },
            }

        return router

    def readiness_checks(self) -> Dict[str, Dict[str, Any]]:
        self.checks_performed += 1
        self.last_check_time = time.time()
        checks = {}
        if self.engine is not None:
            checks["database:connectivity"] = self._check_database()
        if self.redis_url:
            checks["cache:connectivity"] = self._check_redis()
        checks["storage:disk_space"] = self._check_threshold(
            lambda: psutil.disk_usage("/").free / (1024 ** 3), fail_below=1, warn_below=5, unit="GB"
        )
        checks["system:memory"] = self._check_threshold(
            lambda: psutil.virtual_memory().available / (1024 ** 2), fail_below=100, warn_below=500, unit="MB"
        )
        return checks

    def startup_checks(self) -> Dict[str, Dict[str, Any]]:
        checks = {}
        if self.engine is not None:
            checks["database:migrations"] = self._check_migrations()
        checks["config:environment"] = self._check_config(self.required_config.items())
        return checks

    def _check_database(self) -> Dict[str, Any]:
        start = time.perf_counter()
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
        except SQLAlchemyError as exc:
            logger.error(f"Database health check failed: {exc}")
            return {"status": HealthStatus.FAIL.value, "componentType": "datastore", "output": str(exc), "time": _now()}
        return {
            "status": HealthStatus.PASS.value,
            "componentType": "datastore",
            "observedValue": f"{(time.perf_counter() - start) * 1000:.2f}",
            "observedUnit": "ms",
            "time": _now(),
        }

    def _check_redis(self) -> Dict[str, Any]:
        start = time.perf_counter()
        try:
            redis.from_url(self.redis_url, socket_connect_timeout=1).ping()
        except redis.RedisError as exc:
            # The response cache falls back to memory, so this only degrades
            return {"status": HealthStatus.WARN.value, "componentType": "cache", "output": str(exc), "time": _now()}
        return {
            "status": HealthStatus.PASS.value,
            "componentType": "cache",
            "observedValue": f"{(time.perf_counter() - start) * 1000:.2f}",
            "observedUnit": "ms",
            "time": _now(),
        }

    def _check_threshold(self, measure, fail_below: float, warn_below: float, unit: str) -> Dict[str, Any]:
        try:
            value = measure()
        except (OSError, psutil.Error) as exc:
            return {"status": HealthStatus.WARN.value, "componentType": "system", "output": str(exc), "time": _now()}
        if value < fail_below:
            status_val = HealthStatus.FAIL
        elif value < warn_below:
            status_val = HealthStatus.WARN
        else:
            status_val = HealthStatus.PASS
        return {
            "status": status_val.value,
            "componentType": "system",
            "observedValue": f"{value:.2f}",
            "observedUnit": unit,
            "time": _now(),
        }

    def _check_migrations(self) -> Dict[str, Any]:
        try:
            applied = inspect(self.engine).has_table("alembic_version")
        except SQLAlchemyError as exc:
            return {"status": HealthStatus.FAIL.value, "componentType": "datastore", "output": str(exc), "time": _now()}
        if not applied:
            return {
                "status": HealthStatus.WARN.value,
                "componentType": "datastore",
                "output": "Migrations table not found",
                "time": _now(),
            }
        return {"status": HealthStatus.PASS.value, "componentType": "datastore", "time": _now()}

    @staticmethod
    def _check_config(settings: Sequence) -> Dict[str, Any]:
        missing = [name for name, value in settings if value in (None, "")]
        if missing:
            return {
                "status": HealthStatus.FAIL.value,
                "componentType": "configuration",
                "output": f"Missing configuration: {', '.join(sorted(missing))}",
                "time": _now(),
            }
        return {"status": HealthStatus.PASS.value, "componentType": "configuration", "time": _now()}

    @staticmethod
    def overall_status(checks: Dict[str, Dict[str, Any]]) -> HealthStatus:
        statuses = {check.get("status", HealthStatus.PASS.value) for check in checks.values()}
        if HealthStatus.FAIL.value in statuses:
            return HealthStatus.FAIL
        if HealthStatus.WARN.value in statuses:
            return HealthStatus.WARN
        return HealthStatus.PASS
