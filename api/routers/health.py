# WORKFLOW: Health check endpoints for monitoring and operational status.
# Used by: Load balancers, monitoring systems, operational dashboards
# Endpoints:
# 1. /healthz - Basic health check (always returns healthy)
# 2. /readyz - Readiness check: rule snapshot, database (SQL rule source), advisory config
# 3. /livez - Liveness check for Kubernetes probes
#
# Health flow: Health check request -> Service status check -> Health response
# Readiness flow: Readiness check -> Rule snapshot/database -> Ready/Not ready
# The advisory classifier is optional, so it is reported but never blocks readiness.

from fastapi import APIRouter, Depends
import logging
from datetime import datetime, timezone

from api.routers.compliance import get_pipeline
from compliance.pipeline import CompliancePipeline
from core.config import settings
from db.session import check_db_connection

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/healthz")
async def health_check():
    """
    Basic health check endpoint.

    Returns:
        Health status of the API
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.version,
        "environment": settings.environment
    }


@router.get("/readyz")
async def readiness_check(pipeline: CompliancePipeline = Depends(get_pipeline)):
    """
    Readiness check endpoint.

    Checks if the service is ready to handle requests by verifying:
    - An active rule snapshot can be served
    - Database connection (only when rules come from SQL)

    Returns:
        Readiness status with detailed checks
    """
    checks = {
        "rule_snapshot": False,
        "database": True,
    }
    snapshot_version = None

    try:
        snapshot_version = pipeline.repository.snapshot().version
        checks["rule_snapshot"] = True
    except Exception as e:
        logger.error(f"Rule snapshot health check failed: {e}")

    if settings.rule_source == "sql":
        checks["database"] = check_db_connection()

    is_ready = all(checks.values())

    return {
        "status": "ready" if is_ready else "not_ready",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
        "snapshot_version": snapshot_version,
        "advisory_enabled": bool(pipeline.advisory is not None and pipeline.advisory.enabled),
        "version": settings.version
    }


@router.get("/livez")
async def liveness_check():
    """
    Liveness check endpoint.

    Simple check to determine if the service is alive.
    Used by Kubernetes liveness probes.

    Returns:
        Liveness status
    """
    return {
        "status": "alive",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
