from celery.result import AsyncResult
from fastapi import APIRouter, status

from app.features.audit.schemas.audit import AuditRequest
from app.features.audit.schemas.comparison import CompareRequest, TrendsRequest
from app.features.audit.services.comparison.comparison import (
    calculate_comparison,
    calculate_trend_direction,
    has_overall_improvement,
    has_overall_regression,
)
from app.features.audit.services.comparison.insights import (
    calculate_evolution_trends,
    generate_comparison_insights,
    generate_evolution_insights,
)
from app.features.audit.workers.tasks import run_audit
from app.platform.celery_app import celery_app
from app.platform.logger import get_logger
from app.platform.response import api_response

logger = get_logger(__name__)

router = APIRouter(prefix="/audits", tags=["audits"])


@router.post("", status_code=status.HTTP_202_ACCEPTED)
async def start_audit(request: AuditRequest):
    """Queue a full site audit; poll GET /audits/{task_id} for the result."""
    task = run_audit.delay(request.model_dump(mode="json"))
    logger.info(f"Queued audit {task.id} for {request.base_url} ({request.discovery_method})")
    return api_response(
        data={"task_id": task.id, "status": "queued"},
        message="Audit queued",
        status_code=status.HTTP_202_ACCEPTED,
    )


@router.get("/{task_id}")
async def get_audit(task_id: str):
    result = AsyncResult(task_id, app=celery_app)
    state = result.state

    if state == "SUCCESS":
        return api_response(
            data={"task_id": task_id, "status": "completed", **result.result},
            message="Audit completed",
            status_code=status.HTTP_200_OK,
        )
    if state == "FAILURE":
        logger.warning(f"Audit {task_id} failed: {result.result}")
        return api_response(
            data={"task_id": task_id, "status": "failed", "error": str(result.result)},
            message="Audit failed",
            status_code=status.HTTP_200_OK,
        )

    return api_response(
        data={"task_id": task_id, "status": "running" if state == "STARTED" else "pending"},
        message="Audit in progress",
        status_code=status.HTTP_200_OK,
    )


@router.post("/compare")
async def compare_audits(payload: CompareRequest):
    comparison = calculate_comparison(
        payload.current,
        payload.current_violations,
        payload.previous,
        payload.previous_violations,
    )
    if comparison is None:
        return api_response(
            data=None,
            message="No comparison available",
            status_code=status.HTTP_200_OK,
        )

    insights = generate_comparison_insights(
        comparison.delta, comparison.violations, payload.current.summary
    )
    return api_response(
        data={
            "comparison": comparison.model_dump(mode="json"),
            "insights": [i.model_dump() for i in insights],
            "trend": calculate_trend_direction(comparison.delta),
            "has_improvement": has_overall_improvement(comparison.delta),
            "has_regression": has_overall_regression(comparison.delta),
        },
        message="Audits compared",
        status_code=status.HTTP_200_OK,
    )


@router.post("/trends")
async def audit_trends(payload: TrendsRequest):
    trends = calculate_evolution_trends(payload.audits)
    newest_first = sorted(payload.audits, key=lambda a: a.created_at, reverse=True)
    insights = generate_evolution_insights(newest_first, trends)
    return api_response(
        data={
            "trends": trends.model_dump(mode="json"),
            "insights": [i.model_dump() for i in insights],
        },
        message="Audit trends",
        status_code=status.HTTP_200_OK,
    )
