import logging
from typing import Any, Dict

from app.features.audit.schemas.audit import AuditRequest
from app.features.audit.services.audit_runner import AuditRunner
from app.features.audit.services.scoring.health import build_report
from app.platform.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    name="app.features.audit.workers.tasks.run_audit",
    max_retries=0,
)
def run_audit(self, request_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Run a full site audit in one browser session.

    Args:
        request_data: AuditRequest as a JSON-compatible dict

    Returns:
        Dict with the audit, its aggregated violations and the health report,
            JSON-serialized
    """
    request = AuditRequest.model_validate(request_data)
    logger.info(f"[{self.request.id}] Starting audit for {request.base_url}")

    try:
        audit, violations = AuditRunner().run(request)
    except Exception as e:
        logger.error(f"[{self.request.id}] Audit failed for {request.base_url}: {e}")
        raise

    logger.info(f"[{self.request.id}] Audit {audit.id} completed")
    return {
        "audit": audit.model_dump(mode="json"),
        "violations": [v.model_dump(mode="json") for v in violations],
        "report": build_report(audit, violations),
    }
