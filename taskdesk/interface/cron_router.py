"""HTTP trigger for the overdue sweep, for external cron services."""

import logging
import secrets

from fastapi import APIRouter, Depends, Header, HTTPException, status
from fastapi.responses import JSONResponse

from taskdesk.core.config import constants, settings
from taskdesk.core.errors import StoreUnavailableError, SweepIncompleteError, TaskValidationError
from taskdesk.core.recurrence import local_today, parse_calendar_date
from taskdesk.services import overdue_service


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["cron"])


async def require_cron_secret(
    cron_secret: str | None = Header(default=None, alias=constants.CRON_SECRET_HEADER),
) -> None:
    """Reject the request unless it carries the configured cron secret."""
    try:
        expected = settings.require_credential("cron_secret", "Cron trigger")
    except ValueError as e:
        logger.error("cron_trigger_rejected", extra={"reason": "secret_not_configured"})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron secret not configured",
        ) from e

    if not cron_secret or not secrets.compare_digest(cron_secret, expected):
        logger.warning("cron_trigger_rejected", extra={"reason": "invalid_secret"})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


@router.api_route("/overdue", methods=["GET", "POST"])
async def trigger_overdue_sweep(today: str | None = None, _auth: None = Depends(require_cron_secret)) -> JSONResponse:
    """Run the overdue sweep now, optionally for a given reference date."""
    try:
        reference = parse_calendar_date(today) if today else local_today()
    except TaskValidationError as e:
        return JSONResponse(content={"success": False, "error": str(e)}, status_code=400)

    try:
        count = await overdue_service.sweep(reference)
    except SweepIncompleteError as e:
        return JSONResponse(
            content={
                "success": False,
                "error": str(e),
                "flagged": e.flagged_count,
                "failed_task_ids": e.failed_task_ids,
            },
            status_code=500,
        )
    except StoreUnavailableError as e:
        logger.error("Overdue sweep trigger failed: %s", e)
        return JSONResponse(content={"success": False, "error": "Store unavailable"}, status_code=503)

    return JSONResponse(content={"success": True, "count": count}, status_code=200)
