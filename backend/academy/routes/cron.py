import hmac

from fastapi import APIRouter, Header, HTTPException, status

from .. import schemas
from ..config import settings
from ..services import email_programs_service

router = APIRouter(prefix="/api/cron", tags=["cron"])


def _require_cron_secret(authorization: str | None) -> None:
    if not settings.cron_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron secret not configured",
        )
    expected = f"Bearer {settings.cron_secret}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.post("/email-programs", response_model=schemas.DispatchResponse)
async def dispatch_email_programs(authorization: str | None = Header(default=None)):
    _require_cron_secret(authorization)
    runs = await email_programs_service.dispatch_due_programs()
    return schemas.DispatchResponse(
        enqueued=len(runs), run_ids=[str(run["id"]) for run in runs]
    )
