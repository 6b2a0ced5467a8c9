from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, status
from pydantic import BaseModel

from intake_bot.dependencies import get_pipeline
from intake_bot.pipeline import IntakePipeline

router = APIRouter()


class ReminderRunResponse(BaseModel):
    success: bool
    message: str


def _require_admin_token(expected: str, provided: Optional[str]) -> None:
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="ADMIN_TOKEN not configured",
        )
    if not provided or provided != expected:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin token")


@router.post("/reminders/run", response_model=ReminderRunResponse, status_code=status.HTTP_202_ACCEPTED)
async def run_reminders(
    background_tasks: BackgroundTasks,
    pipeline: IntakePipeline = Depends(get_pipeline),
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
):
    """Trigger the daily task check now."""
    _require_admin_token(pipeline.settings.admin_token, x_admin_token)
    background_tasks.add_task(pipeline.reminders.run_check)
    return ReminderRunResponse(success=True, message="Task check triggered")
