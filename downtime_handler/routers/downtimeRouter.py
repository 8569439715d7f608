from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, StrictBool, ValidationError

from downtime_handler.utils.downtime import DowntimeController
from downtime_handler.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


class DowntimeReport(BaseModel):
    down: StrictBool


def get_controller(request: Request) -> DowntimeController:
    return request.app.state.controller


@router.post("/downtime")
async def report_downtime(
    request: Request, controller: DowntimeController = Depends(get_controller)
):
    """Receive a down/up report from the primary bot's environment."""
    body = await request.json()
    try:
        report = DowntimeReport.model_validate(body)
    except ValidationError as e:
        logger.warning("Rejected downtime report %r: %s", body, e.errors())
        return {"ok": False}

    if report.down:
        await controller.report_down()
    else:
        await controller.report_up()
    return {"ok": True}


@router.get("/downtime")
async def downtime_status(controller: DowntimeController = Depends(get_controller)):
    return controller.state.as_dict()
