import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse

from ..common.exceptions import DeckhandError
from ..core.control import SystemController
from ..core.models import Action
from ..core.router import SUCCESS
from .models import ButtonPressRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/v1", tags=["control"])


def get_controller(request: Request) -> SystemController:
    """Dependency injection for system controller"""
    controller = getattr(request.app.state, "system_controller", None)
    if controller is None or not request.app.state.startup_complete:
        raise HTTPException(
            status_code=503,
            detail="System is still starting up. Please try again in a moment.",
        )
    return controller


def _status_response(status: str) -> PlainTextResponse:
    return PlainTextResponse(status, status_code=200 if status == SUCCESS else 400)


@router.post("/actions/execute", response_class=PlainTextResponse)
async def execute_actions(
    actions: List[Action], controller: SystemController = Depends(get_controller)
):
    """Execute a raw action list"""
    logger.info(f"Execute request: {[a.qualified_name for a in actions]}")
    try:
        status = await controller.execute(actions)
    except DeckhandError as e:
        logger.warning(f"Execute request failed: {e}")
        return PlainTextResponse(str(e), status_code=400)
    return _status_response(status)


@router.post("/profiles/button_press", response_class=PlainTextResponse)
async def button_press(
    press: ButtonPressRequest, controller: SystemController = Depends(get_controller)
):
    """Resolve a profile button and execute its actions"""
    logger.info(f"Button press request: {press.profile}[{press.button}]")
    try:
        status = await controller.press_button(press.profile, press.button)
    except DeckhandError as e:
        logger.warning(f"Button press request failed: {e}")
        return PlainTextResponse(str(e), status_code=400)
    return _status_response(status)
