"""Single-consumer action router."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..common.exceptions import (
    DeckhandError,
    IntegrationError,
    MalformedAction,
    RequestTimeout,
    SessionNotFound,
)
from ..integrations.registry import DispatchTable
from .clients import ClientRegistry
from .config import SystemDefaults
from .models import Action
from .profiles import ProfileStore

logger = logging.getLogger(__name__)

PROFILE_INTEGRATION = "profile"
SUCCESS = "success"
ROUTER_STOPPED = "error executing request: router stopped"


def split_qualified_name(name: str) -> Tuple[str, str]:
    """Split ``integration::action`` (or ``integration:action``)"""
    integration, sep, action = name.partition(":")
    if action.startswith(":"):
        action = action[1:]
    if not sep or not integration or not action:
        raise MalformedAction(f"action {name} was invalid, must contain separator.")
    return integration, action


@dataclass
class ExecutionRequest:
    """Actions to run in order, with a single-use reply slot"""

    actions: List[Action]
    requestor_id: Optional[str] = None
    reply: "asyncio.Future[str]" = field(
        default_factory=lambda: asyncio.get_running_loop().create_future()
    )


class ActionRouter:
    """Processes execution requests strictly one at a time in arrival order

    Integrations never see concurrent calls from the router. A caller that
    stops waiting does not interrupt the request; its reply is dropped.
    """

    def __init__(
        self,
        dispatch_table: DispatchTable,
        profiles: ProfileStore,
        clients: ClientRegistry,
        request_timeout_s: float = SystemDefaults.DEFAULT_REQUEST_TIMEOUT_S,
    ):
        self.dispatch_table = dispatch_table
        self.profiles = profiles
        self.clients = clients
        self.request_timeout_s = request_timeout_s
        self._queue: "asyncio.Queue[ExecutionRequest]" = asyncio.Queue()
        self._running = False
        self._processor_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start request processing"""
        if self._running:
            return
        self._running = True
        self._processor_task = asyncio.create_task(
            self._process_requests(), name="action_router"
        )
        logger.info("Action router started")

    async def stop(self) -> None:
        """Stop request processing"""
        self._running = False
        if self._processor_task:
            self._processor_task.cancel()
            try:
                await self._processor_task
            except asyncio.CancelledError:
                pass
            self._processor_task = None

        while not self._queue.empty():
            self._reply(self._queue.get_nowait(), ROUTER_STOPPED)
        logger.info("Action router stopped")

    def enqueue(
        self, actions: Iterable[Action], requestor_id: Optional[str] = None
    ) -> ExecutionRequest:
        request = ExecutionRequest(actions=list(actions), requestor_id=requestor_id)
        self._queue.put_nowait(request)
        logger.debug(f"Enqueued {len(request.actions)} actions from {requestor_id}")
        return request

    async def submit(
        self,
        actions: Iterable[Action],
        requestor_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """Queue actions and wait a bounded time for the status string"""
        request = self.enqueue(actions, requestor_id)
        try:
            return await asyncio.wait_for(
                request.reply, timeout if timeout is not None else self.request_timeout_s
            )
        except asyncio.TimeoutError:
            raise RequestTimeout(
                "timed out waiting for request to complete, "
                "actions may still complete successfully."
            ) from None

    async def _process_requests(self) -> None:
        while self._running:
            request = await self._queue.get()
            try:
                await self.process(request)
            except asyncio.CancelledError:
                self._reply(request, ROUTER_STOPPED)
                raise
            except Exception as e:
                logger.error(f"Error processing request: {e}")
                self._reply(request, f"error executing request: {e}")

    async def process(self, request: ExecutionRequest) -> str:
        """Run one request to completion or first error and reply"""
        try:
            await self.execute_actions(request.actions, request.requestor_id)
            status = SUCCESS
        except DeckhandError as e:
            status = f"error executing request: {e}"
            logger.error(status)
        self._reply(request, status)
        return status

    def _reply(self, request: ExecutionRequest, status: str) -> None:
        if request.reply.done():
            logger.debug(f"Dropping reply, requestor stopped waiting: {status}")
            return
        request.reply.set_result(status)

    async def execute_actions(
        self, actions: Iterable[Action], requestor_id: Optional[str] = None
    ) -> None:
        """Execute actions in order; the first error aborts the rest"""
        for action in actions:
            integration_name, action_name = split_qualified_name(action.qualified_name)
            options = action.options
            options["action"] = action_name

            if integration_name == PROFILE_INTEGRATION:
                await self._profile_action(action_name, options, requestor_id)
                continue

            integration = self.dispatch_table.get(integration_name)
            try:
                await integration.execute(action_name, options)
            except DeckhandError:
                raise
            except Exception as e:
                raise IntegrationError(
                    f"{integration_name}::{action_name} failed: {e}"
                ) from e
            logger.debug(f"Executed {integration_name}::{action_name}")

    async def _profile_action(
        self, action_name: str, options: Dict[str, Any], requestor_id: Optional[str]
    ) -> None:
        if action_name != "set":
            raise MalformedAction(f"unknown profile action {action_name}")
        if requestor_id is None:
            raise SessionNotFound("profile::set requires a requesting client session")
        profile_name = options.get("profile")
        if not isinstance(profile_name, str):
            raise MalformedAction("profile::set requires a profile option")

        self.profiles.lookup(profile_name)
        await self.clients.set_active_profile(requestor_id, profile_name)
        await self.clients.request_render(requestor_id)
