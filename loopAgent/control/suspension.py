"""Cooperative suspend/resume for a single computation.

A Suspendable wraps one coroutine in its own asyncio task. Inside that task,
``await suspend(request)`` hands the request to whoever drives the
computation and parks until the driver answers with ``resume(response)``.
Nothing blocks a thread while parked; the event loop stays free for other
computations.

Driving looks like::

    comp = Suspendable(lambda: agent._loop(task), name="researcher")
    outcome = await comp.start()
    while not comp.done:
        outcome = await comp.resume(ControlResponse.respond(outcome, "yes"))
    result = outcome

A Suspendable created inside another one's task (delegation) is driven by
that outer computation, which can forward the inner request through its own
``suspend``; this is how requests bubble through delegation frames.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from contextvars import ContextVar
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, Set, TypeVar, Union

from loopAgent.control.requests import ControlRequest, ControlResponse
from loopAgent.utils.error_handler import ProtocolViolationError, SuspensionContextError
from loopAgent.utils.logging_utils import log_control_request, log_control_response

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

ResponseHandler = Callable[[ControlRequest], Union[ControlResponse, Awaitable[ControlResponse]]]

_current: ContextVar[Optional["Suspendable"]] = ContextVar("loopagent_suspendable", default=None)


class ComputationState(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    SUSPENDED = "suspended"
    DONE = "done"
    CANCELLED = "cancelled"


def current_computation() -> Optional["Suspendable"]:
    """The Suspendable whose task is running the caller, if any."""
    return _current.get()


def in_driven_context() -> bool:
    return _current.get() is not None


def ensure_context() -> "Suspendable":
    computation = _current.get()
    if computation is None:
        raise SuspensionContextError(
            "suspend() called outside a driven computation",
            user_message="This operation needs an interactive caller but none is available",
        )
    return computation


async def suspend(request: ControlRequest) -> ControlResponse:
    """Hand ``request`` to the driver and wait for its response.

    Raises:
        SuspensionContextError: Not inside a Suspendable's task.
        ProtocolViolationError: The computation already has a pending request.
    """
    return await ensure_context()._suspend(request)


class Suspendable(Generic[T]):
    """One cooperatively scheduled computation that can pause on a ControlRequest."""

    def __init__(self, factory: Callable[[], Awaitable[T]], name: str = "computation"):
        self._factory = factory
        self.name = name
        self._task: Optional[asyncio.Task] = None
        self._signal: Optional[asyncio.Future] = None
        self._reply: Optional[asyncio.Future] = None
        self._pending: Optional[ControlRequest] = None
        self._withdrawn: Set[str] = set()
        self._state = ComputationState.CREATED

    # ========== Introspection ==========

    @property
    def state(self) -> ComputationState:
        return self._state

    @property
    def done(self) -> bool:
        return self._state in (ComputationState.DONE, ComputationState.CANCELLED)

    @property
    def suspended(self) -> bool:
        return self._state is ComputationState.SUSPENDED

    @property
    def pending_request(self) -> Optional[ControlRequest]:
        return self._pending

    def result(self) -> T:
        if self._state is not ComputationState.DONE or self._task is None:
            raise ProtocolViolationError(f"{self.name} has not finished")
        return self._task.result()

    # ========== Computation side ==========

    async def _body(self) -> T:
        _current.set(self)
        return await self._factory()

    async def _suspend(self, request: ControlRequest) -> ControlResponse:
        if self._pending is not None:
            raise ProtocolViolationError(
                f"{self.name} already waits on request {self._pending.id}; "
                "only one request may be outstanding"
            )
        log_control_request(LOGGER, request, self.name)
        self._reply = asyncio.get_running_loop().create_future()
        self._pending = request
        self._state = ComputationState.SUSPENDED
        if self._signal is not None and not self._signal.done():
            self._signal.set_result(request)
        try:
            return await self._reply
        finally:
            self._reply = None
            if self._pending is request:
                # Cancelled while parked (e.g. action timeout): nobody waits for the answer now
                self._withdraw(request)

    def _withdraw(self, request: ControlRequest) -> None:
        LOGGER.warning(f"{self.name} withdrew request {request.id} before it was answered")
        self._withdrawn.add(request.id)
        self._pending = None
        if self._state is ComputationState.SUSPENDED:
            self._state = ComputationState.RUNNING
        if self._signal is not None and self._signal.done():
            self._signal = asyncio.get_running_loop().create_future()

    # ========== Driver side ==========

    async def start(self) -> Union[ControlRequest, T]:
        """Run until the first suspension point or completion."""
        if self._state is not ComputationState.CREATED:
            raise ProtocolViolationError(f"{self.name} was already started")
        self._signal = asyncio.get_running_loop().create_future()
        self._state = ComputationState.RUNNING
        self._task = asyncio.create_task(self._body(), name=f"suspendable:{self.name}")
        return await self._wait()

    async def resume(self, response: ControlResponse) -> Union[ControlRequest, T]:
        """Answer the pending request and run to the next suspension point or completion.

        An answer to a request the computation has since withdrawn is discarded,
        and the caller gets whatever the computation does next.

        Raises:
            ProtocolViolationError: Not suspended, or the response answers a
                different request. The computation is abandoned in the latter case.
        """
        if response.request_id in self._withdrawn:
            self._withdrawn.discard(response.request_id)
            LOGGER.info(f"{self.name}: discarding answer to withdrawn request {response.request_id}")
            return await self._wait()
        if self._state is not ComputationState.SUSPENDED or self._pending is None or self._reply is None:
            raise ProtocolViolationError(f"{self.name} is not suspended (state={self._state.value})")
        if response.request_id != self._pending.id:
            expected = self._pending.id
            await self.cancel()
            raise ProtocolViolationError(
                f"Response for {response.request_id} does not match outstanding request {expected}"
            )
        log_control_response(LOGGER, response)
        reply = self._reply
        self._pending = None
        self._signal = asyncio.get_running_loop().create_future()
        self._state = ComputationState.RUNNING
        reply.set_result(response)
        return await self._wait()

    async def drive(self, handler: ResponseHandler) -> T:
        """Answer every request with ``handler`` until the computation finishes."""
        if self._state is ComputationState.CREATED:
            outcome = await self.start()
        elif self._state is ComputationState.SUSPENDED:
            outcome = self._pending
        elif self._state is ComputationState.RUNNING and self._task is not None:
            outcome = await self._wait()
        else:
            raise ProtocolViolationError(f"{self.name} cannot be driven (state={self._state.value})")

        while not self.done:
            response = handler(outcome)
            if inspect.isawaitable(response):
                response = await response
            outcome = await self.resume(response)
        return outcome

    async def cancel(self) -> None:
        """Abandon the computation. Its task is cancelled and awaited."""
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self._pending = None
        self._state = ComputationState.CANCELLED

    async def _wait(self) -> Union[ControlRequest, T]:
        assert self._task is not None and self._signal is not None
        await asyncio.wait({self._task, self._signal}, return_when=asyncio.FIRST_COMPLETED)
        if self._task.done():
            self._signal.cancel()
            self._pending = None
            if self._task.cancelled():
                self._state = ComputationState.CANCELLED
            else:
                self._state = ComputationState.DONE
            # Re-raises whatever ended the computation
            return self._task.result()
        return self._signal.result()
