# orchestration/request_controller.py
"""Owns the key exchange request lifecycle and its state machine."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import structlog

from core.exceptions import InvalidStateTransitionError
from core.generation_client import GenerationClient
from models.simulation_models import (
    Error,
    Idle,
    Loading,
    RequestState,
    SimulationParameters,
    SimulationRequest,
    Success,
    is_valid_transition,
)
from prompt_builder import build_simulation_prompt

logger = structlog.get_logger(__name__)

ERROR_PREFIX = "Failed to establish quantum link. Error: "
UNKNOWN_ERROR_DESCRIPTION = "An unknown error occurred."
CANCELLED_DESCRIPTION = "Request was cancelled."

StateListener = Callable[[RequestState], None]
PromptBuilder = Callable[[SimulationParameters | None], str]


def format_error_message(exc: BaseException | None) -> str:
    """Prefix the error's description, falling back to a generic one."""
    description = str(exc).strip() if exc is not None else ""
    return f"{ERROR_PREFIX}{description or UNKNOWN_ERROR_DESCRIPTION}"


class RequestController:
    """Issues one generation request at a time and tracks its outcome.

    The controller is the only writer of the request state. Listeners are
    called synchronously after every transition, in subscription order.
    """

    def __init__(
        self,
        client: GenerationClient,
        prompt_builder: PromptBuilder = build_simulation_prompt,
        parameters: SimulationParameters | None = None,
    ):
        self._client = client
        self._prompt_builder = prompt_builder
        self._parameters = parameters
        self._state: RequestState = Idle()
        self._listeners: list[StateListener] = []
        self._inflight: asyncio.Task | None = None
        self.current_request: SimulationRequest | None = None
        self.attempt_count = 0

    @property
    def state(self) -> RequestState:
        return self._state

    @property
    def is_loading(self) -> bool:
        return isinstance(self._state, Loading)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _transition(self, new_state: RequestState) -> None:
        if not is_valid_transition(self._state, new_state):
            raise InvalidStateTransitionError(
                f"Cannot move from {type(self._state).__name__} to {type(new_state).__name__}."
            )
        logger.debug(
            "Request state transition.",
            from_state=type(self._state).__name__,
            to_state=type(new_state).__name__,
        )
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                logger.error(
                    "State listener raised; continuing with remaining listeners.",
                    listener=getattr(listener, "__qualname__", repr(listener)),
                    exc_info=True,
                )

    def _begin(self) -> bool:
        if self.is_loading:
            logger.info("Key exchange already in progress; ignoring new trigger.")
            return False
        self._transition(Loading())
        return True

    async def _run(self) -> None:
        self.current_request = None
        self.attempt_count += 1
        # Runs in its own task, so the bound fields stay with this attempt.
        structlog.contextvars.bind_contextvars(attempt=self.attempt_count)
        try:
            prompt = self._prompt_builder(self._parameters)
            self.current_request = SimulationRequest(prompt=prompt)
            structlog.contextvars.bind_contextvars(prompt_chars=len(prompt))
            logger.info("Initiating secure key exchange.")
            text = await self._client.generate(prompt)
        except asyncio.CancelledError:
            logger.warning("Key exchange request cancelled while in flight.")
            self._transition(Error(f"{ERROR_PREFIX}{CANCELLED_DESCRIPTION}"))
            raise
        except Exception as exc:
            logger.error("Key exchange request failed: %s", exc, exc_info=True)
            self._transition(Error(format_error_message(exc)))
        else:
            elapsed = self.current_request.elapsed() if self.current_request else 0.0
            logger.info(
                "Key exchange narration received.",
                chars=len(text),
                elapsed_s=round(elapsed, 3),
            )
            self._transition(Success(text))
        finally:
            self._inflight = None

    async def start(self) -> bool:
        """Run one key exchange attempt to completion.

        Returns False without issuing a request when one is already in flight.
        The attempt runs in its own task; ``cancel()`` aborts only that task,
        while cancelling the caller also cancels the attempt.
        """
        task = self.launch()
        if task is None:
            return False
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        return True

    def launch(self) -> asyncio.Task | None:
        """Schedule an attempt on the running loop and return its task.

        The state moves to Loading before this returns, so a second call made
        before the task first runs is still rejected.
        """
        if not self._begin():
            return None
        task = asyncio.get_running_loop().create_task(self._run())
        self._inflight = task
        task.add_done_callback(self._on_launched_done)
        return task

    def _on_launched_done(self, task: asyncio.Task) -> None:
        # A task cancelled before its first step never enters _run, so the
        # Loading state has to be closed here.
        if task.cancelled() and self._inflight is task:
            self._inflight = None
            logger.warning("Key exchange request cancelled before it was sent.")
            self._transition(Error(f"{ERROR_PREFIX}{CANCELLED_DESCRIPTION}"))

    def cancel(self) -> bool:
        """Abort the in-flight attempt. Returns False when nothing is running."""
        if self._inflight is None or self._inflight.done():
            return False
        self._inflight.cancel()
        return True
