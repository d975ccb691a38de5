# tests/orchestration/test_request_controller.py
import asyncio

import pytest
import structlog

from core.exceptions import InvalidStateTransitionError, ServiceError
from core.generation_client import GenerationClient
from models.simulation_models import (
    Error,
    Idle,
    Loading,
    SimulationParameters,
    Success,
)
from orchestration.request_controller import RequestController, format_error_message
from prompt_builder import build_simulation_prompt
from ui.result_renderer import FAILURE_FRAGMENT, LOADING_FRAGMENT, render_log


class FakeClient(GenerationClient):
    """Returns queued outcomes; optionally waits on a gate before answering."""

    def __init__(self, *outcomes, gated=False):
        self.outcomes = list(outcomes)
        self.prompts: list[str] = []
        self.gate = asyncio.Event()
        if not gated:
            self.gate.set()

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        await self.gate.wait()
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def _record(controller):
    seen = []
    controller.subscribe(seen.append)
    return seen


def test_initial_state_is_idle():
    controller = RequestController(FakeClient())
    assert controller.state == Idle()
    assert not controller.is_loading


@pytest.mark.asyncio
async def test_success_stores_text_verbatim():
    controller = RequestController(FakeClient("<p>Key established</p>"))

    assert await controller.start() is True

    assert controller.state == Success("<p>Key established</p>")
    assert render_log(controller.state) == "<p>Key established</p>"


@pytest.mark.asyncio
async def test_failure_formats_error_message():
    controller = RequestController(FakeClient(ServiceError("timeout")))

    await controller.start()

    assert controller.state == Error("Failed to establish quantum link. Error: timeout")
    assert render_log(controller.state) == FAILURE_FRAGMENT


@pytest.mark.asyncio
async def test_failure_without_description_uses_fallback():
    controller = RequestController(FakeClient(ServiceError("")))

    await controller.start()

    assert controller.state == Error(
        "Failed to establish quantum link. Error: An unknown error occurred."
    )


def test_format_error_message_without_exception():
    assert format_error_message(None).endswith("An unknown error occurred.")


@pytest.mark.asyncio
async def test_unexpected_exception_is_contained():
    controller = RequestController(FakeClient(RuntimeError("kaboom")))

    assert await controller.start() is True

    assert controller.state == Error("Failed to establish quantum link. Error: kaboom")


@pytest.mark.asyncio
async def test_prompt_builder_failure_is_contained():
    def broken_builder(_params):
        raise ValueError("bad template")

    client = FakeClient("unused")
    controller = RequestController(client, prompt_builder=broken_builder)

    await controller.start()

    assert isinstance(controller.state, Error)
    assert client.prompts == []


@pytest.mark.asyncio
async def test_triggers_while_loading_issue_no_second_call():
    client = FakeClient("<p>done</p>", gated=True)
    controller = RequestController(client)

    task = controller.launch()
    await asyncio.sleep(0)
    assert controller.is_loading

    assert await controller.start() is False
    assert controller.launch() is None
    assert await controller.start() is False

    client.gate.set()
    await task

    assert len(client.prompts) == 1
    assert controller.state == Success("<p>done</p>")


@pytest.mark.asyncio
async def test_launch_enters_loading_before_task_runs():
    client = FakeClient("text")
    controller = RequestController(client)
    seen = _record(controller)

    task = controller.launch()

    assert seen == [Loading()]
    assert controller.launch() is None
    await task
    assert seen == [Loading(), Success("text")]


@pytest.mark.asyncio
async def test_state_sequence_follows_lifecycle():
    client = FakeClient("one", ServiceError("down"), "three")
    controller = RequestController(client)
    seen = _record(controller)

    for _ in range(3):
        await controller.start()

    assert seen == [
        Loading(),
        Success("one"),
        Loading(),
        Error("Failed to establish quantum link. Error: down"),
        Loading(),
        Success("three"),
    ]
    for previous, current in zip(seen, seen[1:]):
        assert not (isinstance(previous, Loading) and isinstance(current, Loading))


@pytest.mark.asyncio
async def test_retrigger_after_success_hides_stale_text():
    client = FakeClient("<p>first</p>", "<p>second</p>", gated=True)
    client.gate.set()
    controller = RequestController(client)
    await controller.start()
    assert controller.state == Success("<p>first</p>")

    client.gate.clear()
    task = controller.launch()

    assert controller.state == Loading()
    assert render_log(controller.state) == LOADING_FRAGMENT

    client.gate.set()
    await task
    assert controller.state == Success("<p>second</p>")


@pytest.mark.asyncio
async def test_prompt_uses_parameters():
    client = FakeClient("ok")
    params = SimulationParameters(photon_count=8)
    controller = RequestController(client, parameters=params)

    await controller.start()

    assert client.prompts == [build_simulation_prompt(params)]
    assert controller.current_request.prompt == client.prompts[0]


@pytest.mark.asyncio
async def test_failing_listener_does_not_block_others():
    controller = RequestController(FakeClient("ok"))

    def broken(_state):
        raise RuntimeError("listener bug")

    controller.subscribe(broken)
    seen = _record(controller)

    await controller.start()

    assert seen == [Loading(), Success("ok")]


@pytest.mark.asyncio
async def test_unsubscribe_stops_notifications():
    controller = RequestController(FakeClient("ok"))
    seen = []
    unsubscribe = controller.subscribe(seen.append)
    unsubscribe()

    await controller.start()

    assert seen == []


def test_invalid_transition_is_rejected():
    controller = RequestController(FakeClient())
    with pytest.raises(InvalidStateTransitionError):
        controller._transition(Success("skipped loading"))
    assert controller.state == Idle()


@pytest.mark.asyncio
async def test_cancel_in_flight_request():
    client = FakeClient("never", gated=True)
    controller = RequestController(client)
    seen = _record(controller)

    task = controller.launch()
    await asyncio.sleep(0)
    assert client.prompts

    assert controller.cancel() is True
    with pytest.raises(asyncio.CancelledError):
        await task

    assert controller.state == Error(
        "Failed to establish quantum link. Error: Request was cancelled."
    )
    assert seen == [Loading(), controller.state]
    assert controller.cancel() is False


@pytest.mark.asyncio
async def test_cancel_before_request_is_sent():
    client = FakeClient("never")
    controller = RequestController(client)

    task = controller.launch()
    assert controller.cancel() is True
    with pytest.raises(asyncio.CancelledError):
        await task
    await asyncio.sleep(0)

    assert client.prompts == []
    assert isinstance(controller.state, Error)
    assert not controller.is_loading


@pytest.mark.asyncio
async def test_new_attempt_allowed_after_cancel():
    client = FakeClient("late", gated=True)
    controller = RequestController(client)
    task = controller.launch()
    await asyncio.sleep(0)
    controller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    client.outcomes = ["fresh"]
    client.gate.set()
    assert await controller.start() is True
    assert controller.state == Success("fresh")


def test_cancel_when_idle_returns_false():
    controller = RequestController(FakeClient())
    assert controller.cancel() is False


@pytest.mark.asyncio
async def test_cancel_while_start_awaited_keeps_caller_running():
    client = FakeClient("never", gated=True)
    controller = RequestController(client)
    caller = asyncio.create_task(controller.start())
    for _ in range(3):
        await asyncio.sleep(0)
    assert client.prompts

    assert controller.cancel() is True

    assert await caller is True
    assert not caller.cancelled()
    assert controller.state == Error(
        "Failed to establish quantum link. Error: Request was cancelled."
    )


@pytest.mark.asyncio
async def test_cancelling_start_caller_cancels_attempt():
    client = FakeClient("never", gated=True)
    controller = RequestController(client)
    caller = asyncio.create_task(controller.start())
    for _ in range(3):
        await asyncio.sleep(0)

    caller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await caller
    for _ in range(3):
        await asyncio.sleep(0)

    assert controller.state == Error(
        "Failed to establish quantum link. Error: Request was cancelled."
    )
    assert not controller.is_loading


@pytest.fixture
def captured_logs():
    capture = structlog.testing.LogCapture()
    structlog.configure(
        processors=[structlog.contextvars.merge_contextvars, capture]
    )
    yield capture
    structlog.reset_defaults()


@pytest.mark.asyncio
async def test_each_attempt_logs_with_its_own_context(captured_logs):
    client = FakeClient("one", ServiceError("down"))
    controller = RequestController(client)

    await controller.start()
    await controller.start()

    received = [
        entry
        for entry in captured_logs.entries
        if entry["event"] == "Key exchange narration received."
    ]
    failed = [
        entry
        for entry in captured_logs.entries
        if entry["event"].startswith("Key exchange request failed")
    ]
    assert [entry["attempt"] for entry in received] == [1]
    assert [entry["attempt"] for entry in failed] == [2]
    assert received[0]["prompt_chars"] == len(client.prompts[0])
    assert "attempt" not in structlog.contextvars.get_contextvars()
