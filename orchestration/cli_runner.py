# orchestration/cli_runner.py
"""Command-line runner for the key exchange simulation."""

from __future__ import annotations

import asyncio

import structlog

from config import settings
from core.generation_client import GeminiGenerationClient, GenerationClient
from models.simulation_models import Error, SimulationParameters
from orchestration.request_controller import RequestController
from ui.rich_display import SimulationDisplay
from utils.logging import setup_logging

logger = structlog.get_logger(__name__)

QUIT_WORDS = frozenset({"q", "quit", "exit"})


async def _read_trigger(label: str) -> str:
    return await asyncio.to_thread(input, f"Press Enter to {label} (q to quit): ")


async def _run(
    controller: RequestController,
    client: GenerationClient,
    display: SimulationDisplay,
    once: bool,
) -> int:
    controller.subscribe(display.update)
    display.start()
    try:
        if once:
            await controller.start()
        else:
            while True:
                answer = await _read_trigger(display.view.control_label.lower())
                if answer.strip().lower() in QUIT_WORDS:
                    break
                await controller.start()
    finally:
        display.stop()
        await client.aclose()
    if once and isinstance(controller.state, Error):
        return 1
    return 0


def run(once: bool = False, photon_count: int | None = None) -> int:
    """Wire the client, controller and display together and run them."""
    setup_logging()
    parameters = SimulationParameters(
        photon_count=photon_count or settings.PHOTON_COUNT
    )
    client = GeminiGenerationClient(api_key=settings.GEMINI_API_KEY)
    controller = RequestController(client, parameters=parameters)
    display = SimulationDisplay()
    try:
        return asyncio.run(_run(controller, client, display, once))
    except KeyboardInterrupt:
        logger.info("QuantumGuard shutting down gracefully due to KeyboardInterrupt...")
        return 130
