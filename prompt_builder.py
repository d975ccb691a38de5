# prompt_builder.py
"""Builds the instruction text that asks the service to narrate a BB84 run."""

from __future__ import annotations

from config import settings
from models.simulation_models import SimulationParameters
from prompt_renderer import render_prompt

SIMULATION_TEMPLATE = "qkd_simulation.j2"


def default_parameters() -> SimulationParameters:
    return SimulationParameters(photon_count=settings.PHOTON_COUNT)


def build_simulation_prompt(parameters: SimulationParameters | None = None) -> str:
    """Return the narration instructions for ``parameters``.

    The output depends on nothing but the parameters, so repeated calls with
    equal parameters produce identical prompts.
    """
    params = parameters if parameters is not None else default_parameters()
    return render_prompt(SIMULATION_TEMPLATE, {"params": params})
