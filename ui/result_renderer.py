# ui/result_renderer.py
"""Maps request state to the fragments shown by the control surface."""

from __future__ import annotations

from dataclasses import dataclass

import nh3

from models.simulation_models import Error, Idle, Loading, RequestState, Success

PLACEHOLDER_FRAGMENT = (
    '<p class="placeholder">Simulation log will appear here... '
    "The quantum realm awaits your command.</p>"
)
LOADING_FRAGMENT = '<p class="loading-indicator">Transmitting photons...</p>'
FAILURE_FRAGMENT = (
    '<p class="error">Connection to the quantum realm failed. Please try again.</p>'
)

IDLE_LABEL = "Initiate Secure Key Exchange"
LOADING_LABEL = "Establishing Quantum Link..."

# Narrative markup the service may use. Anything else is stripped.
ALLOWED_TAGS: frozenset[str] = frozenset(
    {
        "p", "br", "hr", "div", "span", "blockquote",
        "h1", "h2", "h3", "h4",
        "ol", "ul", "li",
        "strong", "em", "b", "i", "code", "pre",
        "table", "thead", "tbody", "tr", "th", "td",
    }
)  # fmt: skip
ALLOWED_ATTRIBUTES: dict[str, set[str]] = {"*": {"class"}}


@dataclass(frozen=True)
class RenderedView:
    """Everything the control surface needs for one state."""

    log_html: str
    alert: str | None
    control_label: str
    control_disabled: bool


def sanitize_markup(text: str) -> str:
    """Restrict untrusted service markup to the narrative allow-list."""
    return nh3.clean(
        text,
        tags=set(ALLOWED_TAGS),
        attributes=ALLOWED_ATTRIBUTES,
        strip_comments=True,
    )


def render_log(state: RequestState) -> str:
    if isinstance(state, Loading):
        return LOADING_FRAGMENT
    if isinstance(state, Error):
        return FAILURE_FRAGMENT
    if isinstance(state, Success):
        return sanitize_markup(state.text)
    if isinstance(state, Idle):
        return PLACEHOLDER_FRAGMENT
    raise TypeError(f"Unknown request state: {state!r}")


def render_alert(state: RequestState) -> str | None:
    """The raw error message for the alert region, if there is one."""
    if isinstance(state, Error):
        return state.message
    if isinstance(state, (Idle, Loading, Success)):
        return None
    raise TypeError(f"Unknown request state: {state!r}")


def control_label(state: RequestState) -> str:
    if isinstance(state, Loading):
        return LOADING_LABEL
    if isinstance(state, (Idle, Success, Error)):
        return IDLE_LABEL
    raise TypeError(f"Unknown request state: {state!r}")


def control_disabled(state: RequestState) -> bool:
    if isinstance(state, Loading):
        return True
    if isinstance(state, (Idle, Success, Error)):
        return False
    raise TypeError(f"Unknown request state: {state!r}")


def render_view(state: RequestState) -> RenderedView:
    return RenderedView(
        log_html=render_log(state),
        alert=render_alert(state),
        control_label=control_label(state),
        control_disabled=control_disabled(state),
    )
