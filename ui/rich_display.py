from __future__ import annotations

import time
from typing import Optional

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from config import settings
from models.simulation_models import Idle, RequestState
from ui.result_renderer import RenderedView, render_view


class SimulationDisplay:
    """Handles Rich-based display of the key exchange control surface."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()
        self.live: Optional[Live] = None
        self.view: RenderedView = render_view(Idle())
        self.status_text_control: Text = Text()
        self.status_text_log: Text = Text()
        self.status_text_alert: Text = Text(style="bold red")
        self.status_text_elapsed_time: Text = Text("Elapsed Time: 0s")
        self.loading_since: float | None = None
        self.group = Group(
            self.status_text_control,
            self.status_text_log,
            self.status_text_alert,
            self.status_text_elapsed_time,
        )
        self._apply(self.view)

        if settings.ENABLE_RICH_PROGRESS:
            self.live = Live(
                self.panel(),
                console=self.console,
                refresh_per_second=4,
                transient=False,
                redirect_stdout=False,
                redirect_stderr=False,
            )

    def panel(self) -> Panel:
        return Panel(
            self.group,
            title="Interactive QKD Simulation",
            border_style="blue",
            expand=True,
        )

    def start(self) -> None:
        if self.live and not self.live.is_started:
            self.live.start()

    def stop(self) -> None:
        if self.live and self.live.is_started:
            self.live.stop()

    def _apply(self, view: RenderedView) -> None:
        marker = " (disabled)" if view.control_disabled else ""
        self.status_text_control.plain = f"[ {view.control_label} ]{marker}"
        # Shown as literal text; Rich never interprets the service markup.
        self.status_text_log.plain = view.log_html
        self.status_text_alert.plain = view.alert or ""
        if self.loading_since is not None:
            elapsed_seconds = time.monotonic() - self.loading_since
            self.status_text_elapsed_time.plain = (
                f"Elapsed Time: {time.strftime('%H:%M:%S', time.gmtime(elapsed_seconds))}"
            )

    def update(self, state: RequestState) -> None:
        """State listener: recompute the view and refresh the panel."""
        self.view = render_view(state)
        if self.view.control_disabled:
            self.loading_since = time.monotonic()
        self._apply(self.view)
        if not self.view.control_disabled:
            self.loading_since = None
        if self.live and self.live.is_started:
            self.live.update(self.panel(), refresh=True)
        elif not self.live:
            self.console.print(self.panel())
