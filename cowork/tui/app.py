"""Cowork TUI: Textual application class."""

from __future__ import annotations

from textual.app import App

from cowork.client.runtime import ClientRuntime
from cowork.tui.screens.main import MainScreen


class CoworkApp(App):
    """Terminal UI for driving agent sessions."""

    TITLE = "Cowork"
    SUB_TITLE = "Agent Sessions"

    BINDINGS = [
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(self, runtime: ClientRuntime, **kwargs) -> None:
        super().__init__(**kwargs)
        self.runtime = runtime

    def on_mount(self) -> None:
        self.push_screen(MainScreen(self.runtime))

    async def action_quit(self) -> None:
        """Close the channel before exiting."""
        await self.runtime.close()
        await super().action_quit()
