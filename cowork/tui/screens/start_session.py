"""Start session modal: working directory plus first prompt."""

from __future__ import annotations

from dataclasses import dataclass

from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Static, TextArea


@dataclass
class StartRequest:
    cwd: str
    prompt: str


class StartSessionScreen(ModalScreen[StartRequest | None]):
    """Collects a working directory and prompt.

    Dismisses with a ``StartRequest`` on Start, or None on Cancel.
    Validation happens in the dispatcher, not here.
    """

    DEFAULT_CSS = """
    StartSessionScreen {
        align: center middle;
    }

    #start-dialog {
        width: 80;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: round $accent;
    }

    #start-dialog Label {
        margin-top: 1;
    }

    #start-error {
        color: $error;
        margin-top: 1;
    }

    #start-prompt {
        height: 8;
    }

    #start-buttons {
        height: auto;
        margin-top: 1;
        align-horizontal: right;
    }
    """

    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(
        self,
        cwd: str = "",
        prompt: str = "",
        error: str | None = None,
        pending: bool = False,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self._cwd = cwd
        self._prompt = prompt
        self._error = error
        self._pending = pending

    def compose(self) -> ComposeResult:
        with Vertical(id="start-dialog"):
            yield Static("[bold]Start a new session[/bold]", markup=True)
            if self._error:
                yield Static(self._error.replace("[", "\\["), id="start-error", markup=True)
            yield Label("Working Directory")
            yield Input(value=self._cwd, placeholder="/path/to/project", id="start-cwd")
            yield Label("Prompt")
            yield TextArea(self._prompt, id="start-prompt")
            with Horizontal(id="start-buttons"):
                yield Button("Cancel", id="start-cancel")
                yield Button(
                    "Starting..." if self._pending else "Start",
                    variant="primary",
                    id="start-submit",
                    disabled=self._pending,
                )

    def on_mount(self) -> None:
        target = "#start-prompt" if self._cwd else "#start-cwd"
        self.query_one(target).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        if event.button.id == "start-submit":
            self.dismiss(StartRequest(
                cwd=self.query_one("#start-cwd", Input).value,
                prompt=self.query_one("#start-prompt", TextArea).text,
            ))
        elif event.button.id == "start-cancel":
            self.dismiss(None)

    def action_cancel(self) -> None:
        self.dismiss(None)
