"""Input bar: prompt editor with a send/stop button."""

from __future__ import annotations

from textual import events
from textual.app import ComposeResult
from textual.containers import Horizontal
from textual.message import Message
from textual.widget import Widget
from textual.widgets import Button, TextArea


class PromptInput(TextArea):
    """TextArea that fires SubmitRequested on Enter (Shift+Enter for newlines)."""

    class SubmitRequested(Message):
        """Fired when bare Enter is pressed."""

    async def _on_key(self, event: events.Key) -> None:
        if event.key == "enter":
            event.stop()
            event.prevent_default()
            self.post_message(self.SubmitRequested())
            return
        if event.key == "shift+enter":
            event.stop()
            event.prevent_default()
            self._replace_via_keyboard("\n", *self.selection)
            return
        await super()._on_key(event)


class InputBar(Widget):
    """Prompt editor plus a button that sends, or stops while running."""

    class PromptChanged(Message):
        def __init__(self, text: str) -> None:
            self.text = text
            super().__init__()

    class SendRequested(Message):
        """User asked to send the prompt buffer."""

    class StopRequested(Message):
        """User asked to stop the running session."""

    DEFAULT_CSS = """
    InputBar {
        dock: bottom;
        height: auto;
        max-height: 14;
        padding: 0 1;
    }

    InputBar Horizontal {
        height: auto;
    }

    InputBar PromptInput {
        width: 1fr;
        height: auto;
        min-height: 3;
        max-height: 12;
    }

    InputBar #send-btn {
        min-width: 8;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._running = False

    def compose(self) -> ComposeResult:
        with Horizontal():
            yield PromptInput(id="prompt-input")
            yield Button("Send", id="send-btn", variant="primary")

    def set_text(self, text: str) -> None:
        """Sync the editor with the store's prompt buffer."""
        editor = self.query_one("#prompt-input", PromptInput)
        if editor.text != text:
            editor.load_text(text)

    def set_running(self, running: bool) -> None:
        if running == self._running:
            return
        self._running = running
        button = self.query_one("#send-btn", Button)
        button.label = "Stop" if running else "Send"
        button.variant = "error" if running else "primary"

    def focus_input(self) -> None:
        self.query_one("#prompt-input", PromptInput).focus()

    def _request(self) -> None:
        self.post_message(self.StopRequested() if self._running else self.SendRequested())

    def on_prompt_input_submit_requested(self, event: PromptInput.SubmitRequested) -> None:
        event.stop()
        self._request()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "send-btn":
            event.stop()
            self._request()

    def on_text_area_changed(self, event: TextArea.Changed) -> None:
        event.stop()
        self.post_message(self.PromptChanged(event.text_area.text))
