"""Conversation view: the active session's messages plus streaming output."""

from __future__ import annotations

import json

from rich.console import Group
from rich.markdown import Markdown as RichMarkdown
from rich.text import Text
from textual.app import ComposeResult
from textual.containers import VerticalScroll
from textual.widget import Widget
from textual.widgets import LoadingIndicator, Static

from cowork.client.partial_output import PartialOutputState
from cowork.shared.models.message import ContentBlock, Message, MessageRole

_ROLE_LABELS = {
    MessageRole.USER: ("You", "bold cyan"),
    MessageRole.ASSISTANT: ("Agent", "bold green"),
    MessageRole.SYSTEM: ("System", "dim"),
    MessageRole.RESULT: ("Result", "bold magenta"),
    MessageRole.OTHER: ("Event", "dim"),
}


def _block_renderable(block: ContentBlock):
    if block.kind == "text" and block.text:
        return RichMarkdown(block.text)
    if block.kind == "tool_use" and isinstance(block.payload, dict):
        name = block.payload.get("name", "tool")
        args = json.dumps(block.payload.get("input"), default=str)
        if len(args) > 200:
            args = args[:197] + "..."
        return Text(f"→ {name} {args}", style="yellow")
    if block.kind == "tool_result":
        return Text("← tool result", style="dim")
    if block.kind == "thinking":
        return Text(block.text or "(thinking)", style="dim italic")
    if block.text:
        return Text(block.text)
    return None


class MessageWidget(Static):
    """One finalized message."""

    DEFAULT_CSS = """
    MessageWidget {
        margin: 1 0 0 0;
        padding: 0 1;
        height: auto;
    }

    MessageWidget.role-user {
        background: $boost;
        border-left: thick $accent;
    }

    MessageWidget.role-system, MessageWidget.role-other {
        color: $text-muted;
    }
    """

    def __init__(self, message: Message, **kwargs) -> None:
        super().__init__(**kwargs)
        self.message = message
        self.add_class(f"role-{message.role.value}")

    def on_mount(self) -> None:
        label, style = _ROLE_LABELS[self.message.role]
        parts = [Text(label, style=style)]
        for block in self.message.content:
            renderable = _block_renderable(block)
            if renderable is not None:
                parts.append(renderable)
        self.update(Group(*parts))


class PartialOutput(Widget):
    """Streaming text for the in-progress message with a loading indicator."""

    DEFAULT_CSS = """
    PartialOutput {
        height: auto;
        padding: 0 1;
    }

    PartialOutput LoadingIndicator {
        height: 1;
        display: none;
    }

    PartialOutput.visible LoadingIndicator {
        display: block;
    }
    """

    def compose(self) -> ComposeResult:
        yield Static("", id="partial-text")
        yield LoadingIndicator()

    def show_state(self, state: PartialOutputState) -> None:
        text = self.query_one("#partial-text", Static)
        text.update(RichMarkdown(state.buffer) if state.buffer else "")
        self.set_class(state.visible, "visible")


class ConversationView(VerticalScroll):
    """Scrollable message list for one session."""

    DEFAULT_CSS = """
    ConversationView {
        height: 1fr;
        padding: 0 2;
    }

    ConversationView .empty-hint {
        color: $text-muted;
        margin: 2 0;
        text-align: center;
        width: 100%;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._session_id: str | None = None
        self._rendered: tuple[Message, ...] = ()

    def compose(self) -> ComposeResult:
        yield Static("No messages yet", classes="empty-hint")
        yield PartialOutput(id="partial-output")

    def show_messages(self, session_id: str | None, messages: tuple[Message, ...]) -> None:
        """Render *messages*, appending in place when the session only grew."""
        partial = self.query_one("#partial-output", PartialOutput)
        same_prefix = (
            session_id == self._session_id
            and messages[: len(self._rendered)] == self._rendered
        )
        if not same_prefix:
            for widget in list(self.query(MessageWidget)):
                widget.remove()
            new = messages
        else:
            new = messages[len(self._rendered):]

        if new:
            self.mount_all([MessageWidget(m) for m in new], before=partial)
        self._session_id = session_id
        self._rendered = messages
        self.query_one(".empty-hint", Static).display = not messages
        if new:
            self.scroll_end(animate=False)

    def show_partial(self, state: PartialOutputState) -> None:
        self.query_one("#partial-output", PartialOutput).show_state(state)
        if state.buffer:
            self.scroll_end(animate=False)
