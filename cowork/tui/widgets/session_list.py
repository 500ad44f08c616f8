"""Session list: sidebar of known sessions, most recently updated first."""

from __future__ import annotations

from rich.text import Text
from textual.app import ComposeResult
from textual.message import Message
from textual.widget import Widget
from textual.widgets import Button, Label, ListItem, ListView, Static

from cowork.shared.models.session import SessionStatus, SessionView

_STATUS_STYLES = {
    SessionStatus.IDLE: ("○", "dim"),
    SessionStatus.RUNNING: ("●", "yellow"),
    SessionStatus.STOPPED: ("✓", "green"),
    SessionStatus.ERRORED: ("✗", "red"),
}


class SessionItem(ListItem):
    def __init__(self, session: SessionView, **kwargs) -> None:
        super().__init__(**kwargs)
        self.session_id = session.id
        self._session = session

    def compose(self) -> ComposeResult:
        icon, style = _STATUS_STYLES[self._session.status]
        label = Text()
        label.append(f"{icon} ", style=style)
        label.append(self._session.title or "Untitled session")
        yield Label(label)


class SessionList(Widget):
    """Sidebar listing sessions; posts selection and new-session requests."""

    class Selected(Message):
        def __init__(self, session_id: str) -> None:
            self.session_id = session_id
            super().__init__()

    class NewRequested(Message):
        """User clicked the new-session button."""

    DEFAULT_CSS = """
    SessionList {
        width: 32;
        dock: left;
        border-right: solid $surface-lighten-1;
    }

    SessionList #sessions-header {
        height: 1;
        padding: 0 1;
        text-style: bold;
    }

    SessionList #connection {
        height: 1;
        padding: 0 1;
        color: $text-muted;
    }

    SessionList #new-session-btn {
        width: 100%;
    }

    SessionList ListView {
        height: 1fr;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        # (id, title, status) rows currently rendered
        self._rows: list[tuple[str, str, SessionStatus]] = []
        self._active_id: str | None = None

    def compose(self) -> ComposeResult:
        yield Static("Sessions", id="sessions-header")
        yield Static("disconnected", id="connection")
        yield Button("+ New session", id="new-session-btn", variant="primary")
        yield ListView(id="session-list")

    def set_connected(self, connected: bool) -> None:
        label = "[green]connected[/green]" if connected else "[red]disconnected[/red]"
        self.query_one("#connection", Static).update(label)

    def show_sessions(self, sessions: list[SessionView], active_id: str | None) -> None:
        rows = [(s.id, s.title, s.status) for s in sessions]
        list_view = self.query_one("#session-list", ListView)
        if rows != self._rows:
            self._rows = rows
            list_view.clear()
            list_view.extend(SessionItem(s) for s in sessions)
            self._active_id = None
        if active_id != self._active_id:
            self._active_id = active_id
            ids = [r[0] for r in rows]
            list_view.index = ids.index(active_id) if active_id in ids else None

    @property
    def highlighted_session_id(self) -> str | None:
        item = self.query_one("#session-list", ListView).highlighted_child
        return item.session_id if isinstance(item, SessionItem) else None

    def on_list_view_selected(self, event: ListView.Selected) -> None:
        event.stop()
        if isinstance(event.item, SessionItem):
            self.post_message(self.Selected(event.item.session_id))

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "new-session-btn":
            event.stop()
            self.post_message(self.NewRequested())
