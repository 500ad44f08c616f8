"""Main screen: session sidebar, conversation, decision panel, and input.

The screen renders store snapshots and forwards user intent to the
dispatcher. It holds no session state of its own.
"""

from __future__ import annotations

import logging

import aiohttp
from textual import events
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.message import Message
from textual.screen import Screen
from textual.widgets import Footer, Header, Static

from cowork.client.partial_output import PartialOutputState
from cowork.client.permissions import PermissionResult
from cowork.client.runtime import ClientRuntime
from cowork.client.store import StoreSnapshot
from cowork.tui.screens.start_session import StartRequest, StartSessionScreen
from cowork.tui.widgets.conversation import ConversationView
from cowork.tui.widgets.decision_panel import DecisionPanel
from cowork.tui.widgets.input_bar import InputBar
from cowork.tui.widgets.session_list import SessionList

logger = logging.getLogger(__name__)


class ErrorBanner(Static):
    """Single dismissible error line. Click to acknowledge."""

    class Dismissed(Message):
        """User acknowledged the error."""

    DEFAULT_CSS = """
    ErrorBanner {
        height: auto;
        padding: 0 2;
        background: $error 20%;
        color: $error;
        display: none;
    }

    ErrorBanner.shown {
        display: block;
    }
    """

    def show_error(self, message: str | None) -> None:
        self.set_class(bool(message), "shown")
        self.update(f"{message}  [dim](click to dismiss)[/dim]" if message else "")

    def on_click(self, event: events.Click) -> None:
        event.stop()
        self.post_message(self.Dismissed())


class MainScreen(Screen):
    """Primary workspace bound to one ``ClientRuntime``."""

    DEFAULT_CSS = """
    #main-pane {
        width: 1fr;
    }

    #session-title {
        height: 1;
        padding: 0 2;
        text-style: bold;
        background: $surface-lighten-1;
    }

    #decision-slot {
        height: auto;
        max-height: 60%;
        overflow-y: auto;
    }
    """

    BINDINGS = [
        ("ctrl+n", "new_session", "New Session"),
        ("ctrl+d", "delete_session", "Delete Session"),
        ("ctrl+x", "stop_session", "Stop"),
        ("ctrl+e", "focus_editor", "Input"),
        ("escape", "dismiss_error", "Dismiss Error"),
    ]

    def __init__(self, runtime: ClientRuntime, **kwargs) -> None:
        super().__init__(**kwargs)
        self.runtime = runtime
        self._unsubscribers: list = []
        self._modal_open = False
        self._decision: DecisionPanel | None = None

    def compose(self) -> ComposeResult:
        yield Header()
        yield SessionList(id="session-list-pane")
        with Vertical(id="main-pane"):
            yield Static("Cowork", id="session-title")
            yield ConversationView(id="conversation")
            yield Vertical(id="decision-slot")
            yield ErrorBanner(id="error-banner", markup=True)
            yield InputBar(id="input-bar")
        yield Footer()

    def on_mount(self) -> None:
        rt = self.runtime
        self._unsubscribers = [
            rt.store.subscribe(self._on_store_change),
            rt.accumulator.subscribe(self._on_partial_change),
            rt.channel.on_connection_change(self._on_connection_change),
        ]
        self._render_snapshot(rt.store.snapshot())
        self.run_worker(self._connect(), exclusive=True, group="connect")

    def on_unmount(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    async def _connect(self) -> None:
        try:
            await self.runtime.start()
        except (aiohttp.ClientError, OSError) as exc:
            logger.error("Backend connection failed: %s", exc)
            self.runtime.store.set_global_error(
                f"Could not connect to the agent backend: {exc}"
            )

    # ── rendering ───────────────────────────────────────────────────

    def _on_store_change(self, snap: StoreSnapshot) -> None:
        if self.is_mounted:
            self._render_snapshot(snap)

    def _on_partial_change(self, state: PartialOutputState) -> None:
        if self.is_mounted:
            self.query_one("#conversation", ConversationView).show_partial(state)

    def _on_connection_change(self, connected: bool) -> None:
        if self.is_mounted:
            self.query_one("#session-list-pane", SessionList).set_connected(connected)

    def _render_snapshot(self, snap: StoreSnapshot) -> None:
        active = snap.active_session

        sidebar = self.query_one("#session-list-pane", SessionList)
        sidebar.show_sessions(snap.sessions_by_recency(), snap.active_session_id)
        sidebar.set_connected(self.runtime.channel.connected)

        title = active.title if active and active.title else "Cowork"
        self.query_one("#session-title", Static).update(title)

        self.query_one("#conversation", ConversationView).show_messages(
            active.id if active else None,
            active.messages if active else (),
        )

        input_bar = self.query_one("#input-bar", InputBar)
        input_bar.set_text(snap.prompt)
        input_bar.set_running(bool(active and active.is_running))

        # Only the queue head is shown, and only while the session runs
        head = active.pending_permission if active and active.is_running else None
        self._show_decision(head)

        self.query_one("#error-banner", ErrorBanner).show_error(snap.global_error)

        if snap.show_start_modal and not snap.pending_start and not self._modal_open:
            self._open_start_modal(snap)

    def _show_decision(self, request) -> None:
        current = self._decision
        if current is not None and request is not None and current.tool_use_id == request.tool_use_id:
            return
        if current is not None:
            current.remove()
            self._decision = None
        if request is not None:
            self._decision = DecisionPanel(request)
            self.query_one("#decision-slot", Vertical).mount(self._decision)

    def _open_start_modal(self, snap: StoreSnapshot) -> None:
        self._modal_open = True
        self.app.push_screen(
            StartSessionScreen(
                cwd=snap.cwd,
                prompt=snap.prompt,
                error=snap.global_error,
            ),
            callback=self._on_start_dismissed,
        )

    def _on_start_dismissed(self, request: StartRequest | None) -> None:
        store = self.runtime.store
        if request is None:
            self._modal_open = False
            store.set_show_start_modal(False)
            return
        # Stays "open" until the start attempt finishes so the field
        # updates below do not re-open the dialog
        store.set_cwd(request.cwd)
        store.set_prompt(request.prompt)
        self.run_worker(self._start_from_modal(), group="dispatch")

    async def _start_from_modal(self) -> None:
        try:
            await self.runtime.dispatcher.start_from_modal()
        finally:
            self._modal_open = False
            if self.is_mounted:
                self._render_snapshot(self.runtime.store.snapshot())

    # ── intent ──────────────────────────────────────────────────────

    def on_input_bar_prompt_changed(self, event: InputBar.PromptChanged) -> None:
        self.runtime.store.set_prompt(event.text)

    def on_input_bar_send_requested(self, event: InputBar.SendRequested) -> None:
        self.run_worker(self.runtime.dispatcher.send(), group="dispatch")

    def on_input_bar_stop_requested(self, event: InputBar.StopRequested) -> None:
        self.run_worker(self.runtime.dispatcher.stop(), group="dispatch")

    def on_session_list_selected(self, event: SessionList.Selected) -> None:
        self.runtime.store.set_active_session(event.session_id)

    def on_session_list_new_requested(self, event: SessionList.NewRequested) -> None:
        self.action_new_session()

    def on_decision_panel_resolved(self, event: DecisionPanel.Resolved) -> None:
        self.run_worker(
            self._respond_permission(event.tool_use_id, event.result),
            group="dispatch",
        )

    async def _respond_permission(self, tool_use_id: str, result: PermissionResult) -> None:
        if await self.runtime.dispatcher.respond_permission(tool_use_id, result):
            return
        # The request is still queued; replace the spent panel with a live one
        if self._decision is not None and self._decision.tool_use_id == tool_use_id:
            self._decision.remove()
            self._decision = None
        if self.is_mounted:
            self._render_snapshot(self.runtime.store.snapshot())

    def on_error_banner_dismissed(self, event: ErrorBanner.Dismissed) -> None:
        self.runtime.store.set_global_error(None)

    def action_new_session(self) -> None:
        self.runtime.dispatcher.new_session()

    def action_delete_session(self) -> None:
        sidebar = self.query_one("#session-list-pane", SessionList)
        session_id = sidebar.highlighted_session_id or self.runtime.store.active_session_id
        if session_id:
            self.run_worker(self.runtime.dispatcher.delete_session(session_id), group="dispatch")

    def action_stop_session(self) -> None:
        self.run_worker(self.runtime.dispatcher.stop(), group="dispatch")

    def action_focus_editor(self) -> None:
        self.query_one("#input-bar", InputBar).focus_input()

    def action_dismiss_error(self) -> None:
        self.runtime.store.set_global_error(None)
