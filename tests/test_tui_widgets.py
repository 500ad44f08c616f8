"""Pilot tests for the TUI widgets and screens."""

from __future__ import annotations

import asyncio

from textual.app import App, ComposeResult
from textual.widgets import Button

from cowork.adapters.channel import LocalChannel
from cowork.adapters.events import dict_to_event
from cowork.client.config import ClientConfig
from cowork.client.dispatcher import NOT_CONNECTED_ERROR
from cowork.client.permissions import CANCEL_QUESTION_REASON, DENY_REASON
from cowork.client.runtime import ClientRuntime
from cowork.shared.models.session import PermissionRequest
from cowork.tui.screens.start_session import StartRequest, StartSessionScreen
from cowork.tui.widgets.decision_panel import DecisionPanel


class _PanelApp(App):
    def __init__(self, request: PermissionRequest) -> None:
        super().__init__()
        self.request = request
        self.resolved: list[DecisionPanel.Resolved] = []

    def compose(self) -> ComposeResult:
        yield DecisionPanel(self.request)

    def on_decision_panel_resolved(self, message: DecisionPanel.Resolved) -> None:
        self.resolved.append(message)


def test_generic_request_deny_posts_result():
    async def _run() -> None:
        request = PermissionRequest(tool_use_id="t1", tool_name="Bash", input={"command": "rm -rf /"})
        app = _PanelApp(request)
        async with app.run_test(size=(100, 40)) as pilot:
            await pilot.pause()
            await pilot.click("#decision-deny")
            await pilot.pause()

            assert len(app.resolved) == 1
            assert app.resolved[0].tool_use_id == "t1"
            assert app.resolved[0].result.to_dict() == {"behavior": "deny", "message": DENY_REASON}

            # Further clicks are ignored once resolved
            await pilot.click("#decision-allow")
            await pilot.pause()
            assert len(app.resolved) == 1

    asyncio.run(_run())


def test_question_request_submit_disabled_until_answered():
    async def _run() -> None:
        request = PermissionRequest(
            tool_use_id="q1",
            tool_name="AskUserQuestion",
            input={"questions": [
                {"question": "Which?", "options": [{"label": "A"}, {"label": "B"}], "multiSelect": True},
                {"question": "Why?", "options": [{"label": "C"}]},
            ]},
        )
        app = _PanelApp(request)
        async with app.run_test(size=(100, 60)) as pilot:
            await pilot.pause()
            panel = app.query_one(DecisionPanel)
            assert panel.query_one("#decision-submit", Button).disabled

            await pilot.click("#decision-cancel")
            await pilot.pause()
            assert app.resolved[0].result.to_dict() == {
                "behavior": "deny",
                "message": CANCEL_QUESTION_REASON,
            }

    asyncio.run(_run())


def test_start_dialog_dismisses_with_request():
    async def _run() -> None:
        app = App()
        results: list[StartRequest | None] = []
        async with app.run_test(size=(120, 40)) as pilot:
            app.push_screen(
                StartSessionScreen(cwd="/work", prompt="fix it"),
                callback=results.append,
            )
            await pilot.pause()
            await pilot.click("#start-submit")
            await pilot.pause()

        assert results == [StartRequest(cwd="/work", prompt="fix it")]

    asyncio.run(_run())


def test_start_dialog_escape_cancels():
    async def _run() -> None:
        app = App()
        results: list[StartRequest | None] = []
        async with app.run_test(size=(120, 40)) as pilot:
            app.push_screen(StartSessionScreen(), callback=results.append)
            await pilot.pause()
            await pilot.press("escape")
            await pilot.pause()

        assert results == [None]

    asyncio.run(_run())


class _OfflineChannel(LocalChannel):
    """Channel that never comes up."""

    async def connect(self) -> None:
        return None


def test_unsent_permission_answer_can_be_retried():
    async def _run() -> None:
        from cowork.tui.app import CoworkApp

        async def title(prompt: str) -> str:
            return "Title"

        runtime = ClientRuntime(ClientConfig(), channel=_OfflineChannel(), title_generator=title)
        app = CoworkApp(runtime)
        async with app.run_test(size=(120, 50)) as pilot:
            await pilot.pause()
            store = runtime.store
            store.apply_event(dict_to_event({
                "type": "session.history",
                "payload": {"sessionId": "s1", "status": "running", "messages": []},
            }))
            store.set_active_session("s1")
            store.apply_event(dict_to_event({
                "type": "permission.request",
                "payload": {"sessionId": "s1", "toolUseId": "t1", "toolName": "Bash", "input": {}},
            }))
            await pilot.pause()

            await pilot.click("#decision-allow")
            await pilot.pause(0.1)
            await pilot.pause()

            assert store.global_error == NOT_CONNECTED_ERROR
            assert store.pending_permission("s1").tool_use_id == "t1"
            panels = list(app.screen.query(DecisionPanel))
            assert len(panels) == 1
            assert not panels[0].query_one("#decision-allow", Button).disabled

    asyncio.run(_run())
