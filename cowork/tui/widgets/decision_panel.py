"""Decision panel: approval UI for the head of the permission queue.

Generic requests get Allow / Deny. ``AskUserQuestion`` requests render
each question with option buttons and an "Other" input; a request with
a single single-select question resolves as soon as an option is
clicked.
"""

from __future__ import annotations

import json

from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.message import Message
from textual.widget import Widget
from textual.widgets import Button, Input, Static

from cowork.client.permissions import (
    DecisionForm,
    PermissionResult,
    allow_request,
    deny_request,
    is_question_request,
)
from cowork.shared.models.session import PermissionRequest


def _esc(text: str) -> str:
    return text.replace("[", "\\[")


class DecisionPanel(Widget):
    """Renders one permission request and posts ``Resolved`` when answered."""

    class Resolved(Message):
        """Posted once per request with the user's decision."""

        def __init__(self, tool_use_id: str, result: PermissionResult) -> None:
            super().__init__()
            self.tool_use_id = tool_use_id
            self.result = result

    DEFAULT_CSS = """
    DecisionPanel {
        layout: vertical;
        margin: 1 0 1 2;
        padding: 1 2;
        background: $surface-darken-1;
        border: round $warning;
        height: auto;
    }

    DecisionPanel .decision-title {
        color: $warning;
        text-style: bold;
        margin-bottom: 1;
    }

    DecisionPanel .decision-question {
        margin-top: 1;
        text-style: bold;
        height: auto;
    }

    DecisionPanel .decision-header {
        color: $text-muted;
        height: auto;
    }

    DecisionPanel .decision-option {
        width: 100%;
        height: auto;
        min-height: 3;
        content-align: left top;
        text-align: left;
    }

    DecisionPanel .decision-option.selected {
        border: tall $success;
    }

    DecisionPanel .decision-input {
        max-height: 12;
        height: auto;
        color: $text-muted;
    }

    DecisionPanel .decision-buttons {
        height: auto;
        margin-top: 1;
    }
    """

    def __init__(self, request: PermissionRequest, **kwargs) -> None:
        super().__init__(**kwargs)
        self._request = request
        self._form = DecisionForm(request) if is_question_request(request) else None
        self._option_buttons: dict[int, tuple[int, str]] = {}
        self._other_inputs: dict[int, int] = {}
        self._resolved = False

    @property
    def tool_use_id(self) -> str:
        return self._request.tool_use_id

    def compose(self) -> ComposeResult:
        if self._form is not None:
            yield from self._compose_questions(self._form)
            return

        yield Static("[bold]Permission Request[/bold]", classes="decision-title", markup=True)
        yield Static(
            f"Agent wants to use: [cyan]{_esc(self._request.tool_name)}[/cyan]",
            markup=True,
        )
        try:
            details = json.dumps(self._request.input, indent=2, default=str)
        except (TypeError, ValueError):
            details = repr(self._request.input)
        yield Static(_esc(details[:2000]), classes="decision-input", markup=True)
        with Horizontal(classes="decision-buttons"):
            yield Button("Allow", variant="success", id="decision-allow")
            yield Button("Deny", variant="error", id="decision-deny")

    def _compose_questions(self, form: DecisionForm) -> ComposeResult:
        yield Static("[bold]Question from the agent[/bold]", classes="decision-title", markup=True)
        for q_index, question in enumerate(form.questions):
            with Vertical(classes="decision-question-block"):
                yield Static(_esc(question.question), classes="decision-question", markup=True)
                if question.header:
                    yield Static(_esc(question.header), classes="decision-header", markup=True)
                for option in question.options:
                    text = option.label
                    if option.description:
                        text = f"{option.label}\n{option.description}"
                    button = Button(_esc(text), classes="decision-option")
                    self._option_buttons[id(button)] = (q_index, option.label)
                    yield button
                other = Input(placeholder="Other: type your answer...")
                self._other_inputs[id(other)] = q_index
                yield other
                if question.multi_select:
                    yield Static("[dim]Multiple selections allowed.[/dim]", markup=True)
        with Horizontal(classes="decision-buttons"):
            yield Button(
                "Submit answers", variant="primary", id="decision-submit",
                disabled=not form.can_submit,
            )
            yield Button("Cancel", variant="default", id="decision-cancel")

    # ── events ──────────────────────────────────────────────────────

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        if self._resolved:
            return
        button = event.button
        request = self._request

        if button.id == "decision-allow":
            self._resolve(allow_request(request))
        elif button.id == "decision-deny":
            self._resolve(deny_request(request))
        elif self._form is None:
            return
        elif button.id == "decision-submit":
            if self._form.can_submit:
                self._resolve(self._form.submit())
        elif button.id == "decision-cancel":
            self._resolve(self._form.cancel())
        elif id(button) in self._option_buttons:
            q_index, label = self._option_buttons[id(button)]
            result = self._form.select(q_index, label)
            if result is not None:
                self._resolve(result)
                return
            self._sync_selection()

    def on_input_changed(self, event: Input.Changed) -> None:
        if self._form is None or id(event.input) not in self._other_inputs:
            return
        event.stop()
        self._form.set_other(self._other_inputs[id(event.input)], event.value)
        self._sync_selection()

    def _sync_selection(self) -> None:
        assert self._form is not None
        for button in self.query(".decision-option").results(Button):
            q_index, label = self._option_buttons.get(id(button), (-1, ""))
            button.set_class(label in self._form.selected.get(q_index, []), "selected")
        self.query_one("#decision-submit", Button).disabled = not self._form.can_submit

    def _resolve(self, result: PermissionResult) -> None:
        self._resolved = True
        self.add_class("resolved")
        for button in self.query(Button).results(Button):
            button.disabled = True
        self.post_message(self.Resolved(self._request.tool_use_id, result))
