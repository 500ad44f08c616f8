"""Permission queue and permission results.

Each session holds a FIFO of outstanding approval requests. Only the
head is shown; the rest stay hidden until it resolves. Resolution is by
``tool_use_id`` and a second resolve for the same id is a silent no-op.

``AskUserQuestion`` requests carry structured questions instead of a
plain allow/deny; ``DecisionForm`` builds their answers.
"""
from __future__ import annotations

import copy
import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from cowork.client.errors import IncompleteAnswersError
from cowork.shared.models.session import PermissionRequest

logger = logging.getLogger(__name__)

QUESTION_TOOL_NAME = "AskUserQuestion"
DENY_REASON = "User denied the request"
CANCEL_QUESTION_REASON = "User canceled the question"
ANSWER_SEPARATOR = ", "


# ── Results ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PermissionResult:
    behavior: str  # "allow" or "deny"
    updated_input: Any = None
    message: str | None = None

    @property
    def allowed(self) -> bool:
        return self.behavior == "allow"

    def to_dict(self) -> dict[str, Any]:
        if self.allowed:
            return {"behavior": "allow", "updatedInput": self.updated_input}
        return {"behavior": "deny", "message": self.message or ""}


def allow(updated_input: Any) -> PermissionResult:
    return PermissionResult(behavior="allow", updated_input=updated_input)


def deny(message: str = DENY_REASON) -> PermissionResult:
    return PermissionResult(behavior="deny", message=message)


def allow_request(request: PermissionRequest) -> PermissionResult:
    """Generic approval: echo the original input unchanged."""
    return allow(request.input)


def deny_request(request: PermissionRequest) -> PermissionResult:
    return deny(DENY_REASON)


# ── Queue ───────────────────────────────────────────────────────────


class PermissionQueue:
    """Ordered queue of outstanding requests for one session."""

    def __init__(self, requests: list[PermissionRequest] | None = None) -> None:
        self._items: list[PermissionRequest] = requests if requests is not None else []

    def push(self, tool_use_id: str, tool_name: str, input: Any) -> PermissionRequest:
        """Queue a request. A live ``tool_use_id`` is replaced in place."""
        for idx, existing in enumerate(self._items):
            if existing.tool_use_id == tool_use_id:
                replaced = PermissionRequest(
                    tool_use_id=tool_use_id,
                    tool_name=tool_name,
                    input=input,
                    position=existing.position,
                )
                self._items[idx] = replaced
                logger.debug("Superseded permission request %s", tool_use_id)
                return replaced
        request = PermissionRequest(
            tool_use_id=tool_use_id,
            tool_name=tool_name,
            input=input,
            position=self._next_position(),
        )
        self._items.append(request)
        return request

    def _next_position(self) -> int:
        # The tail always holds the highest position
        return self._items[-1].position + 1 if self._items else 1

    def resolve(self, tool_use_id: str) -> bool:
        """Remove the matching request. Returns False when it was not queued."""
        for idx, existing in enumerate(self._items):
            if existing.tool_use_id == tool_use_id:
                del self._items[idx]
                return True
        return False

    @property
    def head(self) -> PermissionRequest | None:
        return self._items[0] if self._items else None

    def __iter__(self) -> Iterator[PermissionRequest]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, tool_use_id: object) -> bool:
        return any(r.tool_use_id == tool_use_id for r in self._items)


# ── Structured questions ────────────────────────────────────────────


@dataclass(frozen=True)
class QuestionOption:
    label: str
    description: str = ""


@dataclass(frozen=True)
class Question:
    question: str
    header: str = ""
    options: tuple[QuestionOption, ...] = ()
    multi_select: bool = False


def parse_questions(input: Any) -> list[Question]:
    """Read the ``questions`` list from an AskUserQuestion input payload."""
    if not isinstance(input, dict) or not isinstance(input.get("questions"), list):
        return []
    questions: list[Question] = []
    for raw in input["questions"]:
        if not isinstance(raw, dict) or not raw.get("question"):
            continue
        options = tuple(
            QuestionOption(label=str(o["label"]), description=str(o.get("description") or ""))
            for o in raw.get("options") or []
            if isinstance(o, dict) and o.get("label") is not None
        )
        questions.append(Question(
            question=str(raw["question"]),
            header=str(raw.get("header") or ""),
            options=options,
            multi_select=bool(raw.get("multiSelect")),
        ))
    return questions


def is_question_request(request: PermissionRequest) -> bool:
    return request.tool_name == QUESTION_TOOL_NAME and bool(parse_questions(request.input))


@dataclass
class DecisionForm:
    """Answer state for one AskUserQuestion request.

    Selections and free-text "other" answers are tracked per question
    index. ``select`` returns a result straight away when the request
    holds exactly one single-select question; otherwise answers are
    collected until ``submit``.
    """

    request: PermissionRequest
    questions: list[Question] = field(init=False)
    selected: dict[int, list[str]] = field(init=False, default_factory=dict)
    other: dict[int, str] = field(init=False, default_factory=dict)

    def __post_init__(self) -> None:
        self.questions = parse_questions(self.request.input)

    @property
    def auto_submit(self) -> bool:
        return len(self.questions) == 1 and not self.questions[0].multi_select

    def select(self, index: int, label: str) -> PermissionResult | None:
        """Click an option. Returns a result when it resolves the request."""
        question = self.questions[index]
        if self.auto_submit:
            return allow(self._updated_input({question.question: label}))
        current = self.selected.get(index, [])
        if question.multi_select:
            if label in current:
                self.selected[index] = [s for s in current if s != label]
            else:
                self.selected[index] = [*current, label]
        else:
            self.selected[index] = [label]
        return None

    def set_other(self, index: int, text: str) -> None:
        self.other[index] = text

    def _answered(self, index: int) -> bool:
        return bool(self.selected.get(index)) or bool(self.other.get(index, "").strip())

    @property
    def can_submit(self) -> bool:
        return all(self._answered(i) for i in range(len(self.questions)))

    def build_answers(self) -> dict[str, str]:
        answers: dict[str, str] = {}
        for idx, q in enumerate(self.questions):
            selected = self.selected.get(idx, [])
            other_text = self.other.get(idx, "").strip()
            if q.multi_select:
                combined = [*selected]
                if other_text:
                    combined.append(other_text)
                value = ANSWER_SEPARATOR.join(combined)
            else:
                value = other_text or (selected[0] if selected else "")
            if value:
                answers[q.question] = value
        return answers

    def submit(self) -> PermissionResult:
        if not self.can_submit:
            missing = [
                q.question for i, q in enumerate(self.questions)
                if not self._answered(i)
            ]
            raise IncompleteAnswersError(missing)
        return allow(self._updated_input(self.build_answers()))

    def cancel(self) -> PermissionResult:
        return deny(CANCEL_QUESTION_REASON)

    def _updated_input(self, answers: dict[str, str]) -> dict[str, Any]:
        base = copy.deepcopy(self.request.input) if isinstance(self.request.input, dict) else {}
        base["answers"] = answers
        return base
