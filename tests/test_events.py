from __future__ import annotations

import pytest

from cowork.adapters.events import (
    ListSessions,
    PermissionRequested,
    PermissionResponse,
    ServerEvent,
    SessionHistory,
    SessionList,
    SessionStatusChanged,
    StartSession,
    StreamMessage,
    command_to_dict,
    dict_to_event,
)
from cowork.client.errors import InvalidEventError


def test_session_list_parses_camel_case_rows() -> None:
    event = dict_to_event({
        "type": "session.list",
        "payload": {
            "sessions": [
                {"id": "s1", "title": "One", "status": "running", "createdAt": 10, "updatedAt": 20},
                {"title": "no id"},
                "garbage",
            ],
        },
    })
    assert isinstance(event, SessionList)
    assert [s.id for s in event.sessions] == ["s1"]
    assert event.sessions[0].updated_at == 20
    assert event.sessions[0].created_at == 10


def test_status_event_reads_session_id_and_optionals() -> None:
    event = dict_to_event({
        "type": "session.status",
        "payload": {"sessionId": "s1", "status": "running", "title": "T", "cwd": "/tmp"},
    })
    assert isinstance(event, SessionStatusChanged)
    assert event.session_id == "s1"
    assert event.title == "T"
    assert event.cwd == "/tmp"
    assert event.error is None


def test_history_with_non_list_messages_becomes_empty() -> None:
    event = dict_to_event({
        "type": "session.history",
        "payload": {"sessionId": "s1", "status": "idle", "messages": "nope"},
    })
    assert isinstance(event, SessionHistory)
    assert event.messages == []


def test_unknown_kind_is_bare_server_event() -> None:
    event = dict_to_event({"type": "session.frobnicate", "payload": {"sessionId": "s1"}})
    assert type(event) is ServerEvent
    assert event.event_type == "session.frobnicate"


def test_permission_request_requires_tool_use_id() -> None:
    with pytest.raises(InvalidEventError):
        dict_to_event({
            "type": "permission.request",
            "payload": {"sessionId": "s1", "toolName": "Bash", "input": {}},
        })


def test_permission_request_parses_fields() -> None:
    event = dict_to_event({
        "type": "permission.request",
        "payload": {
            "sessionId": "s1",
            "toolUseId": "t1",
            "toolName": "Bash",
            "input": {"command": "ls"},
        },
    })
    assert isinstance(event, PermissionRequested)
    assert event.tool_use_id == "t1"
    assert event.input == {"command": "ls"}


def test_stream_message_must_carry_object() -> None:
    with pytest.raises(InvalidEventError):
        dict_to_event({"type": "stream.message", "payload": {"sessionId": "s1", "message": "hi"}})
    event = dict_to_event({
        "type": "stream.message",
        "payload": {"sessionId": "s1", "message": {"type": "assistant"}},
    })
    assert isinstance(event, StreamMessage)


def test_non_dict_payload_rejected() -> None:
    with pytest.raises(InvalidEventError):
        dict_to_event(["session.list"])


def test_start_command_omits_unset_cwd() -> None:
    wire = command_to_dict(StartSession(title="Fix bug", prompt="fix it", allowed_tools="Read"))
    assert wire == {
        "type": "session.start",
        "payload": {"title": "Fix bug", "prompt": "fix it", "allowedTools": "Read"},
    }


def test_list_command_has_no_payload() -> None:
    assert command_to_dict(ListSessions()) == {"type": "session.list"}


def test_permission_response_wire_shape() -> None:
    wire = command_to_dict(PermissionResponse(
        session_id="s1",
        tool_use_id="t1",
        result={"behavior": "deny", "message": "User denied the request"},
    ))
    assert wire["type"] == "permission.response"
    assert wire["payload"]["sessionId"] == "s1"
    assert wire["payload"]["toolUseId"] == "t1"
    assert wire["payload"]["result"]["behavior"] == "deny"
