from __future__ import annotations

from cowork.adapters.events import dict_to_event
from cowork.client.store import SessionStore
from cowork.shared.models.message import MessageRole
from cowork.shared.models.session import SessionStatus


def _apply(store: SessionStore, kind: str, **payload) -> None:
    store.apply_event(dict_to_event({"type": kind, "payload": payload}))


def _listed(*ids: str, **extra) -> SessionStore:
    store = SessionStore()
    _apply(
        store,
        "session.list",
        sessions=[
            {"id": sid, "title": sid.upper(), "status": "idle", "updatedAt": idx}
            for idx, sid in enumerate(ids, start=1)
        ],
        **extra,
    )
    return store


def test_list_selects_most_recent_session() -> None:
    store = _listed("a", "b", "c")
    assert store.active_session_id == "c"
    assert [s.id for s in store.snapshot().sessions_by_recency()] == ["c", "b", "a"]


def test_empty_list_opens_start_modal() -> None:
    store = _listed()
    snap = store.snapshot()
    assert snap.active_session_id is None
    assert snap.show_start_modal is True


def test_list_keeps_messages_of_known_sessions() -> None:
    store = _listed("a")
    _apply(store, "stream.user_prompt", sessionId="a", prompt="hello")
    _apply(store, "session.list", sessions=[{"id": "a", "title": "Renamed", "status": "running"}])
    session = store.get_session("a")
    assert session.title == "Renamed"
    assert session.status is SessionStatus.RUNNING
    assert [m.text for m in session.messages] == ["hello"]


def test_list_drops_missing_sessions_and_active_pointer() -> None:
    store = _listed("a", "b")
    store.set_active_session("a")
    store.mark_history_requested("a")
    _apply(store, "session.list", sessions=[{"id": "b", "status": "idle"}])
    assert store.get_session("a") is None
    assert not store.is_history_requested("a")
    assert store.active_session_id == "b"


def test_history_replace_is_idempotent() -> None:
    store = _listed("a")
    messages = [
        {"type": "user_prompt", "prompt": "hi"},
        {"type": "stream_event", "event": {"type": "content_block_start"}},
        {"type": "assistant", "message": {"content": [{"type": "text", "text": "hello"}]}},
    ]
    _apply(store, "session.history", sessionId="a", status="idle", messages=messages)
    first = store.get_session("a")
    _apply(store, "session.history", sessionId="a", status="idle", messages=messages)
    second = store.get_session("a")

    assert first.hydrated and second.hydrated
    assert first.messages == second.messages
    assert [m.role for m in second.messages] == [MessageRole.USER, MessageRole.ASSISTANT]


def test_history_for_unknown_session_creates_it() -> None:
    store = SessionStore()
    _apply(store, "session.history", sessionId="x", status="running", messages=[])
    session = store.get_session("x")
    assert session is not None
    assert session.hydrated
    assert session.is_running


def test_status_aliases_map_to_terminal_states() -> None:
    store = _listed("a", "b")
    _apply(store, "session.status", sessionId="a", status="completed")
    _apply(store, "session.status", sessionId="b", status="error", error="boom")
    assert store.get_session("a").status is SessionStatus.STOPPED
    assert store.get_session("b").status is SessionStatus.ERRORED
    assert store.global_error == "boom"


def test_running_status_for_new_session_completes_pending_start() -> None:
    store = _listed()
    store.set_pending_start(True)
    _apply(store, "session.status", sessionId="new", status="running", title="Fix bug", cwd="/w")
    snap = store.snapshot()
    assert snap.active_session_id == "new"
    assert snap.pending_start is False
    assert snap.show_start_modal is False
    session = snap.active_session
    assert session.title == "Fix bug"
    assert session.cwd == "/w"
    assert session.hydrated


def test_idle_status_for_new_session_completes_pending_start() -> None:
    store = _listed("old")
    store.set_pending_start(True)
    _apply(store, "session.status", sessionId="new", status="idle")
    snap = store.snapshot()
    assert snap.pending_start is False
    assert snap.active_session_id == "new"
    assert snap.active_session.hydrated


def test_list_with_new_session_completes_pending_start() -> None:
    store = _listed("old")
    store.set_pending_start(True)
    _apply(store, "session.list", sessions=[
        {"id": "old", "status": "idle", "updatedAt": 50},
        {"id": "new", "status": "running", "updatedAt": 10},
    ])
    snap = store.snapshot()
    assert snap.pending_start is False
    assert snap.show_start_modal is False
    assert snap.active_session_id == "new"


def test_known_session_status_keeps_start_pending() -> None:
    store = _listed("old")
    store.set_pending_start(True)
    _apply(store, "session.status", sessionId="old", status="running")
    assert store.pending_start is True
    assert store.active_session_id == "old"


def test_status_for_new_session_without_pending_start_does_not_activate() -> None:
    store = _listed("a")
    _apply(store, "session.status", sessionId="other", status="running")
    assert store.active_session_id == "a"
    assert store.get_session("other").hydrated is False


def test_stream_event_wrappers_never_become_messages() -> None:
    store = _listed("a")
    _apply(
        store,
        "stream.message",
        sessionId="a",
        message={"type": "stream_event", "event": {"type": "content_block_delta"}},
    )
    _apply(store, "stream.message", sessionId="a", message={"type": "result", "result": "done"})
    session = store.get_session("a")
    assert len(session.messages) == 1
    assert session.messages[0].role is MessageRole.RESULT


def test_events_for_unknown_sessions_are_ignored() -> None:
    store = _listed("a")
    _apply(store, "stream.message", sessionId="ghost", message={"type": "assistant"})
    _apply(store, "permission.request", sessionId="ghost", toolUseId="t1", toolName="Bash", input={})
    assert store.get_session("ghost") is None


def test_permission_queue_head_and_resolve() -> None:
    store = _listed("a")
    _apply(store, "permission.request", sessionId="a", toolUseId="t1", toolName="Bash", input={"n": 1})
    _apply(store, "permission.request", sessionId="a", toolUseId="t2", toolName="Edit", input={})
    assert store.pending_permission("a").tool_use_id == "t1"

    store.resolve_permission_request("a", "t1")
    assert store.pending_permission("a").tool_use_id == "t2"

    # Resolving again is a no-op
    store.resolve_permission_request("a", "t1")
    assert [r.tool_use_id for r in store.get_session("a").permission_requests] == ["t2"]


def test_repeated_permission_request_replaces_in_place() -> None:
    store = _listed("a")
    _apply(store, "permission.request", sessionId="a", toolUseId="t1", toolName="Bash", input={"v": 1})
    _apply(store, "permission.request", sessionId="a", toolUseId="t2", toolName="Bash", input={})
    _apply(store, "permission.request", sessionId="a", toolUseId="t1", toolName="Bash", input={"v": 2})
    requests = store.get_session("a").permission_requests
    assert [r.tool_use_id for r in requests] == ["t1", "t2"]
    assert requests[0].input == {"v": 2}


def test_mark_history_requested_is_idempotent() -> None:
    store = _listed("a")
    seen = []
    store.subscribe(seen.append)
    store.mark_history_requested("a")
    store.mark_history_requested("a")
    assert len(seen) == 1
    assert store.snapshot().history_requested == frozenset({"a"})


def test_delete_active_session_clears_everything() -> None:
    store = _listed("s1")
    store.mark_history_requested("s1")
    _apply(store, "session.deleted", sessionId="s1")
    snap = store.snapshot()
    assert "s1" not in snap.sessions
    assert snap.active_session_id is None
    assert "s1" not in snap.history_requested


def test_runner_error_marks_session_errored() -> None:
    store = _listed("a")
    _apply(store, "session.status", sessionId="a", status="running")
    _apply(store, "runner.error", sessionId="a", message="crashed")
    assert store.get_session("a").status is SessionStatus.ERRORED
    assert store.global_error == "crashed"


def test_unknown_event_changes_nothing() -> None:
    store = _listed("a")
    before = store.snapshot()
    _apply(store, "session.frobnicate", sessionId="a")
    assert store.snapshot() is before


def test_set_active_session_ignores_unknown_ids() -> None:
    store = _listed("a", "b")
    store.set_active_session("zzz")
    assert store.active_session_id == "b"
    store.set_active_session("a")
    assert store.active_session_id == "a"


def test_listeners_get_snapshots_and_can_unsubscribe() -> None:
    store = SessionStore()
    seen = []
    unsubscribe = store.subscribe(seen.append)
    store.set_prompt("hi")
    store.set_prompt("hi")
    unsubscribe()
    store.set_prompt("bye")
    assert [s.prompt for s in seen] == ["hi"]


def test_failing_listener_does_not_block_others() -> None:
    store = SessionStore()
    seen = []

    def broken(_snap) -> None:
        raise RuntimeError("listener bug")

    store.subscribe(broken)
    store.subscribe(seen.append)
    store.set_cwd("/tmp")
    assert seen and seen[0].cwd == "/tmp"


def test_snapshot_is_immutable_view() -> None:
    store = _listed("a")
    snap = store.snapshot()
    _apply(store, "stream.user_prompt", sessionId="a", prompt="later")
    assert snap.sessions["a"].messages == ()
    assert len(store.snapshot().sessions["a"].messages) == 1
