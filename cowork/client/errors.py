"""Exception hierarchy for the session synchronization client.

None of these are fatal to the process. The dispatcher converts them
into the single user-facing global error string.
"""
from __future__ import annotations


class CoworkError(Exception):
    """Base exception for all client errors."""


class ChannelClosedError(CoworkError):
    """A command was sent while the event channel was not connected."""
    def __init__(self, command_type: str):
        self.command_type = command_type
        super().__init__(
            f"Cannot send {command_type}: channel is not connected"
        )


class TitleGenerationError(CoworkError):
    """The external title-generation capability failed."""
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Session title generation failed: {reason}")


class IncompleteAnswersError(CoworkError):
    """A question request was submitted before every question had an answer."""
    def __init__(self, unanswered: list[str]):
        self.unanswered = unanswered
        super().__init__(
            f"{len(unanswered)} question(s) still need an answer"
        )


class InvalidEventError(CoworkError):
    """An inbound payload could not be parsed into a known event shape."""
    def __init__(self, event_type: str, reason: str):
        self.event_type = event_type
        self.reason = reason
        super().__init__(f"Invalid {event_type or 'untyped'} event: {reason}")
