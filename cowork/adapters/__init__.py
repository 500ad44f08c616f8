"""Adapters package - Bridge between the backend channel and the client.

This package contains the wire event/command types and the event
channel implementations that connect the session client to the
backend agent process.
"""
from __future__ import annotations

__all__ = [
    "EventChannel",
    "LocalChannel",
    "WebSocketChannel",
    "dict_to_event",
    "command_to_dict",
]

from cowork.adapters.channel import EventChannel, LocalChannel, WebSocketChannel
from cowork.adapters.events import command_to_dict, dict_to_event
