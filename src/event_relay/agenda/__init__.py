"""Agenda rendering for the voice server channel description."""

from event_relay.agenda.renderer import (
    MalformedEventData,
    extract_signup_url,
    render_agenda,
    strip_timestamp_line,
    timestamp_line,
)

__all__ = [
    "MalformedEventData",
    "extract_signup_url",
    "render_agenda",
    "strip_timestamp_line",
    "timestamp_line",
]
