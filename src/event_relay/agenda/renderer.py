"""Agenda rendering for the TeamSpeak channel description.

Builds a day-grouped schedule from the community's scheduled events using
TeamSpeak's BBCode markup.

## Output

```
[U][B][SIZE=+5]Upcoming Events:[/SIZE][/B][/U] [size=+2](en-US PST)[/size]

[B][6/15/2024][/B][list=1][*] [B]10:00 AM - [url=https://...]Ops Night[/url][/B]

[/list]
```

Days are US-style dates (M/D/YYYY) in the display timezone, in order of
first appearance after sorting by start time. Each entry links to the signup
URL found in the event description after the marker
"Event Details and Signup Link:". Events without a start time or without
that marker are skipped and logged.

The published description carries one extra leading line, the
"Updated ..." timestamp, which is ignored when comparing against a fresh
render.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Iterable
from zoneinfo import ZoneInfo

from event_relay.models.event import SourceEvent

logger = logging.getLogger(__name__)

SIGNUP_LINK_PATTERN = re.compile(
    r"Event Details and Signup Link: (https://\S+)",
    re.IGNORECASE,
)


class MalformedEventData(Exception):
    """Raised when an event lacks the fields needed to render it."""

    def __init__(self, event_id: str, reason: str):
        super().__init__(f"Event {event_id}: {reason}")
        self.event_id = event_id
        self.reason = reason


def extract_signup_url(description: str | None) -> str | None:
    """Find the signup URL in an event description."""
    if not description:
        return None
    match = SIGNUP_LINK_PATTERN.search(description)
    return match.group(1) if match else None


def format_day(moment: datetime, tz: ZoneInfo) -> str:
    """Format a calendar day as M/D/YYYY in the display timezone."""
    local = moment.astimezone(tz)
    return f"{local.month}/{local.day}/{local.year}"


def format_time(moment: datetime, tz: ZoneInfo, seconds: bool = False) -> str:
    """Format a time of day as H:MM AM/PM in the display timezone."""
    local = moment.astimezone(tz)
    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"
    if seconds:
        return f"{hour}:{local.minute:02d}:{local.second:02d} {meridiem}"
    return f"{hour}:{local.minute:02d} {meridiem}"


def banner(timezone_label: str) -> str:
    return (
        "[U][B][SIZE=+5]Upcoming Events:[/SIZE][/B][/U] "
        f"[size=+2](en-US {timezone_label})[/size]\n"
    )


def timestamp_line(now: datetime, tz: ZoneInfo, timezone_label: str) -> str:
    """Build the "last updated" line prefixed to a published agenda."""
    return (
        f"Updated {format_day(now, tz)}, "
        f"{format_time(now, tz, seconds=True)} {timezone_label}"
    )


def strip_timestamp_line(text: str) -> str:
    """Drop exactly one leading line from a published agenda."""
    _, _, rest = text.partition("\n")
    return rest


def _entry(event: SourceEvent, tz: ZoneInfo) -> tuple[str, str]:
    """Validate an event and build its (day, list entry) pair.

    Raises:
        MalformedEventData: If the start time or signup link is missing
    """
    if event.start_time is None:
        raise MalformedEventData(event.id, "no start time")

    url = extract_signup_url(event.description)
    if url is None:
        raise MalformedEventData(event.id, "no signup link in description")

    day = format_day(event.start_time, tz)
    line = (
        f"[*] [B]{format_time(event.start_time, tz)} - "
        f"[url={url}]{event.name}[/url][/B]\n\n"
    )
    return day, line


def render_agenda(
    events: Iterable[SourceEvent],
    tz: ZoneInfo,
    timezone_label: str = "PST",
) -> str:
    """Render the agenda for a set of events.

    Args:
        events: Current source events, in any order
        tz: Display timezone for day grouping and times
        timezone_label: Label shown in the banner

    Returns:
        The agenda text, without the timestamp line
    """
    ordered = sorted(events, key=lambda event: event.start_timestamp)

    days: dict[str, list[str]] = {}
    for event in ordered:
        try:
            day, line = _entry(event, tz)
        except MalformedEventData as e:
            logger.warning(f"Skipping event in agenda: {e}")
            continue
        days.setdefault(day, []).append(line)

    text = banner(timezone_label)
    for day, lines in days.items():
        text += f"\n[B][{day}][/B][list=1]"
        text += "".join(lines)
        text += "[/list]"

    return text
