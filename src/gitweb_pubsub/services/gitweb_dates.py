"""Date handling for gitweb's RFC 2822 timestamps."""

from __future__ import annotations

from datetime import datetime
from email.utils import parsedate_to_datetime

from gitweb_pubsub.domain.exceptions import MalformedRemoteDataError

CHANGELOG_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def parse_rfc2822(text: str) -> datetime:
    """Parse gitweb's ``Thu, 9 Nov 2017 08:30:47 +0000`` display format.

    gitweb may append the committer's local time in parentheses; only the
    leading RFC 2822 part is significant.
    """
    raw = text.split("(", 1)[0].strip()
    try:
        parsed = parsedate_to_datetime(raw)
    except (TypeError, ValueError) as exc:
        raise MalformedRemoteDataError(
            "Unexpected date format, expected RFC 2822", raw=text
        ) from exc
    if parsed is None or parsed.tzinfo is None:
        raise MalformedRemoteDataError(
            "Unexpected date format, expected RFC 2822 with offset", raw=text
        )
    return parsed


def format_changelog_time(when: datetime) -> str:
    """Render *when* as ``2017-11-09T08:30:47+0000``, keeping its own offset."""
    return when.strftime(CHANGELOG_FORMAT)


def tag_timestamp(timestamps: list[str]) -> datetime:
    """Return the tag object's own timestamp from a tag page's header."""
    if not timestamps:
        raise MalformedRemoteDataError(
            "Unexpected response body, expecting one timestamp, got 0"
        )
    return parse_rfc2822(timestamps[0])


def committer_timestamp(timestamps: list[str]) -> datetime:
    """Return the committer timestamp (second field) from a commit page's header."""
    if len(timestamps) < 2:
        raise MalformedRemoteDataError(
            f"Unexpected response body, expecting two timestamps, got {len(timestamps)}",
            raw=" | ".join(timestamps),
        )
    return parse_rfc2822(timestamps[1])
