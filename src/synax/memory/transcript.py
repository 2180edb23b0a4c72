"""In-memory conversation transcript with timestamps and role labels."""

import logging
import re
from datetime import datetime
from typing import (
    Callable,
    List,
)

from synax.core.schema import (
    Role,
    TranscriptEntry,
)

logger = logging.getLogger(__name__)

_LINE_SPLIT = re.compile(r"\r?\n")


class Transcript:
    """
    Append-only record of user and assistant lines.

    Multi-line text is split so that each physical line becomes one entry; blank lines are
    dropped.  The only destructive operation is :meth:`clear`.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._entries: List[TranscriptEntry] = []
        self._clock = clock

    def _append(self, role: Role, text: str | None) -> int:
        if text is None:
            return 0
        added = 0
        for line in _LINE_SPLIT.split(str(text)):
            if not line.strip():
                continue
            self._entries.append(TranscriptEntry(timestamp=self._clock(), role=role, text=line))
            added += 1
        return added

    def add_user_input(self, text: str | None) -> int:
        """Record user input; returns the number of entries added."""
        return self._append(Role.USER, text)

    def add_response(self, text: str | None) -> int:
        """Record assistant/tool output; returns the number of entries added."""
        return self._append(Role.RESPONSE, text)

    def entries(self) -> List[TranscriptEntry]:
        return list(self._entries)

    def render(self, limit: int | None = None) -> str:
        """Join entries into one block, keeping only the last *limit* entries when given."""
        entries = self._entries
        if limit:
            entries = entries[-limit:]
        return "\n".join(entry.render() for entry in entries)

    def clear(self) -> None:
        logger.debug("Clearing transcript (%d entries)", len(self._entries))
        self._entries = []

    def __len__(self) -> int:
        return len(self._entries)
