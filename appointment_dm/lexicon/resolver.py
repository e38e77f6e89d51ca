"""Utterance-to-value resolution against the fixed vocabulary.

Matching is deliberately shallow: exact lookup on the normalized utterance,
then substring containment in either direction, first entry in table order
wins.  This tolerates carrier phrases ("I'm meeting with Emma Watson") at the
cost of false positives on short tokens ("a" matches "vlad").
"""

from __future__ import annotations

import re
from typing import Iterable

from appointment_dm.lexicon.schema import EntryKind, LexiconEntry

_WS = re.compile(r"\s+")


def normalize(utterance: str) -> str:
    """Lowercase, trim and collapse internal whitespace."""
    return _WS.sub(" ", utterance.lower().strip())


def _strip_spaces(text: str) -> str:
    return _WS.sub("", text)


class Lexicon:
    """Ordered phrase -> entry table with per-kind lookups."""

    def __init__(self, entries: Iterable[LexiconEntry] = ()) -> None:
        self._entries: dict[str, LexiconEntry] = {}
        for entry in entries:
            self.add(entry)

    def add(self, entry: LexiconEntry) -> None:
        """Insert an entry. A repeated phrase replaces the value in place."""
        self._entries[entry.phrase] = entry

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries.values())

    def __contains__(self, phrase: str) -> bool:
        return normalize(phrase) in self._entries

    def entries(self, kind: EntryKind | None = None) -> list[LexiconEntry]:
        """Entries in table order, optionally limited to one kind."""
        if kind is None:
            return list(self._entries.values())
        return [e for e in self._entries.values() if e.kind is kind]

    # ── Resolution ─────────────────────────────────────────────

    def resolve(self, kind: EntryKind, utterance: str) -> bool | str | None:
        """Map an utterance to the value of the first matching entry of ``kind``.

        Returns None when nothing matches; an empty utterance never matches.
        """
        normalized = normalize(utterance or "")
        if not normalized:
            return None

        exact = self._entries.get(normalized)
        if exact is not None and exact.kind is kind:
            return exact.value

        candidates = self.entries(kind)
        compact = _strip_spaces(normalized)

        # "9am" vs "9 am": compare with whitespace removed on both sides
        if kind is EntryKind.TIME:
            for entry in candidates:
                if _strip_spaces(entry.phrase) == compact:
                    return entry.value

        for entry in candidates:
            key = entry.phrase
            if key in normalized or normalized in key:
                return entry.value
            if kind is EntryKind.TIME and (key in compact or compact in key):
                return entry.value

        return None

    def person(self, utterance: str) -> str | None:
        return self.resolve(EntryKind.PERSON, utterance)

    def day(self, utterance: str) -> str | None:
        return self.resolve(EntryKind.DAY, utterance)

    def time(self, utterance: str) -> str | None:
        return self.resolve(EntryKind.TIME, utterance)

    def answer(self, utterance: str) -> bool | None:
        return self.resolve(EntryKind.ANSWER, utterance)
