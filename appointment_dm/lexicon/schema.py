"""Pydantic models for the fixed appointment vocabulary.

Each entry maps a canonical phrase to a typed value: a person's full name,
a day label, a time label, or a yes/no answer.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, field_validator, model_validator


class EntryKind(str, Enum):
    """Which slot a lexicon entry can fill."""

    PERSON = "person"
    DAY = "day"
    TIME = "time"
    ANSWER = "answer"


class LexiconEntry(BaseModel):
    """One phrase in the lexicon."""

    phrase: str
    kind: EntryKind
    value: bool | str     # bool for answers, display label otherwise

    @field_validator("phrase")
    @classmethod
    def _lower_phrase(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("phrase must not be empty")
        return v

    @model_validator(mode="after")
    def _check_value_type(self) -> "LexiconEntry":
        if self.kind is EntryKind.ANSWER and not isinstance(self.value, bool):
            raise ValueError(f"answer entry {self.phrase!r} needs a boolean value")
        if self.kind is not EntryKind.ANSWER and isinstance(self.value, bool):
            raise ValueError(f"{self.kind.value} entry {self.phrase!r} needs a text value")
        return self
