"""Load JSONL lexicon files into Lexicon objects."""

from __future__ import annotations

import json
from pathlib import Path

from appointment_dm.lexicon.resolver import Lexicon
from appointment_dm.lexicon.schema import LexiconEntry

DEFAULT_LEXICON_PATH = Path(__file__).resolve().parent.parent / "data" / "lexicon.jsonl"


def load_lexicon_jsonl(path: str | Path) -> Lexicon:
    """Load a lexicon from a JSONL file.

    One entry per line: ``{"phrase": ..., "kind": ..., "value": ...}``.
    Blank lines are skipped; line order becomes table order.
    """
    path = Path(path)
    lexicon = Lexicon()
    for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), 1):
        line = line.strip()
        if not line:
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            raise ValueError(f"{path}:{lineno}: invalid JSON ({e.msg})") from e
        lexicon.add(LexiconEntry(**data))

    if not len(lexicon):
        raise ValueError(f"No lexicon entries found in {path}")
    return lexicon


def save_lexicon_jsonl(lexicon: Lexicon, path: str | Path) -> None:
    """Persist a lexicon back to a JSONL file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [json.dumps(entry.model_dump(mode="json")) for entry in lexicon]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def default_lexicon() -> Lexicon:
    """The vocabulary shipped with the package."""
    return load_lexicon_jsonl(DEFAULT_LEXICON_PATH)
