"""Fixed-vocabulary lexicon and resolver."""

from .loader import default_lexicon, load_lexicon_jsonl, save_lexicon_jsonl
from .resolver import Lexicon, normalize
from .schema import EntryKind, LexiconEntry

__all__ = [
    "EntryKind",
    "Lexicon",
    "LexiconEntry",
    "default_lexicon",
    "load_lexicon_jsonl",
    "normalize",
    "save_lexicon_jsonl",
]
