"""Tests for the lexicon resolver and JSONL loader."""

import json
import os
import sys

import pytest
from pydantic import ValidationError

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from appointment_dm.lexicon import (
    EntryKind,
    Lexicon,
    LexiconEntry,
    default_lexicon,
    load_lexicon_jsonl,
    normalize,
    save_lexicon_jsonl,
)


@pytest.fixture(scope="module")
def lexicon() -> Lexicon:
    return default_lexicon()


# ── Normalization ───────────────────────────────────────────────

class TestNormalize:
    def test_lowercases_and_trims(self):
        assert normalize("  Emma WATSON ") == "emma watson"

    def test_collapses_internal_whitespace(self):
        assert normalize("10 \t  am") == "10 am"


# ── Resolution ──────────────────────────────────────────────────

class TestResolvePerson:
    def test_exact_key(self, lexicon):
        assert lexicon.person("vlad") == "Vladislav Maraev"

    def test_carrier_phrase(self, lexicon):
        assert lexicon.person("I'm meeting with Emma Watson") == "Emma Watson"

    def test_case_and_whitespace_insensitive(self, lexicon):
        assert lexicon.person("   JOHN  ") == "John Doe"

    def test_first_table_match_wins(self, lexicon):
        # "emma" precedes "john" in the table
        assert lexicon.person("john and emma") == "Emma Watson"

    def test_no_match(self, lexicon):
        assert lexicon.person("xyz") is None

    def test_short_token_false_positive_is_accepted(self, lexicon):
        # "a" is contained in "vlad": a known trade-off of containment matching
        assert lexicon.person("a") == "Vladislav Maraev"

    def test_empty_utterance_never_matches(self, lexicon):
        assert lexicon.person("") is None
        assert lexicon.person("   ") is None


class TestResolveDay:
    def test_exact(self, lexicon):
        assert lexicon.day("friday") == "Friday"

    def test_partial_utterance_inside_key(self, lexicon):
        assert lexicon.day("fri") == "Friday"

    def test_other_kinds_are_not_consulted(self, lexicon):
        assert lexicon.day("vlad") is None
        assert lexicon.person("monday") is None


class TestResolveTime:
    def test_exact_with_space(self, lexicon):
        assert lexicon.time("10 am") == "10:00"

    def test_collapsed_whitespace(self, lexicon):
        assert lexicon.time("11    am") == "11:00"

    def test_without_space(self, lexicon):
        assert lexicon.time("9am") == "9:00"
        assert lexicon.time("12PM") == "12:00"

    def test_word_in_sentence(self, lexicon):
        assert lexicon.time("let's say eleven") == "11:00"
        assert lexicon.time("at ten") == "10:00"

    def test_no_match(self, lexicon):
        assert lexicon.time("whenever") is None


class TestResolveAnswer:
    def test_false_is_a_value_not_a_miss(self, lexicon):
        assert lexicon.answer("no") is False

    def test_multiword_phrases(self, lexicon):
        assert lexicon.answer("of course") is True
        assert lexicon.answer("no way") is False

    def test_carrier_phrase(self, lexicon):
        assert lexicon.answer("yes please") is True

    def test_exact_entry_of_other_kind_is_skipped(self, lexicon):
        assert lexicon.person("yes") is None


class TestPurity:
    def test_repeated_calls_agree(self, lexicon):
        results = {lexicon.resolve(EntryKind.PERSON, "meeting Jennifer") for _ in range(5)}
        assert results == {"Jennifer Martinez"}

    def test_resolve_does_not_change_table(self, lexicon):
        before = [e.model_dump() for e in lexicon]
        lexicon.resolve(EntryKind.TIME, "9am")
        assert [e.model_dump() for e in lexicon] == before


# ── Entries and loading ─────────────────────────────────────────

class TestLexiconEntry:
    def test_phrase_is_lowercased(self):
        entry = LexiconEntry(phrase="  Of Course ", kind="answer", value=True)
        assert entry.phrase == "of course"

    def test_answer_needs_bool(self):
        with pytest.raises(ValidationError):
            LexiconEntry(phrase="yes", kind="answer", value="Yes")

    def test_person_needs_text(self):
        with pytest.raises(ValidationError):
            LexiconEntry(phrase="vlad", kind="person", value=True)

    def test_empty_phrase_rejected(self):
        with pytest.raises(ValidationError):
            LexiconEntry(phrase="  ", kind="day", value="Monday")


class TestDefaultLexicon:
    def test_entry_counts(self, lexicon):
        assert len(lexicon) == 28
        assert len(lexicon.entries(EntryKind.PERSON)) == 6
        assert len(lexicon.entries(EntryKind.DAY)) == 3
        assert len(lexicon.entries(EntryKind.TIME)) == 12
        assert len(lexicon.entries(EntryKind.ANSWER)) == 7

    def test_table_order_preserved(self, lexicon):
        phrases = [e.phrase for e in lexicon.entries(EntryKind.PERSON)]
        assert phrases[:3] == ["vlad", "emma", "john"]


class TestLoader:
    def _write(self, tmp_path, lines):
        path = tmp_path / "lexicon.jsonl"
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    def test_skips_blank_lines(self, tmp_path):
        path = self._write(tmp_path, [
            json.dumps({"phrase": "anna", "kind": "person", "value": "Anna Karenina"}),
            "",
            json.dumps({"phrase": "yep", "kind": "answer", "value": True}),
        ])
        lex = load_lexicon_jsonl(path)
        assert len(lex) == 2
        assert lex.person("call anna") == "Anna Karenina"
        assert lex.answer("yep") is True

    def test_invalid_json_reports_line(self, tmp_path):
        path = self._write(tmp_path, ['{"phrase": "anna"', ""])
        with pytest.raises(ValueError, match=":1:"):
            load_lexicon_jsonl(path)

    def test_bad_entry_rejected(self, tmp_path):
        path = self._write(tmp_path, [json.dumps({"phrase": "yes", "kind": "answer", "value": "y"})])
        with pytest.raises(ValueError):
            load_lexicon_jsonl(path)

    def test_empty_file_rejected(self, tmp_path):
        path = self._write(tmp_path, [""])
        with pytest.raises(ValueError, match="No lexicon entries"):
            load_lexicon_jsonl(path)

    def test_duplicate_phrase_keeps_position(self, tmp_path):
        path = self._write(tmp_path, [
            json.dumps({"phrase": "sam", "kind": "person", "value": "Sam One"}),
            json.dumps({"phrase": "kim", "kind": "person", "value": "Kim Two"}),
            json.dumps({"phrase": "sam", "kind": "person", "value": "Sam Three"}),
        ])
        lex = load_lexicon_jsonl(path)
        assert [e.phrase for e in lex] == ["sam", "kim"]
        assert lex.person("sam") == "Sam Three"

    def test_save_then_load(self, tmp_path, lexicon):
        path = tmp_path / "out" / "lexicon.jsonl"
        save_lexicon_jsonl(lexicon, path)
        reloaded = load_lexicon_jsonl(path)
        assert [e.model_dump() for e in reloaded] == [e.model_dump() for e in lexicon]
