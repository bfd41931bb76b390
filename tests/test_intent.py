"""
Tests for the intent classifier.

- Keyword detection (completed / couldn't / adjust) in English and Portuguese
- Confirmation detection, only while a completion is pending
- Normalization of case, punctuation and curly apostrophes
"""

import pytest

from goalmentor.core.intent import (
    Confirmation,
    Keyword,
    classify,
    detect_confirmation,
    detect_keyword,
    normalize_message,
)
from goalmentor.core.session import PendingCompletion

PENDING = PendingCompletion(goal_id="g1", action_id="a1")


class TestNormalization:
    def test_lowercases_and_trims(self):
        assert normalize_message("  DONE  ") == "done"

    def test_strips_trailing_punctuation(self):
        assert normalize_message("Completed!!") == "completed"
        assert normalize_message("done.") == "done"

    def test_straightens_apostrophes(self):
        assert normalize_message("I couldn’t") == "i couldn't"

    def test_none_is_empty(self):
        assert normalize_message(None) == ""


class TestKeywords:
    @pytest.mark.parametrize("message", [
        "completed", "Complete", "done", "Finished!", "I did it", "i finished the walk",
        "concluído", "feito", "terminei", "eu fiz",
    ])
    def test_completed_phrases(self, message):
        assert detect_keyword(message) == Keyword.COMPLETED

    @pytest.mark.parametrize("message", [
        "Couldn't do it", "I couldn’t find the time", "can't", "não consegui", "falhei hoje",
    ])
    def test_couldnt_phrases(self, message):
        assert detect_keyword(message) == Keyword.COULDNT

    @pytest.mark.parametrize("message", ["Adjust", "please adjust the action", "ajustar", "quero ajustar"])
    def test_adjust_phrases(self, message):
        assert detect_keyword(message) == Keyword.ADJUST

    @pytest.mark.parametrize("message", ["", "   ", "how do I start?", "what does done mean for this?"])
    def test_no_keyword(self, message):
        assert detect_keyword(message) == Keyword.NONE


class TestConfirmation:
    @pytest.mark.parametrize("message", ["yes", "Yes!", "y", "yep", "sim", "Sim, claro", "ok"])
    def test_affirmative(self, message):
        assert detect_confirmation(message) == Confirmation.YES

    @pytest.mark.parametrize("message", ["no", "No.", "nope", "not yet", "não", "nao", "ainda não"])
    def test_negative(self, message):
        assert detect_confirmation(message) == Confirmation.NO

    @pytest.mark.parametrize("message", ["maybe later", "what's next?", "nothing", "yesterday was hard"])
    def test_unrelated(self, message):
        """Prefixes only match whole words: 'nothing' is not 'no'."""
        assert detect_confirmation(message) == Confirmation.NONE


class TestClassify:
    def test_confirmation_ignored_without_pending(self):
        result = classify("yes")
        assert result.confirmation == Confirmation.NONE
        assert result.keyword == Keyword.NONE

    def test_confirmation_read_while_pending(self):
        assert classify("sim", PENDING).confirmation == Confirmation.YES
        assert classify("não", PENDING).confirmation == Confirmation.NO

    def test_keyword_and_pending_together(self):
        """A repeated 'done' while pending is a keyword, not a confirmation."""
        result = classify("done", PENDING)
        assert result.keyword == Keyword.COMPLETED
        assert result.confirmation == Confirmation.NONE
