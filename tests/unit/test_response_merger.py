"""Tests for the chunk response merger."""

from src.services.response_merger import merge_responses, split_sentences


class TestSplitSentences:
    def test_splits_on_punctuation_runs(self):
        assert split_sentences("One. Two!! Three?! ") == ["One", "Two", "Three"]

    def test_empty(self):
        assert split_sentences("") == []
        assert split_sentences("...") == []


class TestMergeResponses:
    """Test suite for merge_responses()."""

    def test_drops_repeated_sentence(self):
        merged = merge_responses(
            [
                "Paris is the capital. It is in France.",
                "Paris is the capital. It has the Eiffel Tower.",
            ]
        )

        assert merged == "Paris is the capital. It is in France. It has the Eiffel Tower."

    def test_drops_substring_and_superstring(self):
        merged = merge_responses(
            ["The tower is tall.", "the TOWER is tall and old. Tall."]
        )

        # "the TOWER is tall and old" contains an accepted sentence; "Tall" is contained in one
        assert merged == "The tower is tall."

    def test_keeps_first_seen_order(self):
        merged = merge_responses(["Beta first. Alpha second.", "Gamma third."])

        assert merged == "Beta first. Alpha second. Gamma third."

    def test_no_sentences(self):
        assert merge_responses([]) == ""
        assert merge_responses(["", "  ", "?!"]) == ""
