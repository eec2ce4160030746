"""Tests for agileflow.ideation.similarity module."""

import pytest

from agileflow.ideation.similarity import (
    SimilarityConfig,
    file_overlap,
    fingerprint,
    is_candidate,
    is_match,
    normalize_files,
    normalize_title,
    score_similarity,
    title_similarity,
)


class TestNormalize:
    def test_title(self):
        assert normalize_title("  Add Rate-Limiting!  to  the API ") == "add rate limiting to the api"
        assert normalize_title("") == ""
        assert normalize_title(None) == ""

    def test_files(self):
        files = ["`src/api.ts`", " src/db.ts ", "src/api.ts", "", "'src/ui.tsx'", 42]
        assert normalize_files(files) == ["src/api.ts", "src/db.ts", "src/ui.tsx"]
        assert normalize_files(None) == []


class TestFingerprint:
    def test_deterministic(self):
        assert fingerprint("Add caching", ["a.ts", "b.ts"]) == fingerprint("Add caching", ["a.ts", "b.ts"])

    def test_ignores_case_punctuation_and_file_order(self):
        assert fingerprint("Add caching!", ["b.ts", "a.ts"]) == fingerprint("add  CACHING", ["a.ts", "b.ts"])

    def test_length_and_hex(self):
        key = fingerprint("Add caching")
        assert len(key) == 16
        int(key, 16)

    def test_files_change_fingerprint(self):
        assert fingerprint("Add caching", ["a.ts"]) != fingerprint("Add caching", ["b.ts"])


class TestScores:
    def test_title_identical_after_normalization(self):
        assert title_similarity("Add Caching", "add caching.") == 1.0

    def test_title_empty(self):
        assert title_similarity("", "Add caching") == 0.0

    def test_title_unrelated_is_low(self):
        assert title_similarity("Add rate limiting", "Refactor the color palette") < 0.5

    def test_file_overlap(self):
        assert file_overlap(["a", "b"], ["b", "c"]) == pytest.approx(1 / 3)
        assert file_overlap([], ["a"]) == 0.0

    def test_combined_weights(self):
        sim = score_similarity("Add caching", ["a", "b"], "Add caching", ["b", "c"])
        assert sim.title_similarity == 1.0
        assert sim.score == pytest.approx(0.7 + 0.3 / 3)

    def test_no_files_uses_title_only(self):
        sim = score_similarity("Add caching", [], "Add caching", ["a.ts"])
        assert sim.score == 1.0
        assert sim.file_overlap == 0.0

    def test_custom_weights_are_normalized(self):
        config = SimilarityConfig(title_weight=1.0, file_weight=1.0)
        sim = score_similarity("Add caching", ["a"], "Add caching", ["b"], config)
        assert sim.score == pytest.approx(0.5)

    def test_symmetric(self):
        a = score_similarity("Add rate limiting", ["api.ts"], "Add API rate limits", ["api.ts", "x.ts"])
        b = score_similarity("Add API rate limits", ["api.ts", "x.ts"], "Add rate limiting", ["api.ts"])
        assert a.score == pytest.approx(b.score)


class TestThresholds:
    def test_is_match(self):
        assert is_match(0.75)
        assert not is_match(0.7499)

    def test_is_candidate(self):
        assert is_candidate(0.8)
        assert not is_candidate(0.9)
        assert not is_candidate(0.5)
