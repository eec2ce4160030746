"""
Fingerprinting and similarity scoring for ideation ideas.

An idea is compared on two signals:
- title: normalized (lowercase, punctuation stripped, whitespace collapsed)
  and scored with difflib's SequenceMatcher ratio
- files: normalized path set, scored as Jaccard overlap

The combined score is ``title * TITLE_WEIGHT + files * FILE_WEIGHT``. When
either side has no files the file signal carries no information, so the
score is the title similarity alone.

Classification against the thresholds:
    score >= STRONG_MATCH_THRESHOLD   same idea
    score >= SIMILARITY_THRESHOLD     same idea, flagged as a candidate match
    below                             new idea
"""

import hashlib
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from agileflow.lib.suggest import similarity_ratio

TITLE_WEIGHT = 0.7
FILE_WEIGHT = 0.3
SIMILARITY_THRESHOLD = 0.75
STRONG_MATCH_THRESHOLD = 0.9

FINGERPRINT_LENGTH = 16

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_QUOTES = "`'\""


@dataclass(frozen=True)
class SimilarityConfig:
    """Weights and thresholds used when matching ideas."""
    title_weight: float = TITLE_WEIGHT
    file_weight: float = FILE_WEIGHT
    threshold: float = SIMILARITY_THRESHOLD
    strong_threshold: float = STRONG_MATCH_THRESHOLD


DEFAULT_CONFIG = SimilarityConfig()


@dataclass
class Similarity:
    """Score breakdown for one idea pair."""
    score: float
    title_similarity: float
    file_overlap: float


def normalize_title(title: Optional[str]) -> str:
    if not title or not isinstance(title, str):
        return ""
    text = _PUNCTUATION.sub(" ", title.lower())
    return _WHITESPACE.sub(" ", text).strip()


def normalize_files(files: Optional[Iterable]) -> list[str]:
    """Strip quoting/backticks, drop empties, dedupe and sort."""
    if not files:
        return []
    cleaned = set()
    for f in files:
        if not isinstance(f, str):
            continue
        path = f.strip().strip(_QUOTES).strip()
        if path:
            cleaned.add(path)
    return sorted(cleaned)


def fingerprint(title: Optional[str], files: Optional[Iterable] = None) -> str:
    """Exact-match key: SHA-256 of normalized title and file set, truncated."""
    data = f"{normalize_title(title)}|{','.join(normalize_files(files))}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def title_similarity(a: Optional[str], b: Optional[str]) -> float:
    norm_a = normalize_title(a)
    norm_b = normalize_title(b)
    if norm_a == norm_b:
        return 1.0
    if not norm_a or not norm_b:
        return 0.0
    return similarity_ratio(norm_a, norm_b)


def file_overlap(a: Optional[Iterable], b: Optional[Iterable]) -> float:
    """Jaccard overlap of two file sets; 0 when either is empty."""
    set_a = set(normalize_files(a))
    set_b = set(normalize_files(b))
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / len(set_a | set_b)


def score_similarity(
    title_a: Optional[str],
    files_a: Optional[Iterable],
    title_b: Optional[str],
    files_b: Optional[Iterable],
    config: SimilarityConfig = DEFAULT_CONFIG,
) -> Similarity:
    """Combined similarity of two ideas given as (title, files) pairs."""
    title_sim = title_similarity(title_a, title_b)
    if not normalize_files(files_a) or not normalize_files(files_b):
        return Similarity(score=title_sim, title_similarity=title_sim, file_overlap=0.0)

    overlap = file_overlap(files_a, files_b)
    total_weight = config.title_weight + config.file_weight
    score = (title_sim * config.title_weight + overlap * config.file_weight) / total_weight
    return Similarity(score=score, title_similarity=title_sim, file_overlap=overlap)


def is_match(score: float, config: SimilarityConfig = DEFAULT_CONFIG) -> bool:
    return score >= config.threshold


def is_candidate(score: float, config: SimilarityConfig = DEFAULT_CONFIG) -> bool:
    """A match that falls short of the strong threshold."""
    return config.threshold <= score < config.strong_threshold
