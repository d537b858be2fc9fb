"""
Fuzzy matching for reference autocomplete.

Scores a typed query against entity labels (and optionally description text)
on a 0-100 scale. Entity names are mostly Portuguese, so both sides are folded
to lowercase ASCII first: "força", "Forca" and "FORÇA" all compare equal.

Strategies (best score wins):
1. Exact match (after normalization)
2. Prefix - label, or one of its words, starts with the query
3. Ratio (rapidfuzz) - whole-string edit similarity, tolerates transpositions
   and dropped letters ("fgo" -> "fogo")
4. Weighted ratio (rapidfuzz) - partial/token matching for longer labels
5. Secondary partial ratio (rapidfuzz) - query found inside description text,
   down-weighted

Usage:
    from refengine.core.similarity import SimilarityMatcher

    matcher = SimilarityMatcher()
    score, strategy = matcher.score("fgo", "Fogo")
"""

import re
import unicodedata
from enum import Enum

from rapidfuzz import fuzz


class MatchStrategy(Enum):
    """Strategy that produced a score."""
    EXACT = "exact"
    PREFIX = "prefix"
    RATIO = "ratio"
    WRATIO = "wratio"
    SECONDARY = "secondary"
    NONE = "none"


# Secondary text is only consulted for queries at least this long;
# shorter ones match almost any description
MIN_SECONDARY_QUERY_LENGTH = 3

PREFIX_SCORE = 98.0
WORD_PREFIX_SCORE = 95.0


def normalize_text(text: str | None) -> str:
    """
    Normalize text for comparison.

    - Strip diacritics (NFKD + drop combining marks)
    - Casefold
    - Replace punctuation with spaces
    - Normalize whitespace
    """
    if not text:
        return ""

    decomposed = unicodedata.normalize("NFKD", text)
    text = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    text = text.casefold()
    text = re.sub(r"[^\w\s]", " ", text)
    return " ".join(text.split())


class SimilarityMatcher:
    """Scores queries against candidate labels."""

    def __init__(self, secondary_weight: float = 0.6):
        """
        Initialize the matcher.

        Args:
            secondary_weight: Multiplier for description matches (0-1)
        """
        self.secondary_weight = secondary_weight

    def score(
        self,
        query: str,
        label: str,
        secondary: str | None = None,
    ) -> tuple[float, MatchStrategy]:
        """
        Score a query against a label.

        Args:
            query: What the author typed
            label: Candidate display label
            secondary: Optional extra text (description) with lower weight

        Returns:
            Tuple of (score 0-100, strategy_used)
        """
        norm_q = normalize_text(query)
        norm_label = normalize_text(label)

        if not norm_q or not norm_label:
            return (0.0, MatchStrategy.NONE)

        if norm_q == norm_label:
            return (100.0, MatchStrategy.EXACT)

        if norm_label.startswith(norm_q):
            return (PREFIX_SCORE, MatchStrategy.PREFIX)

        if any(word.startswith(norm_q) for word in norm_label.split()):
            return (WORD_PREFIX_SCORE, MatchStrategy.PREFIX)

        best_score = fuzz.ratio(norm_q, norm_label)
        best_strategy = MatchStrategy.RATIO

        wratio = fuzz.WRatio(norm_q, norm_label)
        if wratio > best_score:
            best_score = wratio
            best_strategy = MatchStrategy.WRATIO

        if secondary and len(norm_q) >= MIN_SECONDARY_QUERY_LENGTH:
            norm_secondary = normalize_text(secondary)
            if norm_secondary:
                weighted = fuzz.partial_ratio(norm_q, norm_secondary) * self.secondary_weight
                if weighted > best_score:
                    best_score = weighted
                    best_strategy = MatchStrategy.SECONDARY

        return (float(best_score), best_strategy)
