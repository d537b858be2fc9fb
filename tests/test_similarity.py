"""Tests for fuzzy label matching."""

from refengine.core.similarity import MatchStrategy, SimilarityMatcher, normalize_text


def test_normalize_text_folds_case_and_diacritics():
    assert normalize_text("Força") == "forca"
    assert normalize_text("  MÍSSEIS   Mágicos! ") == "misseis magicos"
    assert normalize_text(None) == ""


def test_exact_match_ignores_accents():
    matcher = SimilarityMatcher()
    score, strategy = matcher.score("forca", "Força")

    assert score == 100.0
    assert strategy == MatchStrategy.EXACT


def test_prefix_match():
    matcher = SimilarityMatcher()

    score, strategy = matcher.score("bola", "Bola de Fogo")
    assert strategy == MatchStrategy.PREFIX
    assert score > 90

    word_score, word_strategy = matcher.score("fog", "Bola de Fogo")
    assert word_strategy == MatchStrategy.PREFIX
    assert word_score < score


def test_missing_vowel_still_matches():
    matcher = SimilarityMatcher()

    fogo, _ = matcher.score("fgo", "Fogo")
    forca, _ = matcher.score("fgo", "Força")

    assert fogo > forca


def test_transposed_letters_score_high():
    matcher = SimilarityMatcher()
    score, _ = matcher.score("furai", "Fúria")
    unrelated, _ = matcher.score("furai", "Mísseis Mágicos")

    assert score > 60
    assert score > unrelated


def test_secondary_text_is_down_weighted():
    matcher = SimilarityMatcher(secondary_weight=0.5)
    score, strategy = matcher.score("explosao", "Bola de Fogo", secondary="Uma explosão de chamas")

    assert strategy == MatchStrategy.SECONDARY
    assert score <= 50


def test_short_query_ignores_secondary_text():
    matcher = SimilarityMatcher()
    _, strategy = matcher.score("ex", "Bola de Fogo", secondary="explosão")

    assert strategy != MatchStrategy.SECONDARY


def test_empty_inputs_score_zero():
    matcher = SimilarityMatcher()
    assert matcher.score("", "Fogo") == (0.0, MatchStrategy.NONE)
    assert matcher.score("fogo", "") == (0.0, MatchStrategy.NONE)
