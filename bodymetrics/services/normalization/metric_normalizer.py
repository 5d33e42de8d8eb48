"""Map free-text metric labels onto catalog keys.

Resolution order:
    1. exact match of the normalized label against catalog keys
    2. curated alias table (synonyms, abbreviations, translated report labels)
    3. edit-distance / containment similarity against catalog keys and
       display names, accepted above a threshold

Fuzzy matching is token aware: every word of the shorter label must line up
with its own word of the longer one. Short words (hdl, ldl) must be equal and
longer words may differ by one edit, so labels that differ in the word that
carries their meaning (left/right arm, intra/extracellular water) never match.

Anything else is ``unmatched``. The normalizer never guesses a key below the
threshold and never raises for bad input.
"""

import re
from typing import Iterable, List, Optional, Tuple

from rapidfuzz.distance import Levenshtein

from bodymetrics.schemas.measurements import CatalogEntry, NormalizationResult
from bodymetrics.services.normalization.aliases import ABBREVIATIONS, METRIC_ALIASES

DEFAULT_FUZZY_THRESHOLD = 0.85

_PUNCTUATION = re.compile(r"[^\w\s\-/]", re.UNICODE)
_SEPARATORS = re.compile(r"[\s\-/]+")
_UNDERSCORES = re.compile(r"_+")

# Containment is only trusted for labels long enough to be specific
_MIN_CONTAINMENT_LENGTH = 4

# Pairs of words both shorter than this must match exactly (hdl vs ldl, ecw vs icw)
_MIN_FUZZY_TOKEN_LENGTH = 4
_MAX_TOKEN_EDITS = 1


def normalize_label(raw_name: str) -> str:
    """Lower-case, strip punctuation and join words with underscores.

    Unicode letters are kept so translated labels ("Tłuszcz trzewny") survive
    for the alias lookup.
    """
    if not raw_name or not isinstance(raw_name, str):
        return ""
    text = raw_name.strip().lower()
    text = _PUNCTUATION.sub(" ", text)
    text = _SEPARATORS.sub("_", text.strip())
    return _UNDERSCORES.sub("_", text).strip("_")


def expand_abbreviations(label: str) -> str:
    return "_".join(ABBREVIATIONS.get(token, token) for token in label.split("_") if token)


def _tokens_match(a: str, b: str) -> bool:
    if a == b:
        return True
    if max(len(a), len(b)) < _MIN_FUZZY_TOKEN_LENGTH:
        return False
    return Levenshtein.distance(a, b, score_cutoff=_MAX_TOKEN_EDITS) <= _MAX_TOKEN_EDITS


def tokens_align(a: str, b: str) -> bool:
    """True when each word of the shorter label pairs with a distinct word of the longer."""
    tokens_a = [t for t in a.split("_") if t]
    tokens_b = [t for t in b.split("_") if t]
    shorter, longer = (tokens_a, tokens_b) if len(tokens_a) <= len(tokens_b) else (tokens_b, tokens_a)
    remaining = list(longer)
    for token in shorter:
        match = next((other for other in remaining if _tokens_match(token, other)), None)
        if match is None:
            return False
        remaining.remove(match)
    return True


def similarity(a: str, b: str) -> float:
    """Similarity in [0, 1] combining edit distance and containment.

    Labels whose words do not line up score 0.
    """
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    if not tokens_align(a, b):
        return 0.0
    score = Levenshtein.normalized_similarity(a, b)
    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    if len(shorter) >= _MIN_CONTAINMENT_LENGTH and shorter in longer:
        score = max(score, len(shorter) / len(longer))
    return score


class MetricNormalizer:
    """Resolves labels against one catalog snapshot.

    Build one per ingestion call; the catalog lookups are precomputed so a
    batch of labels is resolved without rescanning display names.
    """

    def __init__(
        self,
        catalog: Iterable[CatalogEntry],
        threshold: float = DEFAULT_FUZZY_THRESHOLD,
    ):
        self.threshold = threshold
        self._keys = []
        self._candidates: List[Tuple[str, str]] = []
        for entry in catalog:
            self._keys.append(entry.key)
            self._candidates.append((entry.key, entry.key))
            display = normalize_label(entry.display_name)
            if display and display != entry.key:
                self._candidates.append((display, entry.key))
        self._key_set = set(self._keys)

    def normalize(self, raw_name: str) -> NormalizationResult:
        label = normalize_label(raw_name)
        if not label:
            return NormalizationResult(confidence="unmatched")

        if label in self._key_set:
            return NormalizationResult(key=label, confidence="exact", score=1.0)

        alias = self._lookup_alias(label)
        if alias:
            return NormalizationResult(key=alias, confidence="fuzzy", score=1.0)

        expanded = expand_abbreviations(label)
        if expanded != label:
            if expanded in self._key_set:
                return NormalizationResult(key=expanded, confidence="fuzzy", score=1.0)
            alias = self._lookup_alias(expanded)
            if alias:
                return NormalizationResult(key=alias, confidence="fuzzy", score=1.0)

        key, score = self._best_similar(label, expanded)
        if key and score >= self.threshold:
            return NormalizationResult(key=key, confidence="fuzzy", score=round(score, 4))

        return NormalizationResult(confidence="unmatched", score=round(score, 4))

    def _lookup_alias(self, label: str) -> Optional[str]:
        target = METRIC_ALIASES.get(label)
        if target and target in self._key_set:
            return target
        return None

    def _best_similar(self, label: str, expanded: str) -> Tuple[Optional[str], float]:
        best_key: Optional[str] = None
        best_score = 0.0
        variants = {label, expanded}
        for candidate, key in self._candidates:
            score = max(similarity(variant, candidate) for variant in variants)
            # Strictly greater keeps the first catalog entry on ties
            if score > best_score:
                best_key, best_score = key, score
        return best_key, best_score


def normalize(
    raw_name: str,
    catalog: Iterable[CatalogEntry],
    threshold: float = DEFAULT_FUZZY_THRESHOLD,
) -> NormalizationResult:
    """Resolve a single label against a catalog.

    Args:
        raw_name: Free-text or model-proposed metric label
        catalog: Catalog entries to resolve against
        threshold: Minimum similarity accepted as a fuzzy match

    Returns:
        NormalizationResult with ``key`` set unless unmatched
    """
    return MetricNormalizer(catalog, threshold).normalize(raw_name)
