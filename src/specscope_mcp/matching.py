"""Fuzzy text matching and numeric range scoring."""

from .models import NumericSpec, RangeFilter

# Absorbs float rounding in (1 - threshold) * length so cutoffs never reject a passing score
_CUTOFF_SLACK = 1e-9


def levenshtein_distance(a: str, b: str, max_distance: float | None = None) -> int:
    """Classic edit distance with unit insertion, deletion and substitution cost.

    With max_distance, stops as soon as every cell of a DP row exceeds it. The
    returned value is then only a lower bound, still greater than max_distance.
    """
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    # Two rows of the DP matrix are enough
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            if char_a == char_b:
                current.append(previous[j - 1])
            else:
                current.append(min(
                    previous[j - 1] + 1,  # substitution
                    current[j - 1] + 1,   # insertion
                    previous[j] + 1,      # deletion
                ))
        # Row minimums never decrease
        if max_distance is not None and min(current) > max_distance:
            return min(current)
        previous = current
    return previous[-1]


def fuzzy_match(query: str, text: str, threshold: float = 0.0) -> float:
    """Similarity of query to text in [0, 1].

    Empty input scores 0. A case-insensitive substring hit scores 1; otherwise
    the score is 1 - distance / max(len(query), len(text)).

    With a threshold, any pair that cannot reach it scores 0. The length
    difference bounds the distance from below, so such pairs skip the DP or
    leave it early. Scores at or above the threshold are unchanged.
    """
    if not query or not text:
        return 0.0

    query = query.lower()
    text = text.lower()

    if query in text:
        return 1.0

    max_length = max(len(query), len(text))
    if max_length == 0:
        return 1.0

    if threshold <= 0:
        return 1.0 - levenshtein_distance(query, text) / max_length

    limit = (1.0 - threshold) * max_length + _CUTOFF_SLACK
    if abs(len(query) - len(text)) > limit:
        return 0.0
    distance = levenshtein_distance(query, text, max_distance=limit)
    if distance > limit:
        return 0.0
    return 1.0 - distance / max_length


def ranges_overlap(spec: NumericSpec, filter_range: RangeFilter) -> bool:
    return spec.max >= filter_range.min and spec.min <= filter_range.max


def overlap_score(spec: NumericSpec, filter_range: RangeFilter) -> float:
    """Intersection size over the larger of the two range widths.

    Only meaningful once ranges_overlap() holds. A point value inside a point
    filter scores 1.
    """
    overlap_size = max(0.0, min(spec.max, filter_range.max) - max(spec.min, filter_range.min))
    denominator = max(spec.max - spec.min, filter_range.max - filter_range.min)
    if denominator == 0:
        return 1.0
    return overlap_size / denominator
