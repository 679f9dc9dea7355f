"""
Score normalization and bias classification.

Both functions are pure. The bias thresholds are fixed on the product's
[-24, 24] scoring convention and do not depend on a response's own scale.
"""

from typing import Sequence

from .models import Bias


# Upper bounds (inclusive) of the relative position t for each bucket,
# evaluated in ascending order. Anything above the last bound is +2.
BUCKET_THRESHOLDS: tuple[tuple[float, int], ...] = (
    (0.1, -2),
    (0.3, -1),
    (0.7, 0),
    (0.9, 1),
)

# Lower bounds (inclusive) on the raw total score, highest first.
BIAS_THRESHOLDS: tuple[tuple[float, Bias], ...] = (
    (15, Bias.VERY_BULLISH),
    (8, Bias.BULLISH),
    (-7, Bias.NEUTRAL),
    (-15, Bias.BEARISH),
)


def normalize_score(score: float, scale: Sequence[float]) -> int:
    """
    Map a raw score onto the five display buckets {-2, -1, 0, 1, 2}.

    ``t = (score - min) / (max - min)`` is compared against
    BUCKET_THRESHOLDS. Scores outside the scale fall into the end buckets.
    A zero-width scale (min == max) returns 0.
    """
    scale_min, scale_max = scale[0], scale[1]
    width = scale_max - scale_min
    if width == 0:
        return 0

    position = (score - scale_min) / width
    for upper, bucket in BUCKET_THRESHOLDS:
        if position <= upper:
            return bucket
    return 2


def classify_bias(total_score: float) -> Bias:
    """Classify a raw total score into one of five bias labels."""
    for lower, bias in BIAS_THRESHOLDS:
        if total_score >= lower:
            return bias
    return Bias.VERY_BEARISH
