"""Net directional score to recommendation confidence mapping."""

from __future__ import annotations

import numpy as np

from packages.common.types import Recommendation


def score_to_recommendation(
    net_score: float,
    direction_threshold: float = 20.0,
    max_confidence: float = 90.0,
) -> tuple[Recommendation, float]:
    """Map bullish-minus-bearish score to (recommendation, confidence 0-100).

    Beyond +/- threshold the call is LONG/SHORT with confidence
    50 + |score| capped at `max_confidence`. Inside the band the call is HOLD,
    and the closer the score sits to zero the more confident the HOLD.

    Args:
        net_score: Bullish score minus bearish score
        direction_threshold: |score| needed for a directional call
        max_confidence: Cap for directional confidence

    Returns:
        (recommendation, confidence)
    """
    if net_score > direction_threshold:
        return Recommendation.LONG, float(min(max_confidence, 50.0 + net_score))
    if net_score < -direction_threshold:
        return Recommendation.SHORT, float(min(max_confidence, 50.0 + abs(net_score)))

    confidence = 50.0 + (direction_threshold - abs(net_score))
    return Recommendation.HOLD, float(np.clip(confidence, 0.0, 100.0))
