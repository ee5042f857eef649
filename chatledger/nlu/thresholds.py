"""Global confidence thresholds, tuned against intent x entity-match products."""

HIGH_CONFIDENCE = 0.85
MEDIUM_CONFIDENCE = 0.6

# Minimum score for a scheduled-transaction match to be offered to the user.
SCHEDULED_MATCH_CONFIDENCE = 0.5


def combine_confidence(intent_confidence: float, match_confidence: float) -> float:
    """Combined confidence of an intent and its entity match."""
    return intent_confidence * match_confidence
