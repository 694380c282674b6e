"""Jaro-Winkler similarity between two normalized strings.

The duplicate and cluster thresholds (0.5) are calibrated against this
metric, so it must stay Jaro-Winkler with the standard prefix weight.
"""

from rapidfuzz.distance import JaroWinkler

PREFIX_WEIGHT = 0.1


def score(a: str, b: str) -> float:
    """Return a similarity in [0, 1]; 1.0 for equal strings, 0.0 against an empty one."""
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    # Fixed argument order so score(a, b) == score(b, a) bit for bit
    if b < a:
        a, b = b, a
    return JaroWinkler.similarity(a, b, prefix_weight=PREFIX_WEIGHT)
