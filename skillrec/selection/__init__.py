"""Standard resource scoring and selection."""

from skillrec.selection.scorer import ResourceScorer, ResourceScoreWeights
from skillrec.selection.selector import ResourceSelector, pick_closest_difficulty

__all__ = [
    "ResourceScoreWeights",
    "ResourceScorer",
    "ResourceSelector",
    "pick_closest_difficulty",
]
