"""Search engines over a storage backend."""

from .fusion import FusedCandidate, fuse_rankings, rank_candidates
from .hybrid import HybridSearchEngine
from .lexical import LexicalSearchEngine
from .results import Projection, make_result
from .similarity import SimilaritySearchEngine

__all__ = [
    "FusedCandidate",
    "fuse_rankings",
    "rank_candidates",
    "HybridSearchEngine",
    "LexicalSearchEngine",
    "Projection",
    "make_result",
    "SimilaritySearchEngine",
]
