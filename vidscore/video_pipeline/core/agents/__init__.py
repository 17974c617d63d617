"""
Signal extraction agents. Each one is an async callable taking a VideoHandle
and they are independent of each other, so the pipeline runs them concurrently.
"""

from .defect_search import ForensicDefectSearch, DEFECT_CATALOGUE
from .pacing import PacingAnalyzer, count_dead_air, words_per_minute
from .niche import NicheClassifier, parse_niche
from .topics import TopicTagger

__all__ = [
    "ForensicDefectSearch",
    "DEFECT_CATALOGUE",
    "PacingAnalyzer",
    "count_dead_air",
    "words_per_minute",
    "NicheClassifier",
    "parse_niche",
    "TopicTagger",
]
