"""HGT (Horizontal Gene Transfer) scoring module.

This module classifies the taxified hits of each query protein as INGROUP
or OUTGROUP, scores the queries with the HGT Index (hU) and Alien Index (AI)
and selects HGT candidates.
"""

from .aggregate import HitAggregator, aggregate_hits
from .candidates import CandidateSelector
from .classify import compute_hgt_candidates
from .locations import LocationParams, locate_candidates
from .models import (
    CandidateDecision,
    Delimiter,
    HGTScore,
    HgtParams,
    HitColumns,
    RunSummary,
    SkipReason,
)
from .postprocessing import export_candidate_sequences
from .score import calculate_alien_index, calculate_hgt_index, score_queries, score_query

__all__ = [
    "CandidateDecision",
    "CandidateSelector",
    "Delimiter",
    "HGTScore",
    "HgtParams",
    "HitAggregator",
    "HitColumns",
    "LocationParams",
    "RunSummary",
    "SkipReason",
    "aggregate_hits",
    "calculate_alien_index",
    "calculate_hgt_index",
    "compute_hgt_candidates",
    "export_candidate_sequences",
    "locate_candidates",
    "score_queries",
    "score_query",
]
