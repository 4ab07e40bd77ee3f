"""HGT candidate selection and run-level tallies."""

import logging
from collections.abc import Iterable

from ..taxonomy import Category
from ..utils.io import format_count
from .models import CandidateDecision, HGTScore, HgtParams, RunSummary

logger = logging.getLogger(__name__)


class CandidateSelector:
    """Apply the hU (or AI) and support thresholds to scored queries.

    A query is a candidate when its index reaches the hU threshold, its
    winning category is OUTGROUP and its support reaches the support
    threshold. hU and AI share one threshold value.
    """

    def __init__(self, params: HgtParams) -> None:
        self.hu_threshold = params.hu_threshold
        self.support_threshold = params.support_threshold
        self.use_ai = params.use_ai

    def is_supported(self, score: HGTScore) -> bool:
        """Whether the query's support reaches the threshold; undefined support never does."""
        return score.support is not None and score.support >= self.support_threshold

    def decide(self, score: HGTScore) -> CandidateDecision:
        index = score.ai if self.use_ai else score.hu
        is_candidate = (
            index >= self.hu_threshold
            and score.winning_category is Category.OUTGROUP
            and self.is_supported(score)
        )
        return CandidateDecision(score=score, is_candidate=is_candidate)

    def select(self, scores: Iterable[HGTScore]) -> tuple[list[CandidateDecision], RunSummary]:
        """Decide every query and tally the run.

        Returns:
            Tuple of (decisions in input order, run summary).
        """
        decisions: list[CandidateDecision] = []
        summary = RunSummary()

        for score in scores:
            decision = self.decide(score)
            decisions.append(decision)

            summary.total_queries += 1
            if score.hu >= self.hu_threshold:
                summary.hu_supported += 1
            if score.ai >= self.hu_threshold:
                summary.ai_supported += 1
            if decision.is_candidate:
                summary.candidates += 1

            if not score.has_evidence:
                summary.no_evidence += 1
            elif score.winning_category is Category.INGROUP:
                summary.ingroup += 1
                summary.ingroup_supported += self.is_supported(score)
            else:
                summary.outgroup += 1
                summary.outgroup_supported += self.is_supported(score)

        return decisions, summary

    def log_summary(self, summary: RunSummary, ingroup_name: str) -> None:
        """Log the run tallies."""
        index_name = "Alien Index (AI)" if self.use_ai else "HGT Index (hU)"
        logger.info("Processed %s queries", format_count(summary.total_queries))
        logger.info(
            "TOTAL NUMBER OF HGT CANDIDATES (%s >= %g, support >= %g%%): %s",
            index_name,
            self.hu_threshold,
            self.support_threshold,
            format_count(summary.candidates),
        )
        logger.info(
            "Number of queries with HGT Index (hU) >= %g: %s",
            self.hu_threshold,
            format_count(summary.hu_supported),
        )
        logger.info(
            "Number of queries with Alien Index (AI) >= %g: %s",
            self.hu_threshold,
            format_count(summary.ai_supported),
        )
        logger.info(
            "Number of queries in INGROUP category ('%s'): %s (%s with support >= %g%%)",
            ingroup_name,
            format_count(summary.ingroup),
            format_count(summary.ingroup_supported),
            self.support_threshold,
        )
        logger.info(
            "Number of queries in OUTGROUP category ('non-%s'): %s (%s with support >= %g%%)",
            ingroup_name,
            format_count(summary.outgroup),
            format_count(summary.outgroup_supported),
            self.support_threshold,
        )
        if summary.no_evidence:
            logger.info(
                "Number of queries without retained hits: %s", format_count(summary.no_evidence)
            )
