"""Core HGT evidence computation.

This module reduces the per-taxon hit evidence of each query to the HGT Index
(hU), the Alien Index (AI), the winning bitscore-sum category and the
Consensus Hit Support (CHS).
"""

import logging
import math

from tqdm import tqdm

from ..taxonomy import Category, LineageClassifier, MalformedTaxonomyError
from ..taxonomy.models import UNDEFINED_RANK_NAME
from ..utils.io import natural_sort_key
from .models import (
    DEFAULT_BEST_BITSCORE,
    DEFAULT_BEST_EVALUE,
    EVALUE_PSEUDOCOUNT,
    EvidenceMap,
    HGTScore,
    QueryEvidence,
    QueryId,
)

logger = logging.getLogger(__name__)

NO_LINEAGE = ";".join([UNDEFINED_RANK_NAME] * 3)


def calculate_alien_index(ingroup_best_evalue: float, outgroup_best_evalue: float) -> float:
    """Calculate AI: log10(E_in + 1e-200) - log10(E_out + 1e-200).

    Positive values mean the best outgroup hit is more significant than the
    best ingroup hit.
    """
    return math.log10(ingroup_best_evalue + EVALUE_PSEUDOCOUNT) - math.log10(
        outgroup_best_evalue + EVALUE_PSEUDOCOUNT
    )


def calculate_hgt_index(ingroup_best_bitscore: float, outgroup_best_bitscore: float) -> float:
    """Calculate hU: B_out - B_in."""
    return outgroup_best_bitscore - ingroup_best_bitscore


def calculate_support(n_agreeing: int, n_taxa: int) -> float | None:
    """Percentage of distinct taxa agreeing with the winning category.

    Returns None (undefined) when no taxa were hit.
    """
    if n_taxa == 0:
        return None
    return 100 * n_agreeing / n_taxa


def score_query(
    query_id: QueryId,
    evidence: QueryEvidence,
    classifier: LineageClassifier,
) -> HGTScore:
    """Compute the HGT evidence scores of one query.

    Args:
        query_id: Query identifier.
        evidence: Bitscores and e-values per taxid; taxa must already be
            classifiable as ingroup or outgroup.
        classifier: Classifier set to the ingroup taxid.

    Returns:
        HGTScore. A query without evidence gets neutral values (bitscores 0,
        e-values 1, undefined support, no lineage).
    """
    ingroup_best_evalue = outgroup_best_evalue = DEFAULT_BEST_EVALUE
    ingroup_best_bitscore = outgroup_best_bitscore = DEFAULT_BEST_BITSCORE
    ingroup_sum = outgroup_sum = 0.0
    categories: dict[int, Category] = {}

    for taxid, taxon in evidence.items():
        category = classifier.classify(taxid)
        categories[taxid] = category

        if category is Category.INGROUP:
            ingroup_best_evalue = min(ingroup_best_evalue, taxon.best_evalue)
            ingroup_best_bitscore = max(ingroup_best_bitscore, taxon.best_bitscore)
            ingroup_sum += taxon.bitscore_sum
        elif category is Category.OUTGROUP:
            outgroup_best_evalue = min(outgroup_best_evalue, taxon.best_evalue)
            outgroup_best_bitscore = max(outgroup_best_bitscore, taxon.best_bitscore)
            outgroup_sum += taxon.bitscore_sum

    # Ties go to OUTGROUP
    winning_category = Category.INGROUP if ingroup_sum > outgroup_sum else Category.OUTGROUP

    n_taxa = len(categories)
    n_agreeing = sum(1 for category in categories.values() if category is winning_category)

    # Highest bitscore sum over all taxa; equal sums resolve to the lowest taxid
    winning_taxid = None
    if evidence:
        winning_taxid = min(evidence, key=lambda t: (-evidence[t].bitscore_sum, t))

    lineage = NO_LINEAGE
    if winning_taxid is not None:
        try:
            lineage = classifier.lineage_to_high_rank(winning_taxid)
        except MalformedTaxonomyError as e:
            logger.warning("[%s] No lineage for winning taxon: %s", query_id, e)

    score = HGTScore(
        query_id=query_id,
        hu=calculate_hgt_index(ingroup_best_bitscore, outgroup_best_bitscore),
        ai=calculate_alien_index(ingroup_best_evalue, outgroup_best_evalue),
        ingroup_best_bitscore=ingroup_best_bitscore,
        outgroup_best_bitscore=outgroup_best_bitscore,
        ingroup_best_evalue=ingroup_best_evalue,
        outgroup_best_evalue=outgroup_best_evalue,
        ingroup_bitscore_sum=ingroup_sum,
        outgroup_bitscore_sum=outgroup_sum,
        winning_category=winning_category,
        winning_taxid=winning_taxid,
        support=calculate_support(n_agreeing, n_taxa),
        n_taxa=n_taxa,
        lineage=lineage,
    )

    logger.debug(
        "[%s] bitscore sum ingroup=%s outgroup=%s; decision '%s' (support=%s); AI=%.2f",
        query_id,
        ingroup_sum,
        outgroup_sum,
        winning_category.value,
        score.support,
        score.ai,
    )
    return score


def score_queries(evidence: EvidenceMap, classifier: LineageClassifier) -> list[HGTScore]:
    """Score every query, in natural order of query identifier."""
    logger.info("Calculating bestsum bitscore and hit support")
    show_progress = logger.isEnabledFor(logging.INFO)

    return [
        score_query(query_id, evidence[query_id], classifier)
        for query_id in tqdm(
            sorted(evidence, key=natural_sort_key),
            desc="Scoring queries",
            disable=not show_progress,
        )
    ]
