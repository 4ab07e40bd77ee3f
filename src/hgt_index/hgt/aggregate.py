"""Per-query, per-taxon accumulation of search hits.

Hits are filtered through the lineage classifier and their bitscores and
e-values are collected as ``query -> taxid -> TaxonEvidence``.
"""

import logging
from pathlib import Path

from tqdm import tqdm

from ..taxonomy import Category, LineageClassifier, MalformedTaxonomyError, TaxId
from ..utils.io import count_lines, format_count, percentage
from .loaders import iter_hit_rows, parse_hit
from .models import (
    AggregationStats,
    EvidenceMap,
    HgtParams,
    Hit,
    HitColumns,
    SkippedHit,
    SkipReason,
    TaxonEvidence,
)

logger = logging.getLogger(__name__)


def parse_taxid(token: str) -> TaxId | None:
    """Return the token as a positive integer taxid, or None if it is not one."""
    token = token.strip()
    if not (token.isascii() and token.isdecimal()):
        return None
    taxid = int(token)
    return taxid if taxid > 0 else None


class HitAggregator:
    """Collect hit evidence per query and taxon.

    Every query seen keeps an entry, possibly empty, so that queries whose
    hits were all rejected are still scored.
    """

    def __init__(self, classifier: LineageClassifier, params: HgtParams) -> None:
        self.classifier = classifier
        self.params = params
        self.stats = AggregationStats()
        self.warnings: list[SkippedHit] = []
        self._evidence: EvidenceMap = {}

    @property
    def evidence(self) -> EvidenceMap:
        return self._evidence

    def ingest_row(
        self, line_number: int, fields: list[str], columns: HitColumns
    ) -> SkipReason | None:
        """Parse and ingest one row of the hits file."""
        try:
            hit = parse_hit(fields, columns)
        except ValueError as e:
            self.stats.total_hits += 1
            query_id = fields[columns.query - 1] if len(fields) >= columns.query else ""
            taxid = fields[columns.taxid - 1] if len(fields) >= columns.taxid else ""
            logger.debug("Line %d: malformed row (%s)", line_number, e)
            if query_id:
                self._evidence.setdefault(query_id, {})
            self._reject(query_id, line_number, taxid, SkipReason.MALFORMED_ROW)
            return SkipReason.MALFORMED_ROW
        return self.ingest(hit, line_number)

    def ingest(self, hit: Hit, line_number: int = 0) -> SkipReason | None:
        """Add one hit; return the reason it was rejected, or None if kept."""
        self.stats.total_hits += 1
        query_evidence = self._evidence.setdefault(hit.query_id, {})

        reason = self._check(hit)
        if reason is not None:
            self._reject(hit.query_id, line_number, hit.taxid, reason)
            return reason

        taxid = int(hit.taxid)
        query_evidence.setdefault(taxid, TaxonEvidence()).add(hit.bitscore, hit.evalue)
        return None

    def _check(self, hit: Hit) -> SkipReason | None:
        taxid = parse_taxid(hit.taxid)
        if taxid is None:
            return SkipReason.INVALID_TAXID
        if not self.classifier.store.has_parent(taxid):
            return SkipReason.UNKNOWN_PARENT

        try:
            skip_taxid = self.params.skip_taxid
            if skip_taxid and self.classifier.classify(taxid, skip_taxid) is Category.INGROUP:
                return SkipReason.SKIPPED_TAXON
            if self.classifier.classify(taxid) is Category.UNASSIGNED:
                return SkipReason.UNASSIGNED
        except MalformedTaxonomyError as e:
            logger.warning("%s", e)
            return SkipReason.MALFORMED_TAXONOMY
        return None

    def _reject(self, query_id: str, line_number: int, taxid: str, reason: SkipReason) -> None:
        self.stats.skipped[reason] += 1
        if reason is SkipReason.SKIPPED_TAXON and not self.params.verbose:
            return
        self.warnings.append(SkippedHit(query_id, line_number, taxid, reason))


def aggregate_hits(
    hits_file: Path,
    classifier: LineageClassifier,
    params: HgtParams,
    columns: HitColumns | None = None,
) -> HitAggregator:
    """Stream a hits file into a HitAggregator.

    Args:
        hits_file: Taxified Diamond/BLAST tabular output.
        classifier: Classifier set to the ingroup taxid.
        params: Run parameters (skip taxid, verbosity).
        columns: Column layout of the hits file. Defaults to HitColumns().

    Returns:
        The filled aggregator; its evidence map is not modified afterwards.

    Raises:
        FileNotFoundError: If the hits file does not exist.
    """
    if columns is None:
        columns = HitColumns()
    if not hits_file.exists():
        raise FileNotFoundError(f"Hits file not found: {hits_file}")

    logger.info("Parsing hits file '%s'", hits_file)
    aggregator = HitAggregator(classifier, params)
    show_progress = logger.isEnabledFor(logging.INFO)

    for line_number, fields in tqdm(
        iter_hit_rows(hits_file, columns),
        total=count_lines(hits_file) if show_progress else None,
        desc="Aggregating hits",
        disable=not show_progress,
    ):
        aggregator.ingest_row(line_number, fields, columns)

    log_aggregation_stats(aggregator.stats)
    return aggregator


def log_aggregation_stats(stats: AggregationStats) -> None:
    """Log totals and the share of each rejection reason."""
    logger.info("Total number of hits parsed: %s", format_count(stats.total_hits))
    for reason in SkipReason:
        count = stats.skipped[reason]
        if count:
            logger.warning(
                "There were %s (%s%%) hits skipped as %s",
                format_count(count),
                percentage(count, stats.total_hits),
                reason.value,
            )
