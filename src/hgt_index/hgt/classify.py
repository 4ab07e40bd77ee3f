"""End-to-end HGT classification of a hits file."""

import logging
import time
from pathlib import Path

from ..taxonomy import LineageClassifier
from .aggregate import aggregate_hits
from .candidates import CandidateSelector
from .models import HgtParams, HitColumns, RunSummary
from .score import score_queries
from .writers import HgtOutputs, build_output_paths, write_results, write_warnings

logger = logging.getLogger(__name__)


def compute_hgt_candidates(
    hits_file: Path,
    classifier: LineageClassifier,
    params: HgtParams,
    columns: HitColumns | None = None,
    prefix: Path | None = None,
) -> tuple[HgtOutputs, RunSummary, float]:
    """Classify hits, score every query and write the output tables.

    Args:
        hits_file: Taxified Diamond/BLAST tabular output.
        classifier: Classifier over the taxonomy, set to ``params.ingroup_taxid``.
        params: Thresholds and taxids of the run.
        columns: Column layout of the hits file. Defaults to HitColumns().
        prefix: Output file prefix. Defaults to the hits file path.

    Returns:
        Tuple of (output paths, run summary, computation time in seconds).

    Raises:
        FileNotFoundError: If the hits file does not exist.
    """
    store = classifier.store
    ingroup_name = store.name_of(params.ingroup_taxid) or str(params.ingroup_taxid)
    outputs = build_output_paths(prefix or hits_file, ingroup_name, params)

    logger.info("INGROUP set to '%s'; OUTGROUP is therefore 'non-%s'", ingroup_name, ingroup_name)
    if params.skip_taxid:
        logger.info("Skipping any hits to taxid %s", classifier.describe(params.skip_taxid))
    else:
        logger.warning(
            "Taxid to skip is not set! Suggest setting it to the taxid of the phylum "
            "your organism comes from."
        )

    start_time = time.perf_counter()

    aggregator = aggregate_hits(hits_file, classifier, params, columns)
    scores = score_queries(aggregator.evidence, classifier)

    selector = CandidateSelector(params)
    decisions, summary = selector.select(scores)

    end_time = time.perf_counter()

    write_results(outputs.results, decisions, ingroup_name)
    write_results(outputs.candidates, decisions, ingroup_name, candidates_only=True)
    write_warnings(outputs.warnings, aggregator.warnings)

    selector.log_summary(summary, ingroup_name)
    return outputs, summary, end_time - start_time
