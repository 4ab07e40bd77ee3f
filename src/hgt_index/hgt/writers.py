"""Output tables of a scoring run."""

import csv
import logging
import re
from dataclasses import dataclass
from pathlib import Path

from .loaders import RESULT_COLUMNS
from .models import CandidateDecision, HGTScore, HgtParams, SkippedHit

logger = logging.getLogger(__name__)

WARNING_COLUMNS = ["QUERY", "LINE", "TAXID", "REASON"]
MISSING_VALUE = "NA"


@dataclass(frozen=True)
class HgtOutputs:
    """Paths of the tables written by a scoring run."""

    results: Path
    candidates: Path
    warnings: Path


def sanitize_name(name: str) -> str:
    """Make a taxon name safe for use inside a file name."""
    return re.sub(r"[^\w.-]+", "_", name.strip())


def build_output_paths(prefix: Path | str, ingroup_name: str, params: HgtParams) -> HgtOutputs:
    """Derive output file names from a prefix.

    Format:
        <prefix>.HGT_results.<ingroup>.txt
        <prefix>.HGT_candidates.<ingroup>.supp<S>.hU<L>.txt
        <prefix>.HGT_warnings.txt
    """
    prefix = str(prefix)
    ingroup = sanitize_name(ingroup_name)
    index = "AI" if params.use_ai else "hU"
    return HgtOutputs(
        results=Path(f"{prefix}.HGT_results.{ingroup}.txt"),
        candidates=Path(
            f"{prefix}.HGT_candidates.{ingroup}.supp{params.support_threshold:g}"
            f".{index}{params.hu_threshold:g}.txt"
        ),
        warnings=Path(f"{prefix}.HGT_warnings.txt"),
    )


def format_result_row(score: HGTScore, ingroup_name: str) -> list[str]:
    """Format one HGTScore as a results table row."""
    return [
        score.query_id,
        ingroup_name,
        f"{score.hu:.10g}",
        f"{score.outgroup_best_bitscore:.10g}",
        f"{score.ingroup_best_bitscore:.10g}",
        f"{score.ai:.10g}",
        f"{score.outgroup_best_evalue:.10g}",
        f"{score.ingroup_best_evalue:.10g}",
        score.winning_category.name,
        MISSING_VALUE if score.support is None else f"{score.support:.2f}",
        score.lineage,
    ]


def write_results(
    output_file: Path,
    decisions: list[CandidateDecision],
    ingroup_name: str,
    candidates_only: bool = False,
) -> int:
    """Write a results (or candidates) table.

    Returns:
        Number of rows written.
    """
    output_file.parent.mkdir(parents=True, exist_ok=True)
    n_rows = 0

    with output_file.open("w", newline="", encoding="utf-8") as f_out:
        writer = csv.writer(f_out, delimiter="\t", lineterminator="\n")
        writer.writerow(RESULT_COLUMNS)
        for decision in decisions:
            if candidates_only and not decision.is_candidate:
                continue
            writer.writerow(format_result_row(decision.score, ingroup_name))
            n_rows += 1

    logger.info("Wrote %d rows to %s", n_rows, output_file)
    return n_rows


def write_warnings(output_file: Path, warnings: list[SkippedHit]) -> None:
    """Write one row per rejected hit."""
    output_file.parent.mkdir(parents=True, exist_ok=True)

    with output_file.open("w", newline="", encoding="utf-8") as f_out:
        writer = csv.writer(f_out, delimiter="\t", lineterminator="\n")
        writer.writerow(WARNING_COLUMNS)
        writer.writerows(
            [skipped.query_id, skipped.line_number, skipped.taxid, skipped.reason.value]
            for skipped in warnings
        )

    logger.info("Wrote %d skipped hits to %s", len(warnings), output_file)
