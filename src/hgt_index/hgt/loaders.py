"""Data loading functions for HGT analysis.

This module reads taxified Diamond/BLAST tabular output and the results
tables written by a scoring run.
"""

import logging
from collections.abc import Iterator
from pathlib import Path

import pandas as pd

from ..utils.io import open_text
from .models import Delimiter, Hit, HitColumns

logger = logging.getLogger(__name__)

COMMENT_PREFIX = "#"

# Results table columns, in output order
RESULT_COLUMNS = [
    "QUERY",
    "INGROUP_NAME",
    "hU",
    "BIT_OUT",
    "BIT_IN",
    "AI",
    "EVAL_OUT",
    "EVAL_IN",
    "WINNING_CATEGORY",
    "SUPPORT",
    "LINEAGE",
]


def split_fields(line: str, delimiter: Delimiter) -> list[str]:
    """Split one line of the hits file into fields."""
    if delimiter is Delimiter.TAB:
        return line.rstrip("\r\n").split("\t")
    return line.split()


def _field(fields: list[str], position: int) -> str:
    """Return the field at a 1-based position, or '' if the row is too short."""
    return fields[position - 1] if len(fields) >= position else ""


def parse_hit(fields: list[str], columns: HitColumns) -> Hit:
    """Build a Hit from the fields of one row.

    The taxid is kept as the raw token; it is validated during aggregation.

    Raises:
        ValueError: If the query is missing or the e-value or bitscore is not
            a number.
    """
    query_id = _field(fields, columns.query)
    if not query_id:
        raise ValueError("missing query identifier")

    return Hit(
        query_id=query_id,
        subject_id=_field(fields, columns.subject),
        evalue=float(_field(fields, columns.evalue)),
        bitscore=float(_field(fields, columns.bitscore)),
        taxid=_field(fields, columns.taxid),
    )


def iter_hit_rows(hits_file: Path, columns: HitColumns) -> Iterator[tuple[int, list[str]]]:
    """Yield (line number, fields) for every non-comment row of a hits file.

    Line numbers count every physical line, comments included, so they point
    back into the original file.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    with open_text(hits_file) as f:
        for line_number, line in enumerate(f, start=1):
            if line.startswith(COMMENT_PREFIX) or not line.strip():
                continue
            yield line_number, split_fields(line, columns.delimiter)


def load_results_table(results_file: Path) -> pd.DataFrame:
    """Load a results or candidates table written by a scoring run.

    Args:
        results_file: Path to TSV file with the RESULT_COLUMNS header.

    Returns:
        DataFrame with QUERY as string and SUPPORT as float (NaN for 'NA').

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If expected columns are missing.
    """
    logger.debug("Loading HGT results from %s", results_file)
    df = pd.read_csv(
        results_file,
        sep="\t",
        dtype={"QUERY": str, "INGROUP_NAME": str, "WINNING_CATEGORY": str, "LINEAGE": str},
        na_values=["NA"],
        keep_default_na=False,
    )
    missing = [col for col in RESULT_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"{results_file} is missing columns: {', '.join(missing)}")

    logger.info("Loaded %d HGT result records", len(df))
    return df
