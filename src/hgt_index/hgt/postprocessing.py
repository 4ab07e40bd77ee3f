"""
Post-process HGT candidates into per-query FASTA files.

Each file holds the candidate query followed by the sequences of its hits,
renamed with an _IN or _OUT suffix by their ingroup/outgroup placement, ready
for alignment and tree building.
"""

import logging
from pathlib import Path

from Bio import SeqIO
from Bio.SeqRecord import SeqRecord
from tqdm import tqdm

from ..taxonomy import Category, LineageClassifier, MalformedTaxonomyError
from .aggregate import parse_taxid
from .loaders import iter_hit_rows, load_results_table
from .models import HgtParams, HitColumns, QueryId

logger = logging.getLogger(__name__)

CATEGORY_SUFFIX = {Category.INGROUP: "IN", Category.OUTGROUP: "OUT"}


def candidate_fasta_name(query_id: QueryId) -> str:
    """File name of a candidate's FASTA; '|' is not kept in file names."""
    return f"{query_id.replace('|', '_')}.fasta"


def collect_candidate_hits(
    hits_file: Path,
    candidates: set[QueryId],
    classifier: LineageClassifier,
    params: HgtParams,
    columns: HitColumns,
) -> dict[QueryId, dict[str, str]]:
    """Collect the labelled hit subjects of each candidate query.

    Hits with invalid, unknown, skipped or unassigned taxids are dropped,
    as during scoring.

    Returns:
        Dictionary mapping query IDs to {subject ID: renamed subject ID},
        in file order with duplicate subjects removed.
    """
    hits: dict[QueryId, dict[str, str]] = {query_id: {} for query_id in candidates}

    for line_number, fields in iter_hit_rows(hits_file, columns):
        if len(fields) < max(columns.query, columns.subject, columns.taxid):
            continue
        query_id = fields[columns.query - 1]
        if query_id not in candidates:
            continue

        subject_id = fields[columns.subject - 1]
        taxid = parse_taxid(fields[columns.taxid - 1])
        if taxid is None or not classifier.store.has_parent(taxid):
            continue

        try:
            if params.skip_taxid and (
                classifier.classify(taxid, params.skip_taxid) is Category.INGROUP
            ):
                continue
            category = classifier.classify(taxid)
        except MalformedTaxonomyError as e:
            logger.warning("Line %d: %s", line_number, e)
            continue

        if category is Category.UNASSIGNED:
            continue

        renamed = f"{subject_id}_{CATEGORY_SUFFIX[category]}"
        hits[query_id].setdefault(subject_id, renamed)
        logger.debug("%s --> %s", query_id, renamed)

    return hits


def _renamed(record: SeqRecord, new_id: str) -> SeqRecord:
    return SeqRecord(record.seq, id=new_id, description="")


def export_candidate_sequences(  # noqa: PLR0913
    candidates_file: Path,
    hits_file: Path,
    database_fasta: Path,
    query_fasta: Path,
    classifier: LineageClassifier,
    output_dir: Path,
    params: HgtParams | None = None,
    columns: HitColumns | None = None,
) -> list[Path]:
    """Write one FASTA per HGT candidate with its query and hit sequences.

    Args:
        candidates_file: Candidates (or results) table of a scoring run.
        hits_file: The hits file that was scored.
        database_fasta: FASTA of the search database (e.g. UniRef90).
        query_fasta: FASTA of the query proteins.
        classifier: Classifier set to the ingroup taxid.
        output_dir: Directory for the per-candidate FASTA files.
        params: Run parameters; only ``skip_taxid`` is used.
        columns: Column layout of the hits file.

    Returns:
        Paths of the FASTA files written.

    Raises:
        FileNotFoundError: If an input file does not exist.
    """
    if params is None:
        params = HgtParams(ingroup_taxid=classifier.ingroup_taxid)
    if columns is None:
        columns = HitColumns()
    for required in (candidates_file, hits_file, database_fasta, query_fasta):
        if not required.exists():
            raise FileNotFoundError(f"Input file not found: {required}")

    candidates = list(dict.fromkeys(load_results_table(candidates_file)["QUERY"]))
    logger.info("Number of HGT candidates: %s", f"{len(candidates):,}")

    candidate_hits = collect_candidate_hits(
        hits_file, set(candidates), classifier, params, columns
    )

    logger.info("Indexing sequences in %s and %s", query_fasta, database_fasta)
    query_index = SeqIO.index(str(query_fasta), "fasta")
    database_index = SeqIO.index(str(database_fasta), "fasta")

    output_dir.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    show_progress = logger.isEnabledFor(logging.INFO)

    try:
        for query_id in tqdm(candidates, desc="Writing candidate FASTA", disable=not show_progress):
            records: list[SeqRecord] = []
            if query_id in query_index:
                records.append(_renamed(query_index[query_id], query_id))
            else:
                logger.warning("Query sequence %s not found in %s", query_id, query_fasta)

            for subject_id, renamed in candidate_hits[query_id].items():
                if subject_id not in database_index:
                    logger.warning("Hit sequence %s not found in %s", subject_id, database_fasta)
                    continue
                records.append(_renamed(database_index[subject_id], renamed))

            output_file = output_dir / candidate_fasta_name(query_id)
            SeqIO.write(records, str(output_file), "fasta")
            written.append(output_file)
    finally:
        query_index.close()
        database_index.close()

    logger.info("Wrote %d candidate FASTA files to %s", len(written), output_dir)
    return written
