"""Data loading functions for NCBI taxonomy dumps.

This module reads the taxonomy tables needed to classify hits: the
``nodes.dmp``, ``names.dmp`` and ``merged.dmp`` files of an NCBI taxdump, or
the single combined ``nodesDB.txt`` table written by blobtools.
"""

import logging
from collections.abc import Iterator
from pathlib import Path

from .models import Redirects, TaxId, TaxonNode

logger = logging.getLogger(__name__)

NODES_FILENAME = "nodes.dmp"
NAMES_FILENAME = "names.dmp"
MERGED_FILENAME = "merged.dmp"

SCIENTIFIC_NAME_CLASS = "scientific name"

MIN_NODE_FIELDS = 3
MIN_NAME_FIELDS = 4
MIN_MERGED_FIELDS = 2
MIN_NODESDB_FIELDS = 4


def iter_dmp_rows(dmp_file: Path) -> Iterator[list[str]]:
    """Yield the stripped fields of each record in a ``.dmp`` file.

    Fields are separated by ``|`` and padded with tabs; comment lines are
    skipped.
    """
    with dmp_file.open(encoding="utf-8") as f:
        for line in f:
            if not line.strip() or line.startswith("#"):
                continue
            yield [field.strip() for field in line.rstrip("\n").split("|")]


def load_nodes(nodes_file: Path) -> dict[TaxId, tuple[TaxId, str]]:
    """Load the parent and rank of every taxid.

    Args:
        nodes_file: Path to ``nodes.dmp`` with columns:
            tax_id | parent tax_id | rank | ...

    Returns:
        Dictionary mapping taxids to (parent taxid, rank) tuples.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    logger.debug("Loading taxonomy nodes from %s", nodes_file)
    nodes: dict[TaxId, tuple[TaxId, str]] = {}
    skipped = 0

    for fields in iter_dmp_rows(nodes_file):
        if len(fields) < MIN_NODE_FIELDS:
            skipped += 1
            continue
        try:
            nodes[int(fields[0])] = (int(fields[1]), fields[2])
        except ValueError:
            skipped += 1

    if skipped:
        logger.warning("Skipped %d malformed rows in %s", skipped, nodes_file)
    logger.info("Loaded %s taxonomy nodes", f"{len(nodes):,}")
    return nodes


def load_scientific_names(names_file: Path) -> dict[TaxId, str]:
    """Load the scientific name of every taxid.

    Args:
        names_file: Path to ``names.dmp`` with columns:
            tax_id | name_txt | unique name | name class | ...
            Only rows whose name class is 'scientific name' are kept.

    Returns:
        Dictionary mapping taxids to scientific names.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    logger.debug("Loading taxonomy names from %s", names_file)
    names: dict[TaxId, str] = {}

    for fields in iter_dmp_rows(names_file):
        if len(fields) < MIN_NAME_FIELDS or fields[3] != SCIENTIFIC_NAME_CLASS:
            continue
        try:
            names[int(fields[0])] = fields[1]
        except ValueError:
            continue

    logger.info("Loaded %s scientific names", f"{len(names):,}")
    return names


def load_merged(merged_file: Path) -> Redirects:
    """Load old-to-new taxid redirects.

    Args:
        merged_file: Path to ``merged.dmp`` with columns:
            old_tax_id | new_tax_id

    Returns:
        Dictionary mapping retired taxids to their replacements.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    logger.debug("Loading merged taxids from %s", merged_file)
    redirects: Redirects = {}

    for fields in iter_dmp_rows(merged_file):
        if len(fields) < MIN_MERGED_FIELDS:
            continue
        try:
            redirects[int(fields[0])] = int(fields[1])
        except ValueError:
            continue

    logger.info("Loaded %s merged taxids", f"{len(redirects):,}")
    return redirects


def load_taxdump(
    nodes_file: Path,
    names_file: Path,
    merged_file: Path | None = None,
) -> tuple[list[TaxonNode], Redirects]:
    """Load taxonomy nodes and redirects from NCBI taxdump files.

    Args:
        nodes_file: Path to ``nodes.dmp``.
        names_file: Path to ``names.dmp``.
        merged_file: Optional path to ``merged.dmp``.

    Returns:
        Tuple of (list of TaxonNode, redirect mapping).

    Raises:
        FileNotFoundError: If a required file does not exist.
    """
    for required in (nodes_file, names_file):
        if not required.exists():
            raise FileNotFoundError(f"Taxonomy file not found: {required}")

    parents = load_nodes(nodes_file)
    names = load_scientific_names(names_file)
    redirects = load_merged(merged_file) if merged_file else {}

    nodes = [
        TaxonNode(taxid=taxid, parent_id=parent, rank=rank, name=names.get(taxid))
        for taxid, (parent, rank) in parents.items()
    ]
    return nodes, redirects


def load_taxdump_dir(taxdump_dir: Path) -> tuple[list[TaxonNode], Redirects]:
    """Load an extracted taxdump directory.

    ``merged.dmp`` is used when present.

    Raises:
        FileNotFoundError: If the directory or a required file does not exist.
    """
    if not taxdump_dir.is_dir():
        raise FileNotFoundError(f"Taxonomy directory not found: {taxdump_dir}")

    logger.info("Building taxonomy databases from tax files in '%s'", taxdump_dir)
    merged_file = taxdump_dir / MERGED_FILENAME
    return load_taxdump(
        taxdump_dir / NODES_FILENAME,
        taxdump_dir / NAMES_FILENAME,
        merged_file if merged_file.exists() else None,
    )


def load_nodes_db(nodes_db_file: Path) -> list[TaxonNode]:
    """Load a blobtools ``nodesDB.txt`` table.

    Args:
        nodes_db_file: Path to a TSV with columns:
            taxid, rank, scientific name, parent taxid

    Returns:
        List of TaxonNode records.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    if not nodes_db_file.exists():
        raise FileNotFoundError(f"Taxonomy file not found: {nodes_db_file}")

    logger.info("Building taxonomy databases from '%s'", nodes_db_file)
    nodes: list[TaxonNode] = []

    with nodes_db_file.open(encoding="utf-8") as f:
        for line in f:
            if line.startswith("#"):
                continue
            fields = line.rstrip("\n").split("\t")
            if len(fields) < MIN_NODESDB_FIELDS:
                continue
            try:
                taxid, parent = int(fields[0]), int(fields[3])
            except ValueError:
                continue
            nodes.append(TaxonNode(taxid=taxid, parent_id=parent, rank=fields[1], name=fields[2]))

    logger.info("Loaded %s taxonomy nodes", f"{len(nodes):,}")
    return nodes
