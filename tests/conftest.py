"""
Shared pytest fixtures for hgt_index tests.

Provides the test taxonomy as taxdump files and as an in-memory
TaxonomyStore/LineageClassifier, and a writer for taxified hits files.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from hgt_index.taxonomy import LineageClassifier, TaxonNode, TaxonomyStore
from tests.factories import MERGED_TAXIDS, TAXONOMY_NODES, hit_line, write_taxdump


# =============================================================================
# Taxonomy Fixtures
# =============================================================================


@pytest.fixture
def taxdump_dir(tmp_path: Path) -> Path:
    """Directory with a small taxdump."""
    return write_taxdump(tmp_path / "taxdump")


@pytest.fixture
def taxonomy_nodes() -> list[TaxonNode]:
    """The test taxonomy as TaxonNode records."""
    return [
        TaxonNode(taxid=taxid, parent_id=parent, rank=rank, name=name)
        for taxid, parent, rank, name in TAXONOMY_NODES
    ]


@pytest.fixture
def store(taxonomy_nodes: list[TaxonNode]) -> TaxonomyStore:
    """In-memory store with the merged redirects applied."""
    return TaxonomyStore(taxonomy_nodes, dict(MERGED_TAXIDS))


@pytest.fixture
def classifier(store: TaxonomyStore) -> LineageClassifier:
    """Classifier with Metazoa as the ingroup."""
    return LineageClassifier(store, ingroup_taxid=33208)


# =============================================================================
# Hits File Fixtures
# =============================================================================


@pytest.fixture
def write_hits(tmp_path: Path):
    """Factory writing hit rows to a hits file in tmp_path."""

    def _write(lines: list[str], name: str = "hits.taxified.out") -> Path:
        path = tmp_path / name
        path.write_text("".join(lines))
        return path

    return _write


@pytest.fixture
def end_to_end_hits(write_hits) -> Path:
    """Q1: one ingroup and two outgroup taxa; Q2: ingroup only; Q10: rejected hits only."""
    return write_hits(
        [
            "# taxified diamond output\n",
            hit_line("Q1", "sp|A", "1e-20", 100, 9606),
            hit_line("Q1", "sp|B", "1e-30", 150, 562),
            hit_line("Q1", "sp|C", "1e-5", 10, 4932),
            hit_line("Q2", "sp|D", "1e-40", 200, 9606),
            hit_line("Q2", "sp|E", "1e-10", 40, 6239),
            hit_line("Q10", "sp|F", "1e-10", 40, "9606;562"),
            hit_line("Q10", "sp|G", "1e-10", 40, 77133),
        ]
    )
