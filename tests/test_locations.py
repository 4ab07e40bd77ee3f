"""
Tests for locating scored genes on scaffolds.

Covers GFF/GTF attribute parsing, CDS span and intron counts, protein name
resolution, evidence classes and the per-scaffold contamination summary.
"""

from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from hgt_index.hgt import LocationParams, locate_candidates
from hgt_index.hgt.loaders import RESULT_COLUMNS
from hgt_index.hgt.locations import (
    Evidence,
    build_location_paths,
    classify_evidence,
    load_cds_locations,
    load_protein_names,
    parse_gff_attributes,
)

# =============================================================================
# Fixtures
# =============================================================================

# QUERY, hU, WINNING_CATEGORY, SUPPORT
RESULT_ROWS = [
    ("g1", 100, "OUTGROUP", "100.00"),
    ("g2", -50, "INGROUP", "95.00"),
    ("g3", 80, "OUTGROUP", "100.00"),
    ("g4", 40, "OUTGROUP", "50.00"),
    ("g6", 10, "OUTGROUP", "NA"),
]

GFF_LINES = [
    "##gff-version 3",
    "scaffold_1\tmaker\tgene\t100\t400\t.\t+\t.\tID=g1gene",
    "scaffold_1\tmaker\tCDS\t100\t200\t.\t+\t0\tID=cds.g1;Parent=g1",
    "scaffold_1\tmaker\tCDS\t300\t400\t.\t+\t2\tID=cds.g1;Parent=g1",
    "scaffold_1\tmaker\tCDS\t500\t600\t.\t+\t0\tID=cds.g2;Parent=g2",
    'scaffold_2\taugustus\tCDS\t50\t150\t.\t+\t0\ttranscript_id "g3"; gene_id "g3gene";',
    "scaffold_10\tmaker\tCDS\t700\t800\t.\t-\t0\tID=cds.g4;Parent=g4",
    "scaffold_10\tmaker\tCDS\t900\t950\t.\t-\t0\tID=cds.g5;Parent=g5",
]


@pytest.fixture
def results_file(tmp_path: Path) -> Path:
    """Results table of a scoring run."""
    path = tmp_path / "hits.out.HGT_results.Metazoa.txt"
    lines = ["\t".join(RESULT_COLUMNS)]
    for query, hu, category, support in RESULT_ROWS:
        lines.append(
            "\t".join(
                [query, "Metazoa", str(hu), "0", "0", "0.00", "1", "1", category, support,
                 "Bacteria;undef;Proteobacteria"]
            )
        )
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture
def gff_file(tmp_path: Path) -> Path:
    path = tmp_path / "genes.gff3"
    path.write_text("\n".join(GFF_LINES) + "\n")
    return path


# =============================================================================
# Unit tests
# =============================================================================


class TestParsing:
    """Tests for GFF and protein name parsing."""

    def test_gff3_attributes(self) -> None:
        """Should parse key=value pairs."""
        assert parse_gff_attributes("ID=cds.g1;Parent=g1;") == {"ID": "cds.g1", "Parent": "g1"}

    def test_gtf_attributes(self) -> None:
        """Should parse quoted GTF pairs."""
        assert parse_gff_attributes('transcript_id "g3"; gene_id "g3gene";') == {
            "transcript_id": "g3",
            "gene_id": "g3gene",
        }

    def test_cds_span_and_introns(self, gff_file: Path) -> None:
        """Should span all CDS of a protein and count introns between them."""
        locations = load_cds_locations(gff_file)

        g1 = locations["g1"]
        assert (g1.scaffold, g1.start, g1.end, g1.strand) == ("scaffold_1", 100, 400, "+")
        assert g1.introns == 1
        assert locations["cds.g1"].introns == 1
        assert locations["g3"].introns == 0
        assert "g1gene" not in locations

    def test_missing_gff(self, tmp_path: Path) -> None:
        """Should raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_cds_locations(tmp_path / "missing.gff")

    def test_names_from_results_with_regex(self) -> None:
        """Should strip the regex from query IDs."""
        genes, mapping = load_protein_names(None, ["g1.t1", "g2.t1"], r"\.t\d+$")

        assert genes == ["g1", "g2"]
        assert mapping == {"g1.t1": "g1", "g2.t1": "g2"}

    def test_names_from_fasta(self, tmp_path: Path) -> None:
        """Should take gene IDs from FASTA headers."""
        fasta = tmp_path / "proteins.faa"
        fasta.write_text(">g1.t1 desc\nMK\n>g9.t1\nMK\n")

        genes, mapping = load_protein_names(fasta, ["g1.t1"], r"\.t\d+$")

        assert genes == ["g1", "g9"]
        assert mapping == {"g1.t1": "g1"}

    def test_names_from_mapping_file(self, tmp_path: Path) -> None:
        """Should map query IDs to GFF IDs from two columns."""
        mapping_file = tmp_path / "names.txt"
        mapping_file.write_text("Q1\tg1\nQ2\tg2\n")

        genes, mapping = load_protein_names(mapping_file, ["Q1", "Q3"])

        assert genes == ["g1", "g2"]
        assert mapping == {"Q1": "g1"}

    def test_build_location_paths(self, tmp_path: Path) -> None:
        """Should replace the results suffix in output names."""
        outputs = build_location_paths(tmp_path / "run.HGT_results.Metazoa.txt", write_bed=True)

        assert outputs.locations == tmp_path / "run.HGT_locations.txt"
        assert outputs.bed == tmp_path / "run.HGT_locations.bed"


def test_classify_evidence() -> None:
    """Should assign 0/1/2 and treat undefined support as intermediate."""
    results = pd.DataFrame(
        {
            "hU": [100.0, -50.0, 40.0, 100.0, 0.0],
            "WINNING_CATEGORY": ["OUTGROUP", "INGROUP", "OUTGROUP", "OUTGROUP", "INGROUP"],
            "SUPPORT": [100.0, 95.0, 50.0, float("nan"), 90.0],
        }
    )

    evidence = classify_evidence(results, LocationParams())

    assert evidence.tolist() == [
        Evidence.GOOD_OUTGROUP,
        Evidence.GOOD_INGROUP,
        Evidence.INTERMEDIATE,
        Evidence.INTERMEDIATE,
        Evidence.GOOD_INGROUP,
    ]


# =============================================================================
# Integration tests
# =============================================================================


class TestLocateCandidates:
    """Tests for locate_candidates()."""

    def test_locations_table(self, results_file: Path, gff_file: Path) -> None:
        """Should write located genes sorted by scaffold and position."""
        outputs = locate_candidates(results_file, gff_file)

        table = pd.read_csv(outputs.locations, sep="\t", keep_default_na=False, dtype=str)
        assert table["GENE"].tolist() == ["g1", "g2", "g3", "g4"]
        assert table["SCAFFOLD"].tolist() == [
            "scaffold_1",
            "scaffold_1",
            "scaffold_2",
            "scaffold_10",
        ]
        assert table["EVIDENCE"].tolist() == ["2", "0", "2", "1"]
        assert table.loc[0, "INTRONS"] == "1"
        assert table.loc[3, "STRAND"] == "-"

    def test_scaffold_summary(self, results_file: Path, gff_file: Path) -> None:
        """Should flag linked and heavy scaffolds."""
        outputs = locate_candidates(results_file, gff_file)

        summary = pd.read_csv(outputs.scaffold_summary, sep="\t").set_index("SCAFFOLD")
        assert summary.loc["scaffold_1"].tolist() == [2, 0, 1, 0, 1, 50.0, 1]
        assert summary.loc["scaffold_2", "IS_LINKED"] == 0
        assert summary.loc["scaffold_2", "PROPORTION_OUTGRP"] == 100.0

        heavy = pd.read_csv(outputs.heavy, sep="\t")
        assert heavy["SCAFFOLD"].tolist() == ["scaffold_2"]

    def test_linked_genes_and_orphans(self, results_file: Path, gff_file: Path) -> None:
        """Should list linked HGT candidates and genes missing from the GFF."""
        outputs = locate_candidates(results_file, gff_file)

        assert outputs.linked_genes.read_text() == "g1\n"
        assert outputs.warnings.read_text() == "g6\n"
        assert "Bad scaffolds: 1" in outputs.overall_summary.read_text()

    def test_unassigned_genes_from_names_list(
        self, results_file: Path, gff_file: Path, tmp_path: Path
    ) -> None:
        """Should count listed genes without a result as unassigned."""
        names = tmp_path / "genes.txt"
        names.write_text("g4\ng5\n")

        outputs = locate_candidates(results_file, gff_file, names_file=names)

        summary = pd.read_csv(outputs.scaffold_summary, sep="\t").set_index("SCAFFOLD")
        assert summary.loc["scaffold_10", "NUMGENES"] == 2
        assert summary.loc["scaffold_10", "UNASSIGNED"] == 1

    def test_bed_output(self, results_file: Path, gff_file: Path) -> None:
        """Should write strong outgroup genes as 0-based BED intervals."""
        outputs = locate_candidates(results_file, gff_file, params=LocationParams(write_bed=True))

        assert outputs.bed.read_text().splitlines() == [
            "scaffold_1\t99\t400\tg1\t.\t+",
            "scaffold_2\t49\t150\tg3\t.\t+",
        ]
