"""
Unit tests for hit parsing and per-query aggregation.
"""

from __future__ import annotations

import gzip
from pathlib import Path

import pytest

from hgt_index.hgt import Delimiter, HgtParams, HitColumns, SkipReason
from hgt_index.hgt.aggregate import HitAggregator, aggregate_hits, parse_taxid
from hgt_index.hgt.loaders import iter_hit_rows, parse_hit, split_fields
from hgt_index.hgt.models import Hit
from hgt_index.taxonomy import LineageClassifier, TaxonNode, TaxonomyStore

from tests.factories import hit_line


class TestParsing:
    """Tests for hits file parsing."""

    def test_parse_taxid(self) -> None:
        """Should accept only positive integer tokens."""
        assert parse_taxid("9606") == 9606
        assert parse_taxid(" 562 ") == 562
        assert parse_taxid("9606;562") is None
        assert parse_taxid("NA") is None
        assert parse_taxid("") is None
        assert parse_taxid("0") is None
        assert parse_taxid("-5") is None
        assert parse_taxid("²") is None
        assert parse_taxid("٣") is None

    def test_superscript_taxid_is_invalid(self, classifier: LineageClassifier) -> None:
        """Should reject a Unicode digit taxid instead of raising."""
        aggregator = HitAggregator(classifier, HgtParams())

        reason = aggregator.ingest(Hit("Q1", "s", 1e-5, 50.0, "²"), 1)

        assert reason is SkipReason.INVALID_TAXID

    def test_split_whitespace(self) -> None:
        """Should split Diamond rows on any whitespace."""
        assert split_fields("a  b\tc\n", Delimiter.WHITESPACE) == ["a", "b", "c"]

    def test_split_tab_keeps_empty_fields(self) -> None:
        """Should split BLAST rows on single tabs."""
        assert split_fields("a\t\tc\n", Delimiter.TAB) == ["a", "", "c"]

    def test_parse_hit(self) -> None:
        """Should read values from the configured columns."""
        fields = hit_line("Q1", "sp|A", "1e-20", 100, 9606).split()

        hit = parse_hit(fields, HitColumns())

        assert hit == Hit("Q1", "sp|A", 1e-20, 100.0, "9606")

    def test_parse_hit_custom_columns(self) -> None:
        """Should honour custom 1-based column positions."""
        columns = HitColumns(evalue=3, bitscore=4, taxid=5)

        hit = parse_hit(["Q1", "S1", "0.001", "55.5", "562"], columns)

        assert hit.evalue == pytest.approx(0.001)
        assert hit.bitscore == pytest.approx(55.5)
        assert hit.taxid == "562"

    def test_parse_hit_short_row_has_empty_taxid(self) -> None:
        """Should leave the taxid empty when the column is missing."""
        hit = parse_hit(["Q1", "S1", "0.001", "55.5"], HitColumns(evalue=3, bitscore=4, taxid=5))

        assert hit.taxid == ""

    def test_parse_hit_bad_number(self) -> None:
        """Should raise ValueError for a non-numeric bitscore."""
        with pytest.raises(ValueError):
            parse_hit(
                ["Q1", "S1", "0.001", "high", "562"], HitColumns(evalue=3, bitscore=4, taxid=5)
            )

    def test_columns_are_one_based(self) -> None:
        """Should reject column position 0."""
        with pytest.raises(ValueError, match="1-based"):
            HitColumns(taxid=0)

    def test_delimiter_aliases(self) -> None:
        """Should accept diamond/blast aliases."""
        assert Delimiter.parse("diamond") is Delimiter.WHITESPACE
        assert Delimiter.parse("BLAST") is Delimiter.TAB
        assert Delimiter.parse("tab") is Delimiter.TAB
        with pytest.raises(ValueError):
            Delimiter.parse("comma")

    def test_iter_hit_rows_counts_physical_lines(self, write_hits) -> None:
        """Should skip comments and blanks but keep original line numbers."""
        path = write_hits(["# header\n", "\n", hit_line("Q1", "S", 1, 1, 1)])

        rows = list(iter_hit_rows(path, HitColumns()))

        assert [n for n, _ in rows] == [3]


class TestHitAggregator:
    """Tests for HitAggregator filtering and accumulation."""

    def test_accumulates_per_taxon(self, classifier: LineageClassifier) -> None:
        """Should keep all bitscores and e-values of a taxon."""
        aggregator = HitAggregator(classifier, HgtParams())
        aggregator.ingest(Hit("Q1", "a", 1e-10, 50.0, "9606"))
        aggregator.ingest(Hit("Q1", "b", 1e-20, 80.0, "9606"))

        taxon = aggregator.evidence["Q1"][9606]
        assert taxon.best_bitscore == 80.0
        assert taxon.best_evalue == 1e-20
        assert taxon.bitscore_sum == 130.0

    def test_invalid_taxid(self, classifier: LineageClassifier) -> None:
        """Should reject non-integer taxids and keep the query."""
        aggregator = HitAggregator(classifier, HgtParams())

        reason = aggregator.ingest(Hit("Q1", "a", 1e-10, 50.0, "9606;562"), line_number=7)

        assert reason is SkipReason.INVALID_TAXID
        assert aggregator.evidence == {"Q1": {}}
        assert aggregator.stats.skipped[SkipReason.INVALID_TAXID] == 1
        assert aggregator.warnings[0].line_number == 7

    def test_unknown_parent(self, classifier: LineageClassifier) -> None:
        """Should reject taxids absent from the taxonomy."""
        aggregator = HitAggregator(classifier, HgtParams())

        assert aggregator.ingest(Hit("Q1", "a", 1e-10, 50.0, "424242")) is SkipReason.UNKNOWN_PARENT

    def test_merged_taxid_is_kept(self, classifier: LineageClassifier) -> None:
        """Should accept a retired taxid that has a redirect."""
        aggregator = HitAggregator(classifier, HgtParams())

        assert aggregator.ingest(Hit("Q1", "a", 1e-10, 50.0, "1111")) is None
        assert 1111 in aggregator.evidence["Q1"]

    def test_unassigned(self, classifier: LineageClassifier) -> None:
        """Should reject taxids below unclassified/unidentified nodes."""
        aggregator = HitAggregator(classifier, HgtParams())

        assert aggregator.ingest(Hit("Q1", "a", 1e-10, 50.0, "77133")) is SkipReason.UNASSIGNED

    def test_skipped_taxon_quiet(self, classifier: LineageClassifier) -> None:
        """Should count skipped-clade hits without a warning row unless verbose."""
        aggregator = HitAggregator(classifier, HgtParams(skip_taxid=6231))

        reason = aggregator.ingest(Hit("Q1", "a", 1e-10, 50.0, "6239"))

        assert reason is SkipReason.SKIPPED_TAXON
        assert aggregator.stats.skipped[SkipReason.SKIPPED_TAXON] == 1
        assert aggregator.warnings == []

    def test_skipped_taxon_verbose(self, classifier: LineageClassifier) -> None:
        """Should record skipped-clade hits when verbose."""
        aggregator = HitAggregator(classifier, HgtParams(skip_taxid=6231, verbose=True))

        aggregator.ingest(Hit("Q1", "a", 1e-10, 50.0, "6239"))

        assert [w.reason for w in aggregator.warnings] == [SkipReason.SKIPPED_TAXON]

    def test_malformed_taxonomy_is_per_hit(self, taxonomy_nodes: list[TaxonNode]) -> None:
        """Should skip a hit with a cyclic lineage without aborting."""
        store = TaxonomyStore(taxonomy_nodes + [TaxonNode(500, 501), TaxonNode(501, 500)])
        aggregator = HitAggregator(LineageClassifier(store), HgtParams())

        reason = aggregator.ingest(Hit("Q1", "a", 1e-10, 50.0, "500"))

        assert reason is SkipReason.MALFORMED_TAXONOMY
        assert aggregator.ingest(Hit("Q1", "b", 1e-10, 50.0, "562")) is None

    def test_malformed_row(self, classifier: LineageClassifier) -> None:
        """Should reject rows with unparsable numbers and keep the query."""
        aggregator = HitAggregator(classifier, HgtParams())
        fields = hit_line("Q3", "a", "oops", 50, 562).split()

        reason = aggregator.ingest_row(4, fields, HitColumns())

        assert reason is SkipReason.MALFORMED_ROW
        assert aggregator.evidence == {"Q3": {}}
        assert aggregator.stats.total_hits == 1


class TestAggregateHits:
    """Tests for aggregate_hits() over a file."""

    def test_aggregate_file(self, end_to_end_hits: Path, classifier: LineageClassifier) -> None:
        """Should aggregate all queries and count rejected hits."""
        aggregator = aggregate_hits(end_to_end_hits, classifier, HgtParams())

        assert set(aggregator.evidence) == {"Q1", "Q2", "Q10"}
        assert set(aggregator.evidence["Q1"]) == {9606, 562, 4932}
        assert aggregator.evidence["Q10"] == {}
        assert aggregator.stats.total_hits == 7
        assert aggregator.stats.retained_hits == 5
        assert aggregator.stats.skipped[SkipReason.INVALID_TAXID] == 1
        assert aggregator.stats.skipped[SkipReason.UNASSIGNED] == 1

    def test_tab_delimited(self, write_hits, classifier: LineageClassifier) -> None:
        """Should read BLAST-style tab-delimited files."""
        path = write_hits([hit_line("Q 1", "S", "1e-5", 40, 562)])

        aggregator = aggregate_hits(
            path, classifier, HgtParams(), HitColumns(delimiter=Delimiter.TAB)
        )

        assert "Q 1" in aggregator.evidence

    def test_gzipped_input(self, tmp_path: Path, classifier: LineageClassifier) -> None:
        """Should read gzip-compressed hits files."""
        path = tmp_path / "hits.out.gz"
        with gzip.open(path, "wt") as f:
            f.write(hit_line("Q1", "S", "1e-5", 40, 562))

        aggregator = aggregate_hits(path, classifier, HgtParams())

        assert 562 in aggregator.evidence["Q1"]

    def test_missing_file(self, tmp_path: Path, classifier: LineageClassifier) -> None:
        """Should raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            aggregate_hits(tmp_path / "missing.out", classifier, HgtParams())
