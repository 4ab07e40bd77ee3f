"""Genomic locations of HGT candidates.

Maps scored queries onto CDS coordinates from a GFF file and summarises, per
scaffold, how many genes carry strong ingroup or outgroup evidence. HGT
candidates on the same scaffold as a well-supported ingroup gene are
"linked" (and therefore unlikely to be contamination); scaffolds made almost
entirely of outgroup genes are reported as possible contaminants.
"""

import logging
import re
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path

import numpy as np
import pandas as pd
from Bio import SeqIO

from ..utils.io import natural_sort_key, open_text
from .loaders import load_results_table

logger = logging.getLogger(__name__)

FASTA_SUFFIXES = (".fa", ".faa", ".fasta", ".fa.gz", ".faa.gz", ".fasta.gz")
GFF_MIN_FIELDS = 9
CDS_FEATURE = "CDS"

LOCATION_COLUMNS = [
    "SCAFFOLD",
    "START",
    "END",
    "GENE",
    "SCORE",
    "STRAND",
    "INTRONS",
    "QUERY",
    "hU",
    "EVIDENCE",
    "TAXONOMY",
]
BED_COLUMNS = ["SCAFFOLD", "START", "END", "GENE", "SCORE", "STRAND"]

SUMMARY_COLUMNS = [
    "SCAFFOLD",
    "NUMGENES",
    "UNASSIGNED",
    "GOOD_INGRP",
    "INTERMEDIATE",
    "GOOD_OUTGRP",
    "PROPORTION_OUTGRP",
    "IS_LINKED",
]


class Evidence(IntEnum):
    """Strength of the HGT signal of one gene."""

    GOOD_INGROUP = 0
    INTERMEDIATE = 1
    GOOD_OUTGROUP = 2


@dataclass(frozen=True)
class LocationParams:
    """Thresholds for locating HGT candidates.

    Attributes:
        outgroup_hu_threshold: hU at or above which OUTGROUP evidence is strong.
        ingroup_hu_threshold: hU at or below which INGROUP evidence is strong.
        support_threshold: Minimum support (%) for strong evidence either way.
        heavy_threshold: % of strong outgroup genes above which a scaffold
            is flagged as a possible contaminant.
        write_bed: Also write a BED file of the strong outgroup genes.
    """

    outgroup_hu_threshold: float = 30.0
    ingroup_hu_threshold: float = 0.0
    support_threshold: float = 90.0
    heavy_threshold: float = 95.0
    write_bed: bool = False


@dataclass
class GeneLocation:
    """Span of all CDS features of one protein."""

    gene: str
    scaffold: str
    start: int
    end: int
    strand: str
    n_cds: int = 1

    @property
    def introns(self) -> int:
        return self.n_cds - 1


@dataclass(frozen=True)
class LocationOutputs:
    """Paths of the tables written by locate_candidates()."""

    locations: Path
    scaffold_summary: Path
    heavy: Path
    linked_genes: Path
    overall_summary: Path
    warnings: Path
    bed: Path | None = None


def parse_gff_attributes(text: str) -> dict[str, str]:
    """Parse GFF3 ('key=value;') or GTF ('key "value";') attributes."""
    attributes: dict[str, str] = {}
    for part in text.strip().split(";"):
        part = part.strip()
        if not part:
            continue
        if "=" in part:
            key, _, value = part.partition("=")
        else:
            key, _, value = part.partition(" ")
        attributes[key.strip()] = value.strip().strip('"')
    return attributes


def load_cds_locations(gff_file: Path) -> dict[str, GeneLocation]:
    """Collect CDS spans keyed by every identifier found in their attributes.

    A protein is matched through any attribute value (ID, Parent, Name,
    protein_id, transcript_id, ...), so the keys include both transcript
    and protein identifiers.

    Raises:
        FileNotFoundError: If the GFF file does not exist.
    """
    if not gff_file.exists():
        raise FileNotFoundError(f"GFF file not found: {gff_file}")

    logger.info("Parsing CDS features from '%s'", gff_file)
    locations: dict[str, GeneLocation] = {}

    with open_text(gff_file) as f:
        for line in f:
            if line.startswith("#"):
                continue
            fields = line.rstrip("\n").split("\t")
            if len(fields) < GFF_MIN_FIELDS or fields[2] != CDS_FEATURE:
                continue

            scaffold, start, end, strand = fields[0], int(fields[3]), int(fields[4]), fields[6]
            identifiers = {
                identifier
                for value in parse_gff_attributes(fields[8]).values()
                for identifier in value.split(",")
                if identifier
            }
            for identifier in identifiers:
                location = locations.get(identifier)
                if location is None:
                    locations[identifier] = GeneLocation(identifier, scaffold, start, end, strand)
                    continue
                location.start = min(location.start, start)
                location.end = max(location.end, end)
                location.n_cds += 1

    logger.info("Found CDS coordinates for %s identifiers", f"{len(locations):,}")
    return locations


def _apply_regex(identifier: str, pattern: re.Pattern | None) -> str:
    return pattern.sub("", identifier) if pattern else identifier


def load_protein_names(
    names_file: Path | None,
    result_queries: list[str],
    regex: str | None = None,
) -> tuple[list[str], dict[str, str]]:
    """Resolve which genes to locate and how result queries map onto them.

    Args:
        names_file: FASTA of proteins, a two-column mapping file
            (query ID, GFF ID), a one-column list of GFF IDs, or None to use
            the result queries themselves.
        result_queries: Query IDs of the results table.
        regex: Pattern removed from FASTA and query IDs to obtain GFF IDs.

    Returns:
        Tuple of (GFF gene IDs to locate, query ID -> GFF ID mapping).
    """
    pattern = re.compile(regex) if regex else None
    query_to_gene = {query: _apply_regex(query, pattern) for query in result_queries}

    if names_file is None:
        return list(dict.fromkeys(query_to_gene.values())), query_to_gene

    if not names_file.exists():
        raise FileNotFoundError(f"Protein names file not found: {names_file}")

    if names_file.name.endswith(FASTA_SUFFIXES):
        with open_text(names_file) as handle:
            genes = [_apply_regex(record.id, pattern) for record in SeqIO.parse(handle, "fasta")]
        logger.info("Protein names file is a FASTA (%s sequences)", f"{len(genes):,}")
        return list(dict.fromkeys(genes)), query_to_gene

    genes = []
    mapping: dict[str, str] = {}
    with open_text(names_file) as f:
        for line in f:
            fields = line.split()
            if not fields:
                continue
            if len(fields) > 1:
                mapping[fields[0]] = fields[1]
                genes.append(fields[1])
            else:
                genes.append(fields[0])

    if mapping:
        query_to_gene = {query: mapping[query] for query in result_queries if query in mapping}
    return list(dict.fromkeys(genes)), query_to_gene


def classify_evidence(results: pd.DataFrame, params: LocationParams) -> pd.Series:
    """Assign Evidence to each results row; undefined support is intermediate."""
    supported = results["SUPPORT"].fillna(-1) >= params.support_threshold
    good_outgroup = (
        (results["hU"] >= params.outgroup_hu_threshold)
        & (results["WINNING_CATEGORY"] == "OUTGROUP")
        & supported
    )
    good_ingroup = (
        (results["hU"] <= params.ingroup_hu_threshold)
        & (results["WINNING_CATEGORY"] == "INGROUP")
        & supported
    )
    evidence = np.select(
        [good_outgroup, good_ingroup],
        [int(Evidence.GOOD_OUTGROUP), int(Evidence.GOOD_INGROUP)],
        default=int(Evidence.INTERMEDIATE),
    )
    return pd.Series(evidence, index=results.index, dtype=int)


def build_locations_table(
    genes: list[str],
    cds_locations: dict[str, GeneLocation],
    results: pd.DataFrame,
    query_to_gene: dict[str, str],
) -> tuple[pd.DataFrame, list[str]]:
    """Join gene coordinates with HGT evidence.

    Returns:
        Tuple of (locations table sorted by scaffold and start, genes missing
        from the GFF).
    """
    by_gene = results.assign(GENE=results["QUERY"].map(query_to_gene)).dropna(subset=["GENE"])
    by_gene = by_gene.drop_duplicates("GENE").set_index("GENE")

    rows = []
    orphans = []
    for gene in genes:
        location = cds_locations.get(gene)
        if location is None:
            orphans.append(gene)
            continue
        row = {
            "SCAFFOLD": location.scaffold,
            "START": location.start,
            "END": location.end,
            "GENE": gene,
            "SCORE": ".",
            "STRAND": location.strand,
            "INTRONS": location.introns,
            "QUERY": None,
            "hU": np.nan,
            "EVIDENCE": pd.NA,
            "TAXONOMY": None,
        }
        if gene in by_gene.index:
            result = by_gene.loc[gene]
            row.update(
                QUERY=result["QUERY"],
                hU=result["hU"],
                EVIDENCE=int(result["EVIDENCE"]),
                TAXONOMY=result["LINEAGE"],
            )
        rows.append(row)

    if orphans:
        logger.warning("Orphans found! %d gene names not in GFF", len(orphans))

    rows.sort(key=lambda row: (natural_sort_key(row["SCAFFOLD"]), row["START"]))
    table = pd.DataFrame(rows, columns=LOCATION_COLUMNS)
    table["EVIDENCE"] = table["EVIDENCE"].astype("Int64")
    return table, orphans


def summarize_scaffolds(locations: pd.DataFrame) -> pd.DataFrame:
    """Count genes per evidence class on each scaffold."""
    if locations.empty:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)

    evidence = locations["EVIDENCE"]
    counts = locations.assign(
        UNASSIGNED=evidence.isna(),
        GOOD_INGRP=evidence.eq(Evidence.GOOD_INGROUP).fillna(False),
        INTERMEDIATE=evidence.eq(Evidence.INTERMEDIATE).fillna(False),
        GOOD_OUTGRP=evidence.eq(Evidence.GOOD_OUTGROUP).fillna(False),
    )
    summary = (
        counts.groupby("SCAFFOLD", sort=False)
        .agg(
            NUMGENES=("GENE", "size"),
            UNASSIGNED=("UNASSIGNED", "sum"),
            GOOD_INGRP=("GOOD_INGRP", "sum"),
            INTERMEDIATE=("INTERMEDIATE", "sum"),
            GOOD_OUTGRP=("GOOD_OUTGRP", "sum"),
        )
        .reset_index()
    )
    summary["PROPORTION_OUTGRP"] = (summary["GOOD_OUTGRP"] / summary["NUMGENES"] * 100).round(2)
    summary["IS_LINKED"] = ((summary["GOOD_OUTGRP"] > 0) & (summary["GOOD_INGRP"] > 0)).astype(int)
    return summary[SUMMARY_COLUMNS]


def build_location_paths(results_file: Path, write_bed: bool = False) -> LocationOutputs:
    """Derive output names by replacing 'HGT_results...' in the results file name."""
    name = results_file.name
    stem = name[: name.index("HGT_results")] if "HGT_results" in name else f"{name}."
    base = results_file.parent / stem
    return LocationOutputs(
        locations=Path(f"{base}HGT_locations.txt"),
        scaffold_summary=Path(f"{base}HGT_locations.scaffold_summary.txt"),
        heavy=Path(f"{base}HGT_locations.heavy.txt"),
        linked_genes=Path(f"{base}HGT_locations.HGT_linked.genelist.txt"),
        overall_summary=Path(f"{base}HGT_locations.overall_summary.txt"),
        warnings=Path(f"{base}HGT_locations.warnings.txt"),
        bed=Path(f"{base}HGT_locations.bed") if write_bed else None,
    )


def locate_candidates(
    results_file: Path,
    gff_file: Path,
    names_file: Path | None = None,
    regex: str | None = None,
    params: LocationParams | None = None,
) -> LocationOutputs:
    """Locate scored genes on their scaffolds and flag linked and heavy scaffolds.

    Args:
        results_file: Results table of a scoring run (all queries, not only
            candidates).
        gff_file: GFF with CDS features of the query proteins (may be gzipped).
        names_file: Optional FASTA, mapping or list of protein names.
        regex: Optional pattern removed from protein IDs to match the GFF.
        params: Evidence and contamination thresholds.

    Returns:
        Paths of the tables written next to the results file.
    """
    if params is None:
        params = LocationParams()

    outputs = build_location_paths(results_file, params.write_bed)
    logger.info(
        "Strong OUTGROUP evidence: hU >= %g; strong INGROUP evidence: hU <= %g; support >= %g%%",
        params.outgroup_hu_threshold,
        params.ingroup_hu_threshold,
        params.support_threshold,
    )

    results = load_results_table(results_file)
    results["EVIDENCE"] = classify_evidence(results, params)

    cds_locations = load_cds_locations(gff_file)
    genes, query_to_gene = load_protein_names(names_file, results["QUERY"].tolist(), regex)
    locations, orphans = build_locations_table(genes, cds_locations, results, query_to_gene)
    summary = summarize_scaffolds(locations)

    heavy = summary[summary["PROPORTION_OUTGRP"] > params.heavy_threshold]
    linked_scaffolds = set(summary.loc[summary["IS_LINKED"] == 1, "SCAFFOLD"])

    good_outgroup = locations[locations["EVIDENCE"].eq(Evidence.GOOD_OUTGROUP).fillna(False)]
    linked = good_outgroup[good_outgroup["SCAFFOLD"].isin(linked_scaffolds)]
    linked_genes = sorted(linked["QUERY"].astype(str), key=natural_sort_key)

    locations.to_csv(outputs.locations, sep="\t", index=False, na_rep="NA")
    summary.to_csv(outputs.scaffold_summary, sep="\t", index=False)
    heavy.to_csv(outputs.heavy, sep="\t", index=False)
    outputs.linked_genes.write_text(
        "".join(f"{gene}\n" for gene in linked_genes), encoding="utf-8"
    )
    outputs.warnings.write_text(
        "".join(f"{gene}\n" for gene in sorted(orphans, key=natural_sort_key)), encoding="utf-8"
    )
    if outputs.bed is not None:
        bed = good_outgroup.assign(START=good_outgroup["START"] - 1)
        bed[BED_COLUMNS].to_csv(
            outputs.bed, sep="\t", index=False, header=False
        )

    n_heavy_genes = int(heavy["NUMGENES"].sum())
    n_heavy_hgt = int(heavy["GOOD_OUTGRP"].sum())
    n_intron = int((good_outgroup["INTRONS"] > 0).sum()) if not good_outgroup.empty else 0

    report = [
        f"Results file: {results_file}",
        f"GFF file: {gff_file}",
        f"Protein ID file: {names_file}",
        f"hU threshold for strong OUTGROUP evidence: >= {params.outgroup_hu_threshold:g}",
        f"hU threshold for strong INGROUP evidence: <= {params.ingroup_hu_threshold:g}",
        f"Support threshold for strong evidence: >= {params.support_threshold:g}%",
        f"Outgroup proportion for contaminant scaffolds: > {params.heavy_threshold:g}%",
        f"Bad scaffolds: {len(heavy):,}",
        f"Genes on bad scaffolds: {n_heavy_genes:,} (total); {n_heavy_hgt:,} (HGT candidates)",
        f"HGTc with intron: {n_intron:,}",
        f"HGTc linked to ingroup gene: {len(linked_genes):,}",
    ]
    outputs.overall_summary.write_text("\n".join(report) + "\n", encoding="utf-8")
    for line in report[-4:]:
        logger.info(line)

    return outputs
