"""Command line entry point.

Subcommands:
    run     Score a taxified Diamond/BLAST hits file and select HGT candidates.
    fasta   Write one FASTA per candidate with its query and hit sequences.
    locate  Place scored genes on their scaffolds using a GFF.
"""

import argparse
import logging
import os
import sys
from pathlib import Path

import dotenv

from hgt_index import __version__
from hgt_index.hgt import (
    Delimiter,
    HgtParams,
    HitColumns,
    LocationParams,
    export_candidate_sequences,
    locate_candidates,
)
from hgt_index.pipeline import HGTPipeline, TaxonomySource, validate_taxids
from hgt_index.taxonomy import METAZOA_TAXID, LineageClassifier

TAXONOMY_PATH_ENV = "HGT_TAXONOMY_PATH"


def _add_taxonomy_args(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("taxonomy")
    group.add_argument(
        "-p",
        "--path",
        type=Path,
        default=os.environ.get(TAXONOMY_PATH_ENV),
        help=f"Taxdump directory with nodes.dmp and names.dmp (default: ${TAXONOMY_PATH_ENV})",
    )
    group.add_argument("-o", "--nodes", type=Path, help="Path to nodes.dmp")
    group.add_argument("-a", "--names", type=Path, help="Path to names.dmp")
    group.add_argument("-m", "--merged", type=Path, help="Path to merged.dmp")
    group.add_argument(
        "-n", "--nodesDB", dest="nodes_db", type=Path, help="Path to nodesDB.txt"
    )


def _add_column_args(parser: argparse.ArgumentParser, delimiter_flags: list[str]) -> None:
    group = parser.add_argument_group("hits file columns (1-based)")
    group.add_argument("--query_column", type=int, default=1, help="Query column (default: 1)")
    group.add_argument(
        "--subject_column", type=int, default=2, help="Subject column (default: 2)"
    )
    group.add_argument(
        "-e", "--evalue_column", type=int, default=11, help="E-value column (default: 11)"
    )
    group.add_argument(
        "-b", "--bitscore_column", type=int, default=12, help="Bitscore column (default: 12)"
    )
    group.add_argument(
        "-c", "--taxid_column", type=int, default=13, help="Taxid column (default: 13)"
    )
    group.add_argument(
        *delimiter_flags,
        dest="delimiter",
        type=Delimiter.parse,
        default=Delimiter.WHITESPACE,
        help="Column delimiter: whitespace/diamond or tab/blast (default: whitespace)",
    )


def _add_threshold_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-t",
        "--taxid_threshold",
        type=int,
        default=METAZOA_TAXID,
        help=f"Taxid defining the ingroup (default: {METAZOA_TAXID}, Metazoa)",
    )
    parser.add_argument(
        "-k",
        "--taxid_skip",
        type=int,
        default=None,
        help="Ignore hits to this taxid and its descendants, e.g. the phylum of the query organism",
    )


def _taxonomy_source(args: argparse.Namespace) -> TaxonomySource:
    return TaxonomySource(
        directory=args.path,
        nodes=args.nodes,
        names=args.names,
        merged=args.merged,
        nodes_db=args.nodes_db,
    )


def _columns(args: argparse.Namespace) -> HitColumns:
    return HitColumns(
        query=args.query_column,
        subject=args.subject_column,
        evalue=args.evalue_column,
        bitscore=args.bitscore_column,
        taxid=args.taxid_column,
        delimiter=args.delimiter,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hgt-index",
        description="Score protein hits for horizontal gene transfer with the HGT Index.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Score a hits file and select HGT candidates")
    run.add_argument(
        "-i", "--in", dest="hits_file", type=Path, required=True, help="Taxified hits file"
    )
    _add_taxonomy_args(run)
    _add_threshold_args(run)
    run.add_argument(
        "-s",
        "--support_threshold",
        type=float,
        default=90.0,
        help="Minimum support %% (default: 90)",
    )
    run.add_argument(
        "-l",
        "--hU_threshold",
        dest="hu_threshold",
        type=float,
        default=30.0,
        help="Minimum hU (or AI with --AI) for a candidate (default: 30)",
    )
    run.add_argument(
        "-@",
        "--AI",
        dest="use_ai",
        action="store_true",
        help="Select candidates on the Alien Index instead of hU",
    )
    _add_column_args(run, ["-d", "--delimiter"])
    run.add_argument("-x", "--prefix", type=Path, help="Output file prefix (default: hits file)")
    run.add_argument("-f", "--fasta", dest="query_fasta", type=Path, help="Query protein FASTA")
    run.add_argument(
        "-u",
        "--uniref90",
        dest="database_fasta",
        type=Path,
        help="Search database FASTA; with --fasta, also write candidate FASTA files",
    )
    run.add_argument("-v", "--verbose", action="store_true", help="Say more things")

    fasta = subparsers.add_parser("fasta", help="Write candidate query and hit sequences")
    fasta.add_argument(
        "-i", "--in", dest="candidates_file", type=Path, required=True, help="HGT candidates table"
    )
    fasta.add_argument(
        "-d", "--diamond", dest="hits_file", type=Path, required=True, help="Hits file"
    )
    fasta.add_argument(
        "-u",
        "--uniref90",
        dest="database_fasta",
        type=Path,
        required=True,
        help="Search database FASTA",
    )
    fasta.add_argument(
        "-f", "--fasta", dest="query_fasta", type=Path, required=True, help="Query protein FASTA"
    )
    _add_taxonomy_args(fasta)
    _add_threshold_args(fasta)
    _add_column_args(fasta, ["--delimiter"])
    fasta.add_argument(
        "-x",
        "--prefix",
        dest="output_dir",
        type=Path,
        help="Output directory (default: <candidates file>_fasta)",
    )
    fasta.add_argument("-v", "--verbose", action="store_true", help="Say more things")

    locate = subparsers.add_parser("locate", help="Locate scored genes on their scaffolds")
    locate.add_argument(
        "-i", "--in", dest="results_file", type=Path, required=True, help="HGT results table"
    )
    locate.add_argument(
        "-g", "--gff", dest="gff_file", type=Path, required=True, help="GFF with CDS features"
    )
    locate.add_argument(
        "-n",
        "--names",
        dest="names_file",
        type=Path,
        help="Protein FASTA, two-column query/GFF ID mapping or list of GFF IDs",
    )
    locate.add_argument("-r", "--regex", help="Pattern removed from protein IDs to match the GFF")
    locate.add_argument(
        "-u",
        "--outgrp",
        type=float,
        default=30.0,
        help="hU for strong OUTGROUP evidence (default: 30)",
    )
    locate.add_argument(
        "-U",
        "--ingrp",
        type=float,
        default=0.0,
        help="hU for strong INGROUP evidence (default: 0)",
    )
    locate.add_argument(
        "-c", "--CHS", dest="chs", type=float, default=90.0, help="Minimum support %% (default: 90)"
    )
    locate.add_argument(
        "-y",
        "--heavy",
        type=float,
        default=95.0,
        help="Outgroup %% above which a scaffold is a possible contaminant (default: 95)",
    )
    locate.add_argument(
        "-b", "--bed", action="store_true", help="Also write a BED file of HGT candidates"
    )
    locate.add_argument("-v", "--verbose", action="store_true", help="Say more things")

    return parser


def _run(args: argparse.Namespace) -> None:
    params = HgtParams(
        ingroup_taxid=args.taxid_threshold,
        skip_taxid=args.taxid_skip,
        support_threshold=args.support_threshold,
        hu_threshold=args.hu_threshold,
        use_ai=args.use_ai,
        verbose=args.verbose,
    )
    pipeline = HGTPipeline(
        hits_file=args.hits_file,
        taxonomy=_taxonomy_source(args),
        params=params,
        columns=_columns(args),
        prefix=args.prefix,
        database_fasta=args.database_fasta,
        query_fasta=args.query_fasta,
    )
    pipeline.run()


def _fasta(args: argparse.Namespace) -> None:
    params = HgtParams(ingroup_taxid=args.taxid_threshold, skip_taxid=args.taxid_skip)
    store = _taxonomy_source(args).load()
    validate_taxids(store, params)
    candidates_file = args.candidates_file
    output_dir = args.output_dir or candidates_file.with_name(f"{candidates_file.name}_fasta")
    export_candidate_sequences(
        candidates_file=candidates_file,
        hits_file=args.hits_file,
        database_fasta=args.database_fasta,
        query_fasta=args.query_fasta,
        classifier=LineageClassifier(store, params.ingroup_taxid),
        output_dir=output_dir,
        params=params,
        columns=_columns(args),
    )


def _locate(args: argparse.Namespace) -> None:
    params = LocationParams(
        outgroup_hu_threshold=args.outgrp,
        ingroup_hu_threshold=args.ingrp,
        support_threshold=args.chs,
        heavy_threshold=args.heavy,
        write_bed=args.bed,
    )
    locate_candidates(
        results_file=args.results_file,
        gff_file=args.gff_file,
        names_file=args.names_file,
        regex=args.regex,
        params=params,
    )


COMMANDS = {"run": _run, "fasta": _fasta, "locate": _locate}


def main(argv: list[str] | None = None) -> None:
    dotenv.load_dotenv()
    args = build_parser().parse_args(argv)

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logger = logging.getLogger(__name__)

    try:
        COMMANDS[args.command](args)
    except Exception as e:
        logger.error(f"{args.command} failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
