import logging
import time
from dataclasses import dataclass
from pathlib import Path

from hgt_index.hgt import (
    HgtParams,
    HitColumns,
    RunSummary,
    compute_hgt_candidates,
    export_candidate_sequences,
)
from hgt_index.hgt.writers import HgtOutputs
from hgt_index.taxonomy import LineageClassifier, TaxonomyStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaxonomySource:
    """Where to read the taxonomy from.

    Explicit ``nodes``/``names`` files win over ``nodes_db``, which wins
    over ``directory``.
    """

    directory: Path | None = None
    nodes: Path | None = None
    names: Path | None = None
    merged: Path | None = None
    nodes_db: Path | None = None

    def load(self) -> TaxonomyStore:
        if self.nodes is not None and self.names is not None:
            return TaxonomyStore.from_taxdump(self.nodes, self.names, self.merged)
        if self.nodes_db is not None:
            return TaxonomyStore.from_nodes_db(self.nodes_db)
        if self.directory is not None:
            return TaxonomyStore.from_directory(self.directory)
        raise ValueError(
            "No taxonomy given: set a taxdump directory, a nodesDB file, "
            "or both nodes.dmp and names.dmp"
        )


def validate_taxids(store: TaxonomyStore, params: HgtParams) -> None:
    """Check that the ingroup and skip taxids exist in the taxonomy.

    Raises:
        ValueError: If either taxid is unknown.
    """
    if params.ingroup_taxid not in store:
        raise ValueError(f"Ingroup taxid {params.ingroup_taxid} is not in the taxonomy")
    if params.skip_taxid and params.skip_taxid not in store:
        raise ValueError(f"Taxid to skip {params.skip_taxid} is not in the taxonomy")


class HGTPipeline:
    """
    Orchestrates the HGT Index scoring run.
    """

    def __init__(  # noqa: PLR0913
        self,
        hits_file: Path,
        taxonomy: TaxonomySource,
        params: HgtParams | None = None,
        columns: HitColumns | None = None,
        prefix: Path | None = None,
        database_fasta: Path | None = None,
        query_fasta: Path | None = None,
    ) -> None:
        self.hits_file = hits_file
        self.taxonomy = taxonomy
        self.params = params or HgtParams()
        self.columns = columns or HitColumns()
        self.prefix = prefix
        self.database_fasta = database_fasta
        self.query_fasta = query_fasta

        self.classifier: LineageClassifier | None = None
        self.outputs: HgtOutputs | None = None
        self.summary: RunSummary | None = None
        self.timings: dict[str, float] = {}

    def run(self) -> HgtOutputs:
        """Execute the full pipeline."""
        logger.info(f"Starting HGT scoring of {self.hits_file}")
        start_time = time.perf_counter()

        self._step_1_load_taxonomy()
        self._step_2_hgt_scoring()

        if self.database_fasta and self.query_fasta:
            self._step_final_postprocessing()

        total_elapsed = time.perf_counter() - start_time
        logger.info(f"Pipeline completed in {total_elapsed:.2f} seconds")
        self._print_timings()
        return self.outputs

    def _print_timings(self) -> None:
        """Print table of computation times."""
        print("\n" + "=" * 40)
        print(f"{'Step':<25} | {'Time (ms)':<10}")
        print("-" * 40)
        total_comp = 0.0
        for step, duration in self.timings.items():
            duration_ms = duration * 1000
            print(f"{step:<25} | {duration_ms:<10.4f}")
            total_comp += duration

        total_comp_ms = total_comp * 1000
        print("-" * 40)
        print(f"{'Total Computation':<25} | {total_comp_ms:<10.4f}")
        print("=" * 40 + "\n")

    def _step_1_load_taxonomy(self) -> None:
        """Build the taxonomy store and check the run taxids against it."""
        start = time.perf_counter()
        store = self.taxonomy.load()
        validate_taxids(store, self.params)
        self.classifier = LineageClassifier(store, self.params.ingroup_taxid)
        self.timings["Taxonomy Loading"] = time.perf_counter() - start

    def _step_2_hgt_scoring(self) -> None:
        """Classify hits, score queries and write the result tables."""
        self.outputs, self.summary, duration = compute_hgt_candidates(
            hits_file=self.hits_file,
            classifier=self.classifier,
            params=self.params,
            columns=self.columns,
            prefix=self.prefix,
        )
        self.timings["HGT Scoring"] = duration

    def _step_final_postprocessing(self) -> None:
        """Write one FASTA per candidate for downstream tree building."""
        start = time.perf_counter()
        export_candidate_sequences(
            candidates_file=self.outputs.candidates,
            hits_file=self.hits_file,
            database_fasta=self.database_fasta,
            query_fasta=self.query_fasta,
            classifier=self.classifier,
            output_dir=self.outputs.candidates.parent / "HGT_candidates_fasta",
            params=self.params,
            columns=self.columns,
        )
        self.timings["Candidate FASTA Export"] = time.perf_counter() - start
