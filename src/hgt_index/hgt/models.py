"""Data classes, type definitions, and constants for HGT scoring."""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum

from ..taxonomy.models import METAZOA_TAXID, Category, TaxId

# Type aliases for domain clarity
QueryId = str

# Defaults of the scoring run
DEFAULT_SUPPORT_THRESHOLD: float = 90.0
DEFAULT_HU_THRESHOLD: float = 30.0

# Neutral values for a category with no hits
DEFAULT_BEST_EVALUE: float = 1.0
DEFAULT_BEST_BITSCORE: float = 0.0
EVALUE_PSEUDOCOUNT: float = 1e-200


class Delimiter(str, Enum):
    """Column delimiter of the hits file.

    WHITESPACE: any run of whitespace (Diamond output)
    TAB: single tab characters (BLAST output)
    """

    WHITESPACE = "whitespace"
    TAB = "tab"

    @classmethod
    def parse(cls, value: "str | Delimiter") -> "Delimiter":
        """Accept enum values and the 'diamond'/'blast' aliases."""
        if isinstance(value, Delimiter):
            return value
        aliases = {"diamond": cls.WHITESPACE, "blast": cls.TAB}
        key = value.strip().lower()
        if key in aliases:
            return aliases[key]
        try:
            return cls(key)
        except ValueError:
            raise ValueError(
                f"Unknown delimiter '{value}', choose one of: whitespace, tab, diamond, blast"
            ) from None


class SkipReason(str, Enum):
    """Why a hit was left out of scoring."""

    INVALID_TAXID = "InvalidTaxid"
    UNKNOWN_PARENT = "UnknownParent"
    SKIPPED_TAXON = "SkippedTaxon"
    UNASSIGNED = "Unassigned"
    MALFORMED_TAXONOMY = "MalformedTaxonomy"
    MALFORMED_ROW = "MalformedRow"


@dataclass(frozen=True)
class HitColumns:
    """1-based column positions and delimiter of the hits file."""

    query: int = 1
    subject: int = 2
    evalue: int = 11
    bitscore: int = 12
    taxid: int = 13
    delimiter: Delimiter = Delimiter.WHITESPACE

    def __post_init__(self) -> None:
        for name in ("query", "subject", "evalue", "bitscore", "taxid"):
            if getattr(self, name) < 1:
                raise ValueError(f"Column positions are 1-based, got {name}={getattr(self, name)}")


@dataclass(frozen=True)
class HgtParams:
    """Parameters for HGT classification.

    Attributes:
        ingroup_taxid: Taxid defining the ingroup clade. Defaults to Metazoa.
        skip_taxid: Hits inside this clade are ignored, typically the phylum
            of the query organism. Defaults to None (nothing skipped).
        support_threshold: Minimum Consensus Hit Support (%) of a candidate.
        hu_threshold: Minimum hU of a candidate; also the AI threshold.
        use_ai: Test AI instead of hU when selecting candidates.
        verbose: Also record hits dropped for falling in the skipped clade.
    """

    ingroup_taxid: TaxId = METAZOA_TAXID
    skip_taxid: TaxId | None = None
    support_threshold: float = DEFAULT_SUPPORT_THRESHOLD
    hu_threshold: float = DEFAULT_HU_THRESHOLD
    use_ai: bool = False
    verbose: bool = False


@dataclass(frozen=True)
class Hit:
    """One row of similarity search output; ``taxid`` is the raw token."""

    query_id: QueryId
    subject_id: str
    evalue: float
    bitscore: float
    taxid: str


@dataclass(frozen=True)
class SkippedHit:
    """A rejected hit, as written to the warnings table."""

    query_id: QueryId
    line_number: int
    taxid: str
    reason: SkipReason


@dataclass
class TaxonEvidence:
    """Bitscores and e-values of all hits of one query to one taxon."""

    bitscores: list[float] = field(default_factory=list)
    evalues: list[float] = field(default_factory=list)

    def add(self, bitscore: float, evalue: float) -> None:
        self.bitscores.append(bitscore)
        self.evalues.append(evalue)

    @property
    def best_bitscore(self) -> float:
        return max(self.bitscores)

    @property
    def best_evalue(self) -> float:
        return min(self.evalues)

    @property
    def bitscore_sum(self) -> float:
        return sum(self.bitscores)


# Mapping types
QueryEvidence = dict[TaxId, TaxonEvidence]
EvidenceMap = dict[QueryId, QueryEvidence]


@dataclass
class AggregationStats:
    """Counts of hits read and rejected during aggregation."""

    total_hits: int = 0
    skipped: Counter = field(default_factory=Counter)

    @property
    def retained_hits(self) -> int:
        return self.total_hits - sum(self.skipped.values())


@dataclass(frozen=True)
class HGTScore:
    """Evidence scores for one query.

    Attributes:
        query_id: Query sequence identifier.
        hu: HGT Index, best outgroup minus best ingroup bitscore.
        ai: Alien Index, log10 of best ingroup over best outgroup e-value.
        ingroup_best_bitscore: Best bitscore to an ingroup taxon (0 if none).
        outgroup_best_bitscore: Best bitscore to an outgroup taxon (0 if none).
        ingroup_best_evalue: Best e-value to an ingroup taxon (1 if none).
        outgroup_best_evalue: Best e-value to an outgroup taxon (1 if none).
        ingroup_bitscore_sum: Bitscore sum over all ingroup hits.
        outgroup_bitscore_sum: Bitscore sum over all outgroup hits.
        winning_category: Category with the larger bitscore sum; ties go to OUTGROUP.
        winning_taxid: Taxid with the highest bitscore sum, None without hits.
        support: Consensus Hit Support (%), None when undefined (no taxa).
        n_taxa: Number of distinct taxa hit.
        lineage: 'superkingdom;kingdom;phylum' of the winning taxid.
    """

    query_id: QueryId
    hu: float
    ai: float
    ingroup_best_bitscore: float
    outgroup_best_bitscore: float
    ingroup_best_evalue: float
    outgroup_best_evalue: float
    ingroup_bitscore_sum: float
    outgroup_bitscore_sum: float
    winning_category: Category
    winning_taxid: TaxId | None
    support: float | None
    n_taxa: int
    lineage: str

    @property
    def has_evidence(self) -> bool:
        return self.n_taxa > 0


@dataclass(frozen=True)
class CandidateDecision:
    """Whether a scored query is an HGT candidate."""

    score: HGTScore
    is_candidate: bool


@dataclass
class RunSummary:
    """Run-level tallies over all scored queries.

    Queries without retained hits are counted in ``no_evidence`` only, not in
    the per-category tallies.
    """

    total_queries: int = 0
    hu_supported: int = 0
    ai_supported: int = 0
    ingroup: int = 0
    ingroup_supported: int = 0
    outgroup: int = 0
    outgroup_supported: int = 0
    no_evidence: int = 0
    candidates: int = 0
