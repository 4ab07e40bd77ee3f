"""Data classes, type definitions, and constants for taxonomy lookups."""

from dataclasses import dataclass
from enum import Enum

# Type aliases for domain clarity
TaxId = int
Redirects = dict[TaxId, TaxId]

# Reserved NCBI taxids
ROOT_TAXID: TaxId = 1
METAZOA_TAXID: TaxId = 33208
UNIDENTIFIED_TAXID: TaxId = 32644
UNCLASSIFIED_SEQUENCES_TAXID: TaxId = 12908
UNASSIGNED_TAXIDS: frozenset[TaxId] = frozenset({UNIDENTIFIED_TAXID, UNCLASSIFIED_SEQUENCES_TAXID})

# Ranks reported in the high-rank lineage string.
# NCBI renamed "superkingdom" to "domain" in 2025; both end the walk.
SUPERKINGDOM_RANKS: frozenset[str] = frozenset({"superkingdom", "domain"})
UNDEFINED_RANK_NAME = "undef"


class Category(str, Enum):
    """Placement of a taxon relative to a threshold clade.

    INGROUP: the threshold taxid is an ancestor of the taxon
    OUTGROUP: the root was reached without meeting the threshold
    UNASSIGNED: no parent, or the lineage passes an unidentified/unclassified node
    """

    INGROUP = "ingroup"
    OUTGROUP = "outgroup"
    UNASSIGNED = "unassigned"


@dataclass(frozen=True)
class TaxonNode:
    """One taxonomy record.

    Attributes:
        taxid: NCBI taxonomy identifier.
        parent_id: Taxid of the parent node (the root is its own parent).
        rank: Rank name, e.g. 'phylum' or 'no rank'.
        name: Scientific name, if known.
    """

    taxid: TaxId
    parent_id: TaxId
    rank: str | None = None
    name: str | None = None


class MalformedTaxonomyError(ValueError):
    """Raised when an ancestor walk cycles or runs into a missing parent."""

    def __init__(self, taxid: TaxId, reason: str) -> None:
        self.taxid = taxid
        self.reason = reason
        super().__init__(f"Malformed taxonomy while walking lineage of taxid {taxid}: {reason}")
