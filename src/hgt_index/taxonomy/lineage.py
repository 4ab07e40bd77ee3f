"""Ancestor walks over the taxonomy tree.

This module places a taxid inside or outside a threshold clade by walking its
parent chain, and builds the short superkingdom/kingdom/phylum lineage string
reported for each query.
"""

import logging
import re

from .models import (
    METAZOA_TAXID,
    ROOT_TAXID,
    SUPERKINGDOM_RANKS,
    UNASSIGNED_TAXIDS,
    UNDEFINED_RANK_NAME,
    Category,
    MalformedTaxonomyError,
    TaxId,
)
from .store import TaxonomyStore

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


class LineageClassifier:
    """Classify taxids relative to a threshold taxid.

    Results are memoized per (taxid, threshold); the store is never modified.
    """

    def __init__(self, store: TaxonomyStore, ingroup_taxid: TaxId = METAZOA_TAXID) -> None:
        self.store = store
        self.ingroup_taxid = ingroup_taxid
        # A lineage longer than the table itself must contain a cycle
        self.max_steps = len(store) + 1
        self._cache: dict[tuple[TaxId, TaxId], Category] = {}

    def classify(self, taxid: TaxId, threshold: TaxId | None = None) -> Category:
        """Place ``taxid`` relative to ``threshold`` (default: the ingroup taxid).

        The walk starts at the parent of ``taxid``: a taxid is never its own
        ingroup.

        Raises:
            MalformedTaxonomyError: If the lineage cycles or reaches a taxid
                with no parent before ending.
        """
        if threshold is None:
            threshold = self.ingroup_taxid

        key = (taxid, threshold)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        category = self._walk(taxid, threshold)
        self._cache[key] = category
        return category

    def _walk(self, taxid: TaxId, threshold: TaxId) -> Category:
        parent = self.store.parent_of(taxid)
        if parent is None:
            return Category.UNASSIGNED

        for _ in range(self.max_steps):
            if parent == threshold:
                return Category.INGROUP
            if parent == ROOT_TAXID:
                return Category.OUTGROUP
            if parent in UNASSIGNED_TAXIDS:
                return Category.UNASSIGNED

            next_parent = self.store.parent_of(parent)
            if next_parent is None:
                raise MalformedTaxonomyError(taxid, f"ancestor {parent} has no parent")
            parent = next_parent

        raise MalformedTaxonomyError(taxid, f"no root reached after {self.max_steps} steps")

    def lineage_to_high_rank(self, taxid: TaxId) -> str:
        """Return 'superkingdom;kingdom;phylum' names along the lineage of ``taxid``.

        Ranks never met are reported as 'undef'; whitespace in names becomes
        underscores. The walk starts at the parent of ``taxid`` and stops at
        the superkingdom or the root.

        Raises:
            MalformedTaxonomyError: If the lineage cycles or is broken.
        """
        found: dict[str, str] = {}
        parent = self.store.parent_of(taxid)
        if parent is None:
            raise MalformedTaxonomyError(taxid, "taxid has no parent")

        for _ in range(self.max_steps):
            rank = self.store.rank_of(parent)
            name = self.store.name_of(parent) or UNDEFINED_RANK_NAME

            if rank in SUPERKINGDOM_RANKS:
                found.setdefault("superkingdom", name)
                break
            if rank in ("kingdom", "phylum"):
                found.setdefault(rank, name)
            if parent == ROOT_TAXID:
                break

            next_parent = self.store.parent_of(parent)
            if next_parent is None:
                raise MalformedTaxonomyError(taxid, f"ancestor {parent} has no parent")
            parent = next_parent
        else:
            raise MalformedTaxonomyError(taxid, f"no root reached after {self.max_steps} steps")

        lineage = ";".join(
            found.get(rank, UNDEFINED_RANK_NAME) for rank in ("superkingdom", "kingdom", "phylum")
        )
        return _WHITESPACE.sub("_", lineage)

    def describe(self, taxid: TaxId) -> str:
        """Return 'taxid (name)' for log messages."""
        return f"{taxid} ({self.store.name_of(taxid) or 'unknown'})"
