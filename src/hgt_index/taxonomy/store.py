"""Immutable taxid lookup table."""

import logging
from collections.abc import Iterable
from pathlib import Path

from .loaders import load_nodes_db, load_taxdump, load_taxdump_dir
from .models import Redirects, TaxId, TaxonNode

logger = logging.getLogger(__name__)


class TaxonomyStore:
    """Parent, rank and name lookups over a taxonomy.

    Merged taxids are folded into the parent table when the store is built:
    a retired taxid resolves as a direct child of its replacement, so
    lineage walks need no knowledge of redirects.
    """

    def __init__(
        self,
        nodes: Iterable[TaxonNode],
        redirects: Redirects | None = None,
    ) -> None:
        self._parents: dict[TaxId, TaxId] = {}
        self._ranks: dict[TaxId, str] = {}
        self._names: dict[TaxId, str] = {}

        for node in nodes:
            self._parents[node.taxid] = node.parent_id
            if node.rank is not None:
                self._ranks[node.taxid] = node.rank
            if node.name is not None:
                self._names[node.taxid] = node.name

        redirects = redirects or {}
        dangling = [new for new in redirects.values() if new not in self._parents]
        if dangling:
            logger.warning(
                "%d merged taxids point to taxids missing from the nodes table (e.g. %d)",
                len(dangling),
                dangling[0],
            )
        self._parents.update(redirects)
        self._n_redirects = len(redirects)

        logger.info("Nodes parsed: %s", f"{len(self._parents):,}")

    @classmethod
    def from_taxdump(
        cls,
        nodes_file: Path,
        names_file: Path,
        merged_file: Path | None = None,
    ) -> "TaxonomyStore":
        """Build a store from explicit ``nodes.dmp``/``names.dmp``/``merged.dmp`` paths."""
        nodes, redirects = load_taxdump(nodes_file, names_file, merged_file)
        return cls(nodes, redirects)

    @classmethod
    def from_directory(cls, taxdump_dir: Path) -> "TaxonomyStore":
        """Build a store from an extracted taxdump directory."""
        nodes, redirects = load_taxdump_dir(taxdump_dir)
        return cls(nodes, redirects)

    @classmethod
    def from_nodes_db(cls, nodes_db_file: Path) -> "TaxonomyStore":
        """Build a store from a blobtools ``nodesDB.txt`` table."""
        return cls(load_nodes_db(nodes_db_file))

    def parent_of(self, taxid: TaxId) -> TaxId | None:
        """Return the parent taxid, or None if the taxid is unknown."""
        return self._parents.get(taxid)

    def rank_of(self, taxid: TaxId) -> str | None:
        return self._ranks.get(taxid)

    def name_of(self, taxid: TaxId) -> str | None:
        return self._names.get(taxid)

    def has_parent(self, taxid: TaxId) -> bool:
        """Whether the taxid resolves to a parent (directly or via a redirect)."""
        return taxid in self._parents

    @property
    def n_redirects(self) -> int:
        return self._n_redirects

    def __len__(self) -> int:
        return len(self._parents)

    def __contains__(self, taxid: object) -> bool:
        return taxid in self._parents
