"""Taxonomy module exports."""

from .lineage import LineageClassifier
from .models import (
    METAZOA_TAXID,
    ROOT_TAXID,
    Category,
    MalformedTaxonomyError,
    TaxId,
    TaxonNode,
)
from .store import TaxonomyStore

__all__ = [
    "METAZOA_TAXID",
    "ROOT_TAXID",
    "Category",
    "LineageClassifier",
    "MalformedTaxonomyError",
    "TaxId",
    "TaxonNode",
    "TaxonomyStore",
]
