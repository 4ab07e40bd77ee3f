"""Taxonomy-aware HGT Index scoring of protein similarity hits."""

__version__ = "0.1.0"
