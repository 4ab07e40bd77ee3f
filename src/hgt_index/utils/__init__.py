"""Shared file and formatting helpers."""
