"""Shared utilities: base repository, error taxonomy, time helpers."""
