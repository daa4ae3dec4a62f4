"""Shared utilities: retry, logging, deduplication, timestamps."""
