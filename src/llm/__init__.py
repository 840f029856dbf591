"""Canonical AI types and the provider adapter contract."""
