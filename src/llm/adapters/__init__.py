"""Vendor-specific provider adapters."""
