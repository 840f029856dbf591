"""Spend and call tracking: pricing, usage ledger, call log."""
