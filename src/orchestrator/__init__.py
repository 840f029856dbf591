"""Orchestration of AI calls: validation, cache, budget, dispatch, call log."""
