"""Tool catalog offered to chat models."""
