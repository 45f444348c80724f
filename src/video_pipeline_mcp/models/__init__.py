"""Pydantic models for provider calls and pipeline stage results."""
