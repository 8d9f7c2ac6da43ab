"""Pydantic models for tool inputs, extraction schemas and results."""
