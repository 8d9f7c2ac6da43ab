"""Artifact quality gates and catalog near-duplicate detection."""
