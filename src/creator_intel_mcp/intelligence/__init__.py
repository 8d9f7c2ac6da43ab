"""Transcript digests, checksum gating, extraction, topic clustering and ranking."""
