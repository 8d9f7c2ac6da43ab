"""Prompt templates for Gemini extraction calls."""
