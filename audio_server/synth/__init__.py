"""Tone synthesis."""
