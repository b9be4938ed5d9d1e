"""Canned API payloads shared across test modules."""
