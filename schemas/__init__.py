"""Pydantic models exchanged between stages and collaborators."""
