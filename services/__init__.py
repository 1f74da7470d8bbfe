"""Collaborator interfaces and their in-process implementations."""
