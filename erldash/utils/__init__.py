"""Shared helpers (env flags, exceptions, logging, formatting)."""
