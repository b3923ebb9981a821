"""Shared helpers: logging, regex, normalization and context sanitizing."""
