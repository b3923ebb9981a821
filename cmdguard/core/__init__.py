"""Evaluation pipeline and its configuration."""
