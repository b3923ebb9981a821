"""Database packs."""
