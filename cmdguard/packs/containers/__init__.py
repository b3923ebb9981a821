"""Container runtime packs."""
