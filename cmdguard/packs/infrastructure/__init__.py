"""Infrastructure-as-code packs."""
