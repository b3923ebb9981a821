"""Core packs: filesystem and git."""
