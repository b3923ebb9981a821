"""Entry point for ``python -m cmdguard``."""

from cmdguard.cli.cli import main

if __name__ == "__main__":
    main()
