"""cmdguard - a guard for destructive shell commands.

Inspects a shell command before it runs and decides whether it may
execute. Commands are matched against packs of safe and destructive
patterns, with a confidence heuristic that tells executed code apart
from text that only appears inside quotes, comments or heredocs.
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
