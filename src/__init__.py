"""Document workflow state machine with git-backed backup persistence."""

from docvault.version import __version__

__all__ = ["__version__"]
