"""Task-tracking relay for agent-generated news reports."""

__version__ = "0.1.0"
