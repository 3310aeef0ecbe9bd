"""Teacher companion service: resilient generative calls, grade extraction and roster reconciliation."""

__version__ = "0.1.0"
