"""ragdesk: hybrid retrieval over local PDF, text and markdown documents."""

__version__ = "0.1.0"
