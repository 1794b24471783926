"""Session history retrieval and reporting for a hosted UC directory."""

__version__ = "0.1.0"
