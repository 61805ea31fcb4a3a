"""Social network backend: sessions, follow graph, groups, chat and live events."""

__version__ = "0.1.0"
