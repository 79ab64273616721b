"""clipstash: clipboard history with favorites, retention and search."""

__version__ = "0.1.0"
