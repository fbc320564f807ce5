"""sqlfeed: lists database rows as documents for a search index feed."""

__version__ = "0.1.0"
