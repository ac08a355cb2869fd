"""albumsync: shared photo albums with an optimistic, periodically synced local replica."""

__version__ = "0.3.0"
