"""Two-replica sync and conflict resolution for a link organizer."""

__version__ = "0.1.0"
