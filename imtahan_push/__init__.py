"""Push notification delivery and Firestore housekeeping for the İmtahan+ app."""

__version__ = "1.0.0"
