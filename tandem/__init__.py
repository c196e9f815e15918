"""Tandem: presence and pacing coordination for paired conversations.

Two remote participants share a conversation through a document store.
This package keeps their view of each other's presence honest (heartbeats,
staleness, archival, join/leave announcements) and paces topic prompts
from message counts.
"""

__version__ = "0.1.0"
