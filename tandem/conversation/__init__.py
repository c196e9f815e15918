"""Conversation domain: sessions, presence records, transcripts and their store."""
