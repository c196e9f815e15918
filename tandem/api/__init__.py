"""HTTP API for chat and oversight clients."""
