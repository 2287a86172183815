"""HTTP API for the study search service."""
