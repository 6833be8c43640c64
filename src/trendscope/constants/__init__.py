"""Application constants."""
