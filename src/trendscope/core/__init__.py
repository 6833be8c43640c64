"""Core domain logic for TrendScope."""
