"""Dashboard UI adapters."""
