"""Versioned migration steps, one module per schema version."""
