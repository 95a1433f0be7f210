"""Outcome taxonomy, output validation and classification."""
