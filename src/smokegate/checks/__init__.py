"""Checks document: models, loading and variable templates."""
