"""Structuring of inversion and experiment results."""
