"""General functionality."""
