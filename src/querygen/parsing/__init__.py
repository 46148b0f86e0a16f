"""Query extraction and parsing."""
