"""Incremental code generator for queries embedded in source files."""

__version__ = "0.1.0"
