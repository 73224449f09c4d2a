"""Agreement Engine - discount validation and incubator agreement generation."""
__version__ = "1.0.0"
