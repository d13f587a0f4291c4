"""Web interface for the annotation surface."""
