"""
Unit tests for individual components.

This package contains unit tests for:
- Geometry mapping and hit testing
- Token selection state machine
- Interactive viewer and review session
- Extraction parsing, configuration and overlay rendering
"""
