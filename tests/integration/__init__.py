"""
Integration tests for system components.

This package contains integration tests for:
- The annotation web API end to end
"""
