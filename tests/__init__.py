"""
Test suite for the resource loader.

Test structure:
- unit/ - Unit tests (fast, isolated, HTTP mocked)
- integration/ - End-to-end tests through the public load()
- fixtures/ - Shared assets and mock helpers

Run tests:
    pytest                    # All tests
    pytest tests/unit         # Unit tests only
    pytest tests/integration  # Integration tests only
    pytest -k "caching"       # Tests matching name
"""
