"""
Media store test suite.

This package contains:
- unit/: Component tests against a temporary SQLite database
- integration/: Repository, HTTP API and CLI tests
"""
