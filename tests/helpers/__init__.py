"""
packsource - Test Helpers

Provides utilities for testing:
- Fake package source
- Fake clock
- Fixture builders
- Assertions
"""
