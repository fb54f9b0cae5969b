"""Pytest configuration for tests."""

# Register fixture modules as pytest plugins
pytest_plugins = [
    "tests.fixtures.store",
    "tests.fixtures.factories",
]
