"""
Pytest configuration.

Builders shared with the unittest-style tests live in tests/mocks/builders.py
"""


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests that wait on worker threads (deselect with '-m \"not slow\"')"
    )
