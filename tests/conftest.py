"""Shared fixtures for recording replayer tests."""

import pytest

from fakes import FakePage, RecordingReporter
from replayer.execution.clock import ManualClock


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "scenario: end-to-end behavior of a documented replay scenario"
    )


@pytest.fixture
def clock():
    """Deterministic clock starting at zero."""
    return ManualClock()


@pytest.fixture
def page():
    """Fake page already on the shop home page."""
    return FakePage("https://shop.test/")


@pytest.fixture
def reporter():
    """Reporter that records every callback."""
    return RecordingReporter()
