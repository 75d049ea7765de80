from __future__ import annotations

import pytest

from fakes import RecordingListener, RecordingSink


@pytest.fixture(scope="session")
def qapp():
    from PySide6.QtCore import QCoreApplication

    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def sink():
    return RecordingSink()
