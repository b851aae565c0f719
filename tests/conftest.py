"""Shared test fixtures."""

from typing import Iterator

import pytest

from helpers import Notifications, PipeSource
from plumb.capture import CaptureBuffer
from plumb.config import PlumbSettings


@pytest.fixture
def shell() -> str:
    return "/bin/sh"


@pytest.fixture
def notify() -> Notifications:
    return Notifications()


@pytest.fixture
def pipe_source() -> Iterator[PipeSource]:
    source = PipeSource()
    yield source
    source.close()


@pytest.fixture
def live_root(pipe_source: PipeSource, notify: Notifications) -> CaptureBuffer:
    """A root buffer capturing from a pipe that stays open until the test ends."""
    return CaptureBuffer(1024).start_capturing(pipe_source.reader, notify)


@pytest.fixture
def settings() -> PlumbSettings:
    return PlumbSettings(buffer_size=1024)


@pytest.fixture
def unsafe_settings() -> PlumbSettings:
    return PlumbSettings(unsafe_mode=True, buffer_size=1024)
