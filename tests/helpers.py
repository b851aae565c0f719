"""Test helpers shared across modules."""

import os
import time
from typing import BinaryIO, Callable

WAIT_TIMEOUT = 5.0


def wait_for(predicate: Callable[[], bool], timeout: float = WAIT_TIMEOUT) -> bool:
    """Poll ``predicate`` until it holds or ``timeout`` elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class PipeSource:
    """A real OS pipe: the read end feeds a buffer, tests write the other end."""

    def __init__(self) -> None:
        read_fd, self._write_fd = os.pipe()
        self.reader: BinaryIO = open(read_fd, "rb")
        self._closed = False

    def write(self, data: bytes) -> None:
        os.write(self._write_fd, data)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            os.close(self._write_fd)


class Notifications:
    """Counts on_data callbacks."""

    def __init__(self) -> None:
        self.count = 0

    def __call__(self) -> None:
        self.count += 1
