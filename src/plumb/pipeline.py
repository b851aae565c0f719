"""Reactive controller tying the edited command to the running subprocess."""

import logging
from typing import Callable

from plumb.capture import CaptureBuffer
from plumb.config import PlumbSettings
from plumb.process import ProcessHandle, start_process

logger = logging.getLogger(__name__)


class PipelineController:
    """Keeps the displayed buffer and running process in step with the command.

    The controller is driven by the UI loop: call :meth:`update` once per
    iteration with the current command text.  It is not thread-safe and must
    only be used from that loop.
    """

    def __init__(
        self,
        settings: PlumbSettings,
        shell: str,
        root: CaptureBuffer,
        on_data: Callable[[], None],
    ) -> None:
        self._settings = settings
        self._shell = shell
        self._root = root
        self._on_data = on_data
        self._process: ProcessHandle | None = None
        self._displayed = root
        self._last_command = ""
        self._restart = False
        self._paused = False

    @property
    def root(self) -> CaptureBuffer:
        return self._root

    @property
    def displayed(self) -> CaptureBuffer:
        """Buffer the viewer should render: the root, or the current output."""
        return self._displayed

    @property
    def process(self) -> ProcessHandle | None:
        return self._process

    @property
    def last_command(self) -> str:
        return self._last_command

    @property
    def unsafe_mode(self) -> bool:
        return self._settings.unsafe_mode

    @property
    def paused(self) -> bool:
        return self._paused

    def is_current(self, command: str) -> bool:
        """Whether the displayed output was produced by ``command``."""
        return command == self._last_command

    def request_restart(self) -> None:
        """Confirm the command; it is (re)started on the next update."""
        self._restart = True

    def should_restart(self, command: str) -> bool:
        if self._restart:
            return True
        return self._settings.unsafe_mode and command != self._last_command

    def update(self, command: str) -> bool:
        """Run one controller iteration; return True if the stage was restarted."""
        if not self.should_restart(command):
            return False

        if self._process is not None:
            self._process.kill()

        if command:
            logger.debug("restarting with command %r", command)
            self._process = start_process(
                self._shell,
                command,
                self._root,
                self._on_data,
                capacity=self._settings.buffer_size,
            )
            self._displayed = self._process.output
        else:
            # An empty command shows the raw input, like `cat`.
            logger.debug("command cleared, showing raw input")
            self._process = None
            self._displayed = self._root

        self._restart = False
        self._last_command = command
        return True

    def pause(self) -> None:
        """Freeze growth of the root buffer."""
        self._root.pause(True)
        self._paused = True

    def resume(self) -> None:
        """Resume the root buffer and rerun the command on the next update."""
        self._root.pause(False)
        self._paused = False
        self._restart = True

    def shutdown(self) -> None:
        """Kill the current process, if any."""
        if self._process is not None:
            self._process.kill()
