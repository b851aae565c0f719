"""Cancellable shell subprocess wired between two capture buffers."""

import contextlib
import logging
import os
import signal
import subprocess
import threading
from enum import Enum
from typing import Callable

from plumb.capture import CHUNK_SIZE, CaptureBuffer, CaptureReader
from plumb.config import DEFAULT_BUFFER_SIZE

logger = logging.getLogger(__name__)


class ProcessState(str, Enum):
    """Lifecycle state of a process handle."""

    STARTING = "starting"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    KILLED = "killed"


TERMINAL_STATES = frozenset({ProcessState.COMPLETED, ProcessState.FAILED, ProcessState.KILLED})


def describe_exit(returncode: int) -> str | None:
    """Return advisory text for a non-clean exit, or None for exit status 0."""
    if returncode == 0:
        return None
    if returncode < 0:
        try:
            name = signal.Signals(-returncode).name
        except ValueError:
            name = str(-returncode)
        return f"signal: {name}"
    return f"exit status {returncode}"


class ProcessHandle:
    """One invocation of ``shell -c command``.

    Standard input is fed from a blocking reader over an input buffer, and
    standard output and error are merged into the handle's own output buffer.
    A handle is never reused: to run another command, start a new one.
    """

    def __init__(
        self,
        command: str,
        output: CaptureBuffer,
        stdin_reader: CaptureReader,
        on_data: Callable[[], None],
    ) -> None:
        self.command = command
        self.output = output
        self._on_data = on_data
        self._stdin_reader = stdin_reader
        self._lock = threading.Lock()
        self._state = ProcessState.STARTING
        self._cancelled = False
        self._proc: subprocess.Popen[bytes] | None = None
        self._write_fd: int | None = None
        self._waiter: threading.Thread | None = None
        self.returncode: int | None = None

    @property
    def state(self) -> ProcessState:
        with self._lock:
            return self._state

    @property
    def done(self) -> bool:
        """Whether the handle reached a terminal state."""
        return self.state in TERMINAL_STATES

    @property
    def cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc is not None else None

    def _launch(self, shell: str) -> None:
        """Spawn the child; on failure, report it through the output buffer."""
        read_fd, write_fd = os.pipe()
        self._write_fd = write_fd
        self.output.start_capturing(open(read_fd, "rb"), self._on_data)

        try:
            proc = subprocess.Popen(
                [shell, "-c", self.command],
                stdin=subprocess.PIPE,
                stdout=write_fd,
                stderr=write_fd,
                start_new_session=True,
            )
        except OSError as e:
            logger.info("failed to start %r: %s", self.command, e)
            with self._lock:
                self._state = ProcessState.FAILED
            self._stdin_reader.close()
            self._finish_output(f"plumb: {e}\n")
            return

        logger.debug("started pid %d: %s -c %r", proc.pid, shell, self.command)
        self._proc = proc
        with self._lock:
            self._state = ProcessState.RUNNING

        threading.Thread(target=self._feed_stdin, name="plumb-stdin", daemon=True).start()
        self._waiter = threading.Thread(target=self._wait, name="plumb-wait", daemon=True)
        self._waiter.start()

    def _feed_stdin(self) -> None:
        """Copy the input buffer into the child's stdin until end-of-stream."""
        assert self._proc is not None and self._proc.stdin is not None
        pipe = self._proc.stdin
        try:
            while True:
                chunk = self._stdin_reader.read(CHUNK_SIZE)
                if not chunk:
                    break
                pipe.write(chunk)
                pipe.flush()
        except (BrokenPipeError, ValueError):
            # Child exited or closed its stdin early, e.g. `head -1`.
            logger.debug("stdin closed early by pid %d", self._proc.pid)
        finally:
            with contextlib.suppress(BrokenPipeError, ValueError):
                pipe.close()
            self._stdin_reader.close()

    def _exited(self) -> bool:
        """Whether the child has exited, without reaping it."""
        assert self._proc is not None
        try:
            status = os.waitid(os.P_PID, self._proc.pid, os.WEXITED | os.WNOHANG | os.WNOWAIT)
        except ChildProcessError:
            return True
        return status is not None

    def _wait(self) -> None:
        """Wait for exit, append advisory exit text and close the write end."""
        assert self._proc is not None
        # The exited child stays a zombie until the state below is final, so
        # its pid and process group cannot be reused while kill() signals it.
        with contextlib.suppress(ChildProcessError):
            os.waitid(os.P_PID, self._proc.pid, os.WEXITED | os.WNOWAIT)
        with self._lock:
            if self._state is ProcessState.RUNNING:
                self._state = ProcessState.COMPLETED
            state = self._state
        returncode = self._proc.wait()
        self.returncode = returncode
        logger.debug("pid %d exited with %d (%s)", self._proc.pid, returncode, state.value)

        self._stdin_reader.close()
        advisory = describe_exit(returncode)
        self._finish_output(f"plumb: {advisory}\n" if advisory else "")

    def _finish_output(self, text: str) -> None:
        assert self._write_fd is not None
        try:
            if text:
                os.write(self._write_fd, text.encode())
        except OSError as e:
            logger.debug("could not write exit status: %s", e)
        finally:
            os.close(self._write_fd)

    def kill(self) -> None:
        """Cancel the process.  Idempotent, and never waits for teardown.

        The child's process group gets SIGTERM; once it exits, the waiter
        closes the output write end and the capture loop sees EOF by itself.
        A child that has already exited is left to the waiter and stays
        Completed.
        """
        with self._lock:
            if self._state is not ProcessState.RUNNING or self._exited():
                return
            assert self._proc is not None
            self._state = ProcessState.KILLED
            self._cancelled = True
            logger.debug("killing pid %d", self._proc.pid)
            try:
                os.killpg(self._proc.pid, signal.SIGTERM)
            except ProcessLookupError:
                pass
            except OSError as e:
                logger.warning("could not signal pid %d: %s", self._proc.pid, e)
        self._stdin_reader.close()

    def wait(self, timeout: float | None = None) -> ProcessState:
        """Wait for the child and its exit report; return the resulting state."""
        if self._waiter is not None:
            self._waiter.join(timeout)
        return self.state


def start_process(
    shell: str,
    command: str,
    input_buffer: CaptureBuffer,
    on_data: Callable[[], None],
    capacity: int = DEFAULT_BUFFER_SIZE,
) -> ProcessHandle:
    """Start ``shell -c command`` reading from ``input_buffer``.

    Returns immediately.  The handle's output buffer exists even if the
    launch fails, in which case it holds the error text and is complete.
    """
    handle = ProcessHandle(
        command=command,
        output=CaptureBuffer(capacity),
        stdin_reader=input_buffer.new_reader(blocking=True),
        on_data=on_data,
    )
    handle._launch(shell)
    return handle
