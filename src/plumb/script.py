"""Save the final command as an executable shell script."""

import logging
import os
import sys
import tempfile
from pathlib import Path
from typing import TextIO

from plumb.exceptions import ScriptWriteError

logger = logging.getLogger(__name__)

SCRIPT_MODE = 0o755
MAX_NUMBERED_SCRIPTS = 999


def script_text(shell: str, command: str) -> str:
    """Return the script body for ``command``."""
    return f"#!{shell}\n{command}\n"


def _write_fd(fd: int, path: str, text: str) -> None:
    try:
        with os.fdopen(fd, "w") as f:
            f.write(text)
        os.chmod(path, SCRIPT_MODE)
    except OSError as e:
        raise ScriptWriteError(str(e), path=path) from e


def write_to_path(path: str, text: str) -> Path:
    """Write ``text`` to ``path``, truncating any existing file."""
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, SCRIPT_MODE)
    except OSError as e:
        raise ScriptWriteError(str(e), path=path) from e
    _write_fd(fd, path, text)
    return Path(path)


def write_numbered(text: str, directory: Path = Path("."), prefix: str = "plumb") -> Path:
    """Write ``text`` to the first free ``plumbN.sh`` in ``directory``."""
    for i in range(1, MAX_NUMBERED_SCRIPTS + 1):
        path = str(directory / f"{prefix}{i}.sh")
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, SCRIPT_MODE)
        except FileExistsError:
            continue
        except OSError as e:
            raise ScriptWriteError(str(e), path=path) from e
        _write_fd(fd, path, text)
        return Path(path)
    raise ScriptWriteError(
        f"{prefix}1.sh-{prefix}{MAX_NUMBERED_SCRIPTS}.sh already exist", path=str(directory)
    )


def write_temporary(text: str, prefix: str = "plumb-") -> Path:
    """Write ``text`` to a new uniquely named file in the temp directory."""
    try:
        fd, path = tempfile.mkstemp(prefix=prefix, suffix=".sh")
    except OSError as e:
        raise ScriptWriteError(str(e), path=tempfile.gettempdir()) from e
    _write_fd(fd, path, text)
    return Path(path)


def write_script(
    shell: str,
    command: str,
    output_path: str | None = None,
    directory: Path = Path("."),
    stream: TextIO | None = None,
) -> Path | None:
    """Save ``command`` as a script, trying each destination in turn.

    The chain is: ``output_path`` if given, else the first free numbered
    ``plumbN.sh``; then a temporary file; finally the command is printed to
    ``stream`` (stderr by default).  Returns the written path, or None if
    every destination failed.
    """
    stream = stream or sys.stderr
    text = script_text(shell, command)

    try:
        if output_path:
            path = write_to_path(output_path, text)
        else:
            path = write_numbered(text, directory)
        print(f"plumb: writing {path} - OK", file=stream)
        logger.info("saved script to %s", path)
        return path
    except ScriptWriteError as e:
        print(f"plumb: writing {e.path} - error: {e}", file=stream)
        logger.warning("could not save script to %s: %s", e.path, e)

    try:
        path = write_temporary(text)
        print(f"plumb: writing {path} - OK", file=stream)
        logger.info("saved script to %s", path)
        return path
    except ScriptWriteError as e:
        print(f"plumb: writing {e.path} - error: {e}", file=stream)
        logger.warning("could not save script to %s: %s", e.path, e)

    print(f"plumb: | {command}", file=stream)
    return None
