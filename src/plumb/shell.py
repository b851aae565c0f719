"""Locate the shell used to run commands."""

import logging
import os
import shutil

from plumb.exceptions import ShellNotFoundError

logger = logging.getLogger(__name__)

FALLBACK_SHELLS = ("bash", "sh")


def resolve_shell(preferred: str | None = None) -> str:
    """Return the shell to run commands with.

    Tried in order: ``preferred`` (from settings), ``$SHELL``, then bash and
    sh on ``$PATH``.
    """
    tried: list[str] = []
    if preferred:
        logger.debug("checking configured shell %s...", preferred)
        found = shutil.which(preferred)
        if found:
            logger.debug("found shell: %s", found)
            return found
        tried.append(preferred)

    logger.debug("checking $SHELL...")
    shell = os.environ.get("SHELL", "")
    if shell:
        logger.debug("found shell: %s", shell)
        return shell

    for name in FALLBACK_SHELLS:
        logger.debug("checking %s...", name)
        found = shutil.which(name)
        if found:
            logger.debug("found shell: %s", found)
            return found
        tried.append(name)

    raise ShellNotFoundError(tried)
