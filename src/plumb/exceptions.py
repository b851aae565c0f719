"""Custom exception hierarchy for plumb."""


class PlumbError(Exception):
    """Base exception for all plumb errors."""


class ConfigError(PlumbError):
    """Raised when config loading or validation fails."""


class CaptureError(PlumbError):
    """Raised when a capture buffer is misused, e.g. bound to a second source."""


class StartupError(PlumbError):
    """Raised when a precondition for the interactive session is not met."""


class ShellNotFoundError(StartupError):
    """Raised when no usable shell can be found."""

    def __init__(self, tried: list[str] | None = None) -> None:
        self.tried = tried or []
        detail = ""
        if self.tried:
            detail = f" (tried: {', '.join(self.tried)})"
        super().__init__(f"cannot find shell: $SHELL is empty, neither bash nor sh are in $PATH{detail}")


class InteractiveStdinError(StartupError):
    """Raised when standard input is a terminal instead of a pipe."""

    def __init__(self) -> None:
        super().__init__(
            "plumb requires some data piped on standard input, "
            "for example try: `echo hello world | plumb`"
        )


class TerminalError(StartupError):
    """Raised when the terminal cannot be opened for the UI."""


class ScriptWriteError(PlumbError):
    """Raised when one destination of the save-script chain fails."""

    def __init__(self, message: str, path: str = "") -> None:
        self.path = path
        super().__init__(message)
