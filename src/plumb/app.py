"""Full-screen prompt_toolkit UI: command line on top, live output below."""

import logging
import sys
from enum import Enum
from typing import BinaryIO, Callable, TextIO

from prompt_toolkit.application import Application
from prompt_toolkit.buffer import Buffer
from prompt_toolkit.filters import Condition
from prompt_toolkit.input import Input, create_input
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.key_binding.key_processor import KeyPressEvent
from prompt_toolkit.layout.containers import ConditionalContainer, HSplit, VSplit, Window
from prompt_toolkit.layout.controls import BufferControl, FormattedTextControl
from prompt_toolkit.layout.layout import Layout
from prompt_toolkit.layout.processors import BeforeInput
from prompt_toolkit.output import Output, create_output
from prompt_toolkit.styles import Style

from plumb.capture import CaptureBuffer
from plumb.config import VERSION, PlumbSettings
from plumb.exceptions import TerminalError
from plumb.pipeline import PipelineController
from plumb.script import write_script
from plumb.view import OutputView

logger = logging.getLogger(__name__)

PROMPT = "| "
TTY_PATH = "/dev/tty"
HELP_MESSAGE = (
    "Enter runs  ^X exit (^C nosave)  PgUp/PgDn/Up/Dn/^</^> scroll  "
    f"^S pause (^Q end)  [plumb v{VERSION}]"
)

STYLE = Style.from_dict(
    {
        "command": "bg:ansiblue #ffffff",
        "command.current": "bg:#000080 #ffffff",
        "message": "bg:ansiblue #ffffff",
    }
)


class ExitAction(str, Enum):
    """How the user left the UI."""

    QUIT = "quit"
    SAVE = "save"


class PlumbApp:
    """Interactive pipeline editor with live preview of the command output."""

    def __init__(
        self,
        settings: PlumbSettings,
        shell: str,
        source: BinaryIO,
        input: Input | None = None,
        output: Output | None = None,
    ) -> None:
        self._settings = settings
        self._shell = shell
        self._source = source
        self._tty_files: list[TextIO] = []
        if input is None or output is None:
            input, output = self._open_terminal()

        self.message = HELP_MESSAGE
        self.command_buffer = Buffer(multiline=False, on_text_changed=self._on_text_changed)
        self._app: Application[ExitAction] = Application(
            layout=self._build_layout(),
            key_bindings=self._build_key_bindings(),
            style=STYLE,
            full_screen=True,
            input=input,
            output=output,
            before_render=self._before_render,
        )

        root = CaptureBuffer(settings.buffer_size)
        self.controller = PipelineController(
            settings=settings,
            shell=shell,
            root=root,
            on_data=self._app.invalidate,
        )
        self.view = OutputView(root)

    def _open_terminal(self) -> tuple[Input, Output]:
        """Open the controlling terminal; stdin is taken by the piped data."""
        try:
            tty_in = open(TTY_PATH)
            tty_out = open(TTY_PATH, "w")
        except OSError as e:
            raise TerminalError(f"cannot open terminal {TTY_PATH}: {e}") from e
        self._tty_files = [tty_in, tty_out]
        try:
            return create_input(stdin=tty_in), create_output(stdout=tty_out)
        except OSError as e:
            self._close_terminal()
            raise TerminalError(f"cannot initialize terminal: {e}") from e

    def _close_terminal(self) -> None:
        for f in self._tty_files:
            f.close()
        self._tty_files = []

    @property
    def application(self) -> Application[ExitAction]:
        return self._app

    def status_glyph(self) -> str:
        return self.controller.root.status_glyph()

    def command_style(self) -> str:
        if self.controller.is_current(self.command_buffer.text):
            return "class:command.current"
        return "class:command"

    def output_height(self) -> int:
        rows = self._app.output.get_size().rows
        return max(0, rows - 1 - (1 if self.message else 0))

    def output_text(self) -> str:
        self.view.buffer = self.controller.displayed
        width = self._app.output.get_size().columns
        return "\n".join(self.view.render(width, self.output_height()))

    def _on_text_changed(self, _: Buffer) -> None:
        self.message = ""

    def _before_render(self, _: Application[ExitAction]) -> None:
        self.controller.update(self.command_buffer.text)
        self.view.buffer = self.controller.displayed

    def _build_layout(self) -> Layout:
        command_line = VSplit(
            [
                Window(
                    FormattedTextControl(self.status_glyph),
                    width=1,
                    style=self.command_style,
                ),
                Window(
                    BufferControl(
                        buffer=self.command_buffer,
                        input_processors=[BeforeInput(PROMPT)],
                    ),
                    style=self.command_style,
                ),
            ],
            height=1,
        )
        output = Window(FormattedTextControl(self.output_text), wrap_lines=False)
        message = ConditionalContainer(
            Window(FormattedTextControl(lambda: self.message), height=1, style="class:message"),
            filter=Condition(lambda: bool(self.message)),
        )
        return Layout(HSplit([command_line, output, message]), focused_element=self.command_buffer)

    def _scrolled(self, action: Callable[[], None]) -> None:
        self.view.buffer = self.controller.displayed
        action()
        self.message = ""

    def _build_key_bindings(self) -> KeyBindings:
        kb = KeyBindings()

        @kb.add("enter")
        def _run(event: KeyPressEvent) -> None:
            self.controller.request_restart()

        @kb.add("c-s")
        def _pause(event: KeyPressEvent) -> None:
            self.controller.pause()

        @kb.add("c-q")
        def _resume(event: KeyPressEvent) -> None:
            self.controller.resume()

        @kb.add("up")
        def _up(event: KeyPressEvent) -> None:
            self._scrolled(self.view.line_up)

        @kb.add("down")
        def _down(event: KeyPressEvent) -> None:
            self._scrolled(self.view.line_down)

        @kb.add("pageup")
        def _page_up(event: KeyPressEvent) -> None:
            self._scrolled(lambda: self.view.page_up(self.output_height()))

        @kb.add("pagedown")
        def _page_down(event: KeyPressEvent) -> None:
            self._scrolled(lambda: self.view.page_down(self.output_height()))

        @kb.add("c-left")
        @kb.add("escape", "left")
        def _left(event: KeyPressEvent) -> None:
            self._scrolled(self.view.left)

        @kb.add("c-right")
        @kb.add("escape", "right")
        def _right(event: KeyPressEvent) -> None:
            self._scrolled(self.view.right)

        @kb.add("c-home")
        @kb.add("escape", "home")
        def _home(event: KeyPressEvent) -> None:
            self._scrolled(self.view.home_x)

        @kb.add("c-c")
        @kb.add("c-d")
        def _quit(event: KeyPressEvent) -> None:
            event.app.exit(result=ExitAction.QUIT)

        @kb.add("c-x", eager=True)
        def _save(event: KeyPressEvent) -> None:
            event.app.exit(result=ExitAction.SAVE)

        return kb

    def finish(self, action: ExitAction | None, stream: TextIO | None = None) -> None:
        """Report the final command after the UI has closed."""
        stream = stream or sys.stderr
        command = self.command_buffer.text
        print(f"plumb: v{VERSION}", file=stream)
        if action is ExitAction.SAVE:
            write_script(self._shell, command, output_path=self._settings.output_script, stream=stream)
        else:
            print(f"plumb: | {command}", file=stream)

    def run(self) -> int:
        """Capture stdin, run the UI loop, and report the result."""
        self.controller.root.start_capturing(self._source, self._app.invalidate)
        try:
            action = self._app.run()
        finally:
            self.controller.shutdown()
            self._close_terminal()
        self.finish(action)
        return 0
