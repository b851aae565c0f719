"""Scrollable text view over a capture buffer."""

import io

from plumb.capture import CaptureBuffer

TAB_WIDTH = 8
SCROLL_X = 8
LEFT_CLIP = "«"
RIGHT_CLIP = "»"
# Worst-case UTF-8 width of one displayed character.
MAX_CHAR_BYTES = 4


def clip_line(line: str, x: int, width: int) -> str:
    """Cut one line to the visible window starting at column ``x``."""
    line = line.expandtabs(TAB_WIDTH)
    if x > 0:
        line = LEFT_CLIP + line[x + 1 :] if line else ""
    if width > 0 and len(line) > width:
        line = line[: width - 1] + RIGHT_CLIP
    return line


def next_line(reader: io.BufferedReader, limit: int = -1) -> bytes | None:
    """Return up to ``limit`` bytes of the next line without its newline.

    The rest of an overlong line is skipped.  Returns None at end-of-stream.
    """
    line = reader.readline(limit)
    if not line:
        return None
    if line.endswith(b"\n"):
        return line[:-1]
    head = line
    while line and not line.endswith(b"\n"):
        line = reader.readline(io.DEFAULT_BUFFER_SIZE)
    return head


class OutputView:
    """Viewport onto a buffer, with vertical and horizontal scroll offsets."""

    def __init__(self, buffer: CaptureBuffer) -> None:
        self.buffer = buffer
        self.x = 0
        self.y = 0

    def render(self, width: int, height: int) -> list[str]:
        """Return at most ``height`` clipped lines starting at line ``y``.

        Lines are streamed from a snapshot reader, so only the bytes up to the
        last visible line are ever copied out of the buffer.
        """
        if height <= 0:
            return []
        limit = MAX_CHAR_BYTES * (self.x + width + 1) if width > 0 else -1
        lines: list[str] = []
        with io.BufferedReader(self.buffer.new_reader(blocking=False)) as reader:
            for _ in range(self.y):
                if next_line(reader, 1) is None:
                    return lines
            while len(lines) < height:
                raw = next_line(reader, limit)
                if raw is None:
                    break
                lines.append(clip_line(raw.decode("utf-8", errors="replace"), self.x, width))
        return lines

    def normalize_y(self) -> None:
        self.y = max(0, min(self.y, self.buffer.line_count() - 1))

    def scroll_y(self, delta: int) -> None:
        self.y += delta
        self.normalize_y()

    def scroll_x(self, delta: int) -> None:
        self.x = max(0, self.x + delta)

    def home_x(self) -> None:
        self.x = 0

    def line_up(self) -> None:
        self.scroll_y(-1)

    def line_down(self) -> None:
        self.scroll_y(1)

    def page_up(self, page: int) -> None:
        self.scroll_y(-page)

    def page_down(self, page: int) -> None:
        self.scroll_y(page)

    def left(self) -> None:
        self.scroll_x(-SCROLL_X)

    def right(self) -> None:
        self.scroll_x(SCROLL_X)
