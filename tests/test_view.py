"""Tests for the scrollable output view."""

import io
from unittest.mock import patch

from helpers import Notifications
from plumb.capture import CaptureBuffer, CaptureReader
from plumb.view import OutputView, clip_line, next_line


def completed_buffer(data: bytes, notify: Notifications) -> CaptureBuffer:
    buf = CaptureBuffer(1024).start_capturing(io.BytesIO(data), notify)
    buf.wait_complete(timeout=5)
    return buf


class TestNextLine:
    def test_strips_newline(self) -> None:
        reader = io.BufferedReader(io.BytesIO(b"one\ntwo"))
        assert next_line(reader) == b"one"
        assert next_line(reader) == b"two"
        assert next_line(reader) is None

    def test_empty_line_is_not_eof(self) -> None:
        reader = io.BufferedReader(io.BytesIO(b"\nx\n"))
        assert next_line(reader) == b""
        assert next_line(reader) == b"x"

    def test_limit_skips_rest_of_line(self) -> None:
        reader = io.BufferedReader(io.BytesIO(b"abcdefghij\nnext\n"))
        assert next_line(reader, 3) == b"abc"
        assert next_line(reader, 3) == b"nex"
        assert next_line(reader, 3) is None


class TestClipLine:
    def test_short_line_unchanged(self) -> None:
        assert clip_line("hello", 0, 80) == "hello"

    def test_long_line_marked_on_right(self) -> None:
        assert clip_line("abcdefghij", 0, 5) == "abcd»"

    def test_scrolled_line_marked_on_left(self) -> None:
        assert clip_line("abcdefghij", 3, 80) == "«efghij"

    def test_scrolled_empty_line_stays_empty(self) -> None:
        assert clip_line("", 8, 80) == ""

    def test_expands_tabs(self) -> None:
        assert clip_line("a\tb", 0, 80) == "a       b"


class TestOutputView:
    def test_renders_from_top(self, notify: Notifications) -> None:
        view = OutputView(completed_buffer(b"one\ntwo\nthree\n", notify))
        assert view.render(80, 2) == ["one", "two"]

    def test_renders_after_scrolling(self, notify: Notifications) -> None:
        view = OutputView(completed_buffer(b"one\ntwo\nthree\n", notify))
        view.line_down()
        assert view.render(80, 2) == ["two", "three"]

    def test_zero_height_renders_nothing(self, notify: Notifications) -> None:
        view = OutputView(completed_buffer(b"one\n", notify))
        assert view.render(80, 0) == []

    def test_vertical_scroll_is_clamped(self, notify: Notifications) -> None:
        view = OutputView(completed_buffer(b"1\n2\n3", notify))
        view.page_down(100)
        assert view.y == 2
        view.line_up()
        view.page_up(100)
        assert view.y == 0

    def test_normalize_after_switching_to_shorter_buffer(self, notify: Notifications) -> None:
        view = OutputView(completed_buffer(b"1\n2\n3\n4\n5\n", notify))
        view.page_down(4)
        view.buffer = completed_buffer(b"x\n", notify)
        view.normalize_y()
        assert view.y == 1

    def test_horizontal_scroll(self, notify: Notifications) -> None:
        view = OutputView(completed_buffer(b"0123456789abcdef\n", notify))
        view.right()
        assert view.x == 8
        assert view.render(80, 1) == ["«9abcdef"]
        view.left()
        view.left()
        assert view.x == 0
        view.right()
        view.home_x()
        assert view.x == 0

    def test_invalid_utf8_is_replaced(self, notify: Notifications) -> None:
        view = OutputView(completed_buffer(b"ok \xff\n", notify))
        assert view.render(80, 1) == ["ok �"]


class TestBoundedRendering:
    def test_reads_only_visible_region(self, notify: Notifications) -> None:
        data = b"".join(b"line %d\n" % i for i in range(100_000))
        buf = CaptureBuffer(len(data)).start_capturing(io.BytesIO(data), notify)
        assert buf.wait_complete(timeout=5)
        readers = []
        real_new_reader = buf.new_reader

        def recording_reader(blocking: bool = False) -> CaptureReader:
            reader = real_new_reader(blocking)
            readers.append(reader)
            return reader

        view = OutputView(buf)
        view.y = 10
        with (
            patch.object(buf, "snapshot", side_effect=AssertionError("full copy")),
            patch.object(buf, "new_reader", side_effect=recording_reader),
        ):
            assert view.render(80, 3) == ["line 10", "line 11", "line 12"]
        (reader,) = readers
        assert reader.position < 64 * 1024 < len(data)

    def test_overlong_line_is_cut_while_reading(self, notify: Notifications) -> None:
        data = b"x" * 500_000 + b"\nend\n"
        buf = CaptureBuffer(len(data)).start_capturing(io.BytesIO(data), notify)
        assert buf.wait_complete(timeout=5)
        assert OutputView(buf).render(10, 2) == ["xxxxxxxxx»", "end"]
