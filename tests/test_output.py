"""Tests for the output sink.

Every visible line goes through the sink.  Surfaces either subscribe to
it (the REPL) or drain it after each request (the web app).
"""

from sandsh.output import OutputLine, OutputSink, StyleHint


class TestOutputSink:
    """Verify buffering, subscribers and draining."""

    def test_append_buffers_lines(self) -> None:
        """Lines keep their style and background flag."""
        sink = OutputSink()
        sink.append("hi")
        sink.append("[Job 1 finished]", StyleHint.INFO, background=True)
        assert sink.lines == [
            OutputLine("hi"),
            OutputLine("[Job 1 finished]", StyleHint.INFO, background=True),
        ]
        assert sink.texts == ["hi", "[Job 1 finished]"]

    def test_subscribers_see_new_lines(self) -> None:
        """A subscriber is called for each line until it unsubscribes."""
        sink = OutputSink()
        seen: list[str] = []

        def collect(line: OutputLine) -> None:
            seen.append(line.text)

        sink.subscribe(collect)
        sink.append("a")
        sink.unsubscribe(collect)
        sink.append("b")
        assert seen == ["a"]

    def test_drain_empties(self) -> None:
        """``drain`` hands over the buffer and starts a new one."""
        sink = OutputSink()
        sink.append("a")
        assert [line.text for line in sink.drain()] == ["a"]
        assert sink.lines == []

    def test_clear(self) -> None:
        """``clear`` drops buffered lines."""
        sink = OutputSink()
        sink.append("a")
        sink.clear()
        assert sink.texts == []
