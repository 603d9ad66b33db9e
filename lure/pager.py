"""Bash syntax highlighting and a full-screen pager for reading scripts."""

from __future__ import annotations

from typing import IO, AnyStr

from prompt_toolkit.application import Application
from prompt_toolkit.application.current import get_app
from prompt_toolkit.formatted_text import ANSI
from prompt_toolkit.key_binding import KeyBindings, KeyPressEvent
from prompt_toolkit.layout import HSplit, Layout, Window
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.utils import get_cwidth
from pygments import highlight
from pygments.formatters import Terminal256Formatter
from pygments.lexers import BashLexer
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound

_FALLBACK_STYLE = "default"
_HEADER_ROWS = 3
_FOOTER_ROWS = 3


def syntax_highlight_bash(stream: IO[AnyStr], style: str) -> str:
    """Read a Bash script from ``stream`` and return it highlighted for a terminal.

    An unknown style name falls back to the default style.
    """
    data = stream.read()
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    try:
        style_cls = get_style_by_name(style)
    except ClassNotFound:
        style_cls = get_style_by_name(_FALLBACK_STYLE)
    return highlight(data, BashLexer(), Terminal256Formatter(style=style_cls))


def _box(text: str, left: str, right: str) -> list[str]:
    inner = "─" * (get_cwidth(text) + 2)
    return ["╭" + inner + "╮", f"{left} {text} {right}", "╰" + inner + "╯"]


class Pager:
    """A scrollable full-screen view of some (possibly ANSI-coloured) text."""

    def __init__(self, name: str, content: str) -> None:
        self.name = name
        self.content = content
        self._lines = content.removesuffix("\n").split("\n")
        self._top = 0

    def _body_height(self, rows: int) -> int:
        return max(1, rows - _HEADER_ROWS - _FOOTER_ROWS)

    def _max_top(self, rows: int) -> int:
        return max(0, len(self._lines) - self._body_height(rows))

    def _scroll_to(self, top: int, rows: int) -> None:
        self._top = min(max(0, top), self._max_top(rows))

    def _scroll_percent(self, rows: int) -> float:
        max_top = self._max_top(rows)
        if max_top == 0:
            return 1.0
        return min(1.0, self._top / max_top)

    def _header(self) -> str:
        width = get_app().output.get_size().columns
        box = _box(self.name, "│", "├")
        line = "─" * max(0, width - get_cwidth(box[1]))
        return "\n".join([box[0], box[1] + line, box[2]])

    def _footer(self) -> str:
        size = get_app().output.get_size()
        info = f"{self._scroll_percent(size.rows) * 100:3.0f}%"
        box = _box(info, "┤", "│")
        line = "─" * max(0, size.columns - get_cwidth(box[1]))
        pad = " " * len(line)
        return "\n".join([pad + box[0], line + box[1], pad + box[2]])

    def _body(self) -> ANSI:
        rows = get_app().output.get_size().rows
        self._scroll_to(self._top, rows)
        visible = self._lines[self._top : self._top + self._body_height(rows)]
        return ANSI("\n".join(visible))

    def _key_bindings(self) -> KeyBindings:
        kb = KeyBindings()

        def rows(event: KeyPressEvent) -> int:
            return event.app.output.get_size().rows

        @kb.add("q")
        @kb.add("escape")
        @kb.add("c-c")
        def _quit(event: KeyPressEvent) -> None:
            event.app.exit()

        @kb.add("up")
        @kb.add("k")
        def _up(event: KeyPressEvent) -> None:
            self._scroll_to(self._top - 1, rows(event))

        @kb.add("down")
        @kb.add("j")
        @kb.add("enter")
        def _down(event: KeyPressEvent) -> None:
            self._scroll_to(self._top + 1, rows(event))

        @kb.add("pageup")
        @kb.add("b")
        def _page_up(event: KeyPressEvent) -> None:
            r = rows(event)
            self._scroll_to(self._top - self._body_height(r), r)

        @kb.add("pagedown")
        @kb.add("space")
        @kb.add("f")
        def _page_down(event: KeyPressEvent) -> None:
            r = rows(event)
            self._scroll_to(self._top + self._body_height(r), r)

        @kb.add("c-u")
        @kb.add("u")
        def _half_up(event: KeyPressEvent) -> None:
            r = rows(event)
            self._scroll_to(self._top - self._body_height(r) // 2, r)

        @kb.add("c-d")
        @kb.add("d")
        def _half_down(event: KeyPressEvent) -> None:
            r = rows(event)
            self._scroll_to(self._top + self._body_height(r) // 2, r)

        @kb.add("home")
        @kb.add("g")
        def _home(event: KeyPressEvent) -> None:
            self._scroll_to(0, rows(event))

        @kb.add("end")
        @kb.add("G")
        def _end(event: KeyPressEvent) -> None:
            r = rows(event)
            self._scroll_to(self._max_top(r), r)

        return kb

    def run(self) -> None:
        """Show the pager until the user quits with q, Esc or Ctrl-C."""
        layout = Layout(
            HSplit(
                [
                    Window(FormattedTextControl(self._header), height=_HEADER_ROWS),
                    Window(FormattedTextControl(self._body), wrap_lines=True),
                    Window(FormattedTextControl(self._footer), height=_FOOTER_ROWS),
                ]
            )
        )
        app: Application[None] = Application(
            layout=layout,
            key_bindings=self._key_bindings(),
            full_screen=True,
        )
        app.run()