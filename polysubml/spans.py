"""Source spans and error messages that quote the source they point at."""

from __future__ import annotations

import re
from bisect import bisect_right
from dataclasses import dataclass
from itertools import groupby

CONTEXT_LINES = 2


@dataclass(frozen=True, order=True)
class Span:
    """Handle to a region of source text registered with a SpanManager."""

    index: int


class _Source:
    """A source text with the start offset of every line precomputed."""

    def __init__(self, text: str) -> None:
        # A trailing newline keeps line display uniform.
        if not text.endswith("\n"):
            text += "\n"
        self.text = text
        offsets = [0]
        offsets.extend(m.end() for m in re.finditer("\n", text[:-1]))
        offsets.append(len(text))
        self.line_offsets = offsets

    def lineno(self, off: int) -> int:
        return bisect_right(self.line_offsets, off) - 1

    def pos(self, off: int) -> tuple[int, int]:
        lineno = self.lineno(off)
        return lineno, off - self.line_offsets[lineno]

    def line(self, lineno: int) -> str:
        if lineno + 1 >= len(self.line_offsets):
            return "\n"
        return self.text[self.line_offsets[lineno] : self.line_offsets[lineno + 1]]

    def nonempty_lines(self, y1: int, y2: int) -> str:
        lines = (self.line(y) for y in range(y1, y2))
        return "".join(line for line in lines if line.strip())

    def middle_context(self, y1: int, y2: int) -> str:
        y1 += 1
        if y2 >= y1 + 2 + CONTEXT_LINES * 2:
            skipped = y2 - y1 - CONTEXT_LINES * 2
            return (
                self.nonempty_lines(y1, y1 + CONTEXT_LINES)
                + f"... {skipped} lines omitted\n"
                + self.nonempty_lines(y2 - CONTEXT_LINES, y2)
            )
        return self.nonempty_lines(y1, y2)


def _highlight_line(line: str, parts: list[tuple[str, int, int]]) -> str:
    out = [line]
    pos = 0
    for marker, start, end in parts:
        start = max(start, pos)
        if start >= end:
            continue
        out.append(" " * (start - pos))
        out.append(marker * (end - start))
        pos = end
    out.append(" " * max(len(line) - pos, 0))
    out.append("\n")
    return "".join(out)


class SpanManager:
    """Owns every registered source and every span created for them."""

    def __init__(self) -> None:
        self._sources: list[_Source] = []
        self._spans: list[tuple[int, int, int]] = []

    def add_source(self, source: str) -> SpanMaker:
        """Register a source text and return a maker for spans within it."""
        self._sources.append(_Source(source))
        return SpanMaker(self, len(self._sources) - 1)

    def _new_span(self, source_ind: int, l: int, r: int) -> Span:
        self._spans.append((source_ind, l, r))
        return Span(len(self._spans) - 1)

    def _locate(self, span: Span) -> tuple[_Source, int, int]:
        source_ind, l, r = self._spans[span.index]
        return self._sources[source_ind], l, r

    def _render_span(self, span: Span) -> str:
        source, l, r = self._locate(span)
        y1, x1 = source.pos(l)
        y2, x2 = source.pos(r)

        out = [source.nonempty_lines(max(y1 - CONTEXT_LINES, 0), y1)]
        line = source.line(y1)
        end = x2 if y1 == y2 else len(line)
        out.append(_highlight_line(line, [("^", x1, x1 + 1), ("~", x1 + 1, end)]))

        out.append(source.middle_context(y1, y2))
        if y2 > y1:
            out.append(_highlight_line(source.line(y2), [("~", 0, x2)]))

        out.append(source.nonempty_lines(y2 + 1, y2 + 1 + CONTEXT_LINES))
        return "".join(out)

    def _render_insertion(self, before: str, span: Span, after: str) -> str:
        source, l, r = self._locate(span)
        insertions = [(text, source.pos(off)) for text, off in ((before, l), (after, r)) if text]

        out = []
        prev = None
        for y, chunk in groupby(insertions, key=lambda item: item[1][0]):
            if prev is None:
                out.append(source.nonempty_lines(max(y - CONTEXT_LINES, 0), y))
            else:
                out.append(source.middle_context(prev, y))
            prev = y

            line = source.line(y)
            inserted = 0
            highlights = []
            for text, (_, x) in chunk:
                x += inserted
                line = line[:x] + text + line[x:]
                inserted += len(text)
                highlights.append(("+", x, x + len(text)))
            out.append(_highlight_line(line, highlights))

        if prev is not None:
            out.append(source.nonempty_lines(prev + 1, prev + 1 + CONTEXT_LINES))
        return "".join(out)


class SpanMaker:
    """Creates spans within one source, reusing a span for a repeated range."""

    def __init__(self, parent: SpanManager, source_ind: int) -> None:
        self._parent = parent
        self._source_ind = source_ind
        self._pool: dict[tuple[int, int], Span] = {}

    def span(self, l: int, r: int) -> Span:
        """Return the span covering offsets l to r of this source."""
        key = (l, r)
        if key not in self._pool:
            self._pool[key] = self._parent._new_span(self._source_ind, l, r)
        return self._pool[key]


@dataclass(frozen=True)
class _Text:
    text: str


@dataclass(frozen=True)
class _At:
    span: Span


@dataclass(frozen=True)
class _Insert:
    before: str
    span: Span
    after: str


class SpannedError(Exception):
    """An error made of messages and highlighted source locations."""

    def __init__(self) -> None:
        super().__init__()
        self.items: list[_Text | _At | _Insert] = []

    def push_str(self, s: str) -> None:
        self.items.append(_Text(s))

    def push_span(self, span: Span) -> None:
        self.items.append(_At(span))

    def push_insert(self, before: str, span: Span, after: str) -> None:
        self.items.append(_Insert(before, span, after))

    @classmethod
    def with_span(cls, message: str, span: Span) -> SpannedError:
        err = cls()
        err.push_str(message)
        err.push_span(span)
        return err

    @classmethod
    def with_two_spans(cls, message1: str, span1: Span, message2: str, span2: Span) -> SpannedError:
        err = cls.with_span(message1, span1)
        err.push_str(message2)
        err.push_span(span2)
        return err

    def render(self, manager: SpanManager) -> str:
        """Format the error, quoting the source of each span."""
        out = []
        for item in self.items:
            if isinstance(item, _Text):
                out.append(item.text + "\n")
            elif isinstance(item, _At):
                out.append(manager._render_span(item.span))
            else:
                out.append(manager._render_insertion(item.before, item.span, item.after))
        return "".join(out)

    def __str__(self) -> str:
        return "\n".join(item.text for item in self.items if isinstance(item, _Text))