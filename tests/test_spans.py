import pytest

from polysubml.spans import Span, SpanManager, SpannedError


def test_same_range_gives_same_span():
    manager = SpanManager()
    maker = manager.add_source("let x = 1")
    assert maker.span(4, 5) == maker.span(4, 5)
    assert maker.span(4, 5) != maker.span(0, 3)


def test_spans_from_different_sources_are_distinct():
    manager = SpanManager()
    a = manager.add_source("abc").span(0, 1)
    b = manager.add_source("abc").span(0, 1)
    assert a != b
    assert a < b


def test_render_single_line_span():
    manager = SpanManager()
    span = manager.add_source("let x = 1").span(4, 5)
    err = SpannedError.with_span("Error", span)
    assert err.render(manager) == "Error\nlet x = 1\n    ^     \n"


def test_render_text_only():
    err = SpannedError()
    err.push_str("first")
    err.push_str("second")
    assert err.render(SpanManager()) == "first\nsecond\n"
    assert str(err) == "first\nsecond"


def test_render_two_spans_contains_messages_in_order():
    manager = SpanManager()
    maker = manager.add_source("let a = 1;\nlet a = 2;\n")
    err = SpannedError.with_two_spans("first msg", maker.span(15, 16), "Note: second", maker.span(4, 5))
    text = err.render(manager)
    assert text.index("first msg") < text.index("Note: second")
    assert text.count("^") == 2


def test_multi_line_span_highlights_both_ends():
    manager = SpanManager()
    span = manager.add_source("aaaa\nbbbb\ncccc\n").span(1, 12)
    lines = SpannedError.with_span("m", span).render(manager).splitlines()
    assert "aaaa" in lines
    assert lines[lines.index("aaaa") + 1].strip() == "^~~~"
    assert lines[lines.index("cccc") + 1].strip() == "~~"


def test_long_span_omits_middle_lines():
    source = "".join(f"line{i}\n" for i in range(12))
    manager = SpanManager()
    maker = manager.add_source(source)
    long_text = SpannedError.with_span("m", maker.span(0, len(source) - 2)).render(manager)
    short_text = SpannedError.with_span("m", maker.span(0, 3)).render(manager)
    assert "lines omitted" in long_text
    assert "lines omitted" not in short_text


def test_blank_context_lines_are_skipped():
    manager = SpanManager()
    span = manager.add_source("\n\nfoo\n").span(2, 3)
    text = SpannedError.with_span("m", span).render(manager)
    assert text.splitlines()[1] == "foo"


def test_insertion_inserts_text_on_line():
    manager = SpanManager()
    span = manager.add_source("f x y").span(2, 3)
    err = SpannedError()
    err.push_insert("(", span, ")")
    lines = err.render(manager).splitlines()
    assert lines[0] == "f (x) y"
    assert lines[1].count("+") == 2


def test_empty_insertion_is_skipped():
    manager = SpanManager()
    span = manager.add_source("abc").span(1, 2)
    err = SpannedError()
    err.push_insert("", span, "")
    assert err.render(manager) == ""


def test_error_can_be_raised():
    manager = SpanManager()
    span = manager.add_source("x").span(0, 1)
    with pytest.raises(SpannedError) as info:
        raise SpannedError.with_span("bad", span)
    assert info.value.render(manager).startswith("bad\n")


def test_span_is_hashable_value():
    assert {Span(1), Span(1)} == {Span(1)}