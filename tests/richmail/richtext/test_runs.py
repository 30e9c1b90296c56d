from richmail.richtext.models import InlineStyle, TextAttributes
from richmail.richtext.runs import SpanKind, StyleSpan, coalesce_runs, flatten_spans, split_lines

RED = (65535, 0, 0)


def span(start, end, depth=1, fallback=TextAttributes(), **attributes):
    return StyleSpan(start, end, SpanKind.BOLD, TextAttributes(**attributes), fallback, depth)


class TestFlattenSpans:
    def test_disjoint_spans(self):
        runs = flatten_spans([span(0, 3, font="A"), span(5, 8, font="B")])
        assert runs == [InlineStyle(start=0, end=3, font="A"), InlineStyle(start=5, end=8, font="B")]

    def test_partial_overlap_splits_into_sub_runs(self):
        runs = flatten_spans([span(0, 6, depth=1, font="A"), span(3, 9, depth=2, color=RED)])
        assert runs == [
            InlineStyle(start=0, end=3, font="A"),
            InlineStyle(start=3, end=6, font="A", color=RED),
            InlineStyle(start=6, end=9, color=RED),
        ]

    def test_inner_span_wins(self):
        runs = flatten_spans([span(0, 10, depth=1, font="Outer"), span(2, 4, depth=2, font="Inner")])
        assert [(run.start, run.end, run.font) for run in runs] == [(0, 2, "Outer"), (2, 4, "Inner"), (4, 10, "Outer")]

    def test_depth_orders_layers_not_list_order(self):
        runs = flatten_spans([span(2, 4, depth=2, font="Inner"), span(0, 10, depth=1, font="Outer")])
        assert runs[1] == InlineStyle(start=2, end=4, font="Inner")

    def test_missing_values_come_from_innermost_fallback(self):
        fallback = TextAttributes(font="Fallback", size=11, color=(1, 2, 3))
        runs = flatten_spans([span(0, 4, depth=1, font="Outer"), span(0, 4, depth=2, fallback=fallback, color=RED)])
        assert runs == [InlineStyle(start=0, end=4, font="Outer", size=11, color=RED)]

    def test_touching_equal_runs_coalesce(self):
        runs = flatten_spans([span(0, 3, font="A"), span(3, 6, font="A")])
        assert runs == [InlineStyle(start=0, end=6, font="A")]

    def test_zero_length_spans_are_dropped(self):
        assert flatten_spans([span(2, 2, font="A")]) == []

    def test_spans_without_attributes_are_dropped(self):
        assert flatten_spans([span(0, 5)]) == []

    def test_custom_resolver(self):
        runs = flatten_spans([span(0, 2, font="A")], resolve=lambda active: TextAttributes(size=len(active)))
        assert runs == [InlineStyle(start=0, end=2, size=1)]


class TestCoalesceRuns:
    def test_gap_prevents_merge(self):
        runs = [InlineStyle(start=0, end=2, font="A"), InlineStyle(start=3, end=5, font="A")]
        assert coalesce_runs(runs) == runs


class TestSplitLines:
    def test_spans_are_clipped_per_line(self):
        lines = split_lines("ab\ncd", [span(1, 4, font="A")])
        assert [line for line, _ in lines] == ["ab", "cd"]
        assert [(s.start, s.end) for s in lines[0][1]] == [(1, 2)]
        assert [(s.start, s.end) for s in lines[1][1]] == [(0, 1)]

    def test_span_outside_line_is_skipped(self):
        lines = split_lines("ab\ncd", [span(0, 2, font="A")])
        assert lines[1][1] == []

    def test_clipped(self):
        assert span(2, 6).clipped(4, 10) == span(0, 2)
        assert span(2, 3).clipped(4, 10) is None
