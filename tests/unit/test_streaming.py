"""Unit tests for streaming primitives."""

import logging

from routerflow.streaming import (
    MAX_TOOL_CALLS,
    ToolCall,
    ToolCallAccumulator,
    ToolCallFragment,
    Usage,
    UsageTracker,
)


class TestToolCallAccumulator:
    def test_single_tool_call_single_fragment(self):
        acc = ToolCallAccumulator()
        acc.merge(0, call_id="c1", name="echo", arguments='{"text": "hi"}')
        result = acc.finalize()

        assert result == [ToolCall(id="c1", name="echo", args={"text": "hi"})]

    def test_arguments_accumulated_across_fragments(self):
        acc = ToolCallAccumulator()
        acc.merge(0, call_id="c1", name="echo", arguments='{"te')
        acc.merge(0, arguments='xt": "hi"}')
        result = acc.finalize()

        assert result[0].args == {"text": "hi"}

    def test_multiple_interleaved_tool_calls(self):
        acc = ToolCallAccumulator()
        acc.merge(0, call_id="c1", name="foo", arguments='{"a":')
        acc.merge(1, call_id="c2", name="bar", arguments='{"b":')
        acc.merge(0, arguments=' 1}')
        acc.merge(1, arguments=' 2}')
        result = acc.finalize()

        assert result == [
            ToolCall(id="c1", name="foo", args={"a": 1}),
            ToolCall(id="c2", name="bar", args={"b": 2}),
        ]

    def test_out_of_order_positions(self):
        """Position 1 arrives before position 0; both are populated."""
        acc = ToolCallAccumulator()
        acc.merge(1, call_id="c2", name="second", arguments="{}")
        acc.merge(0, call_id="c1", name="first", arguments='{"x": 1}')
        result = acc.finalize()

        assert len(result) >= 2
        assert result[0] == ToolCall(id="c1", name="first", args={"x": 1})
        assert result[1] == ToolCall(id="c2", name="second", args={})

    def test_gaps_filled_with_empty_fragments(self):
        acc = ToolCallAccumulator()
        acc.merge(3, call_id="c4", name="d")

        assert len(acc) == 4
        assert [tc.name for tc in acc.finalize()] == ["d"]

    def test_incomplete_fragments_dropped(self):
        acc = ToolCallAccumulator()
        acc.merge(0, call_id="c1", arguments="{}")
        acc.merge(1, name="no_id", arguments="{}")
        acc.merge(2, call_id="c3", name="ok", arguments="{}")

        assert acc.finalize() == [ToolCall(id="c3", name="ok", args={})]

    def test_malformed_arguments_become_none(self):
        acc = ToolCallAccumulator()
        acc.merge(0, call_id="c1", name="broken", arguments='{"oops"')

        assert acc.finalize() == [ToolCall(id="c1", name="broken", args=None)]

    def test_empty_arguments_become_none(self):
        acc = ToolCallAccumulator()
        acc.merge(0, call_id="c1", name="noargs")

        assert acc.finalize()[0].args is None

    def test_id_and_name_last_write_wins(self):
        acc = ToolCallAccumulator()
        acc.merge(0, call_id="old", name="old_name")
        acc.merge(0, call_id="new", name="new_name", arguments="[]")

        assert acc.finalize() == [ToolCall(id="new", name="new_name", args=[])]

    def test_positions_beyond_limit_ignored(self, caplog):
        acc = ToolCallAccumulator()
        with caplog.at_level(logging.WARNING, logger="routerflow.streaming"):
            acc.merge(10_000_000, call_id="c1", name="huge", arguments="{}")
            acc.merge(MAX_TOOL_CALLS, call_id="c2", name="edge", arguments="{}")
        acc.merge(MAX_TOOL_CALLS - 1, call_id="c3", name="last", arguments="{}")

        assert len(acc) == MAX_TOOL_CALLS
        assert acc.finalize() == [ToolCall(id="c3", name="last", args={})]
        assert any("Ignoring tool call fragment" in r.message for r in caplog.records)

    def test_empty_accumulator(self):
        acc = ToolCallAccumulator()
        assert len(acc) == 0
        assert acc.finalize() == []


class TestToolCallFragment:
    def test_requires_id_and_name(self):
        assert ToolCallFragment(name="x").to_tool_call() is None
        assert ToolCallFragment(call_id="x").to_tool_call() is None

    def test_scalar_arguments(self):
        fragment = ToolCallFragment(call_id="c", name="n", arguments=["4", "2"])
        assert fragment.to_tool_call().args == 42


class TestUsageTracker:
    def test_starts_empty(self):
        assert UsageTracker().current() is None

    def test_last_snapshot_wins(self):
        tracker = UsageTracker()
        tracker.observe(Usage(5, 5, 10))
        tracker.observe(Usage(7, 7, 14))

        assert tracker.current() == Usage(7, 7, 14)
