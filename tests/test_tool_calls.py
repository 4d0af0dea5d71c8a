"""
llmbridge - Tool Call Assembly Tests

Verifies:
- Fragments for one id are concatenated, not merged as JSON
- Interleaved calls are tracked independently
- Malformed arguments degrade to an empty mapping
- Finalized calls are removed and never re-emitted
"""

from llmbridge.core.models import ToolCall
from llmbridge.streaming.signals import ToolCallFragment
from llmbridge.streaming.tool_calls import ToolCallAssembler, generate_call_id, parse_arguments


# ============================================================
# Argument Parsing
# ============================================================

class TestParseArguments:
    """Test best-effort argument parsing."""

    def test_valid_object(self):
        assert parse_arguments('{"a": 1, "b": [2]}') == ({"a": 1, "b": [2]}, False)

    def test_empty_buffer_is_not_degraded(self):
        """A call without arguments is legitimate."""
        assert parse_arguments("") == ({}, False)
        assert parse_arguments("   ") == ({}, False)

    def test_truncated_json_degrades(self):
        assert parse_arguments('{"a":') == ({}, True)

    def test_non_object_json_degrades(self):
        assert parse_arguments("[1, 2]") == ({}, True)
        assert parse_arguments('"text"') == ({}, True)


class TestGenerateCallId:

    def test_format(self):
        call_id = generate_call_id()
        assert call_id.startswith("call_")
        assert len(call_id) == len("call_") + 24

    def test_unique(self):
        assert generate_call_id() != generate_call_id()


# ============================================================
# Assembler
# ============================================================

class TestToolCallAssembler:
    """Test fragment reassembly."""

    def test_fragments_concatenate_until_complete(self):
        """Fragments {"a":1, and "b":2} become one call."""
        assembler = ToolCallAssembler()

        assert assembler.add(ToolCallFragment(call_id="c1", name="calculator", arguments_delta='{"a":1,')) == []
        assert assembler.add(ToolCallFragment(call_id="c1", arguments_delta='"b":2}')) == []
        assert assembler.pending_count == 1

        finalized = assembler.add(ToolCallFragment(call_id="c1", complete=True))

        assert finalized == [ToolCall(id="c1", name="calculator", arguments={"a": 1, "b": 2})]
        assert assembler.pending_count == 0
        assert assembler.completed == finalized

    def test_index_resolves_to_first_id(self):
        """Vendors that only tag the first fragment continue by index."""
        assembler = ToolCallAssembler()
        assembler.add(ToolCallFragment(call_id="call_x", index=0, name="search", arguments_delta='{"q":'))
        assembler.add(ToolCallFragment(index=0, arguments_delta='"llm"}'))

        call = assembler.complete_index(0)

        assert call == ToolCall(id="call_x", name="search", arguments={"q": "llm"})

    def test_interleaved_calls_complete_in_any_order(self):
        assembler = ToolCallAssembler()
        assembler.add(ToolCallFragment(call_id="a", index=0, name="first", arguments_delta='{"x":'))
        assembler.add(ToolCallFragment(call_id="b", index=1, name="second", arguments_delta='{"y":'))
        assembler.add(ToolCallFragment(index=1, arguments_delta="2}"))
        assembler.add(ToolCallFragment(index=0, arguments_delta="1}"))

        second = assembler.complete("b")
        first = assembler.complete("a")

        assert second.arguments == {"y": 2}
        assert first.arguments == {"x": 1}
        assert [c.id for c in assembler.completed] == ["b", "a"]

    def test_untagged_fragment_continues_latest_call(self):
        assembler = ToolCallAssembler()
        assembler.add(ToolCallFragment(call_id="only", name="lookup", arguments_delta='{"k":'))
        assembler.add(ToolCallFragment(arguments_delta='"v"}'))

        assert assembler.complete("only").arguments == {"k": "v"}

    def test_malformed_arguments_degrade(self):
        assembler = ToolCallAssembler()
        assembler.add(ToolCallFragment(call_id="c1", name="calculator", arguments_delta='{"a":'))

        [call] = assembler.add(ToolCallFragment(call_id="c1", complete=True))

        assert call.arguments == {}
        assert assembler.degraded_count == 1

    def test_parsed_arguments_are_used_verbatim(self):
        assembler = ToolCallAssembler()

        [call] = assembler.add(ToolCallFragment(
            call_id="fc1", name="get_time", arguments={"tz": "UTC"}, complete=True,
        ))

        assert call.arguments == {"tz": "UTC"}
        assert assembler.degraded_count == 0

    def test_call_without_name_is_dropped(self):
        """Only calls with a name are ever surfaced."""
        assembler = ToolCallAssembler()
        assembler.add(ToolCallFragment(call_id="c1", arguments_delta="{}"))

        assert assembler.complete("c1") is None
        assert assembler.completed == []
        assert assembler.dropped_count == 1

    def test_finalized_call_is_never_reopened(self):
        assembler = ToolCallAssembler()
        assembler.add(ToolCallFragment(call_id="c1", name="f", arguments_delta="{}", complete=True))

        assert assembler.add(ToolCallFragment(call_id="c1", arguments_delta='{"late": 1}', complete=True)) == []
        assert assembler.pending_count == 0
        assert len(assembler.completed) == 1

    def test_finalize_pending_in_open_order(self):
        assembler = ToolCallAssembler()
        assembler.add(ToolCallFragment(call_id="a", name="one", arguments_delta='{"n": 1}'))
        assembler.add(ToolCallFragment(call_id="b", name="two"))

        finalized = assembler.finalize_pending()

        assert [(c.id, c.arguments) for c in finalized] == [("a", {"n": 1}), ("b", {})]
        assert assembler.pending_count == 0

    def test_complete_unknown_id_returns_none(self):
        assembler = ToolCallAssembler()
        assert assembler.complete("missing") is None
        assert assembler.complete_index(3) is None

    def test_completed_is_a_copy(self):
        assembler = ToolCallAssembler()
        assembler.add(ToolCallFragment(call_id="c1", name="f", complete=True))

        assembler.completed.clear()

        assert len(assembler.completed) == 1

    def test_has_calls(self):
        assembler = ToolCallAssembler()
        assert not assembler.has_calls()
        assembler.add(ToolCallFragment(call_id="c1", name="f"))
        assert assembler.has_calls()
