"""Decision parser tests"""
import pytest

from search_agent.decision import Finish, UseTool, extract_json_block, parse
from search_agent.errors import MalformedDecision


def test_parse_plain_finish():
    """A bare JSON finish object maps to Finish"""
    decision = parse('{"action":"finish","answer":"Madrid"}')
    assert decision == Finish(answer="Madrid")


def test_parse_plain_use_tool():
    """A bare JSON use_tool object maps to UseTool with its input"""
    decision = parse('{"action":"use_tool","tool":"tavily_search","tool_input":{"query":"weather Valencia"}}')
    assert isinstance(decision, UseTool)
    assert decision.tool == "tavily_search"
    assert decision.input == {"query": "weather Valencia"}


def test_parse_recovers_object_from_surrounding_prose():
    """Prose and reasoning tags around the payload are ignored"""
    text = (
        "<think>The user wants current data, so I should search.</think>\n"
        "Here is my decision:\n"
        '{"action": "use_tool", "tool": "tavily_search", "tool_input": {"query": "Valencia weather today"}}\n'
        "Thanks!"
    )
    decision = parse(text)
    assert decision == UseTool(tool="tavily_search", input={"query": "Valencia weather today"})


def test_parse_recovers_object_inside_code_fence():
    """A fenced json block is found by the brace scanner"""
    text = '```json\n{"action":"finish","answer":"42"}\n```'
    assert parse(text) == Finish(answer="42")


def test_extract_nested_block():
    """Nested braces are balanced rather than matched first-to-first"""
    text = 'blah {"a": {"b": 1}} blah'
    assert extract_json_block(text) == '{"a": {"b": 1}}'


def test_extract_stops_at_first_balanced_block():
    """Only the first complete block is returned, not first brace to last brace"""
    text = '{"action":"finish","answer":"one"} and later {"action":"finish","answer":"two"}'
    assert extract_json_block(text) == '{"action":"finish","answer":"one"}'
    assert parse(text) == Finish(answer="one")


def test_extract_ignores_braces_inside_strings():
    """Braces inside JSON strings do not change the depth"""
    text = 'Answer: {"action":"finish","answer":"use {curly} braces like }{ this"} done'
    assert parse(text) == Finish(answer="use {curly} braces like }{ this")


def test_extract_handles_escaped_quotes():
    """Escaped quotes do not end a string early"""
    text = 'x {"action":"finish","answer":"she said \\"hi {\\" loudly"} y'
    assert parse(text) == Finish(answer='she said "hi {" loudly')


def test_extract_deep_nesting():
    """Arbitrary nesting depth is handled"""
    inner = '{"k": ' * 50 + "1" + "}" * 50
    text = f"prefix {inner} suffix"
    assert extract_json_block(text) == inner


def test_extract_returns_none_without_braces():
    assert extract_json_block("no json here") is None


def test_extract_returns_none_when_unbalanced():
    assert extract_json_block('start {"action": "finish", "answer": "x"') is None


def test_prose_only_is_malformed():
    """Text with no structured block fails"""
    with pytest.raises(MalformedDecision) as excinfo:
        parse("I think the answer is probably Madrid.")
    assert excinfo.value.reason == "no structured block present"


def test_empty_text_is_malformed():
    with pytest.raises(MalformedDecision) as excinfo:
        parse("")
    assert excinfo.value.reason == "no structured block present"


def test_invalid_block_is_malformed():
    """A detected block that is not valid JSON fails with a distinct reason"""
    with pytest.raises(MalformedDecision) as excinfo:
        parse("Here: {action: finish, answer: 'Madrid'} ok")
    assert excinfo.value.reason == "invalid content inside detected block"


def test_missing_action_is_malformed():
    with pytest.raises(MalformedDecision) as excinfo:
        parse('blah {"a": {"b": 1}} blah')
    assert excinfo.value.reason == "unrecognized or missing action"


def test_unknown_action_is_malformed():
    with pytest.raises(MalformedDecision) as excinfo:
        parse('{"action":"think","thought":"hmm"}')
    assert excinfo.value.reason == "unrecognized or missing action"


def test_non_object_document_is_malformed():
    """Valid JSON that is not an object has no action"""
    with pytest.raises(MalformedDecision) as excinfo:
        parse('["finish", "Madrid"]')
    assert excinfo.value.reason == "unrecognized or missing action"


def test_finish_without_answer_is_malformed():
    with pytest.raises(MalformedDecision):
        parse('{"action":"finish"}')


def test_use_tool_without_tool_name_is_malformed():
    with pytest.raises(MalformedDecision):
        parse('{"action":"use_tool","tool_input":{"query":"x"}}')


def test_use_tool_with_non_object_input_is_malformed():
    with pytest.raises(MalformedDecision):
        parse('{"action":"use_tool","tool":"tavily_search","tool_input":"weather"}')


def test_use_tool_without_input_defaults_to_empty():
    assert parse('{"action":"use_tool","tool":"tavily_search"}') == UseTool(tool="tavily_search", input={})


def test_malformed_keeps_raw_text():
    """The raw text is kept for logging"""
    with pytest.raises(MalformedDecision) as excinfo:
        parse("nothing structured")
    assert excinfo.value.raw_text == "nothing structured"
