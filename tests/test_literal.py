import pytest

from fretsync.codec.literal import find_matching_brace, parse_literal
from fretsync.errors import ConfigParseError, LiteralSyntaxError


def test_parse_data_literal():
    text = "{a: 1, 'b': [true, null, undefined], 3: -2.5, \"c d\": `tpl`, }"
    assert parse_literal(text) == {"a": 1, "b": [True, None, None], 3: -2.5, "c d": "tpl"}


def test_numbers_and_escapes():
    assert parse_literal("1e3") == 1000.0
    assert parse_literal("+5") == 5
    assert parse_literal("-.5") == -0.5
    assert parse_literal(r"'it\'s'") == "it's"
    assert parse_literal(r"'a\nbA'") == "a\nbA"


@pytest.mark.parametrize("text", [
    "{a: alert(1)}",
    "{a: 1 + 2}",
    "__import__('os')",
    "{a: `${x}`}",
    "{a: 'open",
    "{a: 1} extra",
    "{a 1}",
    "-",
])
def test_rejects_anything_but_data(text):
    with pytest.raises(LiteralSyntaxError):
        parse_literal(text)


def test_syntax_error_is_a_parse_error():
    with pytest.raises(ConfigParseError) as e:
        parse_literal("{a: b}")
    assert e.value.offset == 4


def test_deep_nesting_is_a_syntax_error():
    val = parse_literal("[" * 50 + "]" * 50)
    for _ in range(49):
        val = val[0]
    assert val == []
    with pytest.raises(LiteralSyntaxError, match="nesting"):
        parse_literal("[" * 5000 + "]" * 5000)
    with pytest.raises(ConfigParseError):
        parse_literal("{a: " * 3000 + "1" + "}" * 3000)


def test_find_matching_brace_skips_quoted():
    text = "x {a: '}'} y"
    assert find_matching_brace(text, 2) == (2, 10)
    assert find_matching_brace("{a: {b: 1}", 0) == (0, -1)
