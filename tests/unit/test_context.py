"""Tests for arcshield.rules.context: line numbers, snippets, contract and function names."""

from arcshield.rules.context import (
    UNKNOWN_CONTRACT,
    SourceText,
    extract_context,
    find_contract_name,
    find_enclosing_function,
    line_number_at,
    mask_comments_and_strings,
    snippet_around,
)


def _numbered(count: int) -> str:
    return "\n".join(f"line {i}" for i in range(1, count + 1))


def test_line_number_counts_preceding_newlines():
    text = "a\nb\nc"
    assert line_number_at(text, 0) == 1
    assert line_number_at(text, 2) == 2
    assert line_number_at(text, 4) == 3


def test_snippet_uses_bounded_window_in_the_middle():
    lines = _numbered(20).split("\n")
    assert snippet_around(lines, 10) == "\n".join(f"line {i}" for i in range(9, 14))


def test_snippet_is_truncated_at_file_boundaries():
    lines = _numbered(3).split("\n")
    assert snippet_around(lines, 1) == "line 1\nline 2\nline 3"
    assert snippet_around(lines, 3) == "line 2\nline 3"
    assert snippet_around([], 1) == ""


def test_contract_name_is_first_declaration_in_file():
    text = "contract First {\n}\ncontract Second {\n  uint x = block.prevrandao;\n}\n"
    offset = text.index("block.prevrandao")
    # Known limitation: the first contract in the file wins.
    assert extract_context(text, offset).contract_name == "First"


def test_contract_name_falls_back_to_unknown():
    assert find_contract_name("library Math { }") == UNKNOWN_CONTRACT


def test_function_name_survives_nested_blocks():
    text = (
        "contract C {\n"
        "  function roll() external {\n"
        "    if (a) { b(); }\n"
        "    uint x = block.prevrandao;\n"
        "  }\n"
        "}\n"
    )
    assert find_enclosing_function(text, text.index("block.prevrandao")) == "roll"


def test_function_name_absent_when_previous_function_closed():
    text = "contract C {\n  function f() public { x(); }\n  uint y = block.prevrandao;\n}\n"
    assert find_enclosing_function(text, text.index("block.prevrandao")) is None


def test_nearest_open_function_wins():
    text = (
        "contract C {\n"
        "  function a() public { one(); }\n"
        "  function b() public {\n"
        "    block.prevrandao;\n"
        "  }\n"
        "}\n"
    )
    assert find_enclosing_function(text, text.index("block.prevrandao")) == "b"


def test_abstract_declarations_are_not_headers():
    text = (
        "interface I {\n"
        "  function g() external;\n"
        "}\n"
        "contract C {\n"
        "  function f() public {\n"
        "    block.prevrandao;\n"
        "  }\n"
        "}\n"
    )
    assert find_enclosing_function(text, text.index("block.prevrandao")) == "f"


def test_brace_inside_string_literal_is_ignored():
    text = 'contract C {\n  function f() public {\n    string memory s = "}";\n    block.prevrandao;\n  }\n}\n'
    assert find_enclosing_function(text, text.index("block.prevrandao")) == "f"


def test_function_word_in_line_comment_is_not_a_header():
    text = (
        "contract Lottery {\n"
        "  // this function returns a seed\n"
        "  function roll() public {\n"
        "    uint a = block.prevrandao;\n"
        "  }\n"
        "}\n"
    )
    offset = text.index("block.prevrandao")
    assert find_enclosing_function(text, offset) == "roll"
    assert SourceText(text).context_at(offset).function_name == "roll"


def test_block_comment_braces_do_not_close_function():
    text = (
        "contract C {\n"
        "  function f() public {\n"
        "    /* } function g() { */\n"
        "    block.prevrandao;\n"
        "  }\n"
        "}\n"
    )
    assert find_enclosing_function(text, text.index("block.prevrandao")) == "f"


def test_unterminated_block_comment_is_best_effort():
    text = "contract C {\n  function f() public {\n    /* never closed\n    block.prevrandao;\n"
    assert find_enclosing_function(text, text.index("block.prevrandao")) == "f"


def test_masking_keeps_offsets_and_newlines():
    text = 'a = "x // y"; // note {\n/* b\n} */ c\n'
    masked = mask_comments_and_strings(text)
    assert len(masked) == len(text)
    assert masked.count("\n") == text.count("\n")
    assert masked.startswith('a = "      ";')
    assert "{" not in masked and "}" not in masked
    assert masked.rstrip().endswith("c")


def test_match_before_any_function_has_no_function_name():
    text = "contract C {\n  uint seed = block.prevrandao;\n}\n"
    assert find_enclosing_function(text, text.index("block.prevrandao")) is None


def test_source_text_reuses_index_across_matches():
    text = (
        "contract Lottery {\n"
        "  function roll() public {\n"
        "    uint a = block.prevrandao;\n"
        "  }\n"
        "  function pick() public {\n"
        "    uint b = block.prevrandao;\n"
        "  }\n"
        "}\n"
    )
    source = SourceText(text)
    first = source.context_at(text.index("block.prevrandao"))
    second = source.context_at(text.rindex("block.prevrandao"))
    assert (first.line_number, first.function_name) == (3, "roll")
    assert (second.line_number, second.function_name) == (6, "pick")
    assert first.contract_name == second.contract_name == "Lottery"
