"""
Tests for the expression parser.
"""

import pytest

from ftl.expressions.model import (
    AccessNode,
    ArrayNode,
    BinaryNode,
    CallSegment,
    DictNode,
    ElvisNode,
    LiteralNode,
    MemberSegment,
    ModuleCallNode,
    NodeType,
    NotNode,
    NullCoalesceNode,
    SegmentKind,
    SubscriptSegment,
    SymbolNode,
    TernaryNode,
)
from ftl.expressions.lexer import LexerError
from ftl.expressions.parser import ExpressionParser, ParseError, parse_expression, parse_templated


class TestExpressionParser:

    def setup_method(self):
        self.parser = ExpressionParser()

    def test_empty_expression_error(self):
        with pytest.raises(ParseError, match="Empty expression"):
            self.parser.parse("")

        with pytest.raises(ParseError, match="Empty expression"):
            self.parser.parse("   ")

    def test_literals(self):
        assert self.parser.parse("42") == LiteralNode(42)
        assert self.parser.parse("2.5") == LiteralNode(2.5)
        assert self.parser.parse("1e3") == LiteralNode(1000.0)
        assert self.parser.parse("'text'") == LiteralNode("text")
        assert self.parser.parse("true") == LiteralNode(True)
        assert self.parser.parse("false") == LiteralNode(False)
        assert self.parser.parse("null") == LiteralNode(None)

    def test_number_types(self):
        assert type(self.parser.parse("3").value) is int
        assert type(self.parser.parse("3.0").value) is float

    def test_symbol(self):
        result = self.parser.parse("name")
        assert isinstance(result, SymbolNode)
        assert result.name == "name"

    def test_array_and_dict(self):
        result = self.parser.parse("[1, 'a', [true],]")
        assert isinstance(result, ArrayNode)
        assert len(result.items) == 3

        result = self.parser.parse("{'a': 1, \"b\": x}")
        assert isinstance(result, DictNode)
        assert [key for key, _ in result.entries] == ["a", "b"]
        assert result.entries[1][1] == SymbolNode("x")

        assert self.parser.parse("[]") == ArrayNode(items=())
        assert self.parser.parse("{}") == DictNode(entries=())

    def test_dict_requires_string_keys(self):
        with pytest.raises(ParseError, match="Expected string key"):
            self.parser.parse("{a: 1}")

    def test_not(self):
        result = self.parser.parse("!!a")
        assert isinstance(result, NotNode)
        assert isinstance(result.operand, NotNode)

    def test_left_associative_binary(self):
        """a || b || c разбирается как (a || b) || c"""
        result = self.parser.parse("a || b || c")
        assert isinstance(result, BinaryNode)
        assert result.get_type() == NodeType.OR
        assert isinstance(result.left, BinaryNode)
        assert result.right == SymbolNode("c")

    def test_precedence(self):
        """&& связывает сильнее ||, сравнение сильнее равенства"""
        assert str(self.parser.parse("a || b && c")) == "(a || (b && c))"
        assert str(self.parser.parse("a == b > c")) == "(a == (b > c))"
        assert str(self.parser.parse("!a && b")) == "(!a && b)"
        assert str(self.parser.parse("a ?? b || c")) == "(a ?? (b || c))"

    def test_right_associative(self):
        assert str(self.parser.parse("a ?? b ?? c")) == "(a ?? (b ?? c))"
        assert str(self.parser.parse("a ? b : c ? d : e")) == "(a ? b : (c ? d : e))"
        assert str(self.parser.parse("a ?: b ?: c")) == "(a ?: (b ?: c))"

    def test_ternary_and_elvis(self):
        result = self.parser.parse("a ? 1 : 2")
        assert isinstance(result, TernaryNode)
        assert result.if_true == LiteralNode(1)

        result = self.parser.parse("a ?: 'x'")
        assert isinstance(result, ElvisNode)
        assert result.fallback == LiteralNode("x")

        assert isinstance(self.parser.parse("a ?? b"), NullCoalesceNode)

    def test_ternary_requires_colon(self):
        with pytest.raises(ParseError, match="Expected ':'"):
            self.parser.parse("a ? b")

    def test_grouping(self):
        assert str(self.parser.parse("(a || b) && c")) == "((a || b) && c)"

    def test_access_chain(self):
        result = self.parser.parse("user.name?.trim()[0]?.x")
        assert isinstance(result, AccessNode)
        assert result.primary == SymbolNode("user")
        kinds = [type(s) for s in result.segments]
        assert kinds == [MemberSegment, MemberSegment, CallSegment, SubscriptSegment, MemberSegment]
        assert [s.null_safe for s in result.segments] == [False, True, False, False, True]

    def test_null_safe_subscript_and_call(self):
        result = self.parser.parse("a?.[0]?.(1, 2)")
        first, second = result.segments
        assert isinstance(first, SubscriptSegment) and first.null_safe
        assert isinstance(second, CallSegment) and second.null_safe
        assert second.args == (LiteralNode(1), LiteralNode(2))

    def test_keywords_as_member_names(self):
        result = self.parser.parse("a.null.true")
        assert [s.name for s in result.segments] == ["null", "true"]

    def test_access_on_literals(self):
        result = self.parser.parse("[1, 2][1]")
        assert isinstance(result, AccessNode)
        assert isinstance(result.primary, ArrayNode)

    def test_module_calls(self):
        result = self.parser.parse("#upper(name)")
        assert isinstance(result, ModuleCallNode)
        assert result.module is None
        assert result.qualified_name == "#upper"

        result = self.parser.parse("#str:join(items, ', ')")
        assert result.module == "str"
        assert result.name == "join"
        assert result.qualified_name == "#str:join"
        assert len(result.args) == 2

    def test_module_call_requires_parens(self):
        with pytest.raises(ParseError, match="Expected '\\('"):
            self.parser.parse("#upper")

    def test_trailing_tokens_error(self):
        with pytest.raises(ParseError, match="Unexpected token 'b'"):
            self.parser.parse("a b")

    def test_unexpected_end(self):
        with pytest.raises(ParseError, match="Unexpected end of expression"):
            self.parser.parse("a &&")

    def test_error_location(self):
        with pytest.raises(ParseError) as exc:
            self.parser.parse("a &&\n )")
        assert exc.value.line == 2
        assert exc.value.column == 2

    def test_lexer_errors_propagate(self):
        with pytest.raises(LexerError):
            self.parser.parse("a = b")

    def test_parser_is_reusable(self):
        first = self.parser.parse("a.b")
        self.parser.parse("c ? d : e")
        assert self.parser.parse("a.b") == first

    def test_round_trip_through_str(self):
        """Каноническая запись разбирается в то же дерево"""
        for source in [
            "a.b?.c[0](1, 'x')",
            "!a && (b || c) ? #m:f(x) : [1, {'k': null}]",
            "a ?? b ?: c",
        ]:
            tree = parse_expression(source)
            assert parse_expression(str(tree)) == tree


class TestTemplatedText:

    def test_plain_text(self):
        result = parse_templated("just text")
        assert len(result.segments) == 1
        assert result.segments[0].kind == SegmentKind.LITERAL
        assert result.segments[0].text == "just text"

    def test_empty_text(self):
        assert parse_templated("").segments == ()

    def test_interpolation_kinds(self):
        result = parse_templated("a {{x}} b {{{y}}} c {{{{z}}}}")
        kinds = [s.kind for s in result.segments]
        assert kinds == [
            SegmentKind.LITERAL,
            SegmentKind.TEXT,
            SegmentKind.LITERAL,
            SegmentKind.HTML,
            SegmentKind.LITERAL,
            SegmentKind.NODE,
        ]
        assert result.segments[1].expression == SymbolNode("x")
        assert result.segments[3].expression == SymbolNode("y")
        assert result.segments[5].expression == SymbolNode("z")

    def test_expression_with_braces_inside(self):
        result = parse_templated("{{ {'a': 1}.a }}!")
        assert result.segments[0].kind == SegmentKind.TEXT
        assert isinstance(result.segments[0].expression, AccessNode)
        assert result.segments[1].text == "!"

    def test_closing_braces_must_match(self):
        with pytest.raises(ParseError, match="Expected '}}}' to close interpolation"):
            parse_templated("{{{ x }}")

    def test_unterminated_interpolation(self):
        with pytest.raises(ParseError):
            parse_templated("{{ x ")

    def test_extra_closing_brace_is_literal(self):
        result = parse_templated("{{x}}}")
        assert result.segments[-1].text == "}"

    def test_single_braces_are_literal(self):
        result = parse_templated("{ x }")
        assert len(result.segments) == 1
        assert result.segments[0].text == "{ x }"
