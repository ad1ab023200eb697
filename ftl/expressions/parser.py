"""
Парсер языка выражений с рекурсивным спуском.

Строит неизменяемое AST из потока токенов. Поддерживает две точки входа:
обычное выражение и "шаблонный текст" (литеральный текст с интерполяциями).

Грамматика (от низшего приоритета к высшему):
expression   → conditional
conditional  → nullish ( "?" conditional ":" conditional | "?:" conditional )?
nullish      → or ( "??" nullish )?
or           → and ( "||" and )*
and          → equality ( "&&" equality )*
equality     → comparison ( ("==" | "!=") comparison )*
comparison   → unary ( (">" | "<" | ">=" | "<=") unary )*
unary        → "!" unary | access
access       → primary segment*
segment      → "." NAME | "?." NAME | "[" expression "]" | "?.[" expression "]"
             | "(" arguments ")" | "?.(" arguments ")"
primary      → NUMBER | STRING | "true" | "false" | "null" | IDENTIFIER
             | "[" (expression ("," expression)*)? "]"
             | "{" (STRING ":" expression ("," STRING ":" expression)*)? "}"
             | "#" IDENTIFIER (":" IDENTIFIER)? "(" arguments ")"
             | "(" expression ")"

Шаблонный текст:
templated    → (TEXT | "{{" expression "}}" | "{{{" expression "}}}" | "{{{{" expression "}}}}")*
"""

from __future__ import annotations

from typing import List, Tuple

from .lexer import ExpressionLexer, ExpressionSyntaxError, Token, TokenType, location
from .model import (
    AccessNode,
    ArrayNode,
    BinaryNode,
    CallSegment,
    DictNode,
    ElvisNode,
    Expression,
    LiteralNode,
    MemberSegment,
    ModuleCallNode,
    NodeType,
    NotNode,
    NullCoalesceNode,
    Segment,
    SegmentKind,
    SubscriptSegment,
    SymbolNode,
    TemplatedText,
    TemplateSegment,
    TernaryNode,
)


class ParseError(ExpressionSyntaxError):
    """Ошибка синтаксического анализа выражения."""
    pass


# Число открывающих скобок интерполяции → вид сегмента
_INTERPOLATION_KINDS = {
    2: SegmentKind.TEXT,
    3: SegmentKind.HTML,
    4: SegmentKind.NODE,
}

_EQUALITY_OPERATORS = {TokenType.EQ, TokenType.NEQ}
_COMPARISON_OPERATORS = {TokenType.GT, TokenType.LT, TokenType.GTE, TokenType.LTE}
_NAME_TOKENS = {TokenType.IDENTIFIER, TokenType.TRUE, TokenType.FALSE, TokenType.NULL}


class ExpressionParser:
    """
    Парсер выражений с рекурсивным спуском.

    Не хранит состояния между вызовами parse()/parse_templated():
    один экземпляр можно переиспользовать.
    """

    def __init__(self):
        self._text = ""
        self._lexer = ExpressionLexer("")
        self._current = self._lexer.next_token()

    def parse(self, source: str) -> Expression:
        """
        Парсит строку выражения в AST.

        Args:
            source: Исходный текст выражения

        Returns:
            Корневой узел AST

        Raises:
            ParseError: При синтаксической ошибке
            LexerError: При ошибке токенизации
        """
        self._reset(source, 0)

        if self._current.type == TokenType.EOF:
            raise self._error("Empty expression", self._current)

        result = self._parse_expression()

        if self._current.type != TokenType.EOF:
            raise self._error(f"Unexpected token '{self._current.value}'", self._current)

        return result

    def parse_templated(self, source: str) -> TemplatedText:
        """
        Парсит шаблонный текст: литералы и интерполяции {{ }}, {{{ }}}, {{{{ }}}}.

        Выражение внутри интерполяции разбирается на месте, после него
        должно идти столько же закрывающих скобок, сколько было открывающих.
        """
        segments: List[TemplateSegment] = []
        literal_start = 0
        position = 0

        while True:
            start = source.find("{{", position)
            if start < 0:
                break

            run = 0
            while start + run < len(source) and source[start + run] == "{" and run < 4:
                run += 1
            kind = _INTERPOLATION_KINDS[run]

            if start > literal_start:
                segments.append(TemplateSegment(SegmentKind.LITERAL, text=source[literal_start:start]))

            self._reset(source, start + run)
            expression = self._parse_expression()

            close = self._current.position
            closing = "}" * run
            if source[close:close + run] != closing:
                line, column = location(source, close)
                raise ParseError(f"Expected '{closing}' to close interpolation", close, line, column)

            segments.append(TemplateSegment(kind, expression=expression))
            position = literal_start = close + run

        if literal_start < len(source):
            segments.append(TemplateSegment(SegmentKind.LITERAL, text=source[literal_start:]))

        return TemplatedText(tuple(segments))

    # ======= Правила грамматики =======

    def _parse_expression(self) -> Expression:
        """Парсит полное выражение (начальный символ грамматики)."""
        return self._parse_conditional()

    def _parse_conditional(self) -> Expression:
        """Тернарный и элвис-операторы (низший приоритет, правая ассоциативность)."""
        condition = self._parse_nullish()

        if self._match(TokenType.QUESTION):
            if_true = self._parse_conditional()
            self._expect(TokenType.COLON, "Expected ':' in ternary expression")
            if_false = self._parse_conditional()
            return TernaryNode(condition=condition, if_true=if_true, if_false=if_false)

        if self._match(TokenType.ELVIS):
            return ElvisNode(condition=condition, fallback=self._parse_conditional())

        return condition

    def _parse_nullish(self) -> Expression:
        """Null-coalescing ?? (правая ассоциативность)."""
        value = self._parse_or()
        if self._match(TokenType.NULLISH):
            return NullCoalesceNode(value=value, fallback=self._parse_nullish())
        return value

    def _parse_or(self) -> Expression:
        left = self._parse_and()
        while self._current.type == TokenType.OR:
            operator = self._advance().value
            left = BinaryNode(NodeType.OR, operator, left, self._parse_and())
        return left

    def _parse_and(self) -> Expression:
        left = self._parse_equality()
        while self._current.type == TokenType.AND:
            operator = self._advance().value
            left = BinaryNode(NodeType.AND, operator, left, self._parse_equality())
        return left

    def _parse_equality(self) -> Expression:
        left = self._parse_comparison()
        while self._current.type in _EQUALITY_OPERATORS:
            operator = self._advance().value
            left = BinaryNode(NodeType.EQUALITY, operator, left, self._parse_comparison())
        return left

    def _parse_comparison(self) -> Expression:
        left = self._parse_unary()
        while self._current.type in _COMPARISON_OPERATORS:
            operator = self._advance().value
            left = BinaryNode(NodeType.COMPARISON, operator, left, self._parse_unary())
        return left

    def _parse_unary(self) -> Expression:
        if self._match(TokenType.NOT):
            return NotNode(operand=self._parse_unary())
        return self._parse_access()

    def _parse_access(self) -> Expression:
        """Первичное выражение и цепочка сегментов доступа за ним."""
        primary = self._parse_primary()
        segments: List[Segment] = []

        while True:
            if self._match(TokenType.DOT):
                segments.append(MemberSegment(null_safe=False, name=self._expect_name()))
            elif self._match(TokenType.NULL_SAFE):
                if self._match(TokenType.LBRACKET):
                    segments.append(SubscriptSegment(null_safe=True, expression=self._parse_subscript()))
                elif self._match(TokenType.LPAREN):
                    segments.append(CallSegment(null_safe=True, args=self._parse_arguments()))
                else:
                    segments.append(MemberSegment(null_safe=True, name=self._expect_name()))
            elif self._match(TokenType.LBRACKET):
                segments.append(SubscriptSegment(null_safe=False, expression=self._parse_subscript()))
            elif self._match(TokenType.LPAREN):
                segments.append(CallSegment(null_safe=False, args=self._parse_arguments()))
            else:
                break

        if not segments:
            return primary
        return AccessNode(primary=primary, segments=tuple(segments))

    def _parse_primary(self) -> Expression:
        """Парсит первичное выражение (литералы, имена, вызовы, группы)."""
        token = self._current

        if token.type == TokenType.NUMBER:
            self._advance()
            return LiteralNode(self._number_value(token.value))

        if token.type == TokenType.STRING:
            self._advance()
            return LiteralNode(token.value)

        if token.type == TokenType.TRUE:
            self._advance()
            return LiteralNode(True)

        if token.type == TokenType.FALSE:
            self._advance()
            return LiteralNode(False)

        if token.type == TokenType.NULL:
            self._advance()
            return LiteralNode(None)

        if token.type == TokenType.IDENTIFIER:
            self._advance()
            return SymbolNode(token.value)

        if self._match(TokenType.LBRACKET):
            return ArrayNode(items=self._parse_items(TokenType.RBRACKET))

        if self._match(TokenType.LBRACE):
            return DictNode(entries=self._parse_dict_entries())

        if self._match(TokenType.HASH):
            return self._parse_module_call()

        if self._match(TokenType.LPAREN):
            expr = self._parse_expression()
            self._expect(TokenType.RPAREN, "Expected ')' after grouped expression")
            return expr

        if token.type == TokenType.EOF:
            raise self._error("Unexpected end of expression", token)
        raise self._error(f"Unexpected token '{token.value}'", token)

    def _parse_module_call(self) -> ModuleCallNode:
        """Парсит вызов функции модуля после '#': name(args) или module:name(args)"""
        name = self._expect(TokenType.IDENTIFIER, "Expected function name after '#'").value
        module = None
        if self._match(TokenType.COLON):
            module = name
            name = self._expect(TokenType.IDENTIFIER, f"Expected function name after '#{module}:'").value
        self._expect(TokenType.LPAREN, "Expected '(' after module function name")
        return ModuleCallNode(module=module, name=name, args=self._parse_arguments())

    def _parse_subscript(self) -> Expression:
        expr = self._parse_expression()
        self._expect(TokenType.RBRACKET, "Expected ']' after subscript")
        return expr

    def _parse_arguments(self) -> Tuple[Expression, ...]:
        """Аргументы вызова; открывающая скобка уже потреблена."""
        return self._parse_items(TokenType.RPAREN)

    def _parse_items(self, closing: TokenType) -> Tuple[Expression, ...]:
        """Список выражений через запятую до закрывающего токена (допускается висячая запятая)."""
        items: List[Expression] = []
        while not self._match(closing):
            items.append(self._parse_expression())
            if not self._match(TokenType.COMMA):
                self._expect(closing, "Expected ',' or closing bracket")
                break
        return tuple(items)

    def _parse_dict_entries(self) -> Tuple[Tuple[str, Expression], ...]:
        entries: List[Tuple[str, Expression]] = []
        while not self._match(TokenType.RBRACE):
            key = self._expect(TokenType.STRING, "Expected string key in dict literal").value
            self._expect(TokenType.COLON, "Expected ':' after dict key")
            entries.append((key, self._parse_expression()))
            if not self._match(TokenType.COMMA):
                self._expect(TokenType.RBRACE, "Expected ',' or '}' in dict literal")
                break
        return tuple(entries)

    # ======= Вспомогательные методы для работы с токенами =======

    def _reset(self, text: str, start: int) -> None:
        self._text = text
        self._lexer = ExpressionLexer(text, start)
        self._current = self._lexer.next_token()

    def _advance(self) -> Token:
        """Продвигает позицию и возвращает потреблённый токен."""
        token = self._current
        if token.type != TokenType.EOF:
            self._current = self._lexer.next_token()
        return token

    def _match(self, token_type: TokenType) -> bool:
        """Проверяет и потребляет токен указанного типа."""
        if self._current.type == token_type:
            self._advance()
            return True
        return False

    def _expect(self, token_type: TokenType, error_message: str) -> Token:
        """Потребляет токен указанного типа или выбрасывает ошибку."""
        if self._current.type == token_type:
            return self._advance()
        raise self._error(error_message, self._current)

    def _expect_name(self) -> str:
        """Имя члена после '.' или '?.' (ключевые слова допустимы как имена)."""
        if self._current.type in _NAME_TOKENS:
            return self._advance().value
        raise self._error("Expected member name", self._current)

    @staticmethod
    def _number_value(text: str):
        if any(c in text for c in ".eE"):
            return float(text)
        return int(text)

    @staticmethod
    def _error(message: str, token: Token) -> ParseError:
        return ParseError(message, token.position, token.line, token.column)


def parse_expression(source: str) -> Expression:
    """Удобная функция для разбора выражения."""
    return ExpressionParser().parse(source)


def parse_templated(source: str) -> TemplatedText:
    """Удобная функция для разбора шаблонного текста."""
    return ExpressionParser().parse_templated(source)


__all__ = [
    "ParseError",
    "ExpressionParser",
    "parse_expression",
    "parse_templated",
]
