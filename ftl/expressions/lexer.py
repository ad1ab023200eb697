"""
Лексический анализатор языка выражений.

Разбивает исходный текст выражения на токены:
- литералы (числа, строки, true/false/null)
- идентификаторы
- операторы (логические, сравнения, null-операторы, навигация)
- скобки и разделители

Лексер ленивый: токены извлекаются по одному через next_token(), что позволяет
парсеру остановиться посреди строки (нужно для интерполяций в тексте шаблона).
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import List, Tuple

from ..errors import FtlError


class TokenType(enum.Enum):
    """Типы токенов языка выражений."""

    # Литералы и имена
    NUMBER = "NUMBER"
    STRING = "STRING"
    IDENTIFIER = "IDENTIFIER"
    TRUE = "TRUE"
    FALSE = "FALSE"
    NULL = "NULL"

    # Логические операторы
    OR = "OR"                    # ||
    AND = "AND"                  # &&
    NOT = "NOT"                  # !

    # Сравнения
    EQ = "EQ"                    # ==
    NEQ = "NEQ"                  # !=
    GTE = "GTE"                  # >=
    LTE = "LTE"                  # <=
    GT = "GT"                    # >
    LT = "LT"                    # <

    # Null-операторы
    NULLISH = "NULLISH"          # ??
    ELVIS = "ELVIS"              # ?:
    NULL_SAFE = "NULL_SAFE"      # ?.
    QUESTION = "QUESTION"        # ?

    # Разделители
    COLON = "COLON"              # :
    COMMA = "COMMA"              # ,
    DOT = "DOT"                  # .
    HASH = "HASH"                # #
    LPAREN = "LPAREN"            # (
    RPAREN = "RPAREN"            # )
    LBRACKET = "LBRACKET"        # [
    RBRACKET = "RBRACKET"        # ]
    LBRACE = "LBRACE"            # {
    RBRACE = "RBRACE"            # }

    EOF = "EOF"


@dataclass(frozen=True)
class Token:
    """
    Токен с позиционной информацией для точной диагностики ошибок.

    Для строковых литералов value содержит уже раскрытые escape-последовательности,
    для чисел — исходный текст.
    """
    type: TokenType
    value: str
    position: int        # Позиция в исходном тексте
    line: int            # Номер строки (начиная с 1)
    column: int          # Номер колонки (начиная с 1)

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"


class ExpressionSyntaxError(FtlError):
    """Базовая ошибка синтаксиса выражения или текста шаблона."""

    def __init__(self, message: str, position: int, line: int, column: int):
        super().__init__(f"{message} at {line}:{column}")
        self.message = message
        self.position = position
        self.line = line
        self.column = column


class LexerError(ExpressionSyntaxError):
    """Ошибка лексического анализа."""
    pass


def location(text: str, position: int) -> Tuple[int, int]:
    """Переводит смещение в тексте в пару (строка, колонка), обе с единицы."""
    line = text.count("\n", 0, position) + 1
    line_start = text.rfind("\n", 0, position) + 1
    return line, position - line_start + 1


class ExpressionLexer:
    """
    Лексический анализатор выражений.

    Может начинать разбор с произвольной позиции текста: позиции токенов
    всегда отсчитываются от начала исходной строки.
    """

    _WHITESPACE = re.compile(r'\s+')

    # Число проверяется раньше точки, чтобы ".5" не стало навигацией
    _NUMBER = re.compile(r'[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?')
    _STRING = re.compile(r"""'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*\"""", re.DOTALL)
    _IDENTIFIER = re.compile(r'[A-Za-z_$][A-Za-z0-9_$]*')
    _ESCAPE = re.compile(r'\\(u[0-9a-fA-F]{4}|.)', re.DOTALL)

    # Операторы: более длинные раньше более коротких
    _OPERATORS = [
        (re.compile(r'\|\|'), TokenType.OR),
        (re.compile(r'&&'), TokenType.AND),
        (re.compile(r'=='), TokenType.EQ),
        (re.compile(r'!='), TokenType.NEQ),
        (re.compile(r'>='), TokenType.GTE),
        (re.compile(r'<='), TokenType.LTE),
        (re.compile(r'\?\?'), TokenType.NULLISH),
        (re.compile(r'\?:'), TokenType.ELVIS),
        (re.compile(r'\?\.(?!\d)'), TokenType.NULL_SAFE),
        (re.compile(r'>'), TokenType.GT),
        (re.compile(r'<'), TokenType.LT),
        (re.compile(r'!'), TokenType.NOT),
        (re.compile(r'\?'), TokenType.QUESTION),
        (re.compile(r':'), TokenType.COLON),
        (re.compile(r','), TokenType.COMMA),
        (re.compile(r'\.'), TokenType.DOT),
        (re.compile(r'#'), TokenType.HASH),
        (re.compile(r'\('), TokenType.LPAREN),
        (re.compile(r'\)'), TokenType.RPAREN),
        (re.compile(r'\['), TokenType.LBRACKET),
        (re.compile(r'\]'), TokenType.RBRACKET),
        (re.compile(r'\{'), TokenType.LBRACE),
        (re.compile(r'\}'), TokenType.RBRACE),
    ]

    _KEYWORDS = {
        'true': TokenType.TRUE,
        'false': TokenType.FALSE,
        'null': TokenType.NULL,
    }

    _ESCAPES = {'n': '\n', 't': '\t', 'r': '\r', 'b': '\b', 'f': '\f', '0': '\0'}

    def __init__(self, text: str, start: int = 0):
        self.text = text
        self.position = start
        self.length = len(text)

    def tokenize(self) -> List[Token]:
        """
        Токенизирует остаток текста и возвращает список токенов с EOF в конце.
        """
        tokens: List[Token] = []
        while True:
            token = self.next_token()
            tokens.append(token)
            if token.type == TokenType.EOF:
                return tokens

    def next_token(self) -> Token:
        """
        Извлекает следующий токен, пропуская пробельные символы.

        Raises:
            LexerError: При неизвестном символе или незакрытой строке
        """
        ws = self._WHITESPACE.match(self.text, self.position)
        if ws:
            self.position = ws.end()

        start = self.position
        if start >= self.length:
            return self._make(TokenType.EOF, "", start)

        match = self._NUMBER.match(self.text, start)
        if match:
            return self._consume(TokenType.NUMBER, match.group(0), match.end())

        char = self.text[start]
        if char in "'\"":
            match = self._STRING.match(self.text, start)
            if not match:
                raise self._error("Unterminated string literal", start)
            return self._consume(TokenType.STRING, self._unescape(match.group(0)[1:-1]), match.end())

        match = self._IDENTIFIER.match(self.text, start)
        if match:
            value = match.group(0)
            return self._consume(self._KEYWORDS.get(value, TokenType.IDENTIFIER), value, match.end())

        for pattern, token_type in self._OPERATORS:
            match = pattern.match(self.text, start)
            if match:
                return self._consume(token_type, match.group(0), match.end())

        raise self._error(f"Unexpected character '{char}'", start)

    # Вспомогательные методы

    def _consume(self, token_type: TokenType, value: str, end: int) -> Token:
        token = self._make(token_type, value, self.position)
        self.position = end
        return token

    def _make(self, token_type: TokenType, value: str, position: int) -> Token:
        line, column = location(self.text, position)
        return Token(token_type, value, position, line, column)

    def _error(self, message: str, position: int) -> LexerError:
        line, column = location(self.text, position)
        return LexerError(message, position, line, column)

    def _unescape(self, body: str) -> str:
        def replace(match: re.Match) -> str:
            code = match.group(1)
            if code.startswith("u") and len(code) == 5:
                return chr(int(code[1:], 16))
            return self._ESCAPES.get(code, code)

        return self._ESCAPE.sub(replace, body)


__all__ = [
    "TokenType",
    "Token",
    "ExpressionSyntaxError",
    "LexerError",
    "ExpressionLexer",
    "location",
]
