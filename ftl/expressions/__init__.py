"""
Язык выражений шаблонов.

Лексер, AST, парсер (выражения и шаблонный текст) и вычислитель
со стеком данных и реестром модулей.
"""

from __future__ import annotations

from .evaluator import (
    EvaluationError,
    ExpressionEvaluator,
    FunctionResolutionError,
    IterationError,
    Mode,
    ModuleResolutionError,
    NavigationError,
    OutputKind,
    OutputSegment,
    interpret,
    to_text,
    with_scope,
)
from .lexer import ExpressionLexer, ExpressionSyntaxError, LexerError, Token, TokenType
from .model import Expression, NodeType, SegmentKind, TemplatedText
from .parser import ExpressionParser, ParseError, parse_expression, parse_templated

__all__ = [
    "ExpressionLexer",
    "ExpressionParser",
    "ExpressionEvaluator",
    "Expression",
    "TemplatedText",
    "NodeType",
    "SegmentKind",
    "Token",
    "TokenType",
    "Mode",
    "OutputKind",
    "OutputSegment",
    "ExpressionSyntaxError",
    "LexerError",
    "ParseError",
    "EvaluationError",
    "ModuleResolutionError",
    "FunctionResolutionError",
    "NavigationError",
    "IterationError",
    "parse_expression",
    "parse_templated",
    "interpret",
    "to_text",
    "with_scope",
]
