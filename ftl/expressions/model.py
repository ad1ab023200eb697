"""
Модели данных языка выражений.

Содержит неизменяемые узлы AST для выражений, сегменты цепочек доступа
и узлы "шаблонного текста" (литеральный текст вперемешку с интерполяциями).
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple


class NodeType(Enum):
    """Типы узлов AST выражения."""
    LITERAL = "literal"
    SYMBOL = "symbol"
    ARRAY = "array"
    DICT = "dict"
    NOT = "not"
    AND = "and"
    OR = "or"
    ELVIS = "elvis"
    NULL_COALESCE = "null-coalesce"
    EQUALITY = "equality"
    COMPARISON = "comparison"
    TERNARY = "ternary"
    ACCESS = "access"
    MODULE_CALL = "module-call"


class SegmentType(Enum):
    """Типы сегментов цепочки доступа."""
    MEMBER = "member"
    SUBSCRIPT = "subscript"
    CALL = "call"


class SegmentKind(Enum):
    """Типы сегментов шаблонного текста."""
    LITERAL = "literal"
    TEXT = "text"      # {{ expr }}    : экранированный текст
    HTML = "html"      # {{{ expr }}}  : разметка, разбираемая в узлы
    NODE = "node"      # {{{{ expr }}}}: готовый узел, вставляется как есть


def _literal_to_string(value: Any) -> str:
    if value is None:
        return "null"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, str):
        return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"
    return json.dumps(value)


@dataclass(frozen=True)
class Expression(ABC):
    """Базовый абстрактный класс для всех узлов выражения."""

    @abstractmethod
    def get_type(self) -> NodeType:
        """Возвращает тип узла."""
        pass

    def __str__(self) -> str:
        """Каноническое строковое представление (снова разбирается парсером)."""
        return self._to_string()

    @abstractmethod
    def _to_string(self) -> str:
        pass


@dataclass(frozen=True)
class LiteralNode(Expression):
    """Литерал: число, строка, true, false или null."""
    value: Any

    def get_type(self) -> NodeType:
        return NodeType.LITERAL

    def _to_string(self) -> str:
        return _literal_to_string(self.value)


@dataclass(frozen=True)
class SymbolNode(Expression):
    """
    Имя, разрешаемое по стеку данных.

    Специальное имя self возвращает верхний слой стека целиком.
    """
    name: str

    def get_type(self) -> NodeType:
        return NodeType.SYMBOL

    def _to_string(self) -> str:
        return self.name


@dataclass(frozen=True)
class ArrayNode(Expression):
    """Литерал массива: [e, e, ...]"""
    items: Tuple[Expression, ...]

    def get_type(self) -> NodeType:
        return NodeType.ARRAY

    def _to_string(self) -> str:
        return "[" + ", ".join(str(item) for item in self.items) + "]"


@dataclass(frozen=True)
class DictNode(Expression):
    """
    Литерал словаря: {'k': e, ...}

    Ключи всегда строковые литералы, значения вычисляются.
    """
    entries: Tuple[Tuple[str, Expression], ...]

    def get_type(self) -> NodeType:
        return NodeType.DICT

    def _to_string(self) -> str:
        body = ", ".join(f"{_literal_to_string(key)}: {value}" for key, value in self.entries)
        return "{" + body + "}"


@dataclass(frozen=True)
class NotNode(Expression):
    """Отрицание: !expr"""
    operand: Expression

    def get_type(self) -> NodeType:
        return NodeType.NOT

    def _to_string(self) -> str:
        return f"!{self.operand}"


@dataclass(frozen=True)
class BinaryNode(Expression):
    """
    Бинарный оператор: &&, ||, ==/!=, >/</>=/<=

    Тип узла задаётся явно, конкретный оператор хранится в operator.
    """
    node_type: NodeType
    operator: str
    left: Expression
    right: Expression

    def get_type(self) -> NodeType:
        return self.node_type

    def _to_string(self) -> str:
        return f"({self.left} {self.operator} {self.right})"


@dataclass(frozen=True)
class TernaryNode(Expression):
    """Тернарный оператор: cond ? a : b"""
    condition: Expression
    if_true: Expression
    if_false: Expression

    def get_type(self) -> NodeType:
        return NodeType.TERNARY

    def _to_string(self) -> str:
        return f"({self.condition} ? {self.if_true} : {self.if_false})"


@dataclass(frozen=True)
class ElvisNode(Expression):
    """Элвис-оператор: cond ?: fallback (cond, если истинно, иначе fallback)"""
    condition: Expression
    fallback: Expression

    def get_type(self) -> NodeType:
        return NodeType.ELVIS

    def _to_string(self) -> str:
        return f"({self.condition} ?: {self.fallback})"


@dataclass(frozen=True)
class NullCoalesceNode(Expression):
    """Null-coalescing: value ?? fallback (value, если он не null)"""
    value: Expression
    fallback: Expression

    def get_type(self) -> NodeType:
        return NodeType.NULL_COALESCE

    def _to_string(self) -> str:
        return f"({self.value} ?? {self.fallback})"


@dataclass(frozen=True)
class Segment(ABC):
    """Базовый класс сегмента цепочки доступа."""
    null_safe: bool

    @abstractmethod
    def get_type(self) -> SegmentType:
        pass

    def __str__(self) -> str:
        return ("?." if self.null_safe else "") + self._to_string()

    @abstractmethod
    def _to_string(self) -> str:
        pass


@dataclass(frozen=True)
class MemberSegment(Segment):
    """Доступ к члену: .name"""
    name: str

    def get_type(self) -> SegmentType:
        return SegmentType.MEMBER

    def __str__(self) -> str:
        return ("?." if self.null_safe else ".") + self.name

    def _to_string(self) -> str:
        return self.name

    @property
    def selector(self) -> str:
        return self.name


@dataclass(frozen=True)
class SubscriptSegment(Segment):
    """Доступ по индексу: [expr]"""
    expression: Expression

    def get_type(self) -> SegmentType:
        return SegmentType.SUBSCRIPT

    def _to_string(self) -> str:
        return f"[{self.expression}]"

    @property
    def selector(self) -> str:
        return f"[{self.expression}]"


@dataclass(frozen=True)
class CallSegment(Segment):
    """Вызов текущего значения как функции: (args)"""
    args: Tuple[Expression, ...]

    def get_type(self) -> SegmentType:
        return SegmentType.CALL

    def _to_string(self) -> str:
        return "(" + ", ".join(str(arg) for arg in self.args) + ")"

    @property
    def selector(self) -> str:
        return "()"


@dataclass(frozen=True)
class AccessNode(Expression):
    """
    Цепочка доступа: primary, за которым следуют сегменты .name, [expr], (args).

    Сегменты вычисляются слева направо над "текущим" значением.
    """
    primary: Expression
    segments: Tuple[Segment, ...]

    def get_type(self) -> NodeType:
        return NodeType.ACCESS

    def _to_string(self) -> str:
        return str(self.primary) + "".join(str(segment) for segment in self.segments)


@dataclass(frozen=True)
class ModuleCallNode(Expression):
    """
    Вызов функции модуля: #name(args) или #module:name(args)

    module=None означает модуль по умолчанию (корень реестра).
    """
    module: Optional[str]
    name: str
    args: Tuple[Expression, ...]

    def get_type(self) -> NodeType:
        return NodeType.MODULE_CALL

    @property
    def qualified_name(self) -> str:
        return f"#{self.module}:{self.name}" if self.module is not None else f"#{self.name}"

    def _to_string(self) -> str:
        return self.qualified_name + "(" + ", ".join(str(arg) for arg in self.args) + ")"


@dataclass(frozen=True)
class TemplateSegment:
    """
    Сегмент шаблонного текста.

    Для LITERAL заполнен text, для остальных видов — expression.
    """
    kind: SegmentKind
    text: str = ""
    expression: Optional[Expression] = None


@dataclass(frozen=True)
class TemplatedText:
    """Шаблонный текст: упорядоченная последовательность сегментов."""
    segments: Tuple[TemplateSegment, ...]


__all__ = [
    "NodeType",
    "SegmentType",
    "SegmentKind",
    "Expression",
    "LiteralNode",
    "SymbolNode",
    "ArrayNode",
    "DictNode",
    "NotNode",
    "BinaryNode",
    "TernaryNode",
    "ElvisNode",
    "NullCoalesceNode",
    "Segment",
    "MemberSegment",
    "SubscriptSegment",
    "CallSegment",
    "AccessNode",
    "ModuleCallNode",
    "TemplateSegment",
    "TemplatedText",
]
