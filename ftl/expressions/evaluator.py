"""
Вычислитель выражений.

Проходит по AST выражения и вычисляет его значение относительно реестра
модулей (функций, вызываемых через #name(...)) и стека данных.
"""

from __future__ import annotations

import logging
import operator
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..errors import FtlError
from .model import (
    AccessNode,
    ArrayNode,
    BinaryNode,
    DictNode,
    ElvisNode,
    Expression,
    LiteralNode,
    ModuleCallNode,
    NodeType,
    NotNode,
    NullCoalesceNode,
    Segment,
    SegmentKind,
    SegmentType,
    SymbolNode,
    TemplatedText,
    TernaryNode,
)

logger = logging.getLogger(__name__)


class EvaluationError(FtlError):
    """Ошибка при вычислении выражения."""
    pass


class ModuleResolutionError(EvaluationError):
    """Модуль, указанный в #module:name(...), отсутствует в реестре."""

    def __init__(self, module: str):
        super().__init__(f'Module "{module}" not found')
        self.module = module


class FunctionResolutionError(EvaluationError):
    """Модуль найден, но в нём нет запрошенной функции."""

    def __init__(self, qualified_name: str):
        super().__init__(f'Function "{qualified_name}" not found')
        self.qualified_name = qualified_name


class NavigationError(EvaluationError):
    """Ошибка навигации по цепочке доступа (обращение к null, отсутствующий метод)."""

    def __init__(self, message: str, selector: str):
        super().__init__(message)
        self.selector = selector


class IterationError(EvaluationError):
    """Значение, по которому требуется итерация, не является итерируемым."""
    pass


class Mode(Enum):
    """Режим разбора исходного текста."""
    EXPRESSION = "expression"
    TEMPLATED = "templated"


class OutputKind(Enum):
    """Вид вычисленного сегмента шаблонного текста."""
    TEXT = "text"
    HTML = "html"
    NODE = "node"


_OUTPUT_KINDS = {
    SegmentKind.TEXT: OutputKind.TEXT,
    SegmentKind.HTML: OutputKind.HTML,
    SegmentKind.NODE: OutputKind.NODE,
}


@dataclass(frozen=True)
class OutputSegment:
    """Вычисленный сегмент шаблонного текста для рендерера."""
    kind: OutputKind
    value: Any


_COMPARISONS: Dict[str, Callable[[Any, Any], bool]] = {
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
}

# Значения, у которых не ищутся имена из шаблона
_PRIMITIVES = (str, bytes, int, float, bool, list, tuple, set, frozenset, type(None))

_SCOPE_FLAG = "_ftl_with_scope"


def with_scope(func: Callable) -> Callable:
    """
    Помечает функцию модуля как принимающую текущую область видимости.

    Такая функция получает верхний слой стека данных первым позиционным
    аргументом перед аргументами из выражения.
    """
    setattr(func, _SCOPE_FLAG, True)
    return func


def to_text(value: Any) -> str:
    """
    Приводит значение к тексту для вывода.

    None → "", булевы → true/false, целые float без ".0",
    списки и кортежи → элементы через запятую (None внутри → "").
    """
    if value is None:
        return ""
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(to_text(item) for item in value)
    return str(value)


def _owns(overlay: Any, name: str) -> bool:
    """Проверяет, содержит ли слой стека данных указанное имя."""
    if isinstance(overlay, Mapping):
        return name in overlay
    if isinstance(overlay, _PRIMITIVES) or name.startswith("_"):
        return False
    return hasattr(overlay, name)


def _read(container: Any, name: str) -> Any:
    if isinstance(container, Mapping):
        return container[name]
    return getattr(container, name)


def _resolve(container: Any, name: str) -> Any:
    """Ищет модуль или функцию в реестре: ключ словаря или публичный атрибут."""
    if isinstance(container, Mapping):
        return container.get(name)
    if name.startswith("_"):
        return None
    return getattr(container, name, None)


def _strict_equals(left: Any, right: Any) -> bool:
    # true не равно 1, как при строгом сравнении
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


class ExpressionEvaluator:
    """
    Вычислитель выражений.

    Принимает реестр модулей и стек данных (от старых слоёв к новым),
    вычисляет AST выражения или шаблонного текста.
    """

    def __init__(self, modules: Optional[Mapping[str, Any]], data_stack: Sequence[Any]):
        """
        Args:
            modules: Реестр модулей. Корень — модуль по умолчанию для #name(...),
                     вложенные элементы — именованные модули для #module:name(...)
            data_stack: Слои данных; поиск имён идёт от последнего к первому
        """
        self.modules = modules if modules is not None else {}
        self.data_stack = tuple(data_stack)
        self._handlers: Dict[NodeType, Callable[[Any], Any]] = {
            NodeType.LITERAL: self._evaluate_literal,
            NodeType.SYMBOL: self._evaluate_symbol,
            NodeType.ARRAY: self._evaluate_array,
            NodeType.DICT: self._evaluate_dict,
            NodeType.NOT: self._evaluate_not,
            NodeType.AND: self._evaluate_and,
            NodeType.OR: self._evaluate_or,
            NodeType.ELVIS: self._evaluate_elvis,
            NodeType.NULL_COALESCE: self._evaluate_null_coalesce,
            NodeType.EQUALITY: self._evaluate_equality,
            NodeType.COMPARISON: self._evaluate_comparison,
            NodeType.TERNARY: self._evaluate_ternary,
            NodeType.ACCESS: self._evaluate_access,
            NodeType.MODULE_CALL: self._evaluate_module_call,
        }

    @property
    def scope(self) -> Any:
        """Верхний слой стека данных (значение self)."""
        return self.data_stack[-1] if self.data_stack else None

    def evaluate(self, node: Expression) -> Any:
        """
        Вычисляет значение выражения.

        Raises:
            EvaluationError: При ошибке вычисления (и её подклассы)
        """
        handler = self._handlers.get(node.get_type())
        if handler is None:
            raise EvaluationError(f"Unknown expression type: {node.get_type()}")
        return handler(node)

    def evaluate_templated(self, templated: TemplatedText) -> List[OutputSegment]:
        """
        Вычисляет шаблонный текст в последовательность сегментов вывода.

        Литеральный текст проходит как есть, выражения вычисляются
        и помечаются видом вывода (текст, разметка, узел).
        """
        result: List[OutputSegment] = []
        for segment in templated.segments:
            if segment.kind == SegmentKind.LITERAL:
                result.append(OutputSegment(OutputKind.TEXT, segment.text))
            else:
                result.append(OutputSegment(_OUTPUT_KINDS[segment.kind], self.evaluate(segment.expression)))
        return result

    # ======= Литералы и имена =======

    def _evaluate_literal(self, node: LiteralNode) -> Any:
        return node.value

    def _evaluate_symbol(self, node: SymbolNode) -> Any:
        if node.name == "self":
            return self.scope
        for overlay in reversed(self.data_stack):
            if _owns(overlay, node.name):
                return _read(overlay, node.name)
        return None

    def _evaluate_array(self, node: ArrayNode) -> List[Any]:
        return [self.evaluate(item) for item in node.items]

    def _evaluate_dict(self, node: DictNode) -> Dict[str, Any]:
        return {key: self.evaluate(value) for key, value in node.entries}

    # ======= Логика =======

    def _evaluate_not(self, node: NotNode) -> bool:
        return not self.evaluate(node.operand)

    def _evaluate_and(self, node: BinaryNode) -> Any:
        left = self.evaluate(node.left)
        if not left:
            return left
        return self.evaluate(node.right)

    def _evaluate_or(self, node: BinaryNode) -> Any:
        left = self.evaluate(node.left)
        if left:
            return left
        return self.evaluate(node.right)

    def _evaluate_elvis(self, node: ElvisNode) -> Any:
        condition = self.evaluate(node.condition)
        if condition:
            return condition
        return self.evaluate(node.fallback)

    def _evaluate_null_coalesce(self, node: NullCoalesceNode) -> Any:
        value = self.evaluate(node.value)
        if value is not None:
            return value
        return self.evaluate(node.fallback)

    def _evaluate_ternary(self, node: TernaryNode) -> Any:
        if self.evaluate(node.condition):
            return self.evaluate(node.if_true)
        return self.evaluate(node.if_false)

    def _evaluate_equality(self, node: BinaryNode) -> bool:
        equal = _strict_equals(self.evaluate(node.left), self.evaluate(node.right))
        return equal if node.operator == "==" else not equal

    def _evaluate_comparison(self, node: BinaryNode) -> bool:
        left = self.evaluate(node.left)
        right = self.evaluate(node.right)
        compare = _COMPARISONS.get(node.operator)
        if compare is None:
            raise EvaluationError(f"Unknown comparison operator '{node.operator}'")
        try:
            return compare(left, right)
        except TypeError as e:
            raise EvaluationError(
                f"Cannot compare {type(left).__name__} and {type(right).__name__} with '{node.operator}'"
            ) from e

    # ======= Навигация =======

    def _evaluate_access(self, node: AccessNode) -> Any:
        """
        Цепочка доступа вычисляется слева направо над текущим значением.

        Null-safe сегмент, встретивший None, возвращает None для всей
        оставшейся цепочки, не вычисляя её.
        """
        current = self.evaluate(node.primary)
        selector = node.primary.name if isinstance(node.primary, SymbolNode) else str(node.primary)

        for segment in node.segments:
            if current is None and segment.null_safe:
                return None
            current = self._navigate(current, segment, selector)
            selector = segment.selector

        return current

    def _navigate(self, current: Any, segment: Segment, selector: str) -> Any:
        segment_type = segment.get_type()

        if segment_type == SegmentType.CALL:
            # Получатель уже связан с методом при чтении атрибута
            if current is None or not callable(current):
                raise NavigationError(f'Method missing "{selector}"', selector)
            args = [self.evaluate(arg) for arg in segment.args]
            return current(*args)

        if current is None:
            raise NavigationError(f'Cannot read "{segment.selector}" of null', segment.selector)

        if segment_type == SegmentType.MEMBER:
            return self._member(current, segment.name)
        return self._subscript(current, self.evaluate(segment.expression))

    def _member(self, current: Any, name: str) -> Any:
        if name.startswith("__"):
            raise NavigationError(f'Access to private member "{name}" is not allowed', name)
        if isinstance(current, Mapping) and name in current:
            return current[name]
        return getattr(current, name, None)

    def _subscript(self, current: Any, key: Any) -> Any:
        if isinstance(current, Mapping):
            try:
                return current.get(key)
            except TypeError:
                return None
        if isinstance(key, int) and not isinstance(key, bool) and isinstance(current, Sequence):
            if -len(current) <= key < len(current):
                return current[key]
            return None
        if isinstance(key, str):
            return self._member(current, key)
        return None

    # ======= Модули =======

    def _evaluate_module_call(self, node: ModuleCallNode) -> Any:
        if node.module is None:
            module = self.modules
        else:
            module = _resolve(self.modules, node.module)
            if module is None:
                raise ModuleResolutionError(node.module)

        function = _resolve(module, node.name)
        if function is None or not callable(function):
            raise FunctionResolutionError(node.qualified_name)

        args = [self.evaluate(arg) for arg in node.args]
        logger.debug(f"Calling {node.qualified_name} with {len(args)} argument(s)")
        if getattr(function, _SCOPE_FLAG, False):
            return function(self.scope, *args)
        return function(*args)


def interpret(
    modules: Optional[Mapping[str, Any]],
    data_stack: Sequence[Any],
    source: str,
    mode: Mode = Mode.EXPRESSION,
) -> Any:
    """
    Удобная функция: разбирает и вычисляет выражение или шаблонный текст.

    Args:
        modules: Реестр модулей
        data_stack: Стек данных
        source: Исходный текст
        mode: EXPRESSION — значение выражения, TEMPLATED — список OutputSegment

    Raises:
        ExpressionSyntaxError: При ошибке разбора
        EvaluationError: При ошибке вычисления
    """
    from .parser import ExpressionParser

    parser = ExpressionParser()
    evaluator = ExpressionEvaluator(modules, data_stack)
    if mode == Mode.TEMPLATED:
        return evaluator.evaluate_templated(parser.parse_templated(source))
    return evaluator.evaluate(parser.parse(source))


__all__ = [
    "EvaluationError",
    "ModuleResolutionError",
    "FunctionResolutionError",
    "NavigationError",
    "IterationError",
    "Mode",
    "OutputKind",
    "OutputSegment",
    "ExpressionEvaluator",
    "with_scope",
    "to_text",
    "interpret",
]
