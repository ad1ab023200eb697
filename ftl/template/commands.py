"""
Набор директив шаблона.

Каждая директива — атрибут data-<prefix>-<команда> на элементе. Директивы
обрабатываются в фиксированном порядке ORDERED_COMMANDS, каждый атрибут
удаляется при обработке. Оставшиеся атрибуты пространства имён директив
становятся обычными атрибутами с вычисленными значениями.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Callable, Dict, List

from bs4 import NavigableString
from bs4.element import PageElement

from ..errors import FtlError
from ..expressions.evaluator import IterationError, OutputKind, to_text
from .dom import add_classes, clone_node, fragment_from_nodes, parse_markup, set_property
from .operations import NodeOperations

if TYPE_CHECKING:
    from .template import Template

logger = logging.getLogger(__name__)


class DirectiveError(FtlError):
    """Некорректное значение директивы."""
    pass


CommandHandler = Callable[["Template", PageElement, str, NodeOperations], None]

REMOVE_MODES = ("tag", "body", "all")


def _overlay(var_name: Any, value: Any) -> Any:
    """Новый слой данных: само значение или {var_name: значение}."""
    return {var_name: value} if var_name else value


class DirectiveCommands:
    """
    Обработчики директив.

    Обработчик получает шаблон (для вычисления выражений и дочерних
    рендеров), элемент, значение атрибута и операции над деревом.
    """

    # Порядок обработки директив на одном элементе
    ORDERED_COMMANDS = (
        "if",
        "with",
        "each",
        "value",
        "class-append",
        "attr-append",
        "attribute-append",
        "text",
        "html",
        "remove",
    )

    # Имя переменной для with/each
    VAR = "var"

    def __init__(self):
        self._handlers: Dict[str, CommandHandler] = {
            "if": self.command_if,
            "with": self.command_with,
            "each": self.command_each,
            "value": self.command_value,
            "class-append": self.command_class_append,
            "attr-append": self.command_attr_append,
            "attribute-append": self.command_attr_append,
            "text": self.command_text,
            "html": self.command_html,
            "remove": self.command_remove,
        }

    def handler(self, command: str) -> CommandHandler:
        return self._handlers[command]

    # ======= Директивы =======

    def command_if(self, template: Template, node: PageElement, expression: str, ops: NodeOperations) -> None:
        """Ложное условие удаляет элемент вместе с поддеревом."""
        if not template.evaluate(expression):
            ops.remove(node)

    def command_with(self, template: Template, node: PageElement, expression: str, ops: NodeOperations) -> None:
        """
        Рендерит элемент как под-шаблон с новым слоем данных.

        Результат встаёт на место элемента ведущей заменой.
        """
        value = template.evaluate(expression)
        var_name = ops.pop_attribute(node, template.config.attribute(self.VAR))
        # Клонируем: сам узел остаётся местом вставки
        fragment = fragment_from_nodes([clone_node(node)], parser=template.config.markup_parser)
        rendered = template.with_fragment(fragment).render(_overlay(var_name, value))
        ops.replace(node, [rendered])

    def command_each(self, template: Template, node: PageElement, expression: str, ops: NodeOperations) -> None:
        """
        Рендерит элемент по разу на каждый элемент коллекции, сохраняя порядок.

        Raises:
            IterationError: Если значение выражения не является коллекцией
        """
        var_name = ops.pop_attribute(node, template.config.attribute(self.VAR))
        items = template.evaluate(expression)
        if items is None or isinstance(items, (str, bytes, Mapping)):
            raise IterationError(f"Expression '{expression}' is not iterable (got {type(items).__name__})")
        try:
            iterator = iter(items)
        except TypeError as e:
            raise IterationError(f"Expression '{expression}' is not iterable (got {type(items).__name__})") from e

        fragment = fragment_from_nodes([clone_node(node)], parser=template.config.markup_parser)
        sub_template = template.with_fragment(fragment)
        rendered = [sub_template.render(_overlay(var_name, item)) for item in iterator]
        ops.replace(node, rendered)

    def command_value(self, template: Template, node: PageElement, expression: str, ops: NodeOperations) -> None:
        """Устанавливает свойство value элемента (не атрибут разметки)."""
        set_property(node, "value", template.evaluate(expression))

    def command_class_append(self, template: Template, node: PageElement, expression: str, ops: NodeOperations) -> None:
        classes = template.evaluate(expression)
        if classes is None:
            return
        if isinstance(classes, str):
            classes = [classes]
        if not isinstance(classes, (list, tuple)) or not all(isinstance(c, str) for c in classes):
            raise DirectiveError(f"class-append expects a string or a list of strings, got {classes!r}")
        add_classes(node, classes)

    def command_attr_append(self, template: Template, node: PageElement, expression: str, ops: NodeOperations) -> None:
        """Устанавливает атрибуты из пары [имя, значение] или списка таких пар."""
        pairs = template.evaluate(expression)
        if not pairs:
            return
        if not isinstance(pairs, (list, tuple)):
            raise DirectiveError(f"attr-append expects a [name, value] pair or a list of pairs, got {pairs!r}")
        if not isinstance(pairs[0], (list, tuple)):
            pairs = [pairs]
        for pair in pairs:
            if not isinstance(pair, (list, tuple)) or len(pair) != 2:
                raise DirectiveError(f"attr-append expects [name, value] pairs, got {pair!r}")
            name, value = pair
            node[to_text(name)] = to_text(value)

    def command_text(self, template: Template, node: PageElement, expression: str, ops: NodeOperations) -> None:
        """Заменяет содержимое элемента текстом; текст не интерпретируется повторно."""
        text = template.evaluate(expression)
        node.clear()
        node.append(NavigableString(to_text(text)))
        ops.seal(node)

    def command_html(self, template: Template, node: PageElement, expression: str, ops: NodeOperations) -> None:
        """Заменяет содержимое элемента разобранной разметкой; она не интерпретируется повторно."""
        markup = template.evaluate(expression)
        fragment = parse_markup(to_text(markup), template.config.markup_parser)
        node.clear()
        for child in list(fragment.contents):
            node.append(child)
        ops.seal(node)

    def command_remove(self, template: Template, node: PageElement, mode: str, ops: NodeOperations) -> None:
        """
        tag  — снимает обёртку, дети встают после курсора и обрабатываются дальше;
        body — очищает содержимое, элемент остаётся;
        all  — удаляет элемент целиком.
        """
        mode = (mode or "").strip().lower()
        if mode == "tag":
            children = list(node.contents)
            if ops.is_sealed(node):
                # Содержимое уже окончательное: за курсор
                ops.replace(node, children)
            else:
                ops.replace_and_evaluate(node, children)
        elif mode == "body":
            node.clear()
        elif mode == "all":
            ops.remove(node)
        else:
            raise DirectiveError(f"remove expects one of {', '.join(REMOVE_MODES)}, got {mode!r}")

    # ======= Атрибуты и текст =======

    def bind_attributes(self, template: Template, node: PageElement, ops: NodeOperations) -> None:
        """
        Оставшиеся атрибуты директив становятся обычными атрибутами.

        Булево значение включает/выключает атрибут, None пропускается,
        остальное записывается строкой.
        """
        prefix = template.config.attribute_prefix
        for attribute in ops.directive_attributes(node):
            expression = ops.pop_attribute(node, attribute)
            name = attribute[len(prefix):]
            if name == self.VAR:
                logger.warning(f"Ignoring '{attribute}' without with/each directive")
                continue
            evaluated = template.evaluate(expression)
            if isinstance(evaluated, bool):
                if evaluated:
                    node[name] = name
                else:
                    node.attrs.pop(name, None)
            elif evaluated is not None:
                node[name] = to_text(evaluated)

    def interpolate(self, template: Template, node: PageElement, source: str, ops: NodeOperations) -> None:
        """
        Заменяет текстовый узел результатом шаблонного текста.

        Текст экранируется, разметка разбирается в узлы, готовые узлы
        вставляются как есть. Вставка ведущая: результат не интерпретируется.
        """
        nodes: List[Any] = []
        for segment in template.evaluate_templated(source):
            if segment.kind == OutputKind.TEXT:
                nodes.append(NavigableString(to_text(segment.value)))
            elif segment.kind == OutputKind.HTML:
                nodes.append(parse_markup(to_text(segment.value), template.config.markup_parser))
            elif segment.value is not None:
                nodes.append(segment.value)
        ops.replace(node, nodes)


__all__ = ["DirectiveError", "DirectiveCommands", "REMOVE_MODES"]
