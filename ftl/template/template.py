"""
Шаблон: фрагмент разметки, реестр модулей и стек данных.

Публичный API движка. render() клонирует фрагмент, обходит копию курсором
и применяет директивы и интерполяции, возвращая изменённую копию.
Исходный фрагмент никогда не изменяется, поэтому один шаблон можно
рендерить многократно.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from collections.abc import Mapping
from typing import Any, Optional, Tuple, Union

from bs4 import BeautifulSoup, Tag
from bs4.element import PageElement

from ..config import DEFAULT_CONFIG, TemplateConfig
from ..errors import FtlError
from ..expressions.evaluator import ExpressionEvaluator, OutputSegment
from ..expressions.model import Expression, TemplatedText
from ..expressions.parser import ExpressionParser
from .commands import DirectiveCommands
from .context import EvaluationContext
from .dom import (
    NodeCursor,
    NodeFilter,
    clone_fragment,
    fragment_from_nodes,
    is_element,
    is_text_node,
    node_path,
    parse_markup,
    shallow_html,
    to_html,
)
from .operations import NodeOperations

logger = logging.getLogger(__name__)

_TEXT_START = "{{"
_TEXT_END = "}}"


class RenderError(FtlError):
    """
    Ошибка рендеринга с контекстом узла.

    Attributes:
        snippet: Разметка узла без потомков (снята до изменений)
        path: Цепочка предков узла
        command: Директива, при обработке которой произошла ошибка
        cause: Исходное исключение
    """

    def __init__(
        self,
        message: str,
        snippet: str,
        path: str = "",
        command: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        location = f" at {path}" if path else ""
        super().__init__(f"{message} in `{snippet}`{location}")
        self.snippet = snippet
        self.path = path
        self.command = command
        self.cause = cause

    @property
    def root_cause(self) -> Optional[Exception]:
        """Первое исключение в цепочке, не являющееся RenderError."""
        cause = self.cause
        while isinstance(cause, RenderError):
            cause = cause.cause
        return cause


class ParseCache:
    """
    LRU-кэш разобранных выражений и шаблонного текста.

    Разбор чистый, AST неизменяемо, поэтому кэш разделяется всеми
    шаблонами, производными от одного, в том числе между потоками.
    Парсер хранит состояние разбора, поэтому на каждый промах создаётся
    новый; словарь записей защищён блокировкой.
    """

    def __init__(self, max_size: int):
        self.max_size = max_size
        self._entries: OrderedDict[Tuple[bool, str], Any] = OrderedDict()
        self._lock = threading.Lock()

    def expression(self, source: str) -> Expression:
        return self._get(False, source)

    def templated(self, source: str) -> TemplatedText:
        return self._get(True, source)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _get(self, templated: bool, source: str) -> Any:
        key = (templated, source)
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                return self._entries[key]

        # Разбор вне блокировки: одинаковый промах в двух потоках даёт равные AST
        parser = ExpressionParser()
        ast = parser.parse_templated(source) if templated else parser.parse(source)
        logger.debug(f"Parsed {'templated text' if templated else 'expression'} {source!r}")

        if self.max_size > 0:
            with self._lock:
                self._entries[key] = ast
                self._entries.move_to_end(key)
                while len(self._entries) > self.max_size:
                    self._entries.popitem(last=False)
        return ast


ModulesLike = Union[EvaluationContext, Mapping[str, Any], None]


def _as_context(ec: ModulesLike) -> EvaluationContext:
    if isinstance(ec, EvaluationContext):
        return ec
    return EvaluationContext.configure(ec)


class Template:
    """
    Неизменяемый шаблон.

    Все методы with_* возвращают новый шаблон; render() не меняет ни
    шаблон, ни его фрагмент.
    """

    def __init__(
        self,
        fragment: BeautifulSoup,
        ec: ModulesLike = None,
        *data: Any,
        config: Optional[TemplateConfig] = None,
        cache: Optional[ParseCache] = None,
    ):
        """
        Args:
            fragment: Фрагмент разметки шаблона
            ec: Контекст вычисления или словарь модулей
            *data: Слои данных (от старых к новым)
            config: Настройки движка
            cache: Кэш разбора (передаётся производным шаблонам)
        """
        self._fragment = fragment
        self._ec = _as_context(ec)
        self._data: Tuple[Any, ...] = tuple(data)
        self.config = config or DEFAULT_CONFIG
        self._cache = cache if cache is not None else ParseCache(self.config.cache_size)
        self._evaluator = ExpressionEvaluator(self._ec.functions, self._data)
        self._commands = DirectiveCommands()

    # ======= Конструкторы =======

    @classmethod
    def from_html(cls, html: str, ec: ModulesLike = None, *data: Any, config: Optional[TemplateConfig] = None) -> "Template":
        config = config or DEFAULT_CONFIG
        return cls(parse_markup(html, config.markup_parser), ec, *data, config=config)

    @classmethod
    def from_fragment(cls, fragment: BeautifulSoup, ec: ModulesLike = None, *data: Any,
                      config: Optional[TemplateConfig] = None) -> "Template":
        return cls(fragment, ec, *data, config=config)

    @classmethod
    def from_template(cls, template_el: Tag, ec: ModulesLike = None, *data: Any,
                      config: Optional[TemplateConfig] = None) -> "Template":
        """Шаблон из содержимого элемента <template>."""
        if not is_element(template_el) or template_el.name != "template":
            raise FtlError("Expected a <template> element")
        config = config or DEFAULT_CONFIG
        fragment = fragment_from_nodes(template_el.contents, clone=True, parser=config.markup_parser)
        return cls(fragment, ec, *data, config=config)

    @classmethod
    def from_selector(cls, document: Tag, selector: str, ec: ModulesLike = None, *data: Any,
                      config: Optional[TemplateConfig] = None) -> "Template":
        """Шаблон из элемента <template>, найденного в документе CSS-селектором."""
        template_el = document.select_one(selector)
        if template_el is None or template_el.name != "template":
            raise FtlError(f"Selector '{selector}' does not match any template tag")
        return cls.from_template(template_el, ec, *data, config=config)

    # ======= Производные шаблоны =======

    def with_fragment(self, fragment: BeautifulSoup) -> "Template":
        return Template(fragment, self._ec, *self._data, config=self.config, cache=self._cache)

    def with_data(self, *data: Any) -> "Template":
        if not data:
            return self
        return Template(self._fragment, self._ec, *self._data, *data, config=self.config, cache=self._cache)

    def with_modules(self, functions: Mapping[str, Any]) -> "Template":
        return Template(self._fragment, self._ec.with_modules(functions), *self._data,
                        config=self.config, cache=self._cache)

    def with_module(self, name: str, functions: Any) -> "Template":
        return Template(self._fragment, self._ec.with_module(name, functions), *self._data,
                        config=self.config, cache=self._cache)

    @property
    def fragment(self) -> BeautifulSoup:
        return self._fragment

    @property
    def data(self) -> Tuple[Any, ...]:
        return self._data

    @property
    def context(self) -> EvaluationContext:
        return self._ec

    # ======= Вычисление =======

    def evaluate(self, expression: str) -> Any:
        """Вычисляет выражение относительно модулей и стека данных шаблона."""
        return self._evaluator.evaluate(self._cache.expression(expression))

    def evaluate_templated(self, text: str) -> list[OutputSegment]:
        return self._evaluator.evaluate_templated(self._cache.templated(text))

    # ======= Рендеринг =======

    def render(self, *data: Any) -> BeautifulSoup:
        """
        Рендерит шаблон с дополнительными слоями данных.

        Returns:
            Новый фрагмент

        Raises:
            RenderError: При любой ошибке вычисления или изменения дерева
        """
        template = self.with_data(*data)
        try:
            return template._render()
        except Exception as e:
            raise RenderError("Error rendering template", shallow_html(template._fragment), cause=e) from e

    def render_html(self, *data: Any) -> str:
        return to_html(self.render(*data))

    def render_to(self, element: Tag, *data: Any) -> None:
        """Заменяет содержимое элемента результатом рендеринга."""
        fragment = self.render(*data)
        element.clear()
        for node in list(fragment.contents):
            element.append(node)

    def append_to(self, element: Tag, *data: Any) -> None:
        """Добавляет результат рендеринга в конец элемента."""
        fragment = self.render(*data)
        for node in list(fragment.contents):
            element.append(node)

    def render_to_selector(self, document: Tag, selector: str, *data: Any) -> None:
        """Заменяет содержимое элемента, найденного в документе CSS-селектором."""
        self.render_to(self._select(document, selector), *data)

    def append_to_selector(self, document: Tag, selector: str, *data: Any) -> None:
        self.append_to(self._select(document, selector), *data)

    @staticmethod
    def _select(document: Tag, selector: str) -> Tag:
        element = document.select_one(selector)
        if element is None:
            raise FtlError(f"Selector '{selector}' does not match any element")
        return element

    def _render(self) -> BeautifulSoup:
        ops = NodeOperations(self.config.attribute_prefix)
        fragment = clone_fragment(self._fragment, self.config.markup_parser)
        cursor = NodeCursor(fragment, lambda node: self._accept(node, ops))
        logger.debug(f"Rendering template with {len(self._data)} data overlay(s)")

        while True:
            node = cursor.next_node()
            if node is None:
                break
            # Узлы, помеченные на предыдущем шаге, отсоединяются только сейчас
            ops.cleanup()
            if is_text_node(node):
                self._process_text(node, ops)
            else:
                self._process_element(node, ops)

        ops.cleanup()
        return fragment

    def _accept(self, node: PageElement, ops: NodeOperations) -> NodeFilter:
        if is_text_node(node):
            if _TEXT_START in node and _TEXT_END in node:
                return NodeFilter.ACCEPT
            return NodeFilter.REJECT
        if not is_element(node):
            return NodeFilter.REJECT
        if ops.has_directives(node):
            return NodeFilter.ACCEPT
        return NodeFilter.SKIP

    def _process_text(self, node: PageElement, ops: NodeOperations) -> None:
        snippet = shallow_html(node)
        try:
            self._commands.interpolate(self, node, str(node), ops)
        except Exception as e:
            raise RenderError("Error evaluating text node", snippet, node_path(node), cause=e) from e

    def _process_element(self, node: Tag, ops: NodeOperations) -> None:
        snippet = shallow_html(node)
        path = node_path(node)

        for command in DirectiveCommands.ORDERED_COMMANDS:
            attribute = self.config.attribute(command)
            if attribute not in node.attrs:
                continue
            value = ops.pop_attribute(node, attribute)
            logger.debug(f"Applying {attribute}={value!r} to <{node.name}>")
            try:
                self._commands.handler(command)(self, node, value, ops)
            except Exception as e:
                raise RenderError(f"Error evaluating command {command}", snippet, path, command, e) from e

        try:
            self._commands.bind_attributes(self, node, ops)
            ops.finish(node)
        except Exception as e:
            raise RenderError("Error evaluating attributes", snippet, path, cause=e) from e


__all__ = ["Template", "RenderError", "ParseCache"]
