"""
Тонкий слой над деревом BeautifulSoup.

Фрагмент шаблона — это объект BeautifulSoup без обёртки <html>/<body>
(парсер html.parser), его дети — узлы верхнего уровня. Здесь собраны
операции над деревом, на которых строится движок: разбор разметки,
клонирование, сериализация, курсор обхода с фильтром.
"""

from __future__ import annotations

import copy
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PageElement, PreformattedString

DEFAULT_PARSER = "html.parser"

_PROPERTIES = "_ftl_properties"


def parse_markup(markup: str, parser: str = DEFAULT_PARSER) -> BeautifulSoup:
    """Разбирает HTML-строку во фрагмент."""
    return BeautifulSoup(markup, parser)


def empty_fragment(parser: str = DEFAULT_PARSER) -> BeautifulSoup:
    return BeautifulSoup("", parser)


def is_fragment(node: Any) -> bool:
    return isinstance(node, BeautifulSoup)


def is_element(node: Any) -> bool:
    return isinstance(node, Tag) and not isinstance(node, BeautifulSoup)


def is_text_node(node: Any) -> bool:
    """Текстовый узел: строка, но не комментарий, CDATA, doctype и т.п."""
    return isinstance(node, NavigableString) and not isinstance(node, PreformattedString)


def clone_node(node: PageElement) -> PageElement:
    """Глубокая копия узла, не привязанная ни к какому дереву (со свойствами самого узла)."""
    clone = copy.copy(node)
    if isinstance(node, Tag) and _PROPERTIES in vars(node):
        vars(clone)[_PROPERTIES] = dict(vars(node)[_PROPERTIES])
    return clone


def clone_fragment(fragment: BeautifulSoup, parser: str = DEFAULT_PARSER) -> BeautifulSoup:
    """Глубокая копия фрагмента; исходный фрагмент не изменяется."""
    return fragment_from_nodes(fragment.contents, clone=True, parser=parser)


def fragment_from_nodes(nodes: Iterable[Any], clone: bool = False, parser: str = DEFAULT_PARSER) -> BeautifulSoup:
    """Собирает фрагмент из узлов (с клонированием или перемещением)."""
    fragment = empty_fragment(parser)
    for node in expand_nodes(nodes):
        fragment.append(clone_node(node) if clone else node)
    return fragment


def expand_nodes(nodes: Iterable[Any]) -> List[PageElement]:
    """
    Разворачивает смешанный набор в плоский список узлов.

    Фрагменты и списки раскрываются, строки становятся текстовыми узлами,
    None пропускается.
    """
    result: List[PageElement] = []
    for node in nodes:
        if node is None:
            continue
        if isinstance(node, BeautifulSoup):
            result.extend(list(node.contents))
        elif isinstance(node, PageElement):
            result.append(node)
        elif isinstance(node, str):
            result.append(NavigableString(node))
        elif isinstance(node, (list, tuple)):
            result.extend(expand_nodes(node))
        else:
            raise TypeError(f"Cannot insert {type(node).__name__} into a template tree")
    return result


def insert_before(reference: PageElement, nodes: Iterable[Any]) -> None:
    """Вставляет узлы перед reference, сохраняя их порядок."""
    for node in expand_nodes(nodes):
        reference.insert_before(node)


def insert_after(reference: PageElement, nodes: Iterable[Any]) -> None:
    """Вставляет узлы сразу после reference, сохраняя их порядок."""
    anchor = reference
    for node in expand_nodes(nodes):
        anchor.insert_after(node)
        anchor = node


def to_html(node: Any) -> str:
    """Сериализует узел, фрагмент или последовательность узлов в HTML."""
    if isinstance(node, Tag):
        return node.decode()
    if isinstance(node, NavigableString):
        return node.output_ready()
    return "".join(to_html(child) for child in node)


def shallow_html(node: Any) -> str:
    """
    Сериализует узел без потомков для диагностических сообщений.

    Для фрагмента берётся первый элемент верхнего уровня.
    """
    if isinstance(node, BeautifulSoup):
        first = next((child for child in node.contents if is_element(child)), None)
        if first is None:
            return node.get_text().strip()
        node = first
    if isinstance(node, Tag):
        clone = copy.copy(node)
        clone.clear()
        return clone.decode()
    return str(node).strip()


def node_path(node: PageElement) -> str:
    """Цепочка предков узла вида div#main > ul > li."""
    parts: List[str] = []
    current = node if is_element(node) else node.parent
    while current is not None and is_element(current):
        label = current.name
        element_id = current.get("id")
        if element_id:
            label += f"#{element_id}"
        parts.append(label)
        current = current.parent
    return " > ".join(reversed(parts))


def add_classes(node: Tag, classes: Iterable[Any]) -> None:
    """Добавляет классы к элементу, не удаляя существующие и не дублируя их."""
    existing = node.get("class") or []
    if isinstance(existing, str):
        existing = existing.split()
    # Новый список: значения атрибутов разделяются между клонами
    merged = list(existing)
    for value in classes:
        for name in str(value).split():
            if name not in merged:
                merged.append(name)
    node["class"] = merged


def set_property(node: Tag, name: str, value: Any) -> None:
    """Устанавливает "живое" свойство элемента, не попадающее в разметку."""
    vars(node).setdefault(_PROPERTIES, {})[name] = value


def get_property(node: Tag, name: str, default: Any = None) -> Any:
    return vars(node).get(_PROPERTIES, {}).get(name, default)


class NodeFilter(Enum):
    """Решение фильтра курсора."""
    ACCEPT = "accept"    # посетить узел
    SKIP = "skip"        # пропустить узел, но обойти его потомков
    REJECT = "reject"    # пропустить узел вместе с потомками


class NodeCursor:
    """
    Прямой курсор обхода дерева в прямом порядке (pre-order).

    Следующий узел вычисляется от текущего в момент вызова next_node(),
    поэтому узлы, вставленные перед текущим, уже не посещаются, а узлы,
    вставленные сразу после него, будут посещены. Текущий узел нельзя
    отсоединять от дерева до следующего вызова next_node().
    """

    def __init__(self, root: Tag, accept: Callable[[PageElement], NodeFilter]):
        self.root = root
        self._accept = accept
        self._reference: Optional[PageElement] = None

    @property
    def reference(self) -> Optional[PageElement]:
        return self._reference

    def next_node(self) -> Optional[PageElement]:
        """Возвращает следующий принятый фильтром узел или None в конце обхода."""
        node = self._reference
        descend = True
        while True:
            node = self._successor(node, descend)
            if node is None:
                return None
            verdict = self._accept(node)
            if verdict is NodeFilter.ACCEPT:
                self._reference = node
                return node
            descend = verdict is NodeFilter.SKIP

    def _successor(self, node: Optional[PageElement], descend: bool) -> Optional[PageElement]:
        if node is None:
            return self.root.contents[0] if self.root.contents else None
        if descend and isinstance(node, Tag) and node.contents:
            return node.contents[0]
        while node is not None and node is not self.root:
            if node.next_sibling is not None:
                return node.next_sibling
            node = node.parent
        return None


__all__ = [
    "DEFAULT_PARSER",
    "parse_markup",
    "empty_fragment",
    "is_fragment",
    "is_element",
    "is_text_node",
    "clone_node",
    "clone_fragment",
    "fragment_from_nodes",
    "expand_nodes",
    "insert_before",
    "insert_after",
    "to_html",
    "shallow_html",
    "node_path",
    "add_classes",
    "set_property",
    "get_property",
    "NodeFilter",
    "NodeCursor",
]
