"""
Операции изменения дерева во время обхода.

Различает два вида замены узла:
- ведущая (leading): новые узлы вставляются перед текущим, то есть позади
  курсора, и больше не посещаются;
- замыкающая (trailing): новые узлы вставляются сразу после текущего, то есть
  впереди курсора, и будут обработаны дальше.

Удаление узлов откладывается до следующего шага обхода, чтобы не сломать курсор.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional

from bs4.element import PageElement

from .dom import clone_node, insert_after, insert_before, is_element


class NodeOperations:
    """Операции над узлами с отложенным удалением."""

    def __init__(self, attribute_prefix: str):
        """
        Args:
            attribute_prefix: Префикс атрибутов директив, например "data-tpl-"
        """
        self.attribute_prefix = attribute_prefix
        self._for_removal: List[PageElement] = []
        self._sealed: List[PageElement] = []

    def directive_attributes(self, node: PageElement) -> List[str]:
        """Имена атрибутов директив на элементе в порядке их следования."""
        if not is_element(node):
            return []
        return [name for name in node.attrs if name.startswith(self.attribute_prefix)]

    def has_directives(self, node: PageElement) -> bool:
        return bool(self.directive_attributes(node))

    def pop_attribute(self, node: PageElement, name: str) -> Optional[Any]:
        """Удаляет атрибут и возвращает его значение (None, если атрибута не было)."""
        if not is_element(node) or name not in node.attrs:
            return None
        value = node.attrs.pop(name)
        if isinstance(value, list):
            value = " ".join(value)
        return value

    def remove(self, node: PageElement) -> None:
        """
        Помечает узел к удалению.

        Потомки и директивы удаляются сразу (чтобы курсор в них не зашёл),
        сам узел отсоединяется при следующем cleanup().
        """
        if is_element(node):
            node.clear()
            for name in self.directive_attributes(node):
                del node.attrs[name]
        self._for_removal.append(node)

    def replace(self, node: PageElement, nodes: Iterable[Any]) -> None:
        """Ведущая замена: новые узлы встают перед node и не будут посещены."""
        insert_before(node, nodes)
        self.remove(node)

    def replace_and_evaluate(self, node: PageElement, nodes: Iterable[Any]) -> None:
        """Замыкающая замена: новые узлы встают после node и будут обработаны."""
        insert_after(node, list(nodes))
        self.remove(node)

    def seal(self, node: PageElement) -> None:
        """
        Помечает содержимое элемента как окончательное.

        После обработки всех директив элемента finish() переносит его
        ведущей заменой за курсор, и потомки не будут интерпретированы повторно.
        """
        if not self.is_sealed(node):
            self._sealed.append(node)

    def is_sealed(self, node: PageElement) -> bool:
        return any(sealed is node for sealed in self._sealed)

    def is_removed(self, node: PageElement) -> bool:
        return any(removed is node for removed in self._for_removal)

    def finish(self, node: PageElement) -> None:
        """Завершает обработку элемента: запечатанный элемент уходит за курсор."""
        if self.is_sealed(node) and not self.is_removed(node):
            self.replace(node, [clone_node(node)])
        self._sealed.clear()

    def cleanup(self) -> None:
        """Отсоединяет помеченные узлы от дерева."""
        while self._for_removal:
            self._for_removal.pop().extract()


__all__ = ["NodeOperations"]
