"""
Контекст вычисления: реестр модулей, доступных выражениям шаблона.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Mapping, Optional


class EvaluationContext:
    """
    Неизменяемый реестр модулей.

    Функции верхнего уровня вызываются как #name(...), вложенные
    словари или объекты — как #module:name(...).
    """

    def __init__(self, functions: Optional[Mapping[str, Any]] = None):
        self._functions = MappingProxyType(dict(functions or {}))

    @property
    def functions(self) -> Mapping[str, Any]:
        return self._functions

    def with_module(self, name: str, functions: Any) -> "EvaluationContext":
        """Новый контекст с добавленным (или заменённым) именованным модулем."""
        return EvaluationContext.configure({**self._functions, name: functions})

    def with_modules(self, functions: Mapping[str, Any]) -> "EvaluationContext":
        """Новый контекст, дополненный функциями и модулями из functions."""
        return EvaluationContext.configure({**self._functions, **functions})

    @classmethod
    def configure(cls, functions: Optional[Mapping[str, Any]] = None) -> "EvaluationContext":
        return cls(functions)

    def __repr__(self) -> str:
        return f"EvaluationContext({sorted(self._functions)})"


__all__ = ["EvaluationContext"]
