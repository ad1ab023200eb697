"""
Движок HTML-шаблонов на директивах.

Шаблон — фрагмент разметки с атрибутами data-tpl-* и интерполяциями
{{ ... }} в тексте. Рендеринг возвращает новый фрагмент, исходный
не изменяется.
"""

from __future__ import annotations

from .commands import DirectiveCommands, DirectiveError
from .context import EvaluationContext
from .dom import get_property, parse_markup, to_html
from .template import ParseCache, RenderError, Template

__all__ = [
    "Template",
    "RenderError",
    "ParseCache",
    "EvaluationContext",
    "DirectiveCommands",
    "DirectiveError",
    "parse_markup",
    "to_html",
    "get_property",
]
