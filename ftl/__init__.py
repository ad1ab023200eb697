"""
ftl: декларативные HTML-шаблоны с языком выражений.
"""

from __future__ import annotations

from .config import DEFAULT_CONFIG, ConfigError, TemplateConfig, load_config
from .errors import FtlError
from .expressions import (
    EvaluationError,
    ExpressionSyntaxError,
    Mode,
    interpret,
    parse_expression,
    parse_templated,
    with_scope,
)
from .template import (
    DirectiveError,
    EvaluationContext,
    RenderError,
    Template,
    get_property,
    parse_markup,
    to_html,
)

__version__ = "0.1.0"

__all__ = [
    "Template",
    "EvaluationContext",
    "TemplateConfig",
    "DEFAULT_CONFIG",
    "load_config",
    "FtlError",
    "ConfigError",
    "RenderError",
    "DirectiveError",
    "EvaluationError",
    "ExpressionSyntaxError",
    "Mode",
    "interpret",
    "parse_expression",
    "parse_templated",
    "with_scope",
    "parse_markup",
    "to_html",
    "get_property",
]
