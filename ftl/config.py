"""
Конфигурация движка шаблонов.

Настройки можно задать в коде или загрузить из YAML-файла вида:

    prefix: tpl
    markup_parser: html.parser
    cache_size: 512
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from ruamel.yaml import YAML

from .errors import FtlError

_yaml = YAML(typ="safe")

_PREFIX_RE = re.compile(r'^[a-z][a-z0-9]*(?:-[a-z0-9]+)*$')

_KNOWN_KEYS = {"prefix", "markup_parser", "cache_size"}


class ConfigError(FtlError):
    """Ошибка конфигурации движка шаблонов."""
    pass


@dataclass(frozen=True)
class TemplateConfig:
    """
    Настройки движка шаблонов.

    Attributes:
        prefix: Пространство имён директив; атрибуты имеют вид data-<prefix>-<команда>
        markup_parser: Имя парсера BeautifulSoup для разбора разметки
        cache_size: Сколько разобранных выражений хранить на семейство шаблонов
    """
    prefix: str = "tpl"
    markup_parser: str = "html.parser"
    cache_size: int = 512

    @property
    def attribute_prefix(self) -> str:
        return f"data-{self.prefix}-"

    def attribute(self, command: str) -> str:
        """Полное имя атрибута директивы: attribute("if") → data-tpl-if"""
        return self.attribute_prefix + command

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TemplateConfig":
        """Создание экземпляра из словаря (из YAML)."""
        unknown = set(data) - _KNOWN_KEYS
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

        prefix = data.get("prefix", cls.prefix)
        if not isinstance(prefix, str) or not _PREFIX_RE.match(prefix):
            raise ConfigError(f"prefix: expected lowercase identifier, got {prefix!r}")

        markup_parser = data.get("markup_parser", cls.markup_parser)
        if not isinstance(markup_parser, str) or not markup_parser:
            raise ConfigError(f"markup_parser: expected parser name, got {markup_parser!r}")

        cache_size = data.get("cache_size", cls.cache_size)
        if isinstance(cache_size, bool) or not isinstance(cache_size, int) or cache_size < 0:
            raise ConfigError(f"cache_size: expected non-negative integer, got {cache_size!r}")

        return cls(prefix=prefix, markup_parser=markup_parser, cache_size=cache_size)

    def to_dict(self) -> Dict[str, Any]:
        """Сериализация в словарь для YAML."""
        return {
            "prefix": self.prefix,
            "markup_parser": self.markup_parser,
            "cache_size": self.cache_size,
        }


DEFAULT_CONFIG = TemplateConfig()


def _read_yaml_map(path: Path) -> dict:
    """Читает YAML файл и возвращает словарь."""
    if not path.is_file():
        return {}
    raw = _yaml.load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"YAML must be a mapping: {path}")
    return raw


def load_config(path: Path) -> TemplateConfig:
    """
    Загружает конфигурацию из YAML-файла.

    Отсутствующий файл даёт конфигурацию по умолчанию.
    """
    raw = _read_yaml_map(Path(path))
    if not raw:
        return DEFAULT_CONFIG
    return TemplateConfig.from_dict(raw)


__all__ = ["ConfigError", "TemplateConfig", "DEFAULT_CONFIG", "load_config"]
