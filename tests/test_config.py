"""
Тесты конфигурации движка шаблонов.
"""

import textwrap
from pathlib import Path

import pytest

from ftl.config import DEFAULT_CONFIG, ConfigError, TemplateConfig, load_config


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text).lstrip(), encoding="utf-8")
    return path


class TestTemplateConfig:

    def test_defaults(self):
        config = TemplateConfig()
        assert config.prefix == "tpl"
        assert config.attribute_prefix == "data-tpl-"
        assert config.attribute("if") == "data-tpl-if"
        assert config.markup_parser == "html.parser"
        assert config.cache_size == 512

    def test_from_dict_partial(self):
        config = TemplateConfig.from_dict({"prefix": "my-app"})
        assert config.attribute("each") == "data-my-app-each"
        assert config.cache_size == DEFAULT_CONFIG.cache_size

    def test_round_trip(self):
        config = TemplateConfig(prefix="x", cache_size=8)
        assert TemplateConfig.from_dict(config.to_dict()) == config

    @pytest.mark.parametrize(
        "data, message",
        [
            ({"colour": "red"}, "Unknown config keys: colour"),
            ({"prefix": "Bad"}, "prefix"),
            ({"prefix": "a_b"}, "prefix"),
            ({"prefix": 1}, "prefix"),
            ({"markup_parser": ""}, "markup_parser"),
            ({"cache_size": -1}, "cache_size"),
            ({"cache_size": True}, "cache_size"),
            ({"cache_size": "10"}, "cache_size"),
        ],
    )
    def test_invalid_values(self, data, message):
        with pytest.raises(ConfigError, match=message):
            TemplateConfig.from_dict(data)


class TestLoadConfig:

    def test_missing_file(self, tmp_path):
        assert load_config(tmp_path / "ftl.yaml") is DEFAULT_CONFIG

    def test_empty_file(self, tmp_path):
        path = write(tmp_path / "ftl.yaml", "")
        assert load_config(path) is DEFAULT_CONFIG

    def test_yaml_file(self, tmp_path):
        path = write(
            tmp_path / "ftl.yaml",
            """
            prefix: view
            cache_size: 16
            """,
        )
        config = load_config(path)
        assert config.attribute("text") == "data-view-text"
        assert config.cache_size == 16
        assert config.markup_parser == "html.parser"

    def test_yaml_must_be_mapping(self, tmp_path):
        path = write(tmp_path / "ftl.yaml", "- a\n- b\n")
        with pytest.raises(ConfigError, match="YAML must be a mapping"):
            load_config(path)
