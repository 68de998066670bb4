"""配置加载与校验测试"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

import repkg.core.config as cfgmod
from repkg.core.config import Config, get_config, init_config
from repkg.core.exceptions import ConfigError
from repkg.utils.yaml_io import MAX_YAML_SIZE, load_yaml


def _write(tmp_path: Path, data: object) -> Path:
    p = tmp_path / "repkg.yml"
    p.write_text(yaml.dump(data), encoding="utf-8")
    return p


class TestConfig:
    def test_defaults(self) -> None:
        cfg = Config()
        assert cfg.registry_url == "http://localhost:4873"
        assert cfg.metadata_path == "-/verdaccio/data/sidebar"
        assert cfg.packages_dir == "packages"
        assert cfg.resolve_timeout == 2.0
        assert cfg.shutdown_timeout == 5.0
        assert cfg.port == 8001

    def test_from_file_with_extra(self, tmp_path: Path) -> None:
        path = _write(tmp_path, {
            "registry_url": "https://npm.example.com/",
            "fetch_timeout": 30,
            "team": "frontend",
        })
        cfg = Config.from_file(str(path))
        assert cfg.registry_base == "https://npm.example.com"
        assert cfg.fetch_timeout == 30
        assert cfg.extra == {"team": "frontend"}

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        assert Config.from_file(str(tmp_path / "nope.yml")) == Config()

    @pytest.mark.parametrize("data", [
        {"registry_url": "file:///srv/registry"},
        {"resolve_timeout": 0},
        {"fetch_timeout": -1},
        {"chunk_size": 0},
    ])
    def test_invalid_values(self, tmp_path: Path, data: dict) -> None:
        with pytest.raises(ConfigError):
            Config.from_file(str(_write(tmp_path, data)))

    def test_init_and_get(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(cfgmod, "_current", None)
        path = _write(tmp_path, {"port": 9000})
        cfg = init_config(str(path))
        assert get_config() is cfg
        assert cfg.port == 9000

    def test_to_dict(self) -> None:
        assert Config().to_dict()["packages_dir"] == "packages"

    @pytest.mark.parametrize("content", ["a: [1, 2", "x: " + "a" * (MAX_YAML_SIZE + 1)])
    def test_unreadable_file_is_config_error(self, tmp_path: Path, content: str) -> None:
        p = tmp_path / "broken.yml"
        p.write_text(content, encoding="utf-8")
        with pytest.raises(ConfigError, match="读取配置文件失败"):
            Config.from_file(str(p))


class TestLoadYaml:
    def test_non_mapping_returns_empty(self, tmp_path: Path) -> None:
        assert load_yaml(_write(tmp_path, ["a", "b"])) == {}

    def test_empty_file(self, tmp_path: Path) -> None:
        p = tmp_path / "empty.yml"
        p.write_text("", encoding="utf-8")
        assert load_yaml(p) == {}

    def test_too_large(self, tmp_path: Path) -> None:
        p = tmp_path / "big.yml"
        p.write_text("x: " + "a" * (MAX_YAML_SIZE + 1), encoding="utf-8")
        with pytest.raises(ValueError, match="过大"):
            load_yaml(p)

    def test_syntax_error(self, tmp_path: Path) -> None:
        p = tmp_path / "bad.yml"
        p.write_text("a: [1, 2", encoding="utf-8")
        with pytest.raises(yaml.YAMLError):
            load_yaml(p)
