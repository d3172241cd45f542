"""
Tests para la carga de configuración.

Cubre:
- Defaults de los schemas
- Precedencia: defaults < YAML < env < CLI
- Validación: extra forbid, entry points vacíos, prefijo de comando
"""

import sys
from pathlib import Path

import pytest
from pydantic import ValidationError

from skillmgr.config import AppConfig, load_config
from skillmgr.config.loader import deep_merge, load_env_overrides
from skillmgr.config.schema import BusConfig, SupervisorConfig

_ENV_VARS = (
    "SKILL_FOLDER",
    "SKILLMGR_CORE_DIR",
    "SKILLMGR_DEFAULT_OWNER",
    "SKILLMGR_LOGS_DIR",
    "SKILLMGR_LOG_LEVEL",
    "SKILLMGR_BUS_PORT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)


class TestDefaults:
    def test_default_values(self):
        config = AppConfig()
        assert config.skills.skill_folder == Path("skills")
        assert config.skills.core_dir == Path("core-skills")
        assert config.skills.default_owner is None
        assert config.supervisor.logs_dir == Path("logs")
        assert config.supervisor.stop_timeout == 10.0
        assert config.bus.service_key == "everlife-skill-svc"
        assert config.bus.relay_key == "everlife-communication-svc"
        assert config.bus.store_key == "everlife-db-svc"
        assert config.bus.command_prefix == "/install"
        assert config.bus.transport == "http"
        assert config.bus.listen_host == "127.0.0.1"
        assert config.bus.peers == {}
        assert config.logging.level == "human"

    def test_default_entry_points(self):
        entry_points = SupervisorConfig().entry_points
        assert entry_points["main.py"] == [sys.executable, "main.py"]
        assert entry_points["index.js"] == ["node", "index.js"]


class TestDeepMerge:
    def test_nested_keys_are_preserved(self):
        base = {"skills": {"skill_folder": "a", "core_dir": "b"}}
        override = {"skills": {"skill_folder": "c"}}
        assert deep_merge(base, override) == {"skills": {"skill_folder": "c", "core_dir": "b"}}

    def test_base_is_not_mutated(self):
        base = {"skills": {"skill_folder": "a"}}
        deep_merge(base, {"skills": {"skill_folder": "b"}})
        assert base == {"skills": {"skill_folder": "a"}}


class TestLoadConfig:
    def test_yaml_file(self, tmp_path: Path):
        cfg = tmp_path / "skillmgr.yaml"
        cfg.write_text(
            "skills:\n"
            "  skill_folder: /srv/skills\n"
            "  default_owner: everlife\n"
            "supervisor:\n"
            "  stop_timeout: 2.5\n"
        )
        config = load_config(config_path=cfg)
        assert config.skills.skill_folder == Path("/srv/skills")
        assert config.skills.default_owner == "everlife"
        assert config.skills.core_dir == Path("core-skills")
        assert config.supervisor.stop_timeout == 2.5

    def test_empty_yaml_gives_defaults(self, tmp_path: Path):
        cfg = tmp_path / "empty.yaml"
        cfg.write_text("")
        assert load_config(config_path=cfg) == AppConfig()

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_config(config_path=tmp_path / "nope.yaml")

    def test_env_overrides_yaml(self, tmp_path: Path, monkeypatch):
        cfg = tmp_path / "skillmgr.yaml"
        cfg.write_text("skills:\n  skill_folder: /from/yaml\n")
        monkeypatch.setenv("SKILL_FOLDER", "/from/env")
        monkeypatch.setenv("SKILLMGR_LOG_LEVEL", "DEBUG")

        config = load_config(config_path=cfg)
        assert config.skills.skill_folder == Path("/from/env")
        assert config.logging.level == "debug"

    def test_cli_overrides_env(self, monkeypatch):
        monkeypatch.setenv("SKILL_FOLDER", "/from/env")
        monkeypatch.setenv("SKILLMGR_LOGS_DIR", "/env/logs")
        config = load_config(cli_args={"skill_folder": "/from/cli", "verbose": 2})
        assert config.skills.skill_folder == Path("/from/cli")
        assert config.supervisor.logs_dir == Path("/env/logs")
        assert config.logging.verbose == 2

    def test_bus_port_from_env_and_cli(self, monkeypatch):
        monkeypatch.setenv("SKILLMGR_BUS_PORT", "9100")
        assert load_config().bus.listen_port == 9100
        assert load_config(cli_args={"bus_port": 9200}).bus.listen_port == 9200

    def test_peers_from_yaml(self, tmp_path: Path):
        cfg = tmp_path / "skillmgr.yaml"
        cfg.write_text(
            "bus:\n"
            "  transport: http\n"
            "  peers:\n"
            "    everlife-db-svc: http://127.0.0.1:8770/\n"
        )
        assert load_config(config_path=cfg).bus.peers == {"everlife-db-svc": "http://127.0.0.1:8770/"}

    def test_unset_cli_args_are_ignored(self, monkeypatch):
        monkeypatch.setenv("SKILL_FOLDER", "/from/env")
        config = load_config(cli_args={"skill_folder": None, "core_dir": None})
        assert config.skills.skill_folder == Path("/from/env")

    def test_env_overrides_only_set_vars(self, monkeypatch):
        monkeypatch.setenv("SKILLMGR_DEFAULT_OWNER", "everlife")
        assert load_env_overrides() == {"skills": {"default_owner": "everlife"}}


class TestValidation:
    def test_unknown_keys_rejected(self, tmp_path: Path):
        cfg = tmp_path / "bad.yaml"
        cfg.write_text("skills:\n  skil_folder: typo\n")
        with pytest.raises(ValidationError):
            load_config(config_path=cfg)

    def test_empty_entry_point_command(self):
        with pytest.raises(ValidationError, match="empty command"):
            SupervisorConfig(entry_points={"main.py": []})

    def test_stop_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            SupervisorConfig(stop_timeout=0)

    @pytest.mark.parametrize("prefix", ["", "/install skill", "/in\tstall"])
    def test_command_prefix_single_word(self, prefix):
        with pytest.raises(ValidationError):
            BusConfig(command_prefix=prefix)

    def test_unknown_transport(self):
        with pytest.raises(ValidationError):
            BusConfig(transport="carrier-pigeon")

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError):
            load_config(cli_args={"log_level": "loud"})
