"""Tests for the click CLI (skills, validate-config)."""

from pathlib import Path

import pytest
from click.testing import CliRunner

from skillmgr.cli import EXIT_CONFIG_ERROR, main


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("SKILL_FOLDER", raising=False)
    monkeypatch.delenv("SKILLMGR_CORE_DIR", raising=False)


class TestValidateConfig:
    def test_valid_file(self, runner, tmp_path: Path):
        cfg = tmp_path / "skillmgr.yaml"
        cfg.write_text("skills:\n  skill_folder: /srv/skills\n")
        result = runner.invoke(main, ["validate-config", "-c", str(cfg)])
        assert result.exit_code == 0
        assert "Configuration OK" in result.output
        assert "/srv/skills" in result.output

    def test_invalid_file(self, runner, tmp_path: Path):
        cfg = tmp_path / "bad.yaml"
        cfg.write_text("bus:\n  command_prefix: two words\n")
        result = runner.invoke(main, ["validate-config", "-c", str(cfg)])
        assert result.exit_code == EXIT_CONFIG_ERROR


class TestSkillsCommand:
    def test_lists_user_skills_first(self, runner, tmp_path: Path):
        (tmp_path / "core" / "weather").mkdir(parents=True)
        (tmp_path / "core" / "greeter").mkdir(parents=True)
        (tmp_path / "user" / "greeter").mkdir(parents=True)

        result = runner.invoke(
            main,
            ["skills", "--core-dir", str(tmp_path / "core"), "--skill-folder", str(tmp_path / "user")],
        )
        assert result.exit_code == 0
        lines = [line for line in result.output.splitlines() if line.strip()]
        assert "greeter" in lines[0] and "(user)" in lines[0]
        assert "weather" in lines[1] and "(core)" in lines[1]

    def test_no_skills(self, runner, tmp_path: Path):
        (tmp_path / "core").mkdir()
        (tmp_path / "user").mkdir()
        result = runner.invoke(
            main,
            ["skills", "--core-dir", str(tmp_path / "core"), "--skill-folder", str(tmp_path / "user")],
        )
        assert result.exit_code == 0
        assert "No skills found." in result.output


def test_version(runner):
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "0.3.0" in result.output
