"""Unit tests for config parsing module."""

from __future__ import annotations

from types import SimpleNamespace

from provenance_downloader import config as dl_config


class TestConfigParsing:
    """Test config lookup chain."""

    def test_defaults_without_config(self):
        """Test that defaults work when no config file exists."""
        assert dl_config.stacktrace_enabled() is False
        assert dl_config.command_timeout() == 0
        assert dl_config.hg_command() == "hg"
        assert dl_config.git_command() == "git"
        assert dl_config.enabled_providers() == ["git", "mercurial"]
        assert dl_config.runner_backend() == "local"
        assert dl_config.podman_socket() == "unix:///var/run/podman.sock"
        assert dl_config.podman_container() == ""

    def test_env_var_overrides(self, monkeypatch):
        """Test that environment variables override defaults."""
        monkeypatch.setenv("PROVENANCE_DOWNLOADER_STACKTRACE", "yes")
        monkeypatch.setenv("PROVENANCE_DOWNLOADER_COMMAND_TIMEOUT", "600")
        monkeypatch.setenv("PROVENANCE_DOWNLOADER_PROVIDERS", "mercurial, git")
        monkeypatch.setenv("PROVENANCE_DOWNLOADER_RUNNER", "podman")

        assert dl_config.stacktrace_enabled() is True
        assert dl_config.command_timeout() == 600
        assert dl_config.enabled_providers() == ["mercurial", "git"]
        assert dl_config.runner_backend() == "podman"

    def test_config_file_parsing(self, monkeypatch, tmp_path):
        """Test parsing from config file."""
        config_file = tmp_path / "downloader.conf"
        config_file.write_text(
            """[downloader]
stacktrace = on
command_timeout = 900
hg_command = /usr/local/bin/hg
providers = mercurial
podman_container = vcs-tools
"""
        )
        monkeypatch.setenv("PROVENANCE_DOWNLOADER_CONFIG", str(config_file))

        assert dl_config.stacktrace_enabled() is True
        assert dl_config.command_timeout() == 900
        assert dl_config.hg_command() == "/usr/local/bin/hg"
        assert dl_config.git_command() == "git"
        assert dl_config.enabled_providers() == ["mercurial"]
        assert dl_config.podman_container() == "vcs-tools"

    def test_env_var_beats_config_file(self, monkeypatch, tmp_path):
        config_file = tmp_path / "downloader.conf"
        config_file.write_text("[downloader]\ngit_command = /from/file/git\n")
        monkeypatch.setenv("PROVENANCE_DOWNLOADER_CONFIG", str(config_file))
        monkeypatch.setenv("PROVENANCE_DOWNLOADER_GIT_COMMAND", "/from/env/git")

        assert dl_config.git_command() == "/from/env/git"

    def test_missing_config_file(self, monkeypatch, tmp_path, caplog):
        monkeypatch.setenv("PROVENANCE_DOWNLOADER_CONFIG", str(tmp_path / "absent.conf"))

        assert dl_config.hg_command() == "hg"
        assert "not found, using defaults" in caplog.text

    def test_config_file_without_section(self, monkeypatch, tmp_path):
        config_file = tmp_path / "other.conf"
        config_file.write_text("[other]\nhg_command = /nope\n")
        monkeypatch.setenv("PROVENANCE_DOWNLOADER_CONFIG", str(config_file))

        assert dl_config.hg_command() == "hg"

    def test_options_object(self):
        """Test values from an options object passed to initialize()."""
        dl_config.initialize(
            SimpleNamespace(downloader_command_timeout="45", downloader_hg_command="chg")
        )

        assert dl_config.command_timeout() == 45
        assert dl_config.hg_command() == "chg"
        assert dl_config.git_command() == "git"

    def test_invalid_values_fall_back(self, monkeypatch, caplog):
        monkeypatch.setenv("PROVENANCE_DOWNLOADER_COMMAND_TIMEOUT", "soon")
        assert dl_config.command_timeout() == 0
        assert "Invalid value for PROVENANCE_DOWNLOADER_COMMAND_TIMEOUT" in caplog.text

        monkeypatch.setenv("PROVENANCE_DOWNLOADER_COMMAND_TIMEOUT", "-5")
        assert dl_config.command_timeout() == 0

    def test_reset_config(self, monkeypatch, tmp_path):
        """Test that the file cache is dropped by reset_config()."""
        config_file = tmp_path / "downloader.conf"
        config_file.write_text("[downloader]\nhg_command = first\n")
        monkeypatch.setenv("PROVENANCE_DOWNLOADER_CONFIG", str(config_file))
        assert dl_config.hg_command() == "first"

        config_file.write_text("[downloader]\nhg_command = second\n")
        assert dl_config.hg_command() == "first"

        dl_config.reset_config()
        assert dl_config.hg_command() == "second"
