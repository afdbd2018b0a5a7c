from __future__ import annotations

import pytest

from asm_cli.cli.config import SettingsError, load_cli_settings


def test_defaults_when_settings_file_missing(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("ASM_CONFIG_DIR", raising=False)
    monkeypatch.delenv("ASM_ENDPOINT", raising=False)
    settings = load_cli_settings(tmp_path / "missing.toml")
    assert settings.default_endpoint == "https://management.core.windows.net"
    assert settings.config_dir.endswith(".asm")
    assert settings.resource_types == ()
    assert settings.log_level == "WARNING"


def test_env_config_dir_overrides_settings_file(tmp_path, monkeypatch) -> None:
    settings_path = tmp_path / "cli.toml"
    settings_path.write_text('config_dir = "/from/file"\n', encoding="utf-8")
    monkeypatch.setenv("ASM_CONFIG_DIR", str(tmp_path / "env"))
    settings = load_cli_settings(settings_path)
    assert settings.config_dir == str(tmp_path / "env")


def test_cli_table_is_read(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("ASM_CONFIG_DIR", raising=False)
    monkeypatch.delenv("ASM_ENDPOINT", raising=False)
    settings_path = tmp_path / "cli.toml"
    settings_path.write_text(
        "[cli]\n"
        'default_endpoint = "https://management.example.com"\n'
        'resource_types = ["cloudservice", " storage "]\n'
        'log_level = "debug"\n'
        "retries = 0\n",
        encoding="utf-8",
    )
    settings = load_cli_settings(settings_path)
    assert settings.default_endpoint == "https://management.example.com"
    assert settings.resource_types == ("cloudservice", "storage")
    assert settings.log_level == "DEBUG"
    assert settings.retries == 0


def test_env_endpoint_overrides_settings_file(tmp_path, monkeypatch) -> None:
    settings_path = tmp_path / "cli.toml"
    settings_path.write_text('default_endpoint = "https://file.example.com"\n', encoding="utf-8")
    monkeypatch.setenv("ASM_ENDPOINT", "https://env.example.com")
    assert load_cli_settings(settings_path).default_endpoint == "https://env.example.com"


@pytest.mark.parametrize(
    "content",
    [
        'default_endpoint = "management.example.com"\n',
        'resource_types = "website"\n',
        'log_level = "chatty"\n',
        "request_timeout = -1\n",
        "cli = 3\n",
        "not toml at all = = =\n",
    ],
)
def test_invalid_settings_are_rejected(tmp_path, monkeypatch, content) -> None:
    monkeypatch.delenv("ASM_ENDPOINT", raising=False)
    settings_path = tmp_path / "cli.toml"
    settings_path.write_text(content, encoding="utf-8")
    with pytest.raises(SettingsError):
        load_cli_settings(settings_path)
