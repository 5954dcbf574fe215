from __future__ import annotations

import pytest

from azure_extensions_cli.cli.config import ConfigError, load_cli_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in ("AZURE_SUBSCRIPTION_ID", "AZURE_SUBSCRIPTION_CERT", "AZURE_MANAGEMENT_URL"):
        monkeypatch.delenv(name, raising=False)


def test_defaults_when_config_missing(tmp_path) -> None:
    config = load_cli_config(tmp_path / "missing.toml")
    assert config.subscription_id is None
    assert config.management_url == "https://management.core.windows.net"
    assert config.api_version == "2014-10-01"
    assert config.poll_interval_seconds == 5.0
    assert config.poll_timeout_seconds == 600.0
    assert config.max_query_failures == 3


def test_file_values_are_used(tmp_path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        "\n".join(
            [
                "[cli]",
                'subscription_id = "sub-file"',
                'subscription_cert = "/certs/mgmt.pem"',
                "poll_interval_seconds = 2",
                "poll_timeout_seconds = 120.5",
                "request_timeout_seconds = 10",
                "max_query_failures = 5",
            ]
        )
        + "\n",
        encoding="utf-8",
    )
    config = load_cli_config(config_path)
    assert config.subscription_id == "sub-file"
    assert config.subscription_cert == "/certs/mgmt.pem"
    assert config.poll_interval_seconds == 2.0
    assert config.poll_timeout_seconds == 120.5
    assert config.request_timeout_seconds == 10.0
    assert config.max_query_failures == 5


def test_env_overrides_config_file(tmp_path, monkeypatch) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        'subscription_id = "from-file"\nmanagement_url = "https://file.example"\n',
        encoding="utf-8",
    )
    monkeypatch.setenv("AZURE_SUBSCRIPTION_ID", "from-env")
    monkeypatch.setenv("AZURE_MANAGEMENT_URL", "https://env.example")
    config = load_cli_config(config_path)
    assert config.subscription_id == "from-env"
    assert config.management_url == "https://env.example"


@pytest.mark.parametrize(
    "content",
    [
        "poll_interval_seconds = 0\n",
        'poll_timeout_seconds = "soon"\n',
        "max_query_failures = 0\n",
        "http_retries = -1\n",
        'api_version = ""\n',
        'cli = "not-a-table"\n',
        "this is not toml\n",
    ],
)
def test_invalid_values_raise(tmp_path, content: str) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_cli_config(config_path)
