"""Tester för konfiguration och loggning."""

import logging

import pytest

from cargus_connector.config import (
    ConfigError,
    load_cargus_config,
    load_config,
    setup_logging,
)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        'cargus:\n'
        '  subscription_key: "${CARGUS_TEST_KEY}"\n'
        '  timeout_seconds: 60\n'
        'logging:\n'
        '  level: "DEBUG"\n',
        encoding="utf-8",
    )
    return path


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


class TestLoadConfig:

    def test_env_substitution(self, config_file, monkeypatch):
        monkeypatch.setenv("CARGUS_TEST_KEY", "abc123")
        config = load_config(config_file)
        assert config["cargus"]["subscription_key"] == "abc123"
        assert config["cargus"]["timeout_seconds"] == 60

    def test_unknown_env_left_as_is(self, config_file, monkeypatch):
        monkeypatch.delenv("CARGUS_TEST_KEY", raising=False)
        config = load_config(config_file)
        assert config["cargus"]["subscription_key"] == "${CARGUS_TEST_KEY}"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="saknas"):
            load_config(tmp_path / "nope.yaml")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == {}


class TestLoadCargusConfig:

    def test_defaults(self):
        cargus = load_cargus_config({"cargus": {"subscription_key": "k"}})
        assert cargus == {
            "base_url": "https://urgentcargus.azure-api.net/api",
            "subscription_key": "k",
            "timeout_seconds": 120,
            "country_id": 1,
            "label_dir": ".",
            "trace": True,
        }

    def test_missing_section(self):
        with pytest.raises(ConfigError, match="'cargus' saknas"):
            load_cargus_config({})

    def test_missing_key(self):
        with pytest.raises(ConfigError, match="subscription_key saknas"):
            load_cargus_config({"cargus": {"base_url": "https://x"}})

    def test_unresolved_placeholder(self, config_file, monkeypatch):
        """En ${VAR} som inte ersattes ska ge fel, inte skickas som nyckel."""
        monkeypatch.delenv("CARGUS_TEST_KEY", raising=False)
        with pytest.raises(ConfigError, match="CARGUS_TEST_KEY"):
            load_cargus_config(load_config(config_file))

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)


class TestSetupLogging:

    def test_creates_log_files(self, tmp_path, restore_root_logger):
        log_dir = tmp_path / "logs"
        setup_logging({
            "logging": {
                "level": "debug",
                "log_dir": str(log_dir),
                "console_output": False,
            }
        })

        logging.getLogger("cargus_connector.test").error("Testfel")
        for handler in restore_root_logger.handlers:
            handler.flush()

        assert restore_root_logger.level == logging.DEBUG
        assert "Testfel" in (log_dir / "cargus_connector.log").read_text(encoding="utf-8")
        assert "Testfel" in (log_dir / "cargus_connector_errors.log").read_text(encoding="utf-8")

    def test_error_log_only_errors(self, tmp_path, restore_root_logger):
        setup_logging({
            "logging": {"log_dir": str(tmp_path), "console_output": False}
        })

        logging.getLogger("cargus_connector.test").info("Bara info")
        for handler in restore_root_logger.handlers:
            handler.flush()

        assert "Bara info" in (tmp_path / "cargus_connector.log").read_text(encoding="utf-8")
        assert "Bara info" not in (tmp_path / "cargus_connector_errors.log").read_text(encoding="utf-8")

    def test_console_handler(self, tmp_path, restore_root_logger):
        before = len(restore_root_logger.handlers)
        setup_logging({"logging": {"log_dir": str(tmp_path)}})
        assert len(restore_root_logger.handlers) == before + 3

    def test_second_call_replaces_handlers(self, tmp_path, restore_root_logger):
        """Ett nytt anrop ska inte ge dubbla loggposter."""
        config = {"logging": {"log_dir": str(tmp_path), "console_output": False}}
        first = setup_logging(config)
        second = setup_logging(config)

        handlers = restore_root_logger.handlers
        assert not any(h in handlers for h in first)
        assert all(h in handlers for h in second)

        logging.getLogger("cargus_connector.test").error("En gång")
        for handler in second:
            handler.flush()
        text = (tmp_path / "cargus_connector.log").read_text(encoding="utf-8")
        assert text.count("En gång") == 1

    def test_custom_file_name(self, tmp_path, restore_root_logger):
        setup_logging({
            "logging": {
                "log_dir": str(tmp_path),
                "file_name": "cargus_prod",
                "console_output": False,
            }
        })
        assert (tmp_path / "cargus_prod.log").exists()
        assert (tmp_path / "cargus_prod_errors.log").exists()
