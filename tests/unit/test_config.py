"""
Unit tests for settings, logging setup and version information.
"""

import io
import logging

import structlog

from doc_classificator.config import Settings
from doc_classificator.logging_config import NOISY_LOGGERS, setup_logging
from doc_classificator.version import (
    ENGINE_VERSION,
    PROMPT_VERSION,
    SCHEMA_VERSION,
    get_current_engine_version,
)


class TestSettings:

    def test_defaults(self, monkeypatch):
        for name in (
            "LLM_PROVIDER", "LLM_TEMPERATURE", "PROMPT_TEMPLATE", "PROMPT_MAX_EXCERPT_LENGTH",
            "CROSS_VERIFY_ENABLED", "CROSS_VERIFY_THRESHOLD", "TAXONOMY_FILE",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.llm_provider == "openai"
        assert settings.llm_temperature == 0.2
        assert settings.prompt_template == "standard"
        assert settings.prompt_max_excerpt_length == 1000
        assert settings.cross_verify_enabled is False
        assert settings.cross_verify_threshold == 0.95
        assert settings.taxonomy_file is None

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("CROSS_VERIFY_ENABLED", "true")
        monkeypatch.setenv("CROSS_VERIFY_THRESHOLD", "0.8")
        monkeypatch.setenv("PROMPT_TEMPLATE", "propaganda_detection")

        settings = Settings(_env_file=None)

        assert settings.cross_verify_enabled is True
        assert settings.cross_verify_threshold == 0.8
        assert settings.prompt_template == "propaganda_detection"

    def test_mock_settings_fixture(self, mock_settings):
        assert mock_settings.llm_api_key == "test-key-not-for-production"
        assert mock_settings.log_json is False


class TestLogging:

    def test_console_to_stream(self):
        stream = io.StringIO()
        setup_logging(log_level="DEBUG", log_json=False, stream=stream)

        structlog.get_logger("tests").debug("logging_configured", component="tests")

        assert "logging_configured" in stream.getvalue()
        assert logging.getLogger("httpx").level == logging.DEBUG

    def test_level_filtering_and_sdk_loggers(self):
        stream = io.StringIO()
        setup_logging(log_level="warning", log_json=True, stream=stream)

        structlog.get_logger("tests").info("dropped_event")

        assert stream.getvalue() == ""
        assert all(logging.getLogger(name).level == logging.WARNING for name in NOISY_LOGGERS)

    def test_setup_logging_json(self, capsys):
        setup_logging(log_level="INFO", log_json=True)

        structlog.get_logger("tests").info("json_event", document_id="doc-1")

        out = capsys.readouterr().out
        assert '"event": "json_event"' in out
        assert '"document_id": "doc-1"' in out


class TestEngineVersion:

    def test_current_version(self):
        version = get_current_engine_version("sensitivity-v1.0", model_version="ollama/llama3.1:8b")

        assert version.engine_version == ENGINE_VERSION
        assert version.prompt_version == PROMPT_VERSION
        assert version.schema_version == SCHEMA_VERSION
        assert version.model_version == "ollama/llama3.1:8b"
        assert version.to_repr() == f"Engine-{ENGINE_VERSION}-{PROMPT_VERSION}-sensitivity-v1.0"

    def test_model_version_defaults_to_settings(self):
        version = get_current_engine_version("v1")
        assert "/" in version.model_version
