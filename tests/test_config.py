"""Tests for configuration and logging setup."""

import json
import logging

import pytest

from compliance_checker.utils import config as config_module
from compliance_checker.utils.config import (
    ComplianceConfig,
    ModelConfig,
    load_config_from_file,
    update_config,
)
from compliance_checker.utils.logging_config import setup_logging


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ("OPENAI_API_KEY", "COMPLIANCE_PROJECT_NAME", "COMPLIANCE_LOG_LEVEL", "COMPLIANCE_LOG_FILE"):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = ComplianceConfig()

    assert config.models.openai_model == "gpt-4o-mini"
    assert config.models.embedding_model == "text-embedding-3-small"
    assert config.chunking.chunk_size == 2000
    assert config.chunking.chunk_overlap == 300
    assert config.chunking.max_chunks == 500
    assert config.retrieval.top_k == 5
    assert config.jobs.concurrency == 3
    assert config.jobs.applicable_type == "i+d"
    assert config.jobs.embedding_timeout_seconds == 240
    assert not config.has_openai_key


def test_api_key_from_environment(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")

    assert ModelConfig().openai_api_key == "sk-from-env"
    assert ComplianceConfig().has_openai_key


def test_explicit_api_key_wins(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")
    assert ModelConfig(openai_api_key="sk-explicit").openai_api_key == "sk-explicit"


@pytest.mark.parametrize("key", ["", "  ", "your-openai-api-key"])
def test_placeholder_keys_are_not_configured(key):
    assert not ComplianceConfig(models=ModelConfig(openai_api_key=key)).has_openai_key


def test_embedding_batch_size_is_capped():
    with pytest.raises(ValueError):
        ModelConfig(embedding_batch_size=101)


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("COMPLIANCE_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("COMPLIANCE_PROJECT_NAME", "Year-end review")

    config = ComplianceConfig()
    assert config.log_level == "DEBUG"
    assert config.project_name == "Year-end review"
    assert ComplianceConfig(log_level="WARNING").log_level == "WARNING"


def test_model_config_hides_api_key():
    config = ComplianceConfig(models=ModelConfig(openai_api_key="sk-secret"))

    model_config = config.get_model_config()
    assert "openai_api_key" not in model_config
    assert model_config["openai_model"] == "gpt-4o-mini"


def test_validate_configuration_reports_issues():
    config = ComplianceConfig(chunking={"chunk_size": 100, "chunk_overlap": 100})

    issues = config.validate_configuration()
    assert len(issues) == 2
    assert not ComplianceConfig(models=ModelConfig(openai_api_key="sk-test")).validate_configuration()


def test_update_config_replaces_global(monkeypatch):
    monkeypatch.setattr(config_module, "config", ComplianceConfig())

    updated = update_config(log_level="ERROR")

    assert updated.log_level == "ERROR"
    assert config_module.get_config() is updated


def test_load_yaml_config(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "project_name: Audit 2024\n"
        "chunking:\n"
        "  chunk_size: 1500\n"
        "jobs:\n"
        "  concurrency: 5\n"
        "  applicable_type: kl\n"
    )

    config = load_config_from_file(str(path))

    assert config.project_name == "Audit 2024"
    assert config.chunking.chunk_size == 1500
    assert config.chunking.chunk_overlap == 300
    assert config.jobs.concurrency == 5
    assert config.jobs.applicable_type == "kl"


def test_load_json_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"retrieval": {"top_k": 8}}))

    assert load_config_from_file(str(path)).retrieval.top_k == 8


def test_load_config_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config_from_file(str(tmp_path / "missing.yaml"))

    path = tmp_path / "config.toml"
    path.write_text("top_k = 3")
    with pytest.raises(ValueError):
        load_config_from_file(str(path))


def test_setup_logging_writes_log_file(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    log_file = tmp_path / "checks.log"

    try:
        setup_logging(ComplianceConfig(log_level="DEBUG", log_file=str(log_file)))
        logging.getLogger("compliance_checker.test").debug("Job run-1 started")
        for handler in root.handlers:
            handler.flush()

        assert root.level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
        assert "Job run-1 started" in log_file.read_text()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers = saved_handlers
        root.setLevel(saved_level)
