# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""Tests for config loading and logging setup."""

import json
import logging

import pytest

from wellbeing.config import DEFAULT_CONFIG, load_config, setup_logging


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("DEITE_ANALYSIS_URL", raising=False)
    monkeypatch.delenv("DEITE_ANALYSIS_MODEL", raising=False)


class TestLoadConfig:

    def test_defaults_without_file(self):
        assert load_config().model_dump() == DEFAULT_CONFIG

    def test_file_overrides(self, isolated_paths):
        isolated_paths.config_file.write_text(json.dumps({"cutoff_hour": 9, "io_workers": 8}))
        cfg = load_config()
        assert cfg.cutoff_hour == 9
        assert cfg.io_workers == 8
        assert cfg.max_age_hours == 24

    def test_env_overrides_file(self, isolated_paths, monkeypatch):
        isolated_paths.config_file.write_text(json.dumps({"analysis_url": "http://file:1"}))
        monkeypatch.setenv("DEITE_ANALYSIS_URL", "http://env:2")
        monkeypatch.setenv("DEITE_ANALYSIS_MODEL", "mistral:7b")
        cfg = load_config()
        assert cfg.analysis_url == "http://env:2"
        assert cfg.analysis_model == "mistral:7b"

    def test_unreadable_file_ignored(self, isolated_paths):
        isolated_paths.config_file.write_text("{nope")
        assert load_config().cutoff_hour == 12

    def test_invalid_values_fall_back(self, isolated_paths):
        isolated_paths.config_file.write_text(json.dumps({"cutoff_hour": 30}))
        assert load_config().cutoff_hour == 12


class TestLogging:

    def test_setup_logging_writes_file(self, isolated_paths):
        logger = setup_logging(stderr=False)
        logging.getLogger("deite.cache").info("hello from the cache")
        for handler in logger.handlers:
            handler.flush()
        assert "deite.cache: hello from the cache" in isolated_paths.log_file.read_text()

    def test_setup_logging_is_idempotent(self):
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 2
