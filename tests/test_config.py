"""Tests for configuration loading and validation."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
import unittest
from unittest.mock import patch

from pagechat.config import DEFAULT_CONFIG, OPENROUTER_API_KEY_ENV, load_config


class ConfigTests(unittest.TestCase):
    """Validate config merge and fallback behavior."""

    def test_missing_config_uses_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.toml"
            config = load_config(config_path=config_path)
            self.assertEqual(config["app"]["title"], DEFAULT_CONFIG["app"]["title"])
            self.assertEqual(config["ollama"]["host"], "http://localhost:11434")
            self.assertEqual(
                config["openrouter"]["default_model"],
                DEFAULT_CONFIG["openrouter"]["default_model"],
            )
            self.assertEqual(config["bridge"]["startup_ping_attempts"], 20)
            self.assertEqual(config["bridge"]["startup_ping_delay_seconds"], 0.5)
            self.assertEqual(config["logging"]["level"], "INFO")

    def test_partial_config_overrides_selected_values(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.toml"
            config_path.write_text(
                """
[ollama]
host = "http://gpu-box:11434/"

[openrouter]
fallback_models = ["a/one", "b/two", "a/one", " "]

[ui]
show_timestamps = false
                """.strip(),
                encoding="utf-8",
            )
            config = load_config(config_path=config_path)
            self.assertEqual(config["ollama"]["host"], "http://gpu-box:11434")
            self.assertEqual(config["openrouter"]["fallback_models"], ["a/one", "b/two"])
            self.assertFalse(config["ui"]["show_timestamps"])
            self.assertEqual(config["app"]["title"], DEFAULT_CONFIG["app"]["title"])

    def test_invalid_values_fall_back_to_safe_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.toml"
            config_path.write_text(
                '[ollama]\nhost = "ftp://nowhere"\n', encoding="utf-8"
            )
            with self.assertLogs("pagechat.config", level="WARNING"):
                config = load_config(config_path=config_path)
            self.assertEqual(config["ollama"]["host"], DEFAULT_CONFIG["ollama"]["host"])

    def test_unparseable_toml_is_ignored(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.toml"
            config_path.write_text("[app\ntitle = ", encoding="utf-8")
            with self.assertLogs("pagechat.config", level="WARNING"):
                config = load_config(config_path=config_path)
            self.assertEqual(config["app"]["title"], DEFAULT_CONFIG["app"]["title"])

    def test_api_key_is_read_from_environment(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.toml"
            with patch.dict(os.environ, {OPENROUTER_API_KEY_ENV: " secret "}):
                config = load_config(config_path=config_path)
            self.assertEqual(config["openrouter"]["api_key"], "secret")
            self.assertEqual(DEFAULT_CONFIG["openrouter"]["api_key"], "")

    def test_file_api_key_wins_over_environment(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.toml"
            config_path.write_text('[openrouter]\napi_key = "from-file"\n', encoding="utf-8")
            with patch.dict(os.environ, {OPENROUTER_API_KEY_ENV: "from-env"}):
                config = load_config(config_path=config_path)
            self.assertEqual(config["openrouter"]["api_key"], "from-file")


if __name__ == "__main__":
    unittest.main()
