# -*- coding: utf-8 -*-
"""
配置加载测试：默认值 < 配置文件 < 环境变量；.env 只加载允许的键。
"""

import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from trichat.common.dotenv import load_env_file, parse_env_line
from trichat.core.config import ConfigManager

CLEAN_ENV = {
    k: v
    for k, v in os.environ.items()
    if not k.startswith("TRICHAT_") and k not in ("DOUBAO_API_KEY", "DEEPSEEK_API_KEY", "WENXIN_API_KEY", "WENXIN_SECRET_KEY")
}


class TestConfigManager(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory(prefix="trichat-config-")
        self.tmp = Path(self._tmp.name)
        self.cfg_path = self.tmp / "trichat.json"

    def tearDown(self):
        self._tmp.cleanup()

    def test_defaults_without_file_or_env(self):
        with mock.patch.dict(os.environ, CLEAN_ENV, clear=True):
            cfg = ConfigManager(self.cfg_path).load()
        self.assertEqual(cfg.doubao.model, "doubao-pro-32k")
        self.assertEqual(cfg.wenxin.token_url, "https://aip.baidubce.com/oauth/2.0/token")
        self.assertEqual(
            sorted(cfg.secrets.missing()),
            ["deepseek_api_key", "doubao_api_key", "wenxin_api_key", "wenxin_secret_key"],
        )

    def test_file_then_env_precedence(self):
        self.cfg_path.write_text(
            json.dumps({"deepseek": {"model": "deepseek-reasoner", "timeout_s": 5}, "log_level": "DEBUG"}),
            encoding="utf-8",
        )
        env = dict(
            CLEAN_ENV,
            DOUBAO_API_KEY=" k1 ",
            DEEPSEEK_API_KEY="k2",
            WENXIN_API_KEY="k3",
            WENXIN_SECRET_KEY="s3",
            TRICHAT_DEEPSEEK_TIMEOUT_S="9.5",
            TRICHAT_DOUBAO_URL="http://localhost:9000/chat",
        )
        with mock.patch.dict(os.environ, env, clear=True):
            cfg = ConfigManager(self.cfg_path).load()

        self.assertEqual(cfg.secrets.missing(), [])
        self.assertEqual(cfg.secrets.doubao_api_key, "k1")
        self.assertEqual(cfg.deepseek.model, "deepseek-reasoner")
        self.assertEqual(cfg.deepseek.timeout_s, 9.5)
        self.assertEqual(cfg.deepseek.url, "https://api.deepseek.com/v1/chat/completions")
        self.assertEqual(cfg.doubao.url, "http://localhost:9000/chat")
        self.assertEqual(cfg.log_level, "DEBUG")

    def test_corrupt_file_is_ignored(self):
        self.cfg_path.write_text("{ nope", encoding="utf-8")
        with mock.patch.dict(os.environ, dict(CLEAN_ENV, WENXIN_API_KEY="k"), clear=True):
            with self.assertLogs("trichat.config", level="WARNING"):
                cfg = ConfigManager(self.cfg_path).load()
        self.assertEqual(cfg.secrets.wenxin_api_key, "k")
        self.assertEqual(cfg.doubao.model, "doubao-pro-32k")

    def test_non_object_provider_section_is_dropped(self):
        self.cfg_path.write_text(json.dumps({"doubao": "oops", "deepseek": {"model": "deepseek-reasoner"}}), encoding="utf-8")
        with mock.patch.dict(os.environ, CLEAN_ENV, clear=True):
            with self.assertLogs("trichat.config", level="WARNING"):
                cfg = ConfigManager(self.cfg_path).load()
        self.assertEqual(cfg.doubao.model, "doubao-pro-32k")
        self.assertEqual(cfg.deepseek.model, "deepseek-reasoner")

    def test_non_object_secrets_section_is_dropped(self):
        self.cfg_path.write_text(json.dumps({"secrets": "abc"}), encoding="utf-8")
        with mock.patch.dict(os.environ, dict(CLEAN_ENV, DEEPSEEK_API_KEY="k2"), clear=True):
            with self.assertLogs("trichat.config", level="WARNING"):
                cfg = ConfigManager(self.cfg_path).load()
        self.assertEqual(cfg.secrets.deepseek_api_key, "k2")
        self.assertIsNone(cfg.secrets.doubao_api_key)

    def test_invalid_secret_value_falls_back_to_env_secrets(self):
        self.cfg_path.write_text(json.dumps({"secrets": {"doubao_api_key": 123}}), encoding="utf-8")
        with mock.patch.dict(os.environ, dict(CLEAN_ENV, DEEPSEEK_API_KEY="k2"), clear=True):
            with self.assertLogs("trichat.config", level="WARNING"):
                cfg = ConfigManager(self.cfg_path).load()
        self.assertEqual(cfg.secrets.deepseek_api_key, "k2")
        self.assertIsNone(cfg.secrets.doubao_api_key)
        self.assertEqual(cfg.doubao.model, "doubao-pro-32k")

    def test_blank_secret_counts_as_missing(self):
        with mock.patch.dict(os.environ, dict(CLEAN_ENV, DOUBAO_API_KEY="   "), clear=True):
            cfg = ConfigManager(self.cfg_path).load()
        self.assertIn("doubao_api_key", cfg.secrets.missing())


class TestDotenv(unittest.TestCase):
    def test_parse_env_line(self):
        self.assertEqual(parse_env_line("export DOUBAO_API_KEY='abc'"), ("DOUBAO_API_KEY", "abc"))
        self.assertEqual(parse_env_line('X="a=b"'), ("X", "a=b"))
        self.assertIsNone(parse_env_line("# comment"))
        self.assertIsNone(parse_env_line("   "))
        self.assertIsNone(parse_env_line("no_equals_sign"))

    def test_only_allowed_keys_are_loaded(self):
        with tempfile.TemporaryDirectory() as tmp:
            env_file = Path(tmp) / ".env"
            env_file.write_text(
                "DEEPSEEK_API_KEY=from-file\nTRICHAT_LOG_LEVEL=debug\nUNRELATED=1\nDOUBAO_API_KEY=from-file\n",
                encoding="utf-8",
            )
            with mock.patch.dict(os.environ, dict(CLEAN_ENV, DOUBAO_API_KEY="from-process"), clear=True):
                self.assertTrue(load_env_file(env_file))
                self.assertEqual(os.environ["DEEPSEEK_API_KEY"], "from-file")
                self.assertEqual(os.environ["TRICHAT_LOG_LEVEL"], "debug")
                self.assertEqual(os.environ["DOUBAO_API_KEY"], "from-process")
                self.assertNotIn("UNRELATED", os.environ)

    def test_missing_file(self):
        self.assertFalse(load_env_file("/nonexistent/trichat/.env"))


if __name__ == "__main__":
    unittest.main()
