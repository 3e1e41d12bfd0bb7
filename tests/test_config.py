from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from notion_blog.config import config_sha256, load_config, resolve_runtime_secrets, retry_config
from notion_blog.errors import ConfigError


_VALID_YAML = """\
notion:
  token_env: NOTION_API_SECRET
  database_id_env: DATABASE_ID
  request_timeout_ms: 5000
  query_page_size: 50

site:
  languages: [ja, en, en]
  default_language: en
  posts_per_page: 5
  meta_title_slug: meta-title

retry:
  max_retries: 2
  base_delay_seconds: 0.5
  max_delay_seconds: 4

lock:
  max_pending: 10
  acquire_timeout_seconds: 30
  max_occupation_seconds: 30

snapshots:
  enabled: true
  dir: tmp

assets:
  output_dir: public/notion
"""


class TestConfig(unittest.TestCase):
    def _write(self, td: str, text: str) -> Path:
        path = Path(td) / "config.yaml"
        path.write_text(text, encoding="utf-8")
        return path

    def test_load_config_ok(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = load_config(self._write(td, _VALID_YAML))

            self.assertEqual(cfg.site.languages, ["ja", "en"])
            self.assertEqual(cfg.site.default_language, "en")
            self.assertEqual(cfg.site.posts_per_page, 5)
            self.assertEqual(cfg.notion.query_page_size, 50)
            self.assertEqual(retry_config(cfg).max_attempts, 3)

    def test_empty_file_uses_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = load_config(self._write(td, ""))

            self.assertEqual(cfg.site.languages, ["ja", "en"])
            self.assertEqual(cfg.retry.max_retries, 2)
            self.assertEqual(cfg.lock.max_pending, 100)

    def test_rejects_default_language_outside_languages(self) -> None:
        bad = _VALID_YAML.replace("default_language: en", "default_language: fr")
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ConfigError) as ctx:
                load_config(self._write(td, bad))
            self.assertIn("default_language", str(ctx.exception))

    def test_rejects_unknown_keys(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ConfigError):
                load_config(self._write(td, "notion:\n  api_key: nope\n"))

    def test_missing_file(self) -> None:
        with self.assertRaises(ConfigError):
            load_config("/nonexistent/config.yaml")

    def test_resolve_runtime_secrets_requires_env(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = load_config(self._write(td, _VALID_YAML))

            with self.assertRaises(ConfigError) as ctx:
                resolve_runtime_secrets(cfg, environ={"NOTION_API_SECRET": "  "})
            self.assertIn("NOTION_API_SECRET", str(ctx.exception))
            self.assertIn("DATABASE_ID", str(ctx.exception))

            secrets = resolve_runtime_secrets(
                cfg, environ={"NOTION_API_SECRET": " secret ", "DATABASE_ID": "db"}
            )
            self.assertEqual(secrets.notion_token, "secret")
            self.assertEqual(secrets.database_id, "db")

    def test_config_hash_is_stable(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            a = load_config(self._write(td, _VALID_YAML))
            b = load_config(self._write(td, _VALID_YAML))
            self.assertEqual(config_sha256(a), config_sha256(b))


if __name__ == "__main__":
    unittest.main()
