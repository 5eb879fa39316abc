import argparse
import json
import os
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest.mock import patch

import httpx

from stickerdata import cli
from stickerdata.http_client import HttpManifestFetcher

MANIFEST_URL = "https://stickers.example.com/{pack_id}?key={pack_key}"


def _args(**overrides) -> argparse.Namespace:
    args = cli.build_arg_parser().parse_args([])
    for name, value in overrides.items():
        setattr(args, name, value)
    return args


class BuildConfigTestCase(unittest.TestCase):
    def test_defaults(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            config = cli.build_config(_args(manifest_url=MANIFEST_URL))

        self.assertEqual(config.input_file, Path("stickers.yml"))
        self.assertEqual(config.output_file, Path("sticker-packs.json"))
        self.assertIsNone(config.cache_dir)
        self.assertEqual(config.rate_limit.max_workers, 6)
        self.assertEqual(config.retry.max_attempts, 3)
        self.assertTrue(config.show_progress)

    def test_environment_fallbacks(self) -> None:
        with patch.dict(
            os.environ,
            {"STICKER_MANIFEST_URL": MANIFEST_URL, "STICKER_CACHE_DIR": "/tmp/stickers-cache"},
            clear=True,
        ):
            config = cli.build_config(_args())

        self.assertEqual(config.manifest_url, MANIFEST_URL)
        self.assertEqual(config.cache_dir, Path("/tmp/stickers-cache"))

    def test_rejects_missing_url_and_bad_limits(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            for overrides in ({}, {"manifest_url": MANIFEST_URL, "concurrency": 0}, {"manifest_url": MANIFEST_URL, "max_attempts": 0}):
                with self.subTest(overrides=overrides):
                    with self.assertRaises(ValueError):
                        cli.build_config(_args(**overrides))


class MainTestCase(unittest.TestCase):
    def _run(self, tmpdir: Path, handler) -> int:
        transport = httpx.MockTransport(handler)

        def fetcher_factory(config):
            return HttpManifestFetcher(config, transport=transport)

        argv = [
            "--input-file", str(tmpdir / "stickers.yml"),
            "--output-file", str(tmpdir / "build" / "sticker-packs.json"),
            "--cache-dir", str(tmpdir / "cache"),
            "--manifest-url", MANIFEST_URL,
            "--retry-wait", "0",
            "--no-progress",
        ]
        with patch.object(cli, "HttpManifestFetcher", side_effect=fetcher_factory):
            return cli.main(argv)

    def test_writes_output_in_reverse_input_order(self) -> None:
        with TemporaryDirectory() as raw_tmpdir:
            tmpdir = Path(raw_tmpdir)
            (tmpdir / "stickers.yml").write_text("first:\n  key: k1\nsecond:\n  key: k2\n", encoding="utf-8")

            def handler(request: httpx.Request) -> httpx.Response:
                pack_id = request.url.path.strip("/")
                return httpx.Response(200, json={"title": pack_id, "author": "A", "cover": {"id": 0}, "extra": 1})

            exit_code = self._run(tmpdir, handler)
            payload = json.loads((tmpdir / "build" / "sticker-packs.json").read_text(encoding="utf-8"))
            cached = sorted(p.name for p in (tmpdir / "cache").iterdir())

        self.assertEqual(exit_code, 0)
        self.assertEqual([pack["meta"]["id"] for pack in payload], ["second", "first"])
        self.assertEqual(payload[0]["manifest"], {"title": "second", "author": "A", "cover": {"id": 0}})
        self.assertEqual(cached, ["first.json", "second.json"])

    def test_failed_pack_exits_non_zero_without_output(self) -> None:
        with TemporaryDirectory() as raw_tmpdir:
            tmpdir = Path(raw_tmpdir)
            (tmpdir / "stickers.yml").write_text("broken:\n  key: k1\n", encoding="utf-8")
            calls = []

            def handler(request: httpx.Request) -> httpx.Response:
                calls.append(request.url)
                return httpx.Response(503)

            with self.assertLogs("stickerdata.cli", level="ERROR") as logs:
                exit_code = self._run(tmpdir, handler)
            output_exists = (tmpdir / "build" / "sticker-packs.json").exists()

        self.assertEqual(exit_code, 1)
        self.assertEqual(len(calls), 3)
        self.assertFalse(output_exists)
        self.assertIn("broken", "\n".join(logs.output))

    def test_invalid_pack_id_exits_non_zero_before_fetching(self) -> None:
        with TemporaryDirectory() as raw_tmpdir:
            tmpdir = Path(raw_tmpdir)
            (tmpdir / "stickers.yml").write_text("good:\n  key: k1\n'a/b':\n  key: k2\n", encoding="utf-8")
            calls = []

            def handler(request: httpx.Request) -> httpx.Response:
                calls.append(request.url)
                return httpx.Response(200, json={"title": "t"})

            with self.assertLogs("stickerdata.cli", level="ERROR") as logs:
                exit_code = self._run(tmpdir, handler)
            cache_exists = (tmpdir / "cache").exists()

        self.assertEqual(exit_code, 1)
        self.assertEqual(calls, [])
        self.assertFalse(cache_exists)
        self.assertIn("a/b", "\n".join(logs.output))

    def test_output_write_failure_exits_non_zero(self) -> None:
        with TemporaryDirectory() as raw_tmpdir:
            tmpdir = Path(raw_tmpdir)
            (tmpdir / "stickers.yml").write_text("abc:\n  key: k1\n", encoding="utf-8")

            def handler(request: httpx.Request) -> httpx.Response:
                return httpx.Response(200, json={"title": "t"})

            with patch.object(cli, "write_results", side_effect=PermissionError("read-only build dir")):
                with self.assertLogs("stickerdata.cli", level="ERROR") as logs:
                    exit_code = self._run(tmpdir, handler)

        self.assertEqual(exit_code, 1)
        self.assertIn("read-only build dir", "\n".join(logs.output))

    def test_missing_repository_is_reported(self) -> None:
        with TemporaryDirectory() as raw_tmpdir:
            tmpdir = Path(raw_tmpdir)
            (tmpdir / "stickers.yml").write_text("", encoding="utf-8")
            argv = ["--input-file", str(tmpdir / "stickers.yml"), "--manifest-url", MANIFEST_URL, "--no-progress"]
            with patch.dict(os.environ, {}, clear=True), patch.object(
                cli, "default_cache_dir", side_effect=cli.MissingPrerequisite("Not in a git repository.")
            ):
                with self.assertLogs("stickerdata.cli", level="ERROR"):
                    self.assertEqual(cli.main(argv), 1)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
