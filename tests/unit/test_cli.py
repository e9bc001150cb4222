"""
Unit tests for the command-line entry point.
"""

from pathlib import Path

import pytest

from fsserver import __version__
from fsserver.__main__ import build_parser, config_from_args, main


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ("HTTP_HOST", "HTTP_PORT", "HTTP_WORKERS", "HTTP_TIMEOUT",
                 "HTTP_LOG_LEVEL", "HTTP_ROOT_DIR", "HTTP_URL_PREFIX",
                 "HTTP_CHUNK_SIZE"):
        monkeypatch.delenv(name, raising=False)


class TestArguments:

    def test_flags_override_defaults(self, tmp_path: Path):
        args = build_parser().parse_args([
            "--host", "0.0.0.0",
            "-p", "9090",
            "-w", "3",
            "--root", str(tmp_path),
            "--prefix", "/files",
            "--chunk-size", "8192",
            "--log-level", "DEBUG",
            "--log-format", "json",
        ])

        config = config_from_args(args)

        assert config.host == "0.0.0.0"
        assert config.port == 9090
        assert config.min_workers == 3
        assert config.max_workers == 6
        assert config.root_dir == str(tmp_path)
        assert config.url_prefix == "/files"
        assert config.chunk_size == 8192
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    def test_environment_used_when_flag_absent(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("HTTP_ROOT_DIR", str(tmp_path))
        monkeypatch.setenv("HTTP_PORT", "7000")

        config = config_from_args(build_parser().parse_args(["--port", "7001"]))

        assert config.root_dir == str(tmp_path)
        assert config.port == 7001

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["--version"])

        assert exc_info.value.code == 0
        assert capsys.readouterr().out.strip() == f"fsserver {__version__}"


class TestMain:

    def test_invalid_configuration_exits(self, tmp_path: Path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--root", str(tmp_path / "missing")])

        assert exc_info.value.code == 1
        assert "root_dir" in capsys.readouterr().err

    def test_chunk_size_too_small_exits(self, tmp_path: Path):
        with pytest.raises(SystemExit) as exc_info:
            main(["--root", str(tmp_path), "--chunk-size", "100"])

        assert exc_info.value.code == 1
