"""Tests for punlock.cli — argument handling."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

from punlock import __version__
from punlock.cli import main
from punlock.config import Backend


class TestMain:
    def test_version(self, capsys):
        assert main(["--version"]) == 0
        assert capsys.readouterr().out.strip() == f"punlock {__version__}"

    def test_bad_backend_env(self, clean_env, monkeypatch, capsys):
        monkeypatch.setenv("PUNLOCK_BACKEND", "ldap")
        assert main([]) == 2
        assert "PUNLOCK_BACKEND" in capsys.readouterr().err

    def test_flags_override_context(self, clean_env, tmp_path):
        run = AsyncMock(return_value=1)
        with patch("punlock.app.run", new=run):
            code = main(["--backend", "api", "--no-volatile", "-c", str(tmp_path / "c.toml")])
        assert code == 1
        ctx = run.await_args.args[0]
        assert ctx.backend == Backend.API
        assert ctx.volatile is False
        assert run.await_args.kwargs["config_path"] == tmp_path / "c.toml"

    def test_interrupted(self, clean_env):
        with patch("punlock.app.run", new=AsyncMock(side_effect=KeyboardInterrupt)):
            assert main([]) == 130
