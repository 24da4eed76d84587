"""Tests for the healthcheck command."""

import httpx
import pytest

from lmstudio_bridge.__main__ import build_parser, main

MODELS_URL = "http://studio.test:1234/v1/models"


class TestHealthcheckCommand:
    """Tests for `python -m lmstudio_bridge healthcheck`."""

    def test_parser_requires_command(self) -> None:
        """Test a subcommand is mandatory."""
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_healthy(self, httpx_mock, capsys) -> None:
        """Test exit code 0 and model count."""
        httpx_mock.add_response(
            url=MODELS_URL, method="GET", json={"data": [{"id": "a"}, {"id": "b"}]}
        )
        assert main(["healthcheck", "--base-url", "http://studio.test:1234"]) == 0
        assert "Models available: 2" in capsys.readouterr().out

    def test_unreachable(self, httpx_mock, capsys) -> None:
        """Test exit code 1 when the server is down."""
        httpx_mock.add_exception(httpx.ConnectError("refused"))
        assert main(["healthcheck", "--base-url", "http://studio.test:1234"]) == 1
        assert "not healthy" in capsys.readouterr().err

    def test_base_url_from_env(self, httpx_mock, monkeypatch) -> None:
        """Test LM_STUDIO_URL is used without --base-url."""
        monkeypatch.setenv("LM_STUDIO_URL", "http://studio.test:1234")
        httpx_mock.add_response(url=MODELS_URL, method="GET", json={"data": []})
        assert main(["healthcheck"]) == 0

    def test_invalid_config(self, monkeypatch, capsys) -> None:
        """Test configuration errors exit with 1."""
        monkeypatch.setenv("LM_STUDIO_TIMEOUT", "soon")
        assert main(["healthcheck"]) == 1
        assert "Invalid configuration" in capsys.readouterr().err
