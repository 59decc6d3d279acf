"""Tests for CLI helpers and the one-shot command in tonestream/cli.py."""

import pytest
from click.testing import CliRunner

from tonestream import cli
from tonestream.backends.base import TransportError
from tonestream.cli import _apply_overrides, _parse_choice, _resolve_dual, main
from tonestream.models import Variant
from tests.conftest import DONE, ScriptedBackend, data_line


def test_resolve_dual_default(sample_app_config):
    assert _resolve_dual(sample_app_config, single_flag=False) is True


def test_resolve_dual_single_flag_overrides(sample_app_config):
    assert _resolve_dual(sample_app_config, single_flag=True) is False


def test_resolve_dual_config_default_single(sample_app_config):
    sample_app_config.streaming.dual_default = False
    assert _resolve_dual(sample_app_config, single_flag=False) is False


@pytest.mark.parametrize("raw, expected", [("A", Variant.A), ("b", Variant.B), (" a ", Variant.A), ("skip", None)])
def test_parse_choice(raw, expected):
    assert _parse_choice(raw) is expected


def test_apply_overrides(sample_app_config):
    _apply_overrides(sample_app_config, url="http://other:9000", timeout=12.5)
    assert sample_app_config.backend.base_url == "http://other:9000"
    assert sample_app_config.backend.timeout_sec == 12.5
    assert sample_app_config.overrides == ["--url", "--timeout"]


def test_apply_overrides_none(sample_app_config):
    _apply_overrides(sample_app_config, url=None, timeout=None)
    assert sample_app_config.backend.base_url == "http://testserver"
    assert sample_app_config.overrides == []


@pytest.fixture
def scripted_backend(monkeypatch):
    """Replace the HTTP backend the CLI builds with a scripted one."""

    def install(backend: ScriptedBackend) -> ScriptedBackend:
        monkeypatch.setattr(cli, "HttpStreamBackend", lambda config: backend)
        return backend

    return install


def test_main_one_shot_single(scripted_backend):
    backend = scripted_backend(ScriptedBackend({None: [data_line("Hello from the backend"), DONE]}))

    result = CliRunner().invoke(main, ["Say hello", "--single", "--skip-health-check"])

    assert result.exit_code == 0, result.output
    assert "Hello from the backend" in result.output
    assert [r.tone for r in backend.requests] == ["professional"]
    assert backend.closed is True


def test_main_dual_with_selection(scripted_backend):
    scripted_backend(
        ScriptedBackend(
            {
                "professional": [data_line("Formal reply"), DONE],
                "casual": [data_line("Casual reply"), DONE],
            }
        )
    )

    result = CliRunner().invoke(main, ["Greet me", "--skip-health-check"], input="B\n")

    assert result.exit_code == 0, result.output
    assert "Casual reply" in result.output
    assert "selected" in result.output


def test_main_exit_code_on_error(scripted_backend):
    scripted_backend(ScriptedBackend(open_errors={None: TransportError("http", "HTTP error! status: 500", 500)}))

    result = CliRunner().invoke(main, ["q", "--single", "--skip-health-check"])

    assert result.exit_code == 1
    assert "HTTP error! status: 500" in result.output
