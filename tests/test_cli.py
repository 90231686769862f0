from __future__ import annotations

import pytest

from hexboard import cli


def test_serve_arguments_default_to_settings(hexboard_env) -> None:
    args = cli.parse_arguments(["serve", "--port", "8123"])
    assert args.command == "serve"
    assert args.port == 8123
    assert args.host == "127.0.0.1"
    assert args.app == cli.DEFAULT_APP
    assert args.reload is False


def test_command_is_required(hexboard_env) -> None:
    with pytest.raises(SystemExit):
        cli.parse_arguments([])


def test_init_db_creates_database(hexboard_env, capsys) -> None:
    target = hexboard_env / "nested" / "boards.db"
    assert cli.main(["init-db", "--db-url", f"sqlite:///{target}"]) == 0
    assert target.exists()
    assert "Database ready" in capsys.readouterr().out


def test_serve_hands_factory_to_uvicorn(hexboard_env, monkeypatch) -> None:
    calls = []
    import uvicorn

    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
    assert cli.main(["serve", "--host", "0.0.0.0", "--port", "9001"]) == 0
    app, kwargs = calls[0]
    assert app == "hexboard.server.app:create_app"
    assert kwargs["factory"] is True
    assert kwargs["port"] == 9001
