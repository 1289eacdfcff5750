import json

from facility_finder import main as cli
from facility_finder.store import async_database_url


def test_decode_command_prints_coordinates(capsys, monkeypatch):
    monkeypatch.delenv("POLYLINE_PRECISION", raising=False)
    assert cli.main(["decode", "_p~iF~ps|U_ulLnnqC_mqNvxq`@"]) == 0
    points = json.loads(capsys.readouterr().out)
    assert points == [[38.5, -120.2], [40.7, -120.95], [43.252, -126.453]]


def test_decode_command_rejects_truncated_polyline(capsys):
    assert cli.main(["decode", "_p~iF~ps|", "--precision", "5"]) == 1


def test_init_db_requires_database_url(monkeypatch):
    monkeypatch.setattr(cli, "load_settings", lambda: cli.Settings())
    assert cli.main(["init-db"]) == 2


def test_async_database_url_selects_asyncpg_driver():
    assert async_database_url("postgres://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"
    assert async_database_url("postgresql://u:p@h/db?sslmode=require") == (
        "postgresql+asyncpg://u:p@h/db?ssl=require"
    )
    assert async_database_url("postgresql+asyncpg://u@h/db") == "postgresql+asyncpg://u@h/db"
