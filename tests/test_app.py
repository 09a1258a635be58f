from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import app
from core import app_paths
from core.local_store import ACCESS_TOKEN_KEY, EXPIRES_AT_KEY, SHEET_ID_KEY, MemoryStore
from fakes import FakeClock, FakeTokenClient, make_auth


@pytest.fixture
def app_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setattr(app_paths, "APP_DIR", tmp_path)
    monkeypatch.setattr(app_paths, "LOG_DIR", tmp_path / "logs")
    monkeypatch.setattr(app, "configure_logging", lambda **_kwargs: None)
    return tmp_path


def _write_session(directory: Path, **values: str) -> None:
    (directory / "session.json").write_text(json.dumps(values), encoding="utf-8")


def test_parse_assignments() -> None:
    assert app.parse_assignments(["email=a@b.mx", "lat=19.4", "calle=5 de Mayo = 10"]) == {
        "email": "a@b.mx",
        "lat": "19.4",
        "calle": "5 de Mayo = 10",
    }
    with pytest.raises(ValueError, match="Expected field=value"):
        app.parse_assignments(["email"])


def test_status_without_session(app_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert app.main(["status"]) == 0

    output = capsys.readouterr().out
    assert "Not signed in." in output
    assert "Sheet: not resolved yet" in output


def test_status_and_url_with_cached_session(app_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _write_session(
        app_dir,
        **{ACCESS_TOKEN_KEY: "ya29.cached", EXPIRES_AT_KEY: "253402300799000", SHEET_ID_KEY: "1AbC"},
    )

    assert app.main(["status"]) == 0
    output = capsys.readouterr().out
    assert "Signed in. Token valid until 9999-12-31T23:59:59Z" in output
    assert "https://docs.google.com/spreadsheets/d/1AbC/edit" in output

    assert app.main(["url"]) == 0
    assert capsys.readouterr().out.strip() == "https://docs.google.com/spreadsheets/d/1AbC/edit"


def test_forget_sheet_keeps_session(app_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _write_session(app_dir, **{ACCESS_TOKEN_KEY: "ya29.cached", EXPIRES_AT_KEY: "1", SHEET_ID_KEY: "1AbC"})

    assert app.main(["forget-sheet"]) == 0
    assert app.main(["url"]) == 1

    saved = json.loads((app_dir / "session.json").read_text(encoding="utf-8"))
    assert saved == {ACCESS_TOKEN_KEY: "ya29.cached", EXPIRES_AT_KEY: "1"}
    assert "No sheet resolved yet." in capsys.readouterr().out


def test_add_rejects_malformed_fields(app_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert app.main(["add", "pharmacy", "nombreCuenta"]) == 1
    assert "Expected field=value" in capsys.readouterr().err


def test_signin_force_consent_bypasses_cached_session(
    app_dir: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    clock = FakeClock()
    client = FakeTokenClient()
    store = MemoryStore({ACCESS_TOKEN_KEY: "ya29.cached", EXPIRES_AT_KEY: str(clock() + 60_000)})
    auth = make_auth(clock=clock, token_client=client, store=store)
    monkeypatch.setattr(app, "_build_auth", lambda _args: auth)

    assert app.main(["signin", "--force-consent"]) == 0

    assert client.prompts == ["consent"]
    assert store.get(ACCESS_TOKEN_KEY) == "token-1"
    assert "Signed in." in capsys.readouterr().out
