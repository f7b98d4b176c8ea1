# -*- coding: utf-8 -*-

import pytest

from contentstore import cli


@pytest.fixture
def served(monkeypatch):
    calls = []

    def run(app, **kwargs):
        calls.append((app, kwargs))

    monkeypatch.setattr(cli.uvicorn, "run", run)
    return calls


def test_cli_main(served, tmpdir):
    storage = str(tmpdir.join("store"))
    code = cli.main(["--storage-dir", storage,
                     "--tmp-dir", str(tmpdir.join("tmp")),
                     "--algorithm", "md5",
                     "--port", "9001",
                     "--log-level", "warning"])

    assert code == 0
    assert len(served) == 1

    app, kwargs = served[0]
    assert kwargs == {"host": "127.0.0.1", "port": 9001, "log_level": "warning"}
    assert app.state.config.storage_root == storage
    assert app.state.config.algorithm == "md5"
    assert tmpdir.join("store").isdir()


def test_cli_main_config_error(served, tmpdir):
    code = cli.main(["--storage-dir", str(tmpdir), "--algorithm", "nope"])

    assert code == 2
    assert served == []


def test_cli_version(capsys):
    with pytest.raises(SystemExit):
        cli.main(["--version"])

    assert "content-store" in capsys.readouterr().out
