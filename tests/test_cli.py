import io
import json
import sys

import pytest
from loguru import logger

from inventory_ai import cli


@pytest.fixture(autouse=True)
def restore_log_sinks():
    yield
    # main() binds a sink to the captured stderr
    logger.remove()
    logger.add(sys.stderr)


def test_catalog_command_prints_base_items(capsys):
    assert cli.main(["catalog"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert len(data) == 10
    assert data[0]["type"] == "base"


def test_analyze_offline_uses_known_patterns(capsys):
    assert cli.main(["analyze", "garden shed", "--offline"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["item"]["weight"] == 150
    assert data["item"]["category"] == "outdoor"


def test_analyze_invalid_name_exits_nonzero(capsys):
    assert cli.main(["analyze", "x"]) == 1
    err = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
    assert err["error"] == "Invalid item name"


def test_parse_offline(capsys):
    assert cli.main(["parse", "2 dining chairs and a treadmill machine", "--offline"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["matches"][0]["quantity"] == 2
    assert data["items"][0]["item"]["category"] == "fitness"


def test_session_reads_typed_lines(capsys, monkeypatch):
    monkeypatch.setattr("sys.stdin", io.StringIO("antique\npiano\n"))
    assert cli.main(["session", "--delay", "0.01"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["items"][0]["item"]["name"] == "Antique Piano"
