import json
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from backend import cli
from backend.config import get_settings


@pytest.fixture(autouse=True)
def no_remote(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("BLAND_API_KEY", raising=False)
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


def test_preview_prints_graph(capsys):
    code = cli.main(
        [
            "preview",
            "--name", "Family Line",
            "--description", "insurance for my family on a budget",
            "--webhook", "CRM=https://crm.example.com",
            "--transfer", "Agent=12345",
            "--feature", "analytics",
        ]
    )
    out, err = capsys.readouterr()
    assert code == 0
    payload = json.loads(out)
    names = [n["data"]["name"] for n in payload["nodes"]]
    assert names[:3] == ["Intelligent Start", "Family Coverage Planning", "Budget-Friendly Options"]
    assert "CRM" in names
    assert payload["summary"]["wired"]["transfers"] == 0
    assert "skipped transfers 'Agent'" in err


def test_preview_reads_description_file(tmp_path: Path):
    source = tmp_path / "flow.txt"
    source.write_text("Software help desk for login issues", encoding="utf-8")
    target = tmp_path / "out.json"
    code = cli.main(["preview", "--name", "Desk", "--description-file", str(source), "-o", str(target)])
    assert code == 0
    payload = json.loads(target.read_text(encoding="utf-8"))
    assert payload["summary"]["domain"] == "software"


def test_remote_commands_need_key(capsys):
    assert cli.main(["list"]) == 1
    assert "BLAND_API_KEY" in capsys.readouterr().err
    assert cli.main(["create", "--name", "X", "--description", "y"]) == 1


def test_bad_pair_is_a_usage_error():
    with pytest.raises(SystemExit):
        cli.main(["preview", "--name", "X", "--description", "y", "--webhook", "no-equals-sign"])
