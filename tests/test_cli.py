import json

import pytest
from click.testing import CliRunner

from tariffnav.cli.main import cli
from tariffnav.config import DEFAULT_HTS_DATA_PATH


@pytest.fixture()
def runner(monkeypatch) -> CliRunner:
    for name in ("DATABASE_URL", "REDIS_URL", "ORACLE_URL"):
        monkeypatch.delenv(f"TARIFFNAV_{name}", raising=False)
    return CliRunner()


def test_classify_prints_code_and_duty(runner):
    result = runner.invoke(cli, ["classify", "ceramic coffee mug with handle"])
    assert result.exit_code == 0, result.output
    assert "6912.00.48.10" in result.output
    assert "Duty: 9.8% (from 6912.00.48)" in result.output
    assert "Route: Material: ceramic" in result.output


def test_classify_json_output(runner):
    result = runner.invoke(cli, ["classify", "stainless steel mixing bowl", "--json"])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output[result.output.index("{"):])
    assert payload["htsCode"] == "7323930080"
    assert payload["needsInput"] is False
    assert payload["duty"]["inheritedFrom"] == "732393"


def test_classify_with_answer(runner):
    result = runner.invoke(cli, ["classify", "decorative figurine", "--answer", "material=plastic"])
    assert result.exit_code == 0, result.output
    assert "Route: Material: plastic" in result.output


def test_classify_asks_questions(runner):
    result = runner.invoke(cli, ["classify", "decorative figurine"])
    assert result.exit_code == 0, result.output
    assert "[material, high impact]" in result.output
    assert "plastic: Plastic -> Chapter 39" in result.output


def test_classify_cable_routes_by_function(runner):
    result = runner.invoke(cli, ["classify", "usb charging cable"])
    assert result.exit_code == 0, result.output
    assert "Route: Function - Cables" in result.output
    assert "8544.42.90" in result.output


def test_classify_rejects_malformed_answer(runner):
    result = runner.invoke(cli, ["classify", "decorative figurine", "--answer", "plastic"])
    assert result.exit_code != 0
    assert "attribute=value" in result.output


def test_classify_blank_description_fails(runner):
    result = runner.invoke(cli, ["classify", "   "])
    assert result.exit_code == 1
    assert "description is required" in result.output


def test_duty_reports_inheritance(runner):
    result = runner.invoke(cli, ["duty", "6912.00.48.10"])
    assert result.exit_code == 0, result.output
    assert "6912.00.48.10  9.8% (inherited from 6912.00.48)" in result.output


def test_duty_unknown_code(runner):
    result = runner.invoke(cli, ["duty", "8471"])
    assert result.exit_code == 1
    assert "Unknown HTS code" in result.output


def test_import_db_then_classify_from_database(runner, tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'hts.db'}"
    result = runner.invoke(cli, ["import-db", str(DEFAULT_HTS_DATA_PATH), "--database-url", url])
    assert result.exit_code == 0, result.output
    assert "Imported" in result.output
    assert "hts_seed.jsonl" in result.output

    monkeypatch.setenv("TARIFFNAV_DATABASE_URL", url)
    classified = runner.invoke(cli, ["classify", "ceramic coffee mug with handle"])
    assert classified.exit_code == 0, classified.output
    assert "6912.00.48.10" in classified.output


def test_import_db_requires_url(runner):
    result = runner.invoke(cli, ["import-db", str(DEFAULT_HTS_DATA_PATH)])
    assert result.exit_code == 1
    assert "No database URL" in result.output


def test_check_summarizes_chapters(runner):
    result = runner.invoke(cli, ["check", "--data", str(DEFAULT_HTS_DATA_PATH)])
    assert result.exit_code == 0, result.output
    assert "codes, version" in result.output
    assert any(line.startswith("69 ") for line in result.output.splitlines())


def test_verbose_flag_is_accepted(runner):
    result = runner.invoke(cli, ["--verbose", "check", "--data", str(DEFAULT_HTS_DATA_PATH)])
    assert result.exit_code == 0, result.output
    assert "codes, version" in result.output
