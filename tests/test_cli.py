import json

import pytest

from littlewonder import cli
from littlewonder.titles import canonical_title_key


def test_parser_maps_batch_flags():
    parsed = cli.create_parser().parse_args(
        ["refill-activities", "--language", "es", "--band", "14-24", "--threshold", "10", "--proactive-topup", "2", "--dry-run"]
    )
    assert parsed.command == "refill-activities"
    assert parsed.band == "14-24"
    assert parsed.top_up == 2
    assert parsed.dry_run is True
    assert parsed.all_cells is False


def test_parser_rejects_malformed_band():
    with pytest.raises(SystemExit):
        cli.create_parser().parse_args(["refill-explore", "--band", "teen"])


def test_generate_articles_flags():
    parsed = cli.create_parser().parse_args(
        ["generate-articles", "--type", "research", "--lang", "en", "--allow-duplicates", "--delete-short", "--limit", "2"]
    )
    assert parsed.article_type == "research"
    assert parsed.lang == "en"
    assert parsed.allow_duplicates and parsed.delete_short
    assert parsed.limit == 2


def test_run_cli_prints_job_summary(monkeypatch, capsys):
    async def fake_prune(db, *, table, dry_run):
        return {"scanned": 3, "duplicates": 1, "deleted": 0, "remaining": 3, "table": table, "dry_run": dry_run}

    monkeypatch.setattr(cli, "get_admin_client", lambda: object())
    monkeypatch.setattr(cli, "prune_duplicates", fake_prune)
    assert cli.run_cli(["prune-duplicates", "--table", "activities", "--dry-run"]) == 0
    output = json.loads(capsys.readouterr().out)
    assert output["table"] == "activities"
    assert output["dry_run"] is True


def test_missing_configuration_exits_non_zero(monkeypatch, capsys):
    def missing():
        raise RuntimeError("Missing SUPABASE_SERVICE_ROLE_KEY for admin access.")

    monkeypatch.setattr(cli, "get_admin_client", missing)
    assert cli.run_cli(["prune-duplicates"]) == 1
    assert "SUPABASE_SERVICE_ROLE_KEY" in capsys.readouterr().err


def test_no_command_prints_help():
    assert cli.run_cli([]) == 1


@pytest.mark.parametrize("command", ["generate-activities", "generate-articles"])
def test_free_form_batch_labels_are_rejected(command):
    with pytest.raises(SystemExit):
        cli.create_parser().parse_args([command, "--batch-label", "spring"])


def test_batch_labels_collapse_to_the_base_title():
    parsed = cli.create_parser().parse_args(["generate-activities", "--batch-label", "B12"])
    assert parsed.batch_label == "B12"
    assert canonical_title_key(f"Torre de vasos · {parsed.batch_label}-3") == canonical_title_key("Torre de vasos")
