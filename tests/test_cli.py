"""Tests for flask CLI commands."""

import json

from anithing.models import RewardName, Title


def test_import_names(app, tmp_path):
    path = tmp_path / "names.json"
    path.write_text(
        json.dumps(
            [
                {"name": "Spike", "tier": "EPIC", "source_anime": "Cowboy Bebop"},
                {"name": "Faye", "tier": "RARE", "source_anime": "Cowboy Bebop"},
            ]
        )
    )

    result = app.test_cli_runner().invoke(args=["rewards", "import-names", str(path)])
    assert result.exit_code == 0, result.output
    assert "2 created" in result.output
    assert RewardName.query.count() == 2


def test_import_names_rejects_invalid(app, tmp_path):
    path = tmp_path / "names.json"
    path.write_text(json.dumps([{"name": "Nobody", "tier": "MYTHIC"}]))

    result = app.test_cli_runner().invoke(args=["rewards", "import-names", str(path)])
    assert result.exit_code != 0
    assert RewardName.query.count() == 0


def test_pool_status_flags_empty_tiers(app, reward_pool):
    result = app.test_cli_runner().invoke(args=["rewards", "pool-status"])
    assert result.exit_code == 0, result.output
    assert "EMPTY" not in result.output


def test_pool_status_fails_when_empty(app):
    result = app.test_cli_runner().invoke(args=["rewards", "pool-status"])
    assert result.exit_code != 0
    assert "GOD" in result.output


def test_import_titles(app, tmp_path):
    path = tmp_path / "titles.json"
    path.write_text(
        json.dumps(
            [
                {"anilist_id": 1, "media_type": "anime", "title": "Cowboy Bebop", "episodes": 26},
                {"anilist_id": 1, "media_type": "anime", "title": "Cowboy Bebop", "episodes": 27},
            ]
        )
    )

    result = app.test_cli_runner().invoke(args=["catalog", "import-titles", str(path)])
    assert result.exit_code == 0, result.output
    assert Title.query.one().episodes == 27
