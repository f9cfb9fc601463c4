"""Test CLI commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from typer.testing import CliRunner

from pensieve import __version__
from pensieve.cli import app

if TYPE_CHECKING:
    from pathlib import Path

runner = CliRunner()


def _write(tmp_path: Path, name: str, data: dict[str, object]) -> Path:
    path = tmp_path / name
    path.write_text(json.dumps(data))
    return path


def test_version_command() -> None:
    """Test pensieve version command."""
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert f"v{__version__}" in result.stdout


def test_no_args_shows_help() -> None:
    """No arguments shows help."""
    result = runner.invoke(app, [])
    assert result.exit_code == 2
    assert "Pensieve" in result.output


# --- validate ---


def test_validate_valid_pathway(snapshot_file: Path, tmp_path: Path) -> None:
    """A clean pathway exits 0."""
    pathway = _write(
        tmp_path, "pathway.json", {"fandom_id": "hp", "tags": ["A"], "plot_blocks": ["P1"]}
    )

    result = runner.invoke(app, ["validate", str(snapshot_file), str(pathway)])

    assert result.exit_code == 0
    assert "✓ valid" in result.stdout


def test_validate_invalid_pathway_exits_1(snapshot_file: Path, tmp_path: Path) -> None:
    """A pathway with a blocking violation exits 1."""
    pathway = _write(tmp_path, "pathway.json", {"fandom_id": "hp", "tags": ["A", "B"]})

    result = runner.invoke(app, ["validate", str(snapshot_file), str(pathway)])

    assert result.exit_code == 1
    assert "invalid" in result.stdout


def test_validate_json_output(snapshot_file: Path, tmp_path: Path) -> None:
    """--json prints the report as JSON."""
    pathway = _write(tmp_path, "pathway.json", {"fandom_id": "hp", "tags": ["A", "B"]})

    result = runner.invoke(app, ["validate", str(snapshot_file), str(pathway), "--json"])

    assert result.exit_code == 1
    data = json.loads(result.stdout)
    assert data["is_valid"] is False
    assert data["violations"][0]["rule"] == "mutual_exclusion"


def test_validate_concurrent(snapshot_file: Path, tmp_path: Path) -> None:
    """--concurrent runs the async pipeline with the same verdict."""
    pathway = _write(tmp_path, "pathway.json", {"fandom_id": "hp", "tags": ["A", "B"]})

    result = runner.invoke(
        app, ["validate", str(snapshot_file), str(pathway), "--concurrent", "--json"]
    )

    assert result.exit_code == 1
    assert json.loads(result.stdout)["violations"][0]["rule"] == "mutual_exclusion"


def test_validate_bad_pathway_file(snapshot_file: Path, tmp_path: Path) -> None:
    """A pathway without a fandom is an input error."""
    pathway = _write(tmp_path, "pathway.json", {"tags": ["A"]})

    result = runner.invoke(app, ["validate", str(snapshot_file), str(pathway)])

    assert result.exit_code == 2
    assert "Invalid pathway" in result.stdout


def test_validate_missing_snapshot(tmp_path: Path) -> None:
    """A missing snapshot is an input error."""
    pathway = _write(tmp_path, "pathway.json", {"fandom_id": "hp"})

    result = runner.invoke(app, ["validate", str(tmp_path / "nope.yaml"), str(pathway)])

    assert result.exit_code == 2
    assert "Invalid snapshot" in result.stdout


def test_validate_bad_config(snapshot_file: Path, tmp_path: Path) -> None:
    """An unreadable config is an input error."""
    pathway = _write(tmp_path, "pathway.json", {"fandom_id": "hp"})

    result = runner.invoke(
        app,
        ["validate", str(snapshot_file), str(pathway), "--config", str(tmp_path / "none.yaml")],
    )

    assert result.exit_code == 2
    assert "Error" in result.stdout


# --- graph ---


def test_graph_clean(snapshot_file: Path) -> None:
    """A catalog without cycles exits 0."""
    result = runner.invoke(app, ["graph", str(snapshot_file), "hp"])

    assert result.exit_code == 0
    assert "No circular dependencies" in result.stdout


def test_graph_rejects_closing_edge(snapshot_file: Path) -> None:
    """P3 depends on P2 which depends on P1; proposing P1 -> P3 is rejected."""
    result = runner.invoke(
        app, ["graph", str(snapshot_file), "hp", "--propose", "P1:P3", "--json"]
    )

    assert result.exit_code == 1
    data = json.loads(result.stdout)
    assert data["proposed_edge_accepted"] is False
    assert data["proposed_edge_cycle"] == ["P1", "P3", "P2", "P1"]


def test_graph_accepts_safe_edge(snapshot_file: Path) -> None:
    """A safe proposal exits 0."""
    result = runner.invoke(app, ["graph", str(snapshot_file), "hp", "-p", "P3:P1"])
    assert result.exit_code == 0
    assert "can be added" in result.stdout


def test_graph_reports_cycle_with_fix(tmp_path: Path) -> None:
    """An existing cycle exits 1 and names an edge that breaks it."""
    snapshot = _write(
        tmp_path,
        "cycle.json",
        {
            "plot_blocks": [
                {"id": "A", "fandom_id": "hp"},
                {"id": "B", "fandom_id": "hp", "parent_id": "A"},
            ],
            "conditions": [
                {
                    "id": "c1",
                    "source_block_id": "A",
                    "target_block_id": "B",
                    "condition_type": "prerequisite",
                    "operator": "completed",
                }
            ],
        },
    )

    result = runner.invoke(app, ["graph", str(snapshot), "hp"])
    data = json.loads(runner.invoke(app, ["graph", str(snapshot), "hp", "--json"]).stdout)

    assert result.exit_code == 1
    assert "fix: Remove condition 'c1'" in result.stdout
    assert data["shortest_cycle"] == ["A", "B", "A"]
    assert [o["action"] for o in data["resolutions"][0]["options"]] == [
        "remove_condition",
        "detach_parent",
    ]


def test_graph_bad_propose_format(snapshot_file: Path) -> None:
    """--propose must be SOURCE:TARGET."""
    result = runner.invoke(app, ["graph", str(snapshot_file), "hp", "--propose", "P1"])
    assert result.exit_code == 2


# --- conditions ---


def test_conditions_lists_types() -> None:
    """Without a snapshot the condition type catalog is shown."""
    result = runner.invoke(app, ["conditions"])

    assert result.exit_code == 0
    assert "prerequisite" in result.stdout
    assert "tag_presence" in result.stdout


def test_conditions_requires_fandom_and_block(snapshot_file: Path) -> None:
    """A snapshot without --fandom/--block is an input error."""
    result = runner.invoke(app, ["conditions", str(snapshot_file)])
    assert result.exit_code == 2


def test_conditions_unmet(snapshot_file: Path) -> None:
    """Unmet conditions exit 1."""
    result = runner.invoke(app, ["conditions", str(snapshot_file), "-f", "hp", "-b", "P3"])

    assert result.exit_code == 1
    assert "0/1 conditions met" in result.stdout


def test_conditions_met_with_context(snapshot_file: Path, tmp_path: Path) -> None:
    """A context completing the prerequisite satisfies it."""
    context = _write(tmp_path, "context.json", {"completed_blocks": ["P2"]})

    result = runner.invoke(
        app,
        [
            "conditions",
            str(snapshot_file),
            "-f",
            "hp",
            "-b",
            "P3",
            "--context",
            str(context),
            "--json",
        ],
    )

    assert result.exit_code == 0
    assert json.loads(result.stdout)["summary"]["passed"] == 1
