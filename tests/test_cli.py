from pathlib import Path
import json
import sys

import pytest
from typer.testing import CliRunner

from atlas_taskflow.cli import app


runner = CliRunner()


@pytest.fixture
def invoke(fixture_tasks, tmp_path: Path):
    """Invoca a CLI com o Artifact Store em `tmp_path/store` e o módulo de fixtures no path."""
    store = tmp_path / "store"
    app_dir = str(Path(fixture_tasks.__file__).parent)

    def _invoke(command, target, *args):
        return runner.invoke(
            app,
            [command, f"taskflow_tasks:{target}", "--store", str(store), "--app-dir", app_dir, *args],
        )

    return _invoke


# ==========================================================
# HAPPY PATH
# ==========================================================

def test_run_then_rerun_is_cached(invoke):
    first = invoke("run", "train", "-p", "lr=0.5")
    assert first.exit_code == 0, first.output
    assert "2 executed" in first.output

    second = invoke("run", "train", "-p", "lr=0.5")
    assert second.exit_code == 0, second.output
    assert "0 executed" in second.output
    assert "2 cached" in second.output


def test_run_json_and_output(invoke):
    result = invoke("run", "train", "-p", "lr=0.5", "-p", "model=tree", "--json")
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert [n["task"] for n in payload["nodes"]] == ["prepare", "train"]

    shown = invoke("output", "train", "-p", "lr=0.5", "-p", "model=tree")
    assert shown.exit_code == 0, shown.output
    assert json.loads(shown.output) == {"model": "tree", "lr": 0.5, "score": 1.5}


def test_target_may_be_a_task_instance(invoke):
    result = invoke("run", "train_fast")
    assert result.exit_code == 0, result.output

    shown = invoke("output", "train", "-p", "lr=0.5")
    assert json.loads(shown.output)["lr"] == 0.5


def test_preview_text_and_json(invoke):
    text = invoke("preview", "evaluate", "-p", "seed=3")
    assert text.exit_code == 0, text.output
    assert "TASK" in text.output
    assert "seed=3^" in text.output
    assert "3 would run" in text.output

    invoke("run", "evaluate", "-p", "seed=3")

    as_json = invoke("preview", "evaluate", "-p", "seed=3", "--json")
    payload = json.loads(as_json.output)
    assert payload["counts"]["satisfied"] == 3
    assert payload["counts"]["will_run"] == 0


def test_force_reruns_node_and_dependents(invoke):
    invoke("run", "train")

    forced = invoke("run", "train", "--force", "prepare")
    assert forced.exit_code == 0, forced.output
    assert "2 executed" in forced.output


def test_invalidate_with_cascade(invoke):
    invoke("run", "train")

    result = invoke("invalidate", "train", "--node", "prepare", "--cascade")
    assert result.exit_code == 0, result.output
    lines = [line for line in result.output.splitlines() if line.startswith("invalidated")]
    assert len(lines) == 2
    assert "prepare(seed=0)" in lines[0]

    again = invoke("invalidate", "train")
    assert "nothing to invalidate" in again.output


def test_invalidate_cascade_from_upstream_target(invoke):
    invoke("run", "train")

    result = invoke("invalidate", "prepare", "--cascade")
    assert result.exit_code == 0, result.output
    lines = [line for line in result.output.splitlines() if line.startswith("invalidated")]
    assert len(lines) == 2
    assert "prepare(seed=0)" in lines[0]
    assert "train(" in lines[1]


def test_app_dir_does_not_leak_into_sys_path(invoke):
    before = list(sys.path)

    invoke("preview", "prepare")

    assert sys.path == before


# ==========================================================
# ERROR PATHS
# ==========================================================

def test_failed_node_exits_with_1(invoke):
    result = invoke("run", "broken")
    assert result.exit_code == 1
    assert "broken" in result.output


def test_output_before_run_exits_with_1(invoke):
    result = invoke("output", "prepare")
    assert result.exit_code == 1
    assert "error:" in result.output


def test_cycle_exits_with_2(invoke):
    result = invoke("preview", "loop_a")
    assert result.exit_code == 2
    assert "Cyclic dependency" in result.output


@pytest.mark.parametrize(
    "target, args",
    [
        ("not_a_task", []),
        ("missing_attr", []),
        ("train", ["-p", "epochs=3"]),
        ("prepare", ["-p", "seed=abc"]),
        ("train", ["-p", "model=forest"]),
        ("train", ["-p", "lr"]),
    ],
)
def test_configuration_errors_exit_with_2(invoke, target, args):
    result = invoke("run", target, *args)
    assert result.exit_code == 2
    assert "error:" in result.output


def test_malformed_target_exits_with_2(tmp_path: Path):
    result = runner.invoke(app, ["preview", "no_colon_here", "--store", str(tmp_path)])
    assert result.exit_code == 2
    assert "modulo:atributo" in result.output

