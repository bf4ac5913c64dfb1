import asyncio
import uuid

import pytest
from typer.testing import CliRunner

import stepchain.persistence as persistence
from stepchain.cli import app
from stepchain.contracts import StepType, Workflow, WorkflowStep
from stepchain.persistence import ExecutionHistory, HistoryStepResult, Repositories

runner = CliRunner()


@pytest.fixture
def repos(monkeypatch, tmp_path) -> Repositories:
    repos = Repositories.in_memory()
    monkeypatch.setattr(persistence, "_repositories_instance", repos)
    monkeypatch.delenv("STEPCHAIN_CONFIG", raising=False)
    monkeypatch.delenv("STEPCHAIN_NOTIFICATIONS", raising=False)
    monkeypatch.chdir(tmp_path)
    return repos


def _save_workflow(repos: Repositories, name: str = "Meeting notes", favorite: bool = False):
    wf = Workflow(name=name, is_favorite=favorite)
    wf.add_step(WorkflowStep(step_type=StepType.SUMMARIZE, prompt="Two sentences"))
    wf.add_step(WorkflowStep(step_type=StepType.TRANSLATE, prompt="To Spanish"))
    asyncio.run(repos.workflows.save(wf))
    return wf


def test_workflow_list(repos):
    notes = _save_workflow(repos, favorite=True)
    email = _save_workflow(repos, name="Email polish")

    result = runner.invoke(app, ["workflow", "list"])
    assert result.exit_code == 0, result.stdout
    assert str(notes.id) in result.stdout
    assert str(email.id) in result.stdout
    assert "Meeting notes*" in result.stdout

    favorites = runner.invoke(app, ["workflow", "list", "--favorites"])
    assert str(notes.id) in favorites.stdout
    assert str(email.id) not in favorites.stdout

    search = runner.invoke(app, ["workflow", "list", "--search", "email"])
    assert str(email.id) in search.stdout
    assert str(notes.id) not in search.stdout


def test_workflow_list_empty(repos):
    result = runner.invoke(app, ["workflow", "list"])

    assert result.exit_code == 0
    assert "No workflows found" in result.stdout


def test_workflow_show_and_missing(repos):
    wf = _save_workflow(repos)

    result = runner.invoke(app, ["workflow", "show", str(wf.id)])
    assert result.exit_code == 0, result.stdout
    assert "1. Summarize: Two sentences" in result.stdout
    assert "2. Translate: To Spanish" in result.stdout

    missing = runner.invoke(app, ["workflow", "show", str(uuid.uuid4())])
    assert missing.exit_code == 1
    assert "Workflow not found" in missing.stdout

    invalid = runner.invoke(app, ["workflow", "show", "missing-id"])
    assert invalid.exit_code == 1


def test_workflow_create(repos):
    result = runner.invoke(
        app,
        [
            "workflow",
            "create",
            "Meeting notes",
            "-s",
            "Summarize:Two sentences",
            "-s",
            "extract information:Action items",
            "--favorite",
        ],
    )
    assert result.exit_code == 0, result.stdout

    (wf,) = asyncio.run(repos.workflows.fetch_all())
    assert wf.is_favorite
    assert [(s.step_type, s.prompt, s.order) for s in wf.sorted_steps] == [
        ("Summarize", "Two sentences", 0),
        ("Extract Information", "Action items", 1),
    ]


@pytest.mark.parametrize(
    "args",
    [
        ["ab", "-s", "Summarize:x"],
        ["Meeting notes"],
        ["Meeting notes", "-s", "Poetry:rhyme"],
        ["Meeting notes", "-s", "no separator"],
    ],
)
def test_workflow_create_rejects_bad_input(repos, args):
    result = runner.invoke(app, ["workflow", "create", *args])

    assert result.exit_code != 0
    assert asyncio.run(repos.workflows.fetch_all()) == []


def test_workflow_favorite_and_delete(repos):
    wf = _save_workflow(repos)

    result = runner.invoke(app, ["workflow", "favorite", str(wf.id)])
    assert "favorite" in result.stdout
    assert asyncio.run(repos.workflows.fetch(wf.id)).is_favorite

    result = runner.invoke(app, ["workflow", "delete", str(wf.id)])
    assert result.exit_code == 0
    assert asyncio.run(repos.workflows.fetch(wf.id)) is None


def test_run_prints_output_and_records_history(repos, tmp_path):
    (tmp_path / "config.yaml").write_text(
        "model:\n  name: test\n  test_output: Resumen corto\n"
    )
    wf = _save_workflow(repos)

    result = runner.invoke(app, ["run", str(wf.id), "Long English text", "--no-notify"])

    assert result.exit_code == 0, result.stdout
    assert "Resumen corto" in result.stdout
    (record,) = asyncio.run(repos.history.fetch_all())
    assert record.status == "success"
    assert record.output_text == "Resumen corto"
    assert [s.step_name for s in record.step_results] == ["Summarize", "Translate"]


def test_run_reports_errors(repos):
    wf = _save_workflow(repos)

    blank = runner.invoke(app, ["run", str(wf.id), "   "])
    assert blank.exit_code == 1
    assert "Input text cannot be empty" in blank.stdout

    missing = runner.invoke(app, ["run", str(uuid.uuid4()), "text"])
    assert missing.exit_code == 1
    assert "not found" in missing.stdout
    assert asyncio.run(repos.history.fetch_all()) == []


def test_history_commands(repos):
    workflow_id = uuid.uuid4()
    record = ExecutionHistory(
        workflow_id=workflow_id,
        workflow_name="Meeting notes",
        duration=2.0,
        status="failed",
        input_text="Long text",
        output_text="partial",
        step_results=[HistoryStepResult(step_name="Summarize", output="partial", duration=1.0)],
    )
    asyncio.run(repos.history.save(record))

    listed = runner.invoke(app, ["history", "list", "--workflow", str(workflow_id)])
    assert str(record.id) in listed.stdout
    assert "failed" in listed.stdout

    shown = runner.invoke(app, ["history", "show", str(record.id)])
    assert "Input: Long text" in shown.stdout
    assert "- Summarize (1.00s): partial" in shown.stdout

    missing = runner.invoke(app, ["history", "show", str(uuid.uuid4())])
    assert missing.exit_code == 1
    assert "History record not found" in missing.stdout

    cleared = runner.invoke(app, ["history", "clear", "--yes"])
    assert cleared.exit_code == 0
    assert asyncio.run(repos.history.fetch_all()) == []


def test_prefs_commands(repos):
    result = runner.invoke(app, ["prefs", "theme", "Dark"])
    assert result.exit_code == 0, result.stdout

    shown = runner.invoke(app, ["prefs", "show"])
    assert "Theme: Dark" in shown.stdout
