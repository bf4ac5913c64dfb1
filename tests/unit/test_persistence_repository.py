import asyncio
import uuid
from datetime import timedelta

import pytest

from stepchain.contracts import AdvancedOptions, SamplingMode, StepType, Workflow, WorkflowStep, utcnow
from stepchain.errors import PersistenceError, PreferencesNotFoundError
from stepchain.persistence import (
    ExecutionHistory,
    HistoryStepResult,
    Repositories,
    SQLiteDatabase,
    SQLiteExecutionHistoryRepository,
    ThemePreference,
)


@pytest.fixture(params=["memory", "sqlite"])
def repos(request, tmp_path) -> Repositories:
    if request.param == "memory":
        return Repositories.in_memory()
    return Repositories.sqlite(str(tmp_path / "stepchain.db"))


def _workflow(name: str, *kinds: StepType, favorite: bool = False) -> Workflow:
    wf = Workflow(name=name, is_favorite=favorite)
    for kind in kinds:
        wf.add_step(WorkflowStep(step_type=kind, prompt=f"{kind.value} it"))
    return wf


def _history(workflow_id: uuid.UUID, minutes_ago: int = 0, **kwargs) -> ExecutionHistory:
    return ExecutionHistory(
        workflow_id=workflow_id,
        workflow_name=kwargs.pop("workflow_name", "Notes"),
        executed_at=utcnow() - timedelta(minutes=minutes_ago),
        duration=1.5,
        status=kwargs.pop("status", "success"),
        input_text="in",
        output_text="out",
        **kwargs,
    )


@pytest.mark.asyncio
async def test_workflow_repository_crud(repos):
    wf = _workflow("Notes", StepType.SUMMARIZE, StepType.TRANSLATE)
    wf.steps[1] = wf.steps[1].model_copy(
        update={
            "advanced_options": AdvancedOptions(
                temperature=0.2, max_tokens=64, sampling_mode=SamplingMode.GREEDY, enabled=True
            )
        }
    )

    await repos.workflows.save(wf)
    loaded = await repos.workflows.fetch(wf.id)

    assert loaded is not None
    assert loaded.name == "Notes"
    assert [s.step_type for s in loaded.sorted_steps] == ["Summarize", "Translate"]
    assert [s.order for s in loaded.sorted_steps] == [0, 1]
    assert all(s.workflow_id == wf.id for s in loaded.steps)
    assert loaded.sorted_steps[1].advanced_options.enabled is True
    assert loaded.sorted_steps[1].advanced_options.sampling_mode is SamplingMode.GREEDY

    loaded.name = "Renamed notes"
    loaded.remove_step(0)
    await repos.workflows.save(loaded)
    updated = await repos.workflows.fetch(wf.id)
    assert updated.name == "Renamed notes"
    assert [(s.step_type, s.order) for s in updated.sorted_steps] == [("Translate", 0)]

    await repos.workflows.delete(updated)
    assert await repos.workflows.fetch(wf.id) is None
    assert await repos.workflows.fetch_all() == []


@pytest.mark.asyncio
async def test_workflow_save_updates_modified_at(repos):
    wf = _workflow("Notes", StepType.SUMMARIZE)
    before = wf.modified_at

    await repos.workflows.save(wf)

    assert wf.modified_at >= before
    assert wf.created_at <= wf.modified_at


@pytest.mark.asyncio
async def test_unknown_step_type_survives_round_trip(repos):
    wf = Workflow(name="Legacy")
    wf.add_step(WorkflowStep(step_type="Poetry", prompt="make it rhyme"))

    await repos.workflows.save(wf)
    loaded = await repos.workflows.fetch(wf.id)

    assert loaded.steps[0].step_type == "Poetry"
    assert loaded.steps[0].kind is None


@pytest.mark.asyncio
async def test_workflow_queries(repos):
    notes = _workflow("Meeting notes", StepType.SUMMARIZE, favorite=True)
    email = _workflow("Email polish", StepType.REWRITE)
    digest = _workflow("Daily digest", StepType.ANALYZE, favorite=True)
    for wf in (notes, email, digest):
        await repos.workflows.save(wf)
        await asyncio.sleep(0.01)

    assert [wf.name for wf in await repos.workflows.fetch_all()] == [
        "Daily digest",
        "Email polish",
        "Meeting notes",
    ]
    assert [wf.name for wf in await repos.workflows.fetch_favorites()] == [
        "Daily digest",
        "Meeting notes",
    ]
    assert [wf.name for wf in await repos.workflows.search("NOTES")] == ["Meeting notes"]
    assert await repos.workflows.search("missing") == []


@pytest.mark.asyncio
async def test_history_repository_crud(repos):
    workflow_id = uuid.uuid4()
    record = _history(
        workflow_id,
        step_results=[HistoryStepResult(step_name="Summarize", output="short", duration=0.4)],
    )

    await repos.history.save(record)
    loaded = await repos.history.fetch(record.id)

    assert loaded is not None
    assert loaded.workflow_id == workflow_id
    assert loaded.status == "success"
    assert loaded.step_results == record.step_results
    assert loaded.executed_at == record.executed_at

    await repos.history.delete(loaded)
    assert await repos.history.fetch(record.id) is None


@pytest.mark.asyncio
async def test_history_queries(repos):
    first, second = uuid.uuid4(), uuid.uuid4()
    oldest = _history(first, minutes_ago=30)
    middle = _history(second, minutes_ago=20, status="failed")
    newest = _history(first, minutes_ago=10)
    for record in (middle, oldest, newest):
        await repos.history.save(record)

    assert [r.id for r in await repos.history.fetch_all()] == [newest.id, middle.id, oldest.id]
    assert [r.id for r in await repos.history.fetch_for_workflow(first)] == [
        newest.id,
        oldest.id,
    ]
    assert [r.id for r in await repos.history.fetch_recent(2)] == [newest.id, middle.id]
    assert await repos.history.fetch_recent(0) == []

    await repos.history.delete_all()
    assert await repos.history.fetch_all() == []


@pytest.mark.asyncio
async def test_history_outlives_workflow(repos):
    wf = _workflow("Notes", StepType.SUMMARIZE)
    await repos.workflows.save(wf)
    await repos.history.save(_history(wf.id))

    await repos.workflows.delete(wf)

    records = await repos.history.fetch_for_workflow(wf.id)
    assert len(records) == 1
    assert records[0].workflow_name == "Notes"


@pytest.mark.asyncio
async def test_preferences_repository(repos):
    with pytest.raises(PreferencesNotFoundError):
        await repos.preferences.fetch()

    prefs = await repos.preferences.get_or_create()
    assert prefs.theme is ThemePreference.SYSTEM
    assert (await repos.preferences.get_or_create()).id == prefs.id

    favorite = uuid.uuid4()
    prefs.set_theme(ThemePreference.DARK)
    prefs.default_workflow_id = favorite
    prefs.add_widget_selection(favorite)
    await repos.preferences.save(prefs)

    loaded = await repos.preferences.fetch()
    assert loaded.theme is ThemePreference.DARK
    assert loaded.default_workflow_id == favorite
    assert loaded.widget_selections == [favorite]


@pytest.mark.asyncio
async def test_sqlite_steps_cascade_on_workflow_delete(tmp_path):
    db = SQLiteDatabase(tmp_path / "stepchain.db")
    repos = Repositories.sqlite(db.db_path)
    wf = _workflow("Notes", StepType.SUMMARIZE, StepType.TRANSLATE)
    await repos.workflows.save(wf)

    await repos.workflows.delete(wf)

    rows = await db.fetchall("SELECT id FROM workflow_steps")
    assert rows == []


@pytest.mark.asyncio
async def test_sqlite_corrupt_step_results_read_as_empty(tmp_path):
    db = SQLiteDatabase(tmp_path / "stepchain.db")
    history = SQLiteExecutionHistoryRepository(db)
    record = _history(uuid.uuid4())
    await history.save(record)
    await db.execute(
        "UPDATE execution_history SET step_results_json = ? WHERE id = ?",
        "{not json",
        str(record.id),
    )

    loaded = await history.fetch(record.id)

    assert loaded is not None
    assert loaded.step_results == []
    assert loaded.output_text == "out"


@pytest.mark.asyncio
async def test_sqlite_errors_are_wrapped(tmp_path):
    db = SQLiteDatabase(tmp_path / "stepchain.db")

    with pytest.raises(PersistenceError):
        await db.execute("SELECT * FROM no_such_table")


@pytest.mark.asyncio
async def test_sqlite_data_survives_reopen(tmp_path):
    path = str(tmp_path / "stepchain.db")
    wf = _workflow("Notes", StepType.SUMMARIZE)
    await Repositories.sqlite(path).workflows.save(wf)

    reopened = await Repositories.sqlite(path).workflows.fetch(wf.id)

    assert reopened is not None
    assert reopened.steps[0].prompt == "Summarize it"
