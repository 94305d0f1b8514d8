# Add the project root to the Python path
import sys, os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from vista_actions.contracts.action_v1 import ActionStatus
from vista_actions.contracts.events import ActionResult, RunReport
from vista_actions.decode.decoder import decode_artifact
from vista_actions.memory.store import ArtifactStore
from vista_actions.state.machine import ActionStateMachine


def _artifact():
    return decode_artifact("m1", "app", [
        {"id": "a", "type": "file", "filePath": "a.txt", "content": "A"},
        {"id": "b", "type": "shell", "content": "make", "dependencies": ["a"]},
    ], title="App")


def test_save_and_load_round_trip(tmp_path):
    store = ArtifactStore(str(tmp_path / "actions.db"))
    artifact = _artifact()
    artifact.actions["a"].status = ActionStatus.COMPLETE
    store.save_artifact(artifact)

    loaded = store.load_artifact("m1", "app")
    assert loaded == artifact
    assert list(loaded.actions) == ["a", "b"]
    assert loaded.actions["b"].dependencies == ["a"]
    assert loaded.actions["a"].status == ActionStatus.COMPLETE


def test_load_missing_or_other_message(tmp_path):
    store = ArtifactStore(str(tmp_path / "actions.db"))
    store.save_artifact(_artifact())
    assert store.load_artifact("m1", "nope") is None
    assert store.load_artifact("m2", "app") is None
    assert store.load_artifact(None, "app").id == "app"


def test_list_artifacts_and_errors(tmp_path):
    store = ArtifactStore(str(tmp_path / "actions.db"))
    artifact = _artifact()
    report = RunReport(artifact_id="app", message_id="m1", results={
        "a": ActionResult(action_id="a", status=ActionStatus.COMPLETE),
        "b": ActionResult(action_id="b", status=ActionStatus.FAILED, error="ExecError: boom"),
    })
    store.save_artifact(artifact, report)

    listed = store.list_artifacts()
    assert [row["artifact_id"] for row in listed] == ["app"]
    assert store.list_artifacts("m1")[0]["title"] == "App"
    assert store.list_artifacts("m2") == []
    assert store.action_errors("app") == {"b": "ExecError: boom"}


def test_store_as_transition_listener(tmp_path):
    store = ArtifactStore(str(tmp_path / "actions.db"))
    machine = ActionStateMachine([store])
    artifact = _artifact()
    machine.transition(artifact.actions["a"], ActionStatus.RUNNING, "app")
    machine.transition(artifact.actions["a"], ActionStatus.COMPLETE, "app")

    rows = store.list_transitions("app")
    assert [(r["action_id"], r["from"], r["to"]) for r in rows] == [
        ("a", "pending", "running"),
        ("a", "running", "complete"),
    ]
    assert rows[0]["ts"]
