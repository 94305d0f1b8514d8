import pytest

# Add the project root to the Python path
import sys, os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from vista_actions.contracts.action_v1 import ActionStatus, ActionType, Representation
from vista_actions.decode.decoder import ActionDecoder, decode, decode_artifact, normalize_file_path
from vista_actions.errors import DecodeError
from vista_actions.plan.resolver import resolve

RECORDS = [
    {"id": "a", "type": "file", "filePath": "pkg.json", "content": "{}"},
    {"id": "b", "type": "shell", "content": "npm install"},
    {"id": "c", "type": "file", "filePath": "/home/project/src/a.ts", "content": "@@ -1,1 +1,1 @@\n-x\n+y\n",
     "representation": "diff", "dependencies": ["a"]},
]


def test_decode_valid_records():
    actions = list(decode(RECORDS))
    assert [a.id for a in actions] == ["a", "b", "c"]
    assert actions[0].type == ActionType.FILE
    assert actions[0].file_path == "pkg.json"
    assert actions[1].is_shell and actions[1].file_path is None
    assert actions[2].file_path == "src/a.ts"
    assert actions[2].representation == Representation.DIFF
    assert actions[0].dependencies is None
    assert actions[2].dependencies == ["a"]
    assert all(a.status == ActionStatus.PENDING for a in actions)


def test_decode_is_lazy():
    seen = []

    def records():
        for r in RECORDS:
            seen.append(r["id"])
            yield r

    it = decode(records())
    first = next(it)
    assert first.id == "a"
    assert seen == ["a"]


def test_decoding_twice_is_deterministic():
    first = list(decode(RECORDS))
    second = list(decode(RECORDS))
    assert first == second
    assert resolve(first).groups == resolve(second).groups


def test_unknown_fields_are_ignored():
    (action,) = decode([{"id": "s", "type": "shell", "content": "ls", "icon": "terminal", "extra": {"x": 1}}])
    assert action.content == "ls"


def test_unknown_type_fails():
    with pytest.raises(DecodeError, match="unknown action type") as exc_info:
        list(decode([{"id": "z", "type": "deploy", "content": "x"}]))
    assert exc_info.value.index == 0
    assert exc_info.value.action_id == "z"


def test_empty_shell_command_fails():
    with pytest.raises(DecodeError, match="empty command"):
        list(decode([{"id": "s", "type": "shell", "content": "   "}]))


@pytest.mark.parametrize("path", [None, "", "../outside.txt", "a/../../b", "/etc/passwd", "/home/projectx/a"])
def test_file_path_must_stay_inside_work_dir(path):
    with pytest.raises(DecodeError):
        list(decode([{"id": "f", "type": "file", "filePath": path, "content": "x"}]))


def test_normalize_file_path():
    assert normalize_file_path("./src//a.ts") == "src/a.ts"
    assert normalize_file_path("/home/project/src/a.ts") == "src/a.ts"
    assert normalize_file_path("src/../b.txt") == "b.txt"
    with pytest.raises(ValueError):
        normalize_file_path("/abs/path.txt", work_dir=None)


def test_duplicate_id_fails():
    with pytest.raises(DecodeError, match="duplicate"):
        list(decode([
            {"id": "a", "type": "shell", "content": "ls"},
            {"id": "a", "type": "shell", "content": "pwd"},
        ]))


def test_dangling_dependency_fails_after_last_record():
    decoder = ActionDecoder()
    it = decoder.decode([{"id": "a", "type": "shell", "content": "ls", "dependencies": ["ghost"]}])
    assert next(it).id == "a"
    with pytest.raises(DecodeError, match="ghost"):
        next(it)


def test_forward_reference_allowed():
    actions = list(decode([
        {"id": "a", "type": "shell", "content": "npm run dev", "dependencies": ["b"]},
        {"id": "b", "type": "shell", "content": "npm install", "dependencies": []},
    ]))
    assert actions[0].dependencies == ["b"]
    assert actions[1].dependencies == []


def test_comma_separated_dependencies():
    (a, b) = decode([
        {"id": "a", "type": "shell", "content": "ls"},
        {"id": "b", "type": "shell", "content": "pwd", "dependencies": "a, a"},
    ])
    assert b.dependencies == ["a"]


def test_duplicate_file_path_is_a_warning():
    decoder = ActionDecoder()
    actions = list(decoder.decode([
        {"id": "a", "type": "file", "filePath": "x.txt", "content": "1"},
        {"id": "b", "type": "file", "filePath": "./x.txt", "content": "2"},
    ]))
    assert len(actions) == 2
    assert len(decoder.warnings) == 1
    assert "x.txt" in decoder.warnings[0]


def test_malformed_diff_payload_fails_at_decode():
    with pytest.raises(DecodeError, match="invalid diff payload"):
        list(decode([{"id": "d", "type": "file", "filePath": "a.ts", "representation": "diff", "content": "not a diff"}]))


def test_missing_id_defaults_to_position():
    actions = list(decode([{"type": "shell", "content": "ls"}, {"type": "shell", "content": "pwd"}]))
    assert [a.id for a in actions] == ["0", "1"]


def test_decode_artifact_is_all_or_nothing():
    with pytest.raises(DecodeError):
        decode_artifact("m1", "art", RECORDS + [{"id": "bad", "type": "nope"}])
    artifact = decode_artifact("m1", "art", RECORDS, title="Demo")
    assert list(artifact.actions) == ["a", "b", "c"]
    assert artifact.title == "Demo"


def test_record_round_trips_through_decoder():
    actions = list(decode(RECORDS))
    again = list(decode([a.to_record() for a in actions]))
    assert again == actions
