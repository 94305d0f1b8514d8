import json

import pytest

# Add the project root to the Python path
import sys, os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from vista_actions.cli import load_stream, main

TAG_STREAM = """<boltArtifact id="site" title="Site">
<boltAction type="file" filePath="index.html">
<h1>hi</h1>
</boltAction>
<boltAction type="file" filePath="style.css" dependencies="">
h1 { color: red; }
</boltAction>
</boltArtifact>
"""


def test_load_stream_formats(tmp_path):
    as_list = tmp_path / "actions.json"
    as_list.write_text(json.dumps([{"id": "a", "type": "shell", "content": "ls"}]))
    assert load_stream(str(as_list), "m1") == [("actions", "", [{"id": "a", "type": "shell", "content": "ls"}])]

    as_obj = tmp_path / "artifact.json"
    as_obj.write_text(json.dumps({"id": "app", "title": "App", "actions": []}))
    assert load_stream(str(as_obj), "m1") == [("app", "App", [])]

    as_lines = tmp_path / "steps.jsonl"
    as_lines.write_text('{"id": "a", "type": "shell", "content": "ls"}\n\n{"id": "b", "type": "shell", "content": "pwd"}\n')
    assert [r["id"] for r in load_stream(str(as_lines), "m1")[0][2]] == ["a", "b"]

    tags = tmp_path / "reply.txt"
    tags.write_text(TAG_STREAM)
    ((artifact_id, title, records),) = load_stream(str(tags), "m1")
    assert (artifact_id, title) == ("site", "Site")
    assert [r["filePath"] for r in records] == ["index.html", "style.css"]


def test_plan_command(tmp_path, capsys):
    tags = tmp_path / "reply.txt"
    tags.write_text(TAG_STREAM)
    assert main(["plan", str(tags), "--json"]) == 0
    out = json.loads(capsys.readouterr().out)
    # dependencies="" declares no dependencies, so both files are independent
    assert out[0]["groups"] == [["0", "1"]]


def test_run_command_writes_files(tmp_path, capsys):
    tags = tmp_path / "reply.txt"
    tags.write_text(TAG_STREAM)
    work = tmp_path / "work"
    db = tmp_path / "actions.db"

    assert main(["run", str(tags), "--work-dir", str(work), "--db", str(db)]) == 0
    assert (work / "index.html").read_text() == "<h1>hi</h1>\n"
    assert "✅ 0: complete" in capsys.readouterr().out

    assert main(["history", "site", "--db", str(db), "--json"]) == 0
    rows = json.loads(capsys.readouterr().out)
    assert [r["to"] for r in rows if r["action_id"] == "0"] == ["running", "complete"]


def test_run_command_exit_status_on_failure(tmp_path, capsys):
    stream = tmp_path / "bad.json"
    stream.write_text(json.dumps([
        {"id": "x", "type": "file", "filePath": "a.txt", "representation": "diff",
         "content": "@@ -1,1 +1,1 @@\n-missing\n+there\n"},
    ]))
    assert main(["run", str(stream), "--work-dir", str(tmp_path / "w"), "--log-level", "CRITICAL", "--json"]) == 1
    out = capsys.readouterr().out
    report = json.loads(out)
    assert report[0]["results"]["x"]["status"] == "failed"


def test_decode_errors_exit_2(tmp_path, capsys):
    stream = tmp_path / "bad.json"
    stream.write_text(json.dumps([{"id": "x", "type": "rocket"}]))
    assert main(["plan", str(stream)]) == 2
    assert "DecodeError" in capsys.readouterr().err


def test_diff_command(tmp_path, capsys):
    base = tmp_path / "base.txt"
    target = tmp_path / "target.txt"
    base.write_text("".join(f"row {i}\n" for i in range(40)))
    target.write_text("".join(f"row {i}\n" for i in range(40)).replace("row 20", "row twenty"))
    assert main(["diff", str(base), str(target), "--json"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["representation"] == "diff"
    assert "+row twenty" in out["payload"]


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert "usage" in capsys.readouterr().out
