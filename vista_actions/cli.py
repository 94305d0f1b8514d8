#!/usr/bin/env python3
"""
VISTA Actions Command Line Interface
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .config import get_default_config, load_config_from_file
from .decode.decoder import decode_artifact
from .decode.stream import ActionRecord, ArtifactOpened, parse_stream
from .errors import ActionEngineError
from .logging_setup import setup_logging
from .memory.store import ArtifactStore
from .orchestrator import ActionOrchestrator
from .plan.resolver import resolve
from .reconcile.diff import choose_representation

STATUS_ICONS = {"complete": "✅", "failed": "❌", "aborted": "⏹️", "pending": "⏸️", "running": "🏃"}

ArtifactInput = Tuple[str, str, List[Dict[str, object]]]


def load_stream(path: str, message_id: str) -> List[ArtifactInput]:
    """Read ``(artifact_id, title, records)`` triples from a .json, .jsonl or tag-stream file."""
    source = Path(path)
    text = source.read_text(encoding="utf-8")

    if source.suffix == ".json":
        data = json.loads(text)
        if isinstance(data, dict):
            return [(str(data.get("id") or source.stem), data.get("title", ""), list(data.get("actions", [])))]
        return [(source.stem, "", list(data))]

    if source.suffix == ".jsonl":
        records = [json.loads(line) for line in text.splitlines() if line.strip()]
        return [(source.stem, "", records)]

    artifacts: Dict[str, ArtifactInput] = {}
    for event in parse_stream(message_id, text):
        if isinstance(event, ArtifactOpened):
            artifacts[event.artifact_id] = (event.artifact_id, event.title, [])
        elif isinstance(event, ActionRecord):
            artifacts[event.artifact_id][2].append(event.record)
    return list(artifacts.values())


def _config(args):
    config = load_config_from_file(args.config) if getattr(args, "config", None) else get_default_config()
    if getattr(args, "work_dir", None):
        config.work_dir = args.work_dir
    if getattr(args, "db", None):
        config.db_path = args.db
    if getattr(args, "events", None):
        config.event_log = args.events
    if getattr(args, "log_level", None):
        config.log_level = args.log_level
    return config


def cmd_plan(args) -> int:
    """Decode a stream and print its ready groups"""
    config = _config(args)
    out = []
    for artifact_id, title, records in load_stream(args.stream, args.message_id):
        artifact = decode_artifact(args.message_id, artifact_id, records, title, config.virtual_root)
        plan = resolve(artifact.ordered_actions())
        out.append({"artifact_id": artifact_id, "title": title, **plan.as_dict()})

    if args.json:
        print(json.dumps(out, indent=2))
        return 0
    for entry in out:
        print(f"📦 {entry['artifact_id']} {entry['title']}".rstrip())
        for i, group in enumerate(entry["groups"]):
            print(f"  {i}: {', '.join(group)}")
    return 0


async def _run_all(orchestrator: ActionOrchestrator, message_id: str, artifacts: List[ArtifactInput]):
    reports = []
    for artifact_id, title, records in artifacts:
        orchestrator.ingest(message_id, artifact_id, records, title)
        reports.append(await orchestrator.execute(message_id, artifact_id))
    return reports


def cmd_run(args) -> int:
    """Execute every artifact of a stream against the work dir"""
    config = _config(args)
    setup_logging(config)
    orchestrator = ActionOrchestrator(config)
    artifacts = load_stream(args.stream, args.message_id)

    if not args.json:
        print(f"🚀 Running {len(artifacts)} artifact(s) in {config.work_dir}")
    reports = asyncio.run(_run_all(orchestrator, args.message_id, artifacts))

    if args.json:
        print(json.dumps([r.model_dump(mode="json") for r in reports], indent=2))
    else:
        for report in reports:
            print(f"\n📦 {report.artifact_id}")
            for aid, result in report.results.items():
                icon = STATUS_ICONS.get(result.status.value, "•")
                line = f"  {icon} {aid}: {result.status.value}"
                if result.error:
                    line += f" ({result.error})"
                print(line)
    return 0 if all(r.succeeded for r in reports) else 1


def cmd_diff(args) -> int:
    """Show the representation chosen for BASELINE -> TARGET"""
    baseline = Path(args.baseline).read_text(encoding="utf-8") if Path(args.baseline).exists() else ""
    target = Path(args.target).read_text(encoding="utf-8")
    mod = choose_representation(baseline, target)
    if args.json:
        print(json.dumps({"representation": mod.representation.value, "payload": mod.payload}, indent=2))
    else:
        print(f"# representation: {mod.representation.value}")
        print(mod.payload, end="")
    return 0


def cmd_history(args) -> int:
    """List persisted transitions of an artifact"""
    rows = ArtifactStore(args.db).list_transitions(args.artifact_id)
    if args.json:
        print(json.dumps(rows, indent=2))
        return 0
    if not rows:
        print(f"📂 No transitions recorded for {args.artifact_id}.")
        return 0
    print(f"📜 Transitions for {args.artifact_id}:")
    for row in rows:
        print(f"  {row['ts']}  {row['action_id']}: {row['from']} -> {row['to']}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="VISTA Actions - action orchestration and reconciliation engine")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    plan_parser = subparsers.add_parser("plan", help="Decode a stream and print ready groups")
    plan_parser.add_argument("stream", help="Action stream (.json, .jsonl or tag stream)")
    plan_parser.add_argument("--message-id", default="cli", help="Message ID")
    plan_parser.add_argument("--config", help="JSON/YAML config file")
    plan_parser.add_argument("--json", action="store_true", help="Output as JSON")
    plan_parser.set_defaults(func=cmd_plan)

    run_parser = subparsers.add_parser("run", help="Execute a stream against a work dir")
    run_parser.add_argument("stream", help="Action stream (.json, .jsonl or tag stream)")
    run_parser.add_argument("--work-dir", help="Workspace root")
    run_parser.add_argument("--message-id", default="cli", help="Message ID")
    run_parser.add_argument("--db", help="sqlite database for artifacts and transitions")
    run_parser.add_argument("--events", help="JSONL file receiving transition events")
    run_parser.add_argument("--config", help="JSON/YAML config file")
    run_parser.add_argument("--log-level", help="Logging level")
    run_parser.add_argument("--json", action="store_true", help="Output as JSON")
    run_parser.set_defaults(func=cmd_run)

    diff_parser = subparsers.add_parser("diff", help="Choose diff or full-file representation")
    diff_parser.add_argument("baseline", help="Current file (missing means empty)")
    diff_parser.add_argument("target", help="New file")
    diff_parser.add_argument("--json", action="store_true", help="Output as JSON")
    diff_parser.set_defaults(func=cmd_diff)

    history_parser = subparsers.add_parser("history", help="Show persisted transitions")
    history_parser.add_argument("artifact_id", help="Artifact ID")
    history_parser.add_argument("--db", required=True, help="sqlite database")
    history_parser.add_argument("--json", action="store_true", help="Output as JSON")
    history_parser.set_defaults(func=cmd_history)

    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1
    try:
        return args.func(args)
    except ActionEngineError as exc:
        print(f"❌ {type(exc).__name__}: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
