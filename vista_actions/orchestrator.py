"""
Orchestrator: the entry point that brings all components together.

Decoded artifacts go into the registry, get resolved into a plan and run by
the engine; every transition is fanned out to the configured sinks (sqlite
store, JSONL event log, callers' listeners).
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .config import EngineConfig, get_default_config
from .contracts.action_v1 import ActionStatus
from .contracts.artifact_v1 import Artifact
from .contracts.events import RunReport
from .decode.decoder import ActionDecoder
from .decode.stream import ActionRecord, ArtifactClosed, ArtifactOpened, StreamParser
from .engine.cancel import CancellationToken
from .engine.executor import ExecutionEngine
from .engine.locks import PathLockTable
from .engine.retry import RetryPolicy
from .errors import ActionEngineError
from .memory.registry import ArtifactRegistry
from .memory.store import ArtifactStore
from .plan.resolver import DependencyResolver, ExecutionPlan
from .runners.context import ExecutionContext
from .runners.shell import ShellRunner, SubprocessShell
from .runners.workspace import LocalWorkspace, Workspace
from .state.machine import ActionStateMachine, TransitionListener
from .utils.jsonl import JsonlEventSink

logger = logging.getLogger(__name__)


@dataclass
class RollbackResult:
    restored: List[str] = field(default_factory=list)
    conflicts: List[str] = field(default_factory=list)


class ActionOrchestrator:
    """Session facade over decoder, registry, resolver, state machine and engine.

    ``cancel``/``supersede`` must be called from the event loop running
    ``execute``.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        workspace: Optional[Workspace] = None,
        shell: Optional[ShellRunner] = None,
        registry: Optional[ArtifactRegistry] = None,
        store: Optional[ArtifactStore] = None,
        listeners: Optional[List[TransitionListener]] = None,
        path_locks: Optional[PathLockTable] = None,
    ):
        self.config = config or get_default_config()
        self.workspace = workspace or LocalWorkspace(self.config.work_dir)
        self.shell = shell or SubprocessShell(
            ExecutionContext(work_dir=self.config.work_dir, timeout=self.config.shell.timeout),
            kill_grace=self.config.shell.kill_grace,
            enforce_policy=self.config.shell.enforce_policy,
        )
        self.registry = registry or ArtifactRegistry()
        if store is None and self.config.db_path:
            store = ArtifactStore(self.config.db_path)
        self.store = store
        self.resolver = DependencyResolver()

        self.machine = ActionStateMachine()
        if self.store is not None:
            self.machine.subscribe(self.store.put_transition)
        if self.config.event_log:
            self.machine.subscribe(JsonlEventSink(self.config.event_log))
        for listener in listeners or []:
            self.machine.subscribe(listener)

        retry = self.config.retry
        self.engine = ExecutionEngine(
            workspace=self.workspace,
            shell=self.shell,
            state_machine=self.machine,
            path_locks=path_locks or PathLockTable(),
            retry_policy=RetryPolicy(
                max_attempts=retry.max_attempts,
                base_delay=retry.base_delay,
                factor=retry.factor,
                max_delay=retry.max_delay,
            ),
            max_parallel=self.config.max_parallel,
            resolver=self.resolver,
        )
        self.warnings: Dict[str, List[str]] = {}
        self.reports: Dict[str, RunReport] = {}
        self._running: Dict[str, Tuple[str, CancellationToken]] = {}

    # ---------- INGEST ----------
    def ingest(
        self, message_id: str, artifact_id: str, records: Iterable[Mapping], title: str = ""
    ) -> Artifact:
        """Decode every record, then upsert; a DecodeError leaves the registry untouched."""
        decoder = ActionDecoder(self.config.virtual_root)
        actions = list(decoder.decode(records))
        artifact = Artifact(
            id=artifact_id,
            message_id=message_id,
            title=title,
            actions={a.id: a for a in actions},
        )
        stored = self.registry.upsert(artifact)
        self.warnings[artifact_id] = list(decoder.warnings)
        if self.store is not None:
            self.store.save_artifact(stored)
        return stored

    def ingest_stream(self, message_id: str, chunks: Iterable[str]) -> List[Artifact]:
        """Feed tag-stream chunks; each artifact is ingested as soon as it closes."""
        parser = StreamParser(message_id)
        titles: Dict[str, str] = {}
        records: Dict[str, List[Dict[str, object]]] = {}
        ingested: List[Artifact] = []

        def handle(events):
            for event in events:
                if isinstance(event, ArtifactOpened):
                    titles[event.artifact_id] = event.title
                    records[event.artifact_id] = []
                elif isinstance(event, ActionRecord):
                    records[event.artifact_id].append(event.record)
                elif isinstance(event, ArtifactClosed):
                    ingested.append(
                        self.ingest(
                            message_id,
                            event.artifact_id,
                            records.pop(event.artifact_id),
                            title=titles.pop(event.artifact_id, ""),
                        )
                    )

        for chunk in chunks:
            handle(parser.feed(chunk))
        handle(parser.close())
        return ingested

    # ---------- EXECUTION ----------
    def plan(self, message_id: Optional[str], artifact_id: str) -> ExecutionPlan:
        artifact = self.registry.get(message_id, artifact_id)
        with self.registry.lock_for(artifact_id):
            return self.resolver.resolve(artifact.ordered_actions())

    def is_running(self, artifact_id: str) -> bool:
        return artifact_id in self._running

    async def execute(self, message_id: str, artifact_id: str) -> RunReport:
        """Resolve and run one artifact. CycleError/DecodeError propagate before anything runs."""
        artifact = self.registry.get(message_id, artifact_id)
        plan = self.plan(message_id, artifact_id)
        if artifact_id in self._running:
            raise ActionEngineError(f"artifact {artifact_id!r} is already running")

        token = CancellationToken()
        self._running[artifact_id] = (message_id, token)
        try:
            report = await self.engine.run(artifact, plan, token)
        except BaseException:
            if self.store is not None:
                self.store.save_artifact(artifact)
            raise
        finally:
            self._running.pop(artifact_id, None)

        self.reports[artifact_id] = report
        if self.store is not None:
            self.store.save_artifact(artifact, report)
        if not report.succeeded:
            logger.warning("artifact %s did not complete: %s", artifact_id, report.errors or report.statuses)
        return report

    async def execute_message(self, message_id: str) -> List[Union[RunReport, ActionEngineError]]:
        """Run every artifact of a message; artifacts run concurrently with no mutual ordering.

        Returns one outcome per artifact, in registry order: its report, or the
        error that stopped it. A cycle in one artifact never stops the others.
        """
        artifacts = self.registry.artifacts_for_message(message_id)
        outcomes: List[Union[RunReport, ActionEngineError, None]] = [None] * len(artifacts)
        runnable = []
        for i, artifact in enumerate(artifacts):
            try:
                self.plan(message_id, artifact.id)
            except ActionEngineError as exc:
                logger.error("artifact %s not run: %s", artifact.id, exc)
                outcomes[i] = exc
                continue
            runnable.append(i)

        results = await asyncio.gather(
            *(self.execute(message_id, artifacts[i].id) for i in runnable), return_exceptions=True
        )
        for i, result in zip(runnable, results):
            if isinstance(result, BaseException) and not isinstance(result, ActionEngineError):
                raise result
            outcomes[i] = result
        return outcomes

    async def run_stream(self, message_id: str, chunks: Iterable[str]) -> List[RunReport]:
        reports = []
        for artifact in self.ingest_stream(message_id, chunks):
            reports.append(await self.execute(message_id, artifact.id))
        return reports

    # ---------- CONTROL ----------
    def cancel(self, message_id: str, artifact_id: Optional[str] = None, reason: str = "cancelled") -> List[str]:
        """Abort pending and running actions; complete ones keep their committed effect."""
        if artifact_id is not None:
            targets = [self.registry.get(message_id, artifact_id)]
        else:
            targets = self.registry.artifacts_for_message(message_id)
        affected = []
        for artifact in targets:
            running = self._running.get(artifact.id)
            if running is not None:
                running[1].cancel(reason)
            else:
                with self.registry.lock_for(artifact.id):
                    self.engine.abort_unfinished(artifact)
                if self.store is not None:
                    self.store.save_artifact(artifact)
            affected.append(artifact.id)
        logger.info("cancel %s (%s): %s", message_id, reason, ", ".join(affected) or "nothing to cancel")
        return affected

    def supersede(self, old_message_id: str) -> List[str]:
        return self.cancel(old_message_id, reason="superseded")

    def retry(self, message_id: str, artifact_id: str, action_ids: Optional[List[str]] = None) -> List[str]:
        """Re-issue actions as ``pending``; defaults to every failed or aborted action."""
        artifact = self.registry.get(message_id, artifact_id)
        if artifact_id in self._running:
            raise ActionEngineError(f"artifact {artifact_id!r} is running")
        with self.registry.lock_for(artifact_id):
            if action_ids is None:
                action_ids = [
                    a.id for a in artifact.ordered_actions()
                    if a.status in (ActionStatus.FAILED, ActionStatus.ABORTED)
                ]
            for action_id in action_ids:
                self.machine.transition(artifact.actions[action_id], ActionStatus.PENDING, artifact_id)
        if self.store is not None:
            self.store.save_artifact(artifact)
        return list(action_ids)

    async def rollback(self, message_id: str, artifact_id: str) -> RollbackResult:
        """Undo this artifact's committed writes, newest first.

        A file whose content changed since the write is left alone and reported
        as a conflict. Rolled back actions return to ``pending``.
        """
        artifact = self.registry.get(message_id, artifact_id)
        if artifact_id in self._running:
            raise ActionEngineError(f"artifact {artifact_id!r} is running")

        result = RollbackResult()
        records = [w for w in self.engine.journal if w.artifact_id == artifact_id]
        for record in reversed(records):
            async with self.engine.path_locks.hold(record.path):
                current = await asyncio.to_thread(self.workspace.read, record.path)
                if current != record.after:
                    logger.warning("rollback %s: %s changed since action %s wrote it", artifact_id, record.path, record.action_id)
                    result.conflicts.append(record.path)
                    continue
                if record.before is None:
                    await asyncio.to_thread(self.workspace.remove, record.path)
                else:
                    await asyncio.to_thread(self.workspace.write, record.path, record.before)
            result.restored.append(record.path)
            action = artifact.actions.get(record.action_id)
            if action is not None and action.status == ActionStatus.COMPLETE:
                self.machine.transition(action, ActionStatus.PENDING, artifact_id)

        self.engine.journal = [w for w in self.engine.journal if w.artifact_id != artifact_id]
        if self.store is not None:
            self.store.save_artifact(artifact)
        logger.info("rollback %s: %d restored, %d conflict(s)", artifact_id, len(result.restored), len(result.conflicts))
        return result
