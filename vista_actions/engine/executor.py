"""
Execution engine: drives one artifact's plan through the state machine.

Ready groups run one after another. Inside a group, file actions run
concurrently (bounded) while shell actions run one at a time. Shell-order
edges in the plan keep every shell after the shells that precede it in the
stream, so shell steps never overlap and never overtake each other. Once
running, a failure is contained to its action: dependents stay ``pending``
and independent siblings carry on.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from ..contracts.action_v1 import ActionDescriptor, ActionStatus
from ..contracts.artifact_v1 import Artifact
from ..contracts.events import ActionResult, RunReport
from ..errors import ExecError, IllegalTransitionError
from ..plan.resolver import DependencyResolver, ExecutionPlan
from ..reconcile.diff import reconcile
from ..runners.shell import ShellRunner
from ..runners.workspace import Workspace
from ..state.machine import ActionStateMachine
from ..utils.timeutil import utc_now
from .cancel import CancellationToken
from .locks import PathLockTable
from .retry import NO_RETRY, RetryPolicy

logger = logging.getLogger(__name__)

Step = Callable[[Artifact, ActionDescriptor, CancellationToken, ActionResult], Awaitable[ActionStatus]]


@dataclass
class WriteRecord:
    """One committed file write, kept so it can be rolled back explicitly."""
    artifact_id: str
    action_id: str
    path: str
    before: Optional[str]
    after: str


class ExecutionEngine:
    def __init__(
        self,
        workspace: Workspace,
        shell: ShellRunner,
        state_machine: Optional[ActionStateMachine] = None,
        path_locks: Optional[PathLockTable] = None,
        retry_policy: Optional[RetryPolicy] = None,
        max_parallel: int = 8,
        resolver: Optional[DependencyResolver] = None,
    ):
        self.workspace = workspace
        self.shell = shell
        self.machine = state_machine or ActionStateMachine()
        self.path_locks = path_locks or PathLockTable()
        self.retry_policy = retry_policy or NO_RETRY
        self.max_parallel = max(1, max_parallel)
        self.resolver = resolver or DependencyResolver()
        self.journal: List[WriteRecord] = []

    async def run(
        self,
        artifact: Artifact,
        plan: Optional[ExecutionPlan] = None,
        token: Optional[CancellationToken] = None,
    ) -> RunReport:
        """Execute every ready action of ``artifact`` and report per-action statuses.

        ``complete`` actions from an earlier run are not repeated; ``failed`` and
        ``aborted`` ones run again only after being re-issued as ``pending``.
        """
        plan = plan or self.resolver.resolve(artifact.ordered_actions())
        token = token or CancellationToken()
        report = RunReport(artifact_id=artifact.id, message_id=artifact.message_id)
        for aid in plan.order:
            report.results[aid] = ActionResult(action_id=aid, status=artifact.actions[aid].status)

        logger.info("run %s: %d action(s) in %d group(s)", artifact.id, len(plan.order), len(plan.groups))
        semaphore = asyncio.Semaphore(self.max_parallel)

        async def run_file(action: ActionDescriptor):
            async with semaphore:
                await self._execute(artifact, action, token, report.results[action.id], self._file_step)

        async def run_shells(actions: List[ActionDescriptor]):
            for action in actions:
                await self._execute(artifact, action, token, report.results[action.id], self._shell_step)

        try:
            for group in plan.groups:
                if token.cancelled:
                    break
                ready = [artifact.actions[aid] for aid in group if self._is_ready(artifact, plan, aid)]
                if not ready:
                    continue
                tasks = [run_file(a) for a in ready if a.is_file]
                shells = [a for a in ready if a.is_shell]
                if shells:
                    tasks.append(run_shells(shells))
                await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            self.abort_unfinished(artifact)
            raise

        if token.cancelled:
            logger.warning("run %s cancelled: %s", artifact.id, token.reason)
            self.abort_unfinished(artifact)
            report.cancelled = True

        for aid, result in report.results.items():
            result.status = artifact.actions[aid].status
        report.finished_at = utc_now()
        logger.info(
            "run %s finished: %s",
            artifact.id,
            ", ".join(f"{aid}={r.status.value}" for aid, r in report.results.items()),
        )
        return report

    def abort_unfinished(self, artifact: Artifact) -> List[str]:
        """Move every ``pending``/``running`` action to ``aborted``; ``complete`` ones keep their effect."""
        aborted = []
        for action in artifact.ordered_actions():
            if action.status in (ActionStatus.PENDING, ActionStatus.RUNNING):
                if self.machine.try_transition(action, ActionStatus.ABORTED, artifact.id) is not None:
                    aborted.append(action.id)
        return aborted

    def _is_ready(self, artifact: Artifact, plan: ExecutionPlan, action_id: str) -> bool:
        if artifact.actions[action_id].status != ActionStatus.PENDING:
            return False
        return all(artifact.actions[p].status == ActionStatus.COMPLETE for p in plan.dependencies(action_id))

    async def _execute(
        self,
        artifact: Artifact,
        action: ActionDescriptor,
        token: CancellationToken,
        result: ActionResult,
        step: Step,
    ) -> None:
        while True:
            if token.cancelled:
                return
            try:
                self.machine.transition(action, ActionStatus.RUNNING, artifact.id)
            except IllegalTransitionError as exc:
                # status changed under us, e.g. aborted by an external cancel
                logger.warning("skipping action %s: %s", action.id, exc)
                return
            result.attempts += 1

            try:
                outcome = await step(artifact, action, token, result)
            except asyncio.CancelledError:
                self.machine.try_transition(action, ActionStatus.ABORTED, artifact.id)
                raise
            except Exception as exc:
                if result.error is None:
                    result.error = f"{type(exc).__name__}: {exc}"
                logger.error("action %s failed (attempt %d): %s", action.id, result.attempts, exc)
                self.machine.transition(action, ActionStatus.FAILED, artifact.id)
                if not self.retry_policy.should_retry(result.attempts, exc):
                    return
                delay = self.retry_policy.delay(result.attempts)
                logger.warning("retrying action %s in %.2fs", action.id, delay)
                try:
                    await asyncio.wait_for(token.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
                if token.cancelled:
                    return
                self.machine.transition(action, ActionStatus.PENDING, artifact.id)
                continue

            self.machine.transition(action, outcome, artifact.id)
            if outcome == ActionStatus.COMPLETE:
                result.error = None
            return

    async def _file_step(
        self, artifact: Artifact, action: ActionDescriptor, token: CancellationToken, result: ActionResult
    ) -> ActionStatus:
        path = action.file_path
        async with self.path_locks.hold(path):
            baseline = await asyncio.to_thread(self.workspace.read, path)
            new_content = reconcile(baseline, action.content, action.representation)
            if token.cancelled:
                return ActionStatus.ABORTED
            if baseline == new_content:
                logger.debug("action %s: %s already up to date", action.id, path)
            else:
                await asyncio.to_thread(self.workspace.write, path, new_content)
                self.journal.append(WriteRecord(artifact.id, action.id, path, baseline, new_content))
        result.written_path = path
        return ActionStatus.COMPLETE

    async def _shell_step(
        self, artifact: Artifact, action: ActionDescriptor, token: CancellationToken, result: ActionResult
    ) -> ActionStatus:
        outcome = await self.shell.exec(action.content, token)
        result.exit_code = outcome.exit_code
        result.stdout = outcome.stdout
        result.stderr = outcome.stderr
        if outcome.cancelled:
            return ActionStatus.ABORTED
        if outcome.timed_out:
            raise ExecError("command timed out", command=action.content, exit_code=outcome.exit_code)
        if outcome.exit_code != 0:
            raise ExecError(
                f"command exited with status {outcome.exit_code}", command=action.content, exit_code=outcome.exit_code
            )
        return ActionStatus.COMPLETE
