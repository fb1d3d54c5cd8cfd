# src/flowcanvas/engine/runner.py
"""Engine runner: lays out a run directory, launches Nextflow, streams its output.

The engine runs out of process. Its stdout and stderr are merged into one
ordered stream and every line goes to the tracker in arrival order. The
runner appends one synthetic outcome line when the process exits, so the
tracker always sees an explicit completion or failure marker.
"""

import os
import re
import shutil
import signal
import subprocess
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from flowcanvas.contracts.enums import EngineMode
from flowcanvas.contracts.status import WorkflowExecutionStatus
from flowcanvas.core.config import EngineSettings, memory_to_gb
from flowcanvas.core.logging import get_logger
from flowcanvas.engine.tracker import ExecutionStatusTracker

logger = get_logger(__name__)

_UNSAFE_NAME = re.compile(r"[^a-zA-Z0-9_-]")

COMPLETION_LINE = "Nextflow execution completed successfully"
LOG_FILE = "nextflow/.nextflow.log"


def sanitize_run_name(name: str) -> str:
    return _UNSAFE_NAME.sub("_", name) or "workflow"


def make_run_id(run_name: str, now: datetime) -> str:
    """Opaque run identifier: sanitized name plus epoch milliseconds."""
    return f"{sanitize_run_name(run_name)}_{int(now.timestamp() * 1000)}"


def resolve_workspace_name(pattern: str, run_name: str, now: datetime) -> str:
    """Directory name for one run, from the same tokens as output files."""
    safe = sanitize_run_name(run_name)
    resolved = (
        (pattern or "{workflow_name}")
        .replace("{workflow_name}", safe)
        .replace("{timestamp}", str(int(now.timestamp() * 1000)))
        .replace("{date}", now.strftime("%Y-%m-%d"))
        .replace("{process_name}", safe)
    )
    return _UNSAFE_NAME.sub("_", resolved) or safe


@dataclass(frozen=True)
class RunWorkspace:
    """Directory layout of one run.

    ``root`` holds ``workflow/`` (the script), ``inputs/`` (source files),
    ``results/`` (published outputs) and ``nextflow/`` (work dir and logs).
    """

    root: Path
    script_name: str

    @property
    def workflow_dir(self) -> Path:
        return self.root / "workflow"

    @property
    def inputs_dir(self) -> Path:
        return self.root / "inputs"

    @property
    def results_dir(self) -> Path:
        return self.root / "results"

    @property
    def nextflow_dir(self) -> Path:
        return self.root / "nextflow"

    @property
    def script_path(self) -> Path:
        return self.workflow_dir / self.script_name

    @property
    def relative_script_path(self) -> str:
        return f"workflow/{self.script_name}"

    @classmethod
    def create(
        cls,
        output_dir: Path,
        run_name: str,
        script: str,
        *,
        naming_pattern: str = "{workflow_name}",
        inputs: Mapping[str, str] | None = None,
        now: datetime | None = None,
    ) -> "RunWorkspace":
        """Create the directories and write the script and input files."""
        now = now or datetime.now(UTC)
        root = output_dir / resolve_workspace_name(naming_pattern, run_name, now)
        workspace = cls(root=root, script_name=f"{sanitize_run_name(run_name)}.nf")
        for directory in (
            workspace.workflow_dir,
            workspace.inputs_dir,
            workspace.results_dir,
            workspace.nextflow_dir,
        ):
            directory.mkdir(parents=True, exist_ok=True)

        workspace.script_path.write_text(script, encoding="utf-8")
        for file_name, content in (inputs or {}).items():
            # Input names come from the editor; keep them inside inputs/
            (workspace.inputs_dir / Path(file_name).name).write_text(content, encoding="utf-8")
        return workspace

    def collect_engine_metadata(self) -> None:
        """Move ``.nextflow`` and ``.nextflow.log`` from the root into ``nextflow/``."""
        for name in (".nextflow", ".nextflow.log"):
            source = self.root / name
            if not source.exists():
                continue
            target = self.nextflow_dir / name
            if target.is_dir():
                shutil.rmtree(target)
            elif target.exists():
                target.unlink()
            shutil.move(str(source), str(target))


@dataclass(frozen=True)
class EngineCommand:
    argv: list[str]
    env: dict[str, str] = field(default_factory=dict)


def capped_memory(settings: EngineSettings) -> str:
    """``max_memory``, lowered to the hard cap when it exceeds it."""
    if memory_to_gb(settings.max_memory) > settings.memory_cap_gb:
        capped = f"{settings.memory_cap_gb:g}GB"
        logger.warning("memory_capped", requested=settings.max_memory, capped=capped)
        return capped
    return settings.max_memory


def build_engine_command(settings: EngineSettings, workspace: RunWorkspace) -> EngineCommand:
    """Argument vector and environment for launching the engine in ``workspace.root``."""
    run_args = [
        "run",
        workspace.relative_script_path,
        *(["-with-docker"] if settings.use_docker else []),
        "--outdir",
        "results",
        "--inputdir",
        "inputs",
        "--max_cpus",
        str(settings.max_cpus),
        "--max_memory",
        capped_memory(settings),
        "-work-dir",
        "nextflow/work",
    ]

    if settings.mode is EngineMode.CONTAINER:
        argv = [
            "docker",
            "run",
            "--rm",
            "-e",
            f"NXF_LOG_FILE={LOG_FILE}",
            "-v",
            f"{workspace.root.resolve().as_posix()}:/workspace",
            "-w",
            "/workspace",
            settings.container_image,
            "nextflow",
            *run_args,
        ]
        return EngineCommand(argv=argv)

    return EngineCommand(argv=[settings.executable, *run_args], env={"NXF_LOG_FILE": LOG_FILE})


class CancellationRegistry:
    """Live engine processes keyed by run id.

    ``cancel`` is best effort: it sends SIGTERM and schedules SIGKILL after
    the grace period, then returns without waiting for the process to exit.
    """

    def __init__(self, grace_seconds: float = 5.0) -> None:
        self._grace_seconds = grace_seconds
        self._processes: dict[str, subprocess.Popen[str]] = {}
        self._lock = threading.Lock()

    def register(self, run_id: str, process: "subprocess.Popen[str]") -> None:
        with self._lock:
            self._processes[run_id] = process

    def unregister(self, run_id: str) -> None:
        with self._lock:
            self._processes.pop(run_id, None)

    def active_runs(self) -> list[str]:
        with self._lock:
            return list(self._processes)

    def cancel(self, run_id: str) -> bool:
        """Signal the run's process to stop. Returns False if no such run is live."""
        with self._lock:
            process = self._processes.get(run_id)
        if process is None:
            return False

        logger.info("run_cancel_requested", run_id=run_id, pid=process.pid)
        try:
            process.send_signal(signal.SIGTERM)
        except ProcessLookupError:
            return True

        def escalate() -> None:
            if process.poll() is None:
                logger.warning("run_kill", run_id=run_id, pid=process.pid)
                process.kill()

        timer = threading.Timer(self._grace_seconds, escalate)
        timer.daemon = True
        timer.start()
        return True


@dataclass(frozen=True)
class RunOutcome:
    """Result of one engine run.

    Attributes:
        run_id: Identifier the run was registered under
        workspace: Directory layout of the run
        exit_code: Process exit code, None if the engine never started
        timed_out: Whether the run was stopped by the timeout
        status: Tracker snapshot right after the run finished
    """

    run_id: str
    workspace: RunWorkspace
    exit_code: int | None
    timed_out: bool
    status: WorkflowExecutionStatus

    @property
    def success(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


class EngineRunner:
    """Runs compiled scripts through the engine and feeds the tracker.

    Usage:
        registry = CancellationRegistry()
        tracker = ExecutionStatusTracker(canceller=registry.cancel)
        runner = EngineRunner(settings.engine, tracker, registry)
        outcome = runner.run(result.script, "demo", Path("results"))
    """

    def __init__(
        self,
        settings: EngineSettings,
        tracker: ExecutionStatusTracker,
        registry: CancellationRegistry | None = None,
    ) -> None:
        self._settings = settings
        self._tracker = tracker
        self._registry = registry or CancellationRegistry(settings.cancel_grace_seconds)

    @property
    def registry(self) -> CancellationRegistry:
        return self._registry

    def run(
        self,
        script: str,
        run_name: str,
        output_dir: Path,
        *,
        naming_pattern: str = "{workflow_name}",
        inputs: Mapping[str, str] | None = None,
        on_line: Callable[[str], None] | None = None,
    ) -> RunOutcome:
        now = datetime.now(UTC)
        workspace = RunWorkspace.create(
            output_dir,
            run_name,
            script,
            naming_pattern=naming_pattern,
            inputs=inputs,
            now=now,
        )
        command = build_engine_command(self._settings, workspace)
        run_id = make_run_id(run_name, now)
        self._tracker.start_run(run_id)
        logger.info("engine_launch", run_id=run_id, argv=command.argv, cwd=str(workspace.root))

        try:
            process = subprocess.Popen(
                command.argv,
                cwd=workspace.root,
                env={**os.environ, **command.env},
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as exc:
            logger.error("engine_launch_failed", run_id=run_id, error=str(exc))
            status = self._tracker.complete_run(False, f"Failed to launch engine: {exc}")
            return RunOutcome(run_id, workspace, exit_code=None, timed_out=False, status=status)

        self._registry.register(run_id, process)
        timed_out = threading.Event()

        def on_timeout() -> None:
            if process.poll() is None:
                timed_out.set()
                logger.warning("engine_timeout", run_id=run_id, seconds=self._settings.timeout_seconds)
                self._registry.cancel(run_id)

        timer = threading.Timer(self._settings.timeout_seconds, on_timeout)
        timer.daemon = True
        timer.start()
        try:
            assert process.stdout is not None
            for line in process.stdout:
                self._emit(line.rstrip("\n"), on_line)
            exit_code = process.wait()
        except BaseException:
            # Interrupted while the engine is live: stop it before unregistering
            logger.warning("engine_interrupted", run_id=run_id, pid=process.pid)
            self._registry.cancel(run_id)
            process.wait()
            self._tracker.cancel_run()
            raise
        finally:
            timer.cancel()
            if process.stdout is not None:
                process.stdout.close()
            self._registry.unregister(run_id)

        if exit_code == 0 and not timed_out.is_set():
            self._emit(COMPLETION_LINE, on_line)
            self._emit(f"Results available in: {workspace.root}", on_line)
            workspace.collect_engine_metadata()
            status = self._tracker.complete_run(True)
        else:
            if timed_out.is_set():
                self._emit(
                    f"Execution failed: timed out after {self._settings.timeout_seconds:g} seconds",
                    on_line,
                )
            self._emit(f"Nextflow execution failed with exit code: {exit_code}", on_line)
            status = self._tracker.complete_run(False, f"Exit code {exit_code}")

        logger.info("engine_exit", run_id=run_id, exit_code=exit_code, state=status.state.value)
        return RunOutcome(
            run_id,
            workspace,
            exit_code=exit_code,
            timed_out=timed_out.is_set(),
            status=status,
        )

    def cancel(self, run_id: str) -> bool:
        return self._registry.cancel(run_id)

    def _emit(self, line: str, on_line: Callable[[str], None] | None) -> None:
        self._tracker.feed_line(line)
        if on_line is not None:
            on_line(line)
