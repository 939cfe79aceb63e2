# src/suitetrack/runtime/session.py
"""
Runs the external test runner and feeds its event stream into the decoder.
"""

import asyncio
from collections.abc import Callable, Collection
from pathlib import Path
from typing import TypeAlias

import structlog

from suitetrack.exceptions import (
    AbnormalTerminationError,
    AlreadyRunningError,
    ProcessLaunchError,
    SessionError,
)
from suitetrack.protocol import EventDecoder, parse_command_line
from suitetrack.runtime.launcher import LaunchSpec
from suitetrack.state import NodeState, SessionState
from suitetrack.telemetry import StructLogger
from suitetrack.tree import ROOT_ID, TestTree

log: StructLogger = structlog.get_logger("runtime.session")

SessionObserver: TypeAlias = Callable[[SessionState, SessionError | None], None]
LaunchFactory: TypeAlias = Callable[[str | Path | None], LaunchSpec]

# Failure payloads carry whole stack traces on one line.
STDOUT_LINE_LIMIT = 1024 * 1024


class RunnerSession:
    """
    One runner process at a time: idle -> starting -> running -> stopped | failed.

    Protocol lines on stdout are applied to the tree in arrival order. Stderr is
    only logged. The exit code and whether `tests::end` was seen decide between
    a clean and an abnormal end.
    """

    def __init__(
        self,
        tree: TestTree,
        decoder: EventDecoder,
        launch_factory: LaunchFactory,
        clean_exit_codes: Collection[int] = (0,),
    ):
        self.tree = tree
        self.decoder = decoder
        self._launch_factory = launch_factory
        self.clean_exit_codes = frozenset(clean_exit_codes)
        self.state = SessionState.IDLE
        self.error: SessionError | None = None
        self.exit_code: int | None = None
        self._process: asyncio.subprocess.Process | None = None
        self._pump_task: asyncio.Task | None = None
        self._observers: list[SessionObserver] = []
        self._stop_requested = False
        self._stderr_seen = False
        log.debug("RunnerSession initialized.")

    @property
    def is_active(self) -> bool:
        return self.state.is_active

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    def on_state_changed(self, handler: SessionObserver) -> None:
        self._observers.append(handler)

    def _transition(self, new_state: SessionState, error: SessionError | None = None) -> None:
        old_state = self.state
        self.state = new_state
        self.error = error
        log_func = log.warning if new_state is SessionState.FAILED else log.debug
        log_func(
            "Session state changed",
            old_state=old_state.name,
            new_state=new_state.name,
            **({"error": str(error)} if error else {}),
        )
        for observer in list(self._observers):
            try:
                observer(new_state, error)
            except Exception as e:
                log.warning("Session state observer failed", state=new_state.name, error=str(e), exc_info=True)

    async def start(self, scope_file: str | Path | None = None) -> None:
        """
        Launches the runner. Returns once the process is up; the event stream
        is consumed in the background (see `wait`).
        """
        if self.is_active:
            raise AlreadyRunningError("A test run is already in progress")

        if self._pump_task is not None and not self._pump_task.done():
            # A killed runner may still be flushing; drain it before reusing the tree.
            await self._pump_task

        launch = self._launch_factory(scope_file)
        session_log = log.bind(command=" ".join(launch.command), cwd=str(launch.cwd) if launch.cwd else None)

        self.decoder.reset_counters()
        self.exit_code = None
        self._stop_requested = False
        self._stderr_seen = False
        self._transition(SessionState.STARTING)

        try:
            process = await asyncio.create_subprocess_exec(
                *launch.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=launch.cwd,
                limit=STDOUT_LINE_LIMIT,
            )
        except OSError as e:
            session_log.error("Runner process could not be launched", error=str(e))
            self._transition(SessionState.IDLE)
            raise ProcessLaunchError(f"Could not launch test runner '{launch.executable}': {e}", details=e) from e

        if self._stop_requested or self.state is not SessionState.STARTING:
            # stop() ran while the process was being spawned.
            session_log.info("Stop requested during launch, killing runner", pid=process.pid)
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()
            return

        self._process = process
        session_log.info("Runner process started", pid=process.pid)

        # Only mark the tree as running once the process really exists.
        self.tree.set_state(ROOT_ID, NodeState.PROGRESS)
        self.tree.refresh_root_aggregate()
        self._pump_task = asyncio.create_task(self._pump(process))

    async def wait(self) -> SessionState:
        """Waits until the runner's output is fully consumed."""
        if self._pump_task is not None:
            await self._pump_task
        return self.state

    async def run(self, scope_file: str | Path | None = None) -> SessionState:
        await self.start(scope_file)
        return await self.wait()

    def stop(self) -> None:
        """
        Kills the runner right away. In-flight tests keep their `progress`
        state; call `TestTree.terminate_in_flight` to sweep them.
        """
        process = self._process
        if process is None and not self.is_active:
            log.debug("Stop requested but no runner is active")
            return

        self._stop_requested = True
        if process is not None and process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            log.info("Runner process killed", pid=process.pid)
        self._process = None
        self._transition(SessionState.STOPPED)

    async def _pump(self, process: asyncio.subprocess.Process) -> None:
        stderr_task = asyncio.create_task(self._drain_stderr(process.stderr))
        try:
            await self._consume_stdout(process.stdout)
            await stderr_task
            exit_code = await process.wait()
        except asyncio.CancelledError:
            stderr_task.cancel()
            if process.returncode is None:
                process.kill()
            raise
        except Exception as e:
            log.exception("Runner event pipeline crashed")
            stderr_task.cancel()
            if process.returncode is None:
                process.kill()
            self._process = None
            self.tree.terminate_in_flight()
            self.tree.refresh_root_aggregate()
            self._transition(SessionState.FAILED, AbnormalTerminationError(f"Event pipeline failed: {e}"))
            return

        self._finish(exit_code)

    async def _consume_stdout(self, stream: asyncio.StreamReader) -> None:
        while True:
            try:
                raw = await stream.readline()
            except ValueError:
                log.warning("Dropping runner output line over the size limit", limit=STDOUT_LINE_LIMIT)
                continue
            if not raw:
                break

            command = parse_command_line(raw)
            if command is None:
                log.debug("Runner output", line=raw.decode("utf-8", errors="replace").rstrip())
                continue

            if self.state is SessionState.STARTING:
                self._transition(SessionState.RUNNING)
            self.decoder.apply(command)

    async def _drain_stderr(self, stream: asyncio.StreamReader) -> None:
        async for raw in stream:
            self._stderr_seen = True
            log.info("Runner stderr", line=raw.decode("utf-8", errors="replace").rstrip())

    def _finish(self, exit_code: int) -> None:
        self.exit_code = exit_code
        self._process = None
        finish_log = log.bind(exit_code=exit_code, saw_end=self.decoder.finished)

        if self.decoder.dropped:
            finish_log.warning("Commands were dropped during the run", dropped=self.decoder.dropped)

        if self._stderr_seen and not self.decoder.tree_received:
            finish_log.warning("Runner reported errors before sending a tree; clearing provisional tree state")
            self.tree.reset()

        if self._stop_requested:
            finish_log.info("Runner exited after stop request")
            return

        if exit_code not in self.clean_exit_codes:
            error = AbnormalTerminationError("Test runner exited abnormally", exit_code=exit_code)
        elif not self.decoder.finished:
            error = AbnormalTerminationError("Test runner closed its output before the run ended", exit_code=exit_code)
        else:
            finish_log.info("Runner finished cleanly")
            self._transition(SessionState.STOPPED)
            return

        terminated = self.tree.terminate_in_flight()
        self.tree.refresh_root_aggregate()
        finish_log.warning("Runner terminated abnormally", terminated_tests=terminated)
        self._transition(SessionState.FAILED, error)


# 🔼⚙️
