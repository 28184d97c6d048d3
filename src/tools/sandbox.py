"""
Python Sandbox: Executes analysis snippets in a local python3 subprocess.

This is process isolation only, not a security boundary. The child runs
with the server's privileges; the only limits are a wall-clock timeout
and a cap on combined stdout/stderr size.
"""

import errno
import logging
import os
import signal
import subprocess
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import IO, Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from src.core.config import get_settings

logger = logging.getLogger(__name__)

MAX_CODE_LENGTH = 10_000
READ_CHUNK_SIZE = 64 * 1024

# How long to wait for the output pipes to close once the child is gone.
# A detached grandchild can hold them open indefinitely.
READER_GRACE_SECONDS = 1.0

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_TIMEOUT = 124
EXIT_PERMISSION_DENIED = 126
EXIT_NOT_FOUND = 127
EXIT_SIGNALED = 128


class CodeExecutionRequest(BaseModel):
    """Python source to run. Sent to the interpreter over stdin."""

    code: str = Field(
        min_length=1, max_length=MAX_CODE_LENGTH, description="Python code to execute"
    )


class ExecutionOutcome(str, Enum):
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    INTERPRETER_NOT_FOUND = "interpreter_not_found"
    PERMISSION_DENIED = "permission_denied"
    OUTPUT_OVERFLOW = "output_overflow"
    SIGNALED = "signaled"
    LAUNCH_FAILED = "launch_failed"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class CodeExecutionResult:
    stdout: str
    stderr: str
    exit_code: int
    outcome: ExecutionOutcome = ExecutionOutcome.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {"stdout": self.stdout, "stderr": self.stderr, "exitCode": self.exit_code}


class _OutputCollector:
    """
    Drains the child's stdout and stderr on background threads.

    Both streams share one byte budget. Once the budget is exceeded the
    child's process group is killed and anything past the budget is dropped.
    """

    def __init__(self, process: subprocess.Popen, max_bytes: int, on_overflow: Callable[[], None]):
        self.process = process
        self.max_bytes = max_bytes
        self.on_overflow = on_overflow
        self.overflowed = False
        self._used = 0
        self._lock = threading.Lock()
        self._stdout: List[bytes] = []
        self._stderr: List[bytes] = []
        self._threads = [
            threading.Thread(target=self._drain, args=(process.stdout, self._stdout), daemon=True),
            threading.Thread(target=self._drain, args=(process.stderr, self._stderr), daemon=True),
        ]

    def start(self) -> None:
        for thread in self._threads:
            thread.start()

    def join(self, timeout: float) -> bool:
        """Wait for both readers to hit EOF. Returns False if any is still blocked."""
        deadline = time.monotonic() + timeout
        for thread in self._threads:
            thread.join(timeout=max(0.0, deadline - time.monotonic()))
        return not any(thread.is_alive() for thread in self._threads)

    def _drain(self, stream: IO[bytes], sink: List[bytes]) -> None:
        with stream:
            while True:
                chunk = stream.read1(READ_CHUNK_SIZE)
                if not chunk:
                    return
                with self._lock:
                    if self.overflowed:
                        continue
                    room = self.max_bytes - self._used
                    if len(chunk) > room:
                        sink.append(chunk[:room])
                        self._used = self.max_bytes
                        self.overflowed = True
                        self.on_overflow()
                        continue
                    sink.append(chunk)
                    self._used += len(chunk)

    @property
    def stdout(self) -> str:
        with self._lock:
            data = b"".join(self._stdout)
        return data.decode("utf-8", errors="replace")

    @property
    def stderr(self) -> str:
        with self._lock:
            data = b"".join(self._stderr)
        return data.decode("utf-8", errors="replace")


class PythonSandbox:
    """
    Runs Python snippets in a child interpreter and classifies the outcome.

    Exit codes follow common CLI conventions:
      - 0: success (or the script's own exit status)
      - 124: wall-clock timeout
      - 126: interpreter not executable
      - 127: interpreter not found
      - 128: terminated by a signal
      - 1: output cap exceeded or any other failure
    """

    def __init__(
        self,
        python_executable: Optional[str] = None,
        timeout: Optional[float] = None,
        max_output_bytes: Optional[int] = None,
    ):
        self.settings = get_settings()
        self.python_executable = python_executable or self.settings.python_executable
        self.timeout = timeout if timeout is not None else self.settings.python_timeout_seconds
        self.max_output_bytes = (
            max_output_bytes
            if max_output_bytes is not None
            else self.settings.python_max_output_bytes
        )

    def execute(self, code: Union[str, CodeExecutionRequest]) -> CodeExecutionResult:
        """
        Execute code in a fresh interpreter. Never raises.

        Args:
            code: Python source, or an already validated request

        Returns:
            CodeExecutionResult with stdout, stderr and exit code
        """
        if isinstance(code, CodeExecutionRequest):
            code = code.code

        try:
            return self._run(code)
        except Exception as e:
            logger.exception("Python execution failed unexpectedly")
            return CodeExecutionResult(
                stdout="",
                stderr=f"Unexpected error: {e}",
                exit_code=EXIT_FAILURE,
                outcome=ExecutionOutcome.UNEXPECTED,
            )

    # ── Execution ───────────────────────────────────────────────────

    def _run(self, code: str) -> CodeExecutionResult:
        # `-` reads the program from stdin, so code length is not bound by
        # argv limits and needs no shell escaping.
        env = {**os.environ, "PYTHONIOENCODING": "utf-8", "PYTHONUNBUFFERED": "1"}

        try:
            process = subprocess.Popen(
                [self.python_executable, "-u", "-"],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=env,
                # Own process group, so subprocesses the snippet spawns are
                # killed along with it.
                start_new_session=True,
            )
        except OSError as e:
            return self._launch_failure(e)

        collector = _OutputCollector(
            process, self.max_output_bytes, on_overflow=lambda: _kill_process_group(process)
        )
        collector.start()

        try:
            process.stdin.write(code.encode("utf-8"))
        except BrokenPipeError:
            # Child exited before reading its program; its exit status says why.
            logger.debug("Interpreter closed stdin early")
        finally:
            try:
                process.stdin.close()
            except BrokenPipeError:
                pass

        timed_out = False
        try:
            process.wait(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            timed_out = True

        # Also reaps background processes left behind by a finished snippet.
        _kill_process_group(process)
        process.wait()

        if not collector.join(timeout=READER_GRACE_SECONDS):
            logger.warning(
                "Output pipes still open after the interpreter exited; "
                "a detached subprocess is holding them"
            )

        if timed_out:
            logger.warning(f"Python execution timed out after {self.timeout}s")
            return CodeExecutionResult(
                stdout="",
                stderr="Python execution timed out",
                exit_code=EXIT_TIMEOUT,
                outcome=ExecutionOutcome.TIMED_OUT,
            )

        if collector.overflowed:
            logger.warning(f"Python output exceeded {self.max_output_bytes} bytes")
            return CodeExecutionResult(
                stdout=collector.stdout,
                stderr=f"Python output exceeded maxBuffer ({self.max_output_bytes} bytes)",
                exit_code=EXIT_FAILURE,
                outcome=ExecutionOutcome.OUTPUT_OVERFLOW,
            )

        if process.returncode < 0:
            signame = _signal_name(-process.returncode)
            logger.warning(f"Python process terminated by signal {signame}")
            return CodeExecutionResult(
                stdout=collector.stdout,
                stderr=collector.stderr.strip()
                or f"Python process terminated by signal {signame}",
                exit_code=EXIT_SIGNALED,
                outcome=ExecutionOutcome.SIGNALED,
            )

        logger.info(f"Python execution finished with exit code {process.returncode}")
        return CodeExecutionResult(
            stdout=collector.stdout,
            stderr=collector.stderr,
            exit_code=process.returncode,
        )

    def _launch_failure(self, error: OSError) -> CodeExecutionResult:
        exe = self.python_executable

        if isinstance(error, FileNotFoundError):
            logger.warning(f"Python interpreter not found: {exe}")
            return CodeExecutionResult(
                stdout="",
                stderr=(
                    f"Python interpreter not found ({exe}). "
                    f"Install Python 3 and ensure `{exe}` is on your PATH."
                ),
                exit_code=EXIT_NOT_FOUND,
                outcome=ExecutionOutcome.INTERPRETER_NOT_FOUND,
            )

        if isinstance(error, PermissionError):
            logger.warning(f"Permission denied launching {exe}")
            return CodeExecutionResult(
                stdout="",
                stderr=(
                    f"Permission denied when trying to run {exe}. "
                    "Check file permissions or your environment setup."
                ),
                exit_code=EXIT_PERMISSION_DENIED,
                outcome=ExecutionOutcome.PERMISSION_DENIED,
            )

        code_name = errno.errorcode.get(error.errno) if error.errno else None
        message = error.strerror or str(error)
        logger.error(f"Failed to launch {exe}: {message}")
        return CodeExecutionResult(
            stdout="",
            stderr=f"{code_name}: {message}" if code_name else message,
            exit_code=EXIT_FAILURE,
            outcome=ExecutionOutcome.LAUNCH_FAILED,
        )


def _kill_process_group(process: subprocess.Popen) -> None:
    if not hasattr(os, "killpg"):
        process.kill()
        return
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        # Every process in the group has already exited.
        pass


def _signal_name(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return str(signum)


# ── Convenience Functions ───────────────────────────────────────────


def execute_python_for_agent(
    code: str, sandbox: Optional[PythonSandbox] = None
) -> Dict[str, Any]:
    """
    Run a snippet and return the tool's {stdout, stderr, exitCode} shape.

    Args:
        code: Python source (1-10000 characters)
        sandbox: Runner to use; a default-configured one when omitted

    Returns:
        Execution result dict
    """
    sandbox = sandbox or PythonSandbox()
    return sandbox.execute(code).to_dict()
