"""Process sandbox - scratch directories, toolchain probing and bounded child processes"""

import logging
import os
import shutil
import subprocess
import tempfile
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

from codequest.config import settings
from codequest.core.exceptions import ExecutionTimeoutError, ToolchainMissingError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Found:
    """A toolchain binary that answered its version probe."""
    command: str
    path: str


@dataclass(frozen=True)
class NotFound:
    """None of the candidate binaries answered."""
    tried: Tuple[str, ...]


ProbeResult = Union[Found, NotFound]


def probe_toolchain(
    candidates: Sequence[str],
    version_args: Sequence[str] = ("--version",),
    timeout: float = 10.0,
) -> ProbeResult:
    """
    Return the first candidate that resolves on PATH and exits 0 for its version flag.

    Args:
        candidates: Binary names in preference order (e.g. python3, python, py)
        version_args: Arguments for the trivial probe invocation
        timeout: Seconds allowed per probe

    Returns:
        Found(command, path) or NotFound(tried)
    """
    for command in candidates:
        path = shutil.which(command)
        if not path:
            continue
        try:
            result = subprocess.run(
                [path, *version_args],
                capture_output=True,
                timeout=timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.warning(f"Toolchain probe failed for {command}: {exc}")
            continue
        if result.returncode == 0:
            return Found(command=command, path=path)
    return NotFound(tried=tuple(candidates))


def scrub_paths(text: Optional[str], workdir: Optional[Union[str, Path]]) -> str:
    """Strip the scratch directory's absolute path from diagnostics."""
    if not text:
        return ""
    if not workdir:
        return text
    root = str(workdir)
    return text.replace(root + os.sep, "").replace(root, ".")


@dataclass
class ProcessOutcome:
    """Captured result of one child process phase."""
    stdout: str
    stderr: str
    exit_code: int
    duration: float


class Sandbox:
    """Runs generated artifacts in throwaway directories with bounded resources"""

    def __init__(
        self,
        temp_dir: Optional[str] = None,
        memory_limit: Optional[int] = None,
        max_processes: Optional[int] = None,
    ):
        self.temp_dir = Path(temp_dir or settings.get_temp_dir())
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        self.memory_limit = memory_limit or settings.CODE_EXECUTION_MEMORY_LIMIT
        # Host-level ceiling on concurrently running children
        self._semaphore = threading.Semaphore(max(1, max_processes or settings.EXECUTION_MAX_PROCESSES))
        self._probe_cache: Dict[Tuple[Tuple[str, ...], Tuple[str, ...]], ProbeResult] = {}
        self._probe_lock = threading.Lock()

    def resolve_toolchain(
        self,
        language: str,
        candidates: Sequence[str],
        version_args: Sequence[str] = ("--version",),
    ) -> Found:
        """Probe once per candidate list and remember the answer."""
        key = (tuple(candidates), tuple(version_args))
        with self._probe_lock:
            cached = self._probe_cache.get(key)
        if cached is None:
            cached = probe_toolchain(candidates, version_args)
            with self._probe_lock:
                self._probe_cache[key] = cached

        if isinstance(cached, NotFound):
            raise ToolchainMissingError(language, list(cached.tried))
        return cached

    def clear_probe_cache(self) -> None:
        with self._probe_lock:
            self._probe_cache.clear()

    @contextmanager
    def scratch_directory(self, language: str) -> Iterator[Path]:
        """
        Fresh, uniquely named working directory removed on every exit path.

        mkdtemp guarantees the name is unique even across concurrent callers.
        """
        with tempfile.TemporaryDirectory(prefix=f"{language}-", dir=self.temp_dir) as temp_dir:
            yield Path(temp_dir)

    @staticmethod
    def write_files(workdir: Path, files: Dict[str, str]) -> None:
        for name, content in files.items():
            with open(workdir / name, "w", encoding="utf-8") as f:
                f.write(content)

    @staticmethod
    def _sanitize_env() -> Dict[str, str]:
        """
        Return a constrained environment for child processes.
        """
        allowed_keys = {
            "PATH",
            "HOME",
            "LANG",
            "LC_ALL",
            "TMPDIR",
            "SystemRoot",
            "WINDIR",
        }
        sanitized = {}
        for key in allowed_keys:
            value = os.environ.get(key)
            if value:
                sanitized[key] = value
        return sanitized

    def _resource_preexec(self, language: str, cpu_seconds: float, limit_memory: bool = True):
        """
        Apply per-process resource limits on Unix.
        """
        if os.name == "nt":
            return None
        try:
            import resource
        except ImportError:
            return None

        mem_bytes = max(16, self.memory_limit) * 1024 * 1024
        # JVM and V8 reserve far more address space than they use and spawn
        # helper threads, so neither RLIMIT_AS nor RLIMIT_NPROC apply to them.
        managed_runtime = language in {"java", "javascript"}

        def _set_limits():
            # CPU time seconds soft/hard.
            cpu_soft = max(1, int(cpu_seconds))
            resource.setrlimit(resource.RLIMIT_CPU, (cpu_soft, cpu_soft + 1))

            if limit_memory and not managed_runtime:
                resource.setrlimit(resource.RLIMIT_AS, (mem_bytes, mem_bytes))

            # Prevent fork bombs.
            if not managed_runtime:
                try:
                    resource.setrlimit(resource.RLIMIT_NPROC, (64, 64))
                except (ValueError, OSError):
                    pass

            # File size and open file handles.
            try:
                resource.setrlimit(resource.RLIMIT_FSIZE, (10 * 1024 * 1024, 10 * 1024 * 1024))
                resource.setrlimit(resource.RLIMIT_NOFILE, (256, 256))
            except (ValueError, OSError):
                pass

        return _set_limits

    def run(
        self,
        cmd: List[str],
        workdir: Path,
        timeout: float,
        language: str,
        phase: str = "execution",
        stdin_data: Optional[str] = None,
    ) -> ProcessOutcome:
        """
        Spawn one child phase scoped to the scratch directory.

        Raises:
            ExecutionTimeoutError: The child exceeded ``timeout`` and was killed
            ToolchainMissingError: The binary vanished between probe and spawn
        """
        start = time.time()
        self._semaphore.acquire()
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
                cwd=str(workdir),
                env=self._sanitize_env(),
                input=stdin_data,
                preexec_fn=self._resource_preexec(language, timeout, limit_memory=(phase != "compile")),
            )
        except subprocess.TimeoutExpired:
            # subprocess.run kills the child before re-raising
            logger.warning(f"{language} {phase} timed out after {timeout}s")
            raise ExecutionTimeoutError(phase, timeout)
        except FileNotFoundError:
            raise ToolchainMissingError(language, [cmd[0]])
        finally:
            self._semaphore.release()

        return ProcessOutcome(
            stdout=result.stdout or "",
            stderr=result.stderr or "",
            exit_code=result.returncode,
            duration=round(time.time() - start, 3),
        )
