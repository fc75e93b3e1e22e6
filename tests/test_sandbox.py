import os
import sys

import pytest

from codequest.core.exceptions import ExecutionTimeoutError, ToolchainMissingError
from codequest.services.sandbox import Found, NotFound, Sandbox, probe_toolchain, scrub_paths


def test_probe_reports_every_candidate_when_nothing_answers():
    result = probe_toolchain(["codequest-missing-a", "codequest-missing-b"])
    assert isinstance(result, NotFound)
    assert result.tried == ("codequest-missing-a", "codequest-missing-b")


def test_probe_skips_missing_candidates():
    result = probe_toolchain(["codequest-missing", sys.executable])
    assert isinstance(result, Found)
    assert result.command == sys.executable


def test_resolve_toolchain_raises_and_caches(tmp_path, monkeypatch):
    sandbox = Sandbox(temp_dir=str(tmp_path))
    calls = []

    def fake_probe(candidates, version_args):
        calls.append(tuple(candidates))
        return NotFound(tried=tuple(candidates))

    monkeypatch.setattr("codequest.services.sandbox.probe_toolchain", fake_probe)
    for _ in range(2):
        with pytest.raises(ToolchainMissingError):
            sandbox.resolve_toolchain("python", ["python3"])
    assert calls == [("python3",)]

    sandbox.clear_probe_cache()
    with pytest.raises(ToolchainMissingError):
        sandbox.resolve_toolchain("python", ["python3"])
    assert len(calls) == 2


def test_scratch_directories_are_unique_and_removed(tmp_path):
    sandbox = Sandbox(temp_dir=str(tmp_path))
    with sandbox.scratch_directory("python") as first, sandbox.scratch_directory("python") as second:
        assert first != second
        assert first.parent == tmp_path
        assert first.name.startswith("python-")
    assert list(tmp_path.iterdir()) == []


def test_scratch_directory_removed_on_error(tmp_path):
    sandbox = Sandbox(temp_dir=str(tmp_path))
    with pytest.raises(RuntimeError):
        with sandbox.scratch_directory("c") as workdir:
            (workdir / "solution.c").write_text("int main(void) { return 0; }")
            raise RuntimeError("compile step blew up")
    assert list(tmp_path.iterdir()) == []


def test_run_captures_output_in_workdir(tmp_path):
    sandbox = Sandbox(temp_dir=str(tmp_path))
    with sandbox.scratch_directory("python") as workdir:
        sandbox.write_files(workdir, {"hello.py": "import os, sys\nprint(os.getcwd())\nsys.stderr.write('warn')\nsys.exit(3)\n"})
        outcome = sandbox.run([sys.executable, "hello.py"], workdir, timeout=10, language="python")
        assert os.path.realpath(outcome.stdout.strip()) == os.path.realpath(str(workdir))
    assert outcome.stderr == "warn"
    assert outcome.exit_code == 3


def test_run_timeout_kills_child(tmp_path):
    sandbox = Sandbox(temp_dir=str(tmp_path))
    with sandbox.scratch_directory("python") as workdir:
        with pytest.raises(ExecutionTimeoutError) as exc_info:
            sandbox.run([sys.executable, "-c", "import time; time.sleep(30)"], workdir, timeout=1, language="python")
    assert exc_info.value.status_code == 408


def test_run_with_vanished_binary(tmp_path):
    sandbox = Sandbox(temp_dir=str(tmp_path))
    with sandbox.scratch_directory("c") as workdir:
        with pytest.raises(ToolchainMissingError):
            sandbox.run([str(workdir / "does-not-exist")], workdir, timeout=5, language="c")


def test_child_environment_is_constrained(tmp_path, monkeypatch):
    monkeypatch.setenv("CODEQUEST_SECRET", "hunter2")
    sandbox = Sandbox(temp_dir=str(tmp_path))
    with sandbox.scratch_directory("python") as workdir:
        outcome = sandbox.run(
            [sys.executable, "-c", "import os; print(os.environ.get('CODEQUEST_SECRET'))"],
            workdir,
            timeout=10,
            language="python",
        )
    assert outcome.stdout.strip() == "None"


def test_scrub_paths():
    assert scrub_paths("/tmp/x/abc/solution.c:3: error", "/tmp/x/abc") == "solution.c:3: error"
    assert scrub_paths("cd /tmp/x/abc failed", "/tmp/x/abc") == "cd . failed"
    assert scrub_paths(None, "/tmp") == ""
    assert scrub_paths("text", None) == "text"
