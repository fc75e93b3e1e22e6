"""Language adapter interface shared by every harness"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from codequest.config import settings
from codequest.core.exceptions import CompileError
from codequest.schemas.execution import ExecutionResult, TestCase
from codequest.services.result_normalizer import ResultNormalizer, new_run_token
from codequest.services.sandbox import Found, Sandbox, scrub_paths

logger = logging.getLogger(__name__)

# role -> (candidate binaries in preference order, version probe arguments)
ToolchainSpec = Dict[str, Tuple[Tuple[str, ...], Tuple[str, ...]]]


class LanguageAdapter:
    """
    Turns (function_name, code, test_cases) into a runnable artifact.

    Subclasses provide the generated sources and the commands. The run
    template is the same for every language: probe toolchain, render
    sources, compile if needed, run, normalize.
    """

    language: str = ""
    display_name: str = ""
    toolchain: ToolchainSpec = {}
    fatal_fallback: str = "Execution failed"

    def __init__(self, sandbox: Sandbox, normalizer: Optional[ResultNormalizer] = None):
        self.sandbox = sandbox
        self.normalizer = normalizer or ResultNormalizer()

    # --- hooks -----------------------------------------------------------

    def render_sources(self, function_name: str, code: str, test_cases: Sequence[TestCase]) -> Dict[str, str]:
        """Return filename -> content for the scratch directory."""
        raise NotImplementedError

    def compile_command(self, tools: Dict[str, Found], workdir: Path) -> Optional[List[str]]:
        """Command for the compile phase, None for interpreted languages."""
        return None

    def run_command(self, tools: Dict[str, Found], workdir: Path) -> List[str]:
        raise NotImplementedError

    def classify_compile_failure(self, function_name: str, diagnostic: str) -> Exception:
        return CompileError(self.display_name, diagnostic)

    # --- template --------------------------------------------------------

    def resolve_tools(self) -> Dict[str, Found]:
        """Probe every required binary. Raises ToolchainMissingError."""
        return {
            role: self.sandbox.resolve_toolchain(self.language, candidates, version_args)
            for role, (candidates, version_args) in self.toolchain.items()
        }

    def run(self, function_name: str, code: str, test_cases: Sequence[TestCase]) -> ExecutionResult:
        tools = self.resolve_tools()
        # Rendering may raise UnsupportedTypeError before anything is spawned
        sources = self.render_sources(function_name, code, test_cases)

        with self.sandbox.scratch_directory(self.language) as workdir:
            self.sandbox.write_files(workdir, sources)

            compile_cmd = self.compile_command(tools, workdir)
            if compile_cmd:
                compiled = self.sandbox.run(
                    compile_cmd,
                    workdir,
                    timeout=settings.CODE_COMPILE_TIMEOUT,
                    language=self.language,
                    phase="compile",
                )
                if compiled.exit_code != 0:
                    diagnostic = scrub_paths(compiled.stderr or compiled.stdout, workdir).strip()
                    logger.info(f"{self.display_name} compilation failed for {function_name}")
                    raise self.classify_compile_failure(function_name, diagnostic)

            token = new_run_token()
            outcome = self.sandbox.run(
                self.run_command(tools, workdir),
                workdir,
                timeout=self.run_timeout(test_cases),
                language=self.language,
                phase="execution",
                stdin_data=token + "\n",
            )
            return self.normalizer.normalize(
                outcome,
                test_cases,
                token,
                fallback_message=self.fatal_fallback,
                workdir=workdir,
            )

    def run_timeout(self, test_cases: Sequence[TestCase]) -> float:
        return float(settings.CODE_EXECUTION_TIMEOUT)
