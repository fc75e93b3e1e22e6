"""JavaScript adapter - Node driver evaluating user code in fresh vm contexts"""

import json
from pathlib import Path
from typing import Dict, List, Sequence

from codequest.config import settings
from codequest.schemas.execution import TestCase
from codequest.services.harness.base import LanguageAdapter
from codequest.services.result_normalizer import RESULT_PREFIX
from codequest.services.sandbox import Found


class JavaScriptAdapter(LanguageAdapter):
    language = "javascript"
    display_name = "JavaScript"
    toolchain = {"runtime": (("node", "nodejs"), ("--version",))}
    fatal_fallback = "JavaScript execution failed"

    def render_sources(self, function_name: str, code: str, test_cases: Sequence[TestCase]) -> Dict[str, str]:
        return {
            "user_code.js": code,
            "cases.json": json.dumps([tc.model_dump() for tc in test_cases], ensure_ascii=False),
            "driver.js": self._create_driver(function_name),
        }

    def _node_vm_flags(self) -> List[str]:
        """
        Node/V8 flags tuned for constrained sandboxes.

        Old-space is capped explicitly since RLIMIT_AS is not applied to V8.
        """
        limit_mb = max(64, int(self.sandbox.memory_limit))
        old_space_mb = max(32, min(512, int(limit_mb * 0.75)))
        return [f"--max-old-space-size={old_space_mb}"]

    def run_command(self, tools: Dict[str, Found], workdir: Path) -> List[str]:
        return [tools["runtime"].path, *self._node_vm_flags(), "driver.js"]

    def run_timeout(self, test_cases: Sequence[TestCase]) -> float:
        # Each case may use its own vm budget; the process gets the sum plus startup slack
        per_case = settings.JS_CASE_TIMEOUT_MS / 1000.0
        return max(float(settings.CODE_EXECUTION_TIMEOUT), per_case * (len(test_cases) + 1) + 2.0)

    @staticmethod
    def _create_driver(function_name: str) -> str:
        """
        Create the Node driver.

        Every case gets a new context built from a null-prototype object.
        Its silenced console is created inside the context, so no host-realm
        function or object is reachable from user code and require, process
        and the filesystem stay out of reach. The run token is read from
        stdin before any user code is evaluated.
        """
        return f"""
"use strict";
const fs = require("fs");
const path = require("path");
const vm = require("vm");

const FUNCTION_NAME = {json.dumps(function_name)};
const RESULT_PREFIX = {json.dumps(RESULT_PREFIX)};
const RUN_TOKEN = fs.readFileSync(0, "utf8").trim();
const CASE_TIMEOUT_MS = {int(settings.JS_CASE_TIMEOUT_MS)};
const userCode = fs.readFileSync(path.join(__dirname, "user_code.js"), "utf8");
const testCases = JSON.parse(fs.readFileSync(path.join(__dirname, "cases.json"), "utf8"));

function freshContext() {{
  const context = vm.createContext(Object.create(null), {{
    codeGeneration: {{ strings: false, wasm: false }},
  }});
  vm.runInContext(
    "(function () {{ const noop = function () {{}}; " +
      "globalThis.console = {{ log: noop, info: noop, warn: noop, error: noop, debug: noop }}; }})();",
    context
  );
  return context;
}}

function canonical(value) {{
  const text = JSON.stringify(value);
  return text === undefined ? null : JSON.parse(text);
}}

function describe(err) {{
  if (err && typeof err === "object" && "message" in err) {{
    return (err.name ? err.name + ": " : "") + err.message;
  }}
  return String(err);
}}

function emit(payload) {{
  process.stdout.write("\\n" + RESULT_PREFIX + RUN_TOKEN + " " + JSON.stringify(payload) + "\\n");
}}

function main() {{
  let kind;
  try {{
    kind = vm.runInContext(
      userCode + "\\n;typeof " + FUNCTION_NAME,
      freshContext(),
      {{ timeout: CASE_TIMEOUT_MS, filename: "user_code.js" }}
    );
  }} catch (err) {{
    emit({{ results: [], allPassed: false, fatal: describe(err), kind: "load_error" }});
    return 1;
  }}
  if (kind !== "function") {{
    emit({{
      results: [],
      allPassed: false,
      fatal: "Function " + FUNCTION_NAME + " not found",
      kind: "function_not_found",
      function: FUNCTION_NAME,
    }});
    return 1;
  }}

  const results = [];
  let allPassed = true;
  testCases.forEach(function (testCase, index) {{
    const args = Array.isArray(testCase.args) ? testCase.args : [];
    const record = {{
      case: index + 1,
      args: args,
      expected: testCase.expected,
      output: null,
      passed: false,
      error: null,
      description: testCase.description || "",
    }};
    try {{
      const source =
        userCode +
        "\\n;(function () {{ return " + FUNCTION_NAME + "(..." + JSON.stringify(args) + "); }})();";
      const output = vm.runInContext(source, freshContext(), {{
        timeout: CASE_TIMEOUT_MS,
        filename: "user_code.js",
      }});
      record.passed = JSON.stringify(output) === JSON.stringify(testCase.expected);
      record.output = canonical(output);
    }} catch (err) {{
      record.error = describe(err);
    }}
    if (!record.passed) allPassed = false;
    results.push(record);
  }});

  emit({{ results: results, allPassed: allPassed && results.length > 0 }});
  return 0;
}}

process.exitCode = main();
"""
