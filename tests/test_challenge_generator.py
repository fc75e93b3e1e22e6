import json
import re

import pytest

from codequest.core.exceptions import GeneratorError, ResourceNotFoundError
from codequest.services.challenge_generator import ChallengeGenerator, build_prompt, make_id_from_title
from codequest.services.llm_client import LLMClient, extract_first_json_object

GENERATED = {
    "title": "Sum of Squares",
    "prompt": "Return the sum of the squares of the numbers.",
    "language": "python",
    "functionName": "sum_squares",
    "signature": "def sum_squares(nums):",
    "starterCode": "def sum_squares(nums):\n    pass\n",
    "solution": "def sum_squares(nums):\n    return sum(n * n for n in nums)\n",
    "testCases": [
        {"args": [[1, 2]], "expected": 5, "description": "two numbers"},
        {"args": [[]], "expected": 0},
    ],
}


class FakeLLM:
    def __init__(self, reply="", available=True, error=None):
        self.reply = reply
        self.available = available
        self.error = error

    def complete(self, messages, temperature=0.7, max_tokens=1500):
        if self.error:
            raise self.error
        return self.reply


def test_generated_challenge_is_used_when_valid():
    generator = ChallengeGenerator(client=FakeLLM("```json\n" + json.dumps(GENERATED) + "\n```"))
    challenge, source, message = generator.generate(topic="Loops", difficulty="medium", language="py")
    assert source == "ai"
    assert message is None
    assert challenge.source == "ai"
    assert challenge.language == "python"
    assert challenge.topic == "Loops"
    assert challenge.difficulty.value == "medium"
    assert challenge.function_name == "sum_squares"
    assert challenge.test_cases[0].args == [[1, 2]]
    assert challenge.id.startswith("ai-sum-of-squares-")


def test_missing_fields_fall_back_to_catalog():
    reply = dict(GENERATED)
    del reply["solution"]
    generator = ChallengeGenerator(client=FakeLLM(json.dumps(reply)))
    challenge, source, message = generator.generate(topic="Recursion", difficulty="easy")
    assert source == "catalog"
    assert message == "Model returned an invalid challenge"
    assert challenge.id == "recursion-factorial"


def test_api_failure_falls_back_to_catalog():
    generator = ChallengeGenerator(client=FakeLLM(error=GeneratorError("Text generation request failed: APITimeoutError")))
    challenge, source, message = generator.generate(topic="Strings", difficulty="medium", language="java")
    assert source == "catalog"
    assert "APITimeoutError" in message
    assert challenge.id == "strings-reverse"
    assert challenge.function_name == "reverseString"


def test_unconfigured_client_uses_catalog():
    generator = ChallengeGenerator(client=LLMClient(api_key="", model="any"))
    challenge, source, message = generator.generate(topic="Loops")
    assert source == "catalog"
    assert message == "AI generation is not configured"
    assert challenge.topic == "Loops"


def test_fallback_relaxes_difficulty_and_relabels():
    generator = ChallengeGenerator(client=FakeLLM(available=False))
    challenge = generator.fallback("python", "Recursion", "hard", [])
    assert challenge.topic == "Recursion"
    assert challenge.difficulty.value == "hard"


def test_fallback_with_nothing_left():
    generator = ChallengeGenerator(client=FakeLLM(available=False))
    with pytest.raises(ResourceNotFoundError):
        generator.fallback("python", "Graphs", None, [])


def test_parse_reply_rejects_bad_function_name():
    reply = dict(GENERATED, functionName="sum squares")
    assert ChallengeGenerator.parse_reply(json.dumps(reply)) is None
    assert ChallengeGenerator.parse_reply("no json here") is None


def test_extract_first_json_object():
    assert extract_first_json_object('Here you go: {"a": "}{", "b": {"c": 1}} trailing') == {"a": "}{", "b": {"c": 1}}
    assert extract_first_json_object('{broken {"ok": true}') == {"ok": True}
    assert extract_first_json_object('{"truncated": ') is None
    assert extract_first_json_object("") is None


def test_ids_and_prompt():
    assert re.fullmatch(r"ai-two-sum-[a-z0-9]{6}", make_id_from_title("Two Sum!"))
    assert make_id_from_title(None).startswith("ai-challenge-")

    prompt = build_prompt("java", "Arrays", "hard", ["arrays-two-sum"])
    assert "Topic: Arrays" in prompt
    assert "arrays-two-sum" in prompt
    assert "public class Solution" in prompt
