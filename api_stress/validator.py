"""
Response validation.

A response passes when its status code is in the expected set and its body
satisfies the endpoint's body check:

- equal:      body text equals the expected string
- equal_json: body parses as JSON structurally equal to the expected value
- reg:        expected regular expression matches somewhere in the body
- pcp:        expected PCP program returns true; the program can call
              ``getJson`` to get the parsed body
"""

import json
import re
from typing import Optional

from api_stress.config import (
    EXPECT_EQUAL,
    EXPECT_EQUAL_JSON,
    EXPECT_PCP,
    EXPECT_REG,
    ExpectConfig,
)
from api_stress.errors import ConfigurationError, ValidationError
from api_stress.executor import Outcome
from api_stress.pcp import ExpressionEngine, PcpEngine, PcpError, json_equal
from api_stress.report import print_response_body

_default_engine = PcpEngine()


def _mismatch(body: str, expect: ExpectConfig) -> ValidationError:
    return ValidationError(f"Body check fail, body is {body}, expect bodyExp is {expect.body_exp}")


def check_status(outcome: Outcome, expect: ExpectConfig) -> None:
    if outcome.status_code not in expect.status:
        raise ValidationError(
            f"Status check fail, http status code is {outcome.status_code}, "
            f"expected status are {expect.status}. Body is {outcome.body.decode('utf-8', errors='replace')}"
        )


def check_body(body_bytes: bytes, expect: ExpectConfig, engine: Optional[ExpressionEngine] = None) -> None:
    """
    Check a response body against the expectation's body rule.

    Args:
        body_bytes: Raw response body
        expect: Expectation holding the mode and the expected value
        engine: Expression engine for the pcp mode (None = PcpEngine)

    Raises:
        ValidationError: The body does not satisfy the rule
        ConfigurationError: The mode is not one of the known modes
    """
    body = body_bytes.decode("utf-8", errors="replace")
    mode = expect.body_expect_type

    if mode == EXPECT_EQUAL:
        if body != expect.body_exp:
            raise _mismatch(body, expect)

    elif mode == EXPECT_EQUAL_JSON:
        try:
            value = json.loads(body_bytes)
        except ValueError as e:
            raise ValidationError(f"Body check fail, body is not valid JSON ({e}): {body}")
        if not json_equal(value, expect.body_exp):
            raise _mismatch(body, expect)

    elif mode == EXPECT_REG:
        if not isinstance(expect.body_exp, str):
            raise ValidationError("BodyExp should be string")
        try:
            matched = re.search(expect.body_exp, body) is not None
        except re.error as e:
            raise ValidationError(f"Body check fail, bad regular expression {expect.body_exp!r}: {e}")
        if not matched:
            raise _mismatch(body, expect)

    elif mode == EXPECT_PCP:
        if not isinstance(expect.body_exp, str):
            raise ValidationError("BodyExp should be string")

        def get_json():
            return json.loads(body_bytes)

        try:
            result = (engine or _default_engine).execute(expect.body_exp, {"getJson": get_json})
        except PcpError as e:
            raise ValidationError(f"Body check fail, pcp program failed: {e}")
        if not isinstance(result, bool):
            raise ValidationError(f"Body check fail, result of pcp is not boolean: {result!r}")
        if not result:
            raise _mismatch(body, expect)

    else:
        raise ConfigurationError(f"Unknown bodyExpectType '{mode}'")


def validate(
    outcome: Outcome,
    expect: ExpectConfig,
    name: str = "",
    engine: Optional[ExpressionEngine] = None,
) -> None:
    """Raise the reason a response fails its expectation; return when it passes."""
    if outcome.error is not None:
        raise outcome.error

    check_status(outcome, expect)

    if expect.log_body:
        print_response_body(name, outcome.body)

    check_body(outcome.body, expect, engine)
