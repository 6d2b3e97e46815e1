"""
Endpoint configuration.

Loads the stress config JSON file into endpoint descriptors and reads the
environment defaults used by the command line.
"""

import json
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Union

from api_stress.errors import ConfigurationError
from api_stress.report import print_warning

EXPECT_EQUAL = "equal"
EXPECT_EQUAL_JSON = "equal_json"
EXPECT_REG = "reg"  # regular expression
EXPECT_PCP = "pcp"  # pcp expression

EXPECT_TYPES = [EXPECT_EQUAL, EXPECT_EQUAL_JSON, EXPECT_REG, EXPECT_PCP]

DEFAULT_CONFIG_PATH = "./stress_conf.json"
SCHEMES = ["http", "https"]


@dataclass(frozen=True)
class RawBody:
    """Request body sent verbatim."""

    text: str


@dataclass(frozen=True)
class JsonBody:
    """Request body serialized as JSON when the request is built."""

    value: Any


Body = Union[RawBody, JsonBody]


def _lower_keys(raw: Any, where: str) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{where} must be a JSON object, got {type(raw).__name__}")
    return {str(k).lower(): v for k, v in raw.items()}


def _typed(raw: Dict[str, Any], key: str, kind, default, where: str):
    value = raw.get(key.lower(), default)
    if value is None:
        return default
    # bool is an int subclass; keep "true" out of numeric fields
    if kind is int and isinstance(value, bool):
        raise ConfigurationError(f"{where}: '{key}' must be an integer")
    if kind is int and isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, kind):
        raise ConfigurationError(f"{where}: '{key}' must be {getattr(kind, '__name__', kind)}")
    return value


@dataclass(frozen=True)
class ExpectConfig:
    """Rules a response must satisfy: status set plus one body check."""

    status: List[int] = field(default_factory=list)
    body_expect_type: str = ""
    body_exp: Any = None
    log_body: bool = False

    @classmethod
    def from_dict(cls, raw: Any, where: str = "expect") -> "ExpectConfig":
        data = _lower_keys(raw, where)
        status = _typed(data, "status", list, [], where)
        for code in status:
            if isinstance(code, bool) or not isinstance(code, int):
                raise ConfigurationError(f"{where}: status codes must be integers, got {code!r}")
        return cls(
            status=list(status),
            body_expect_type=_typed(data, "bodyExpectType", str, "", where),
            body_exp=data.get("bodyexp"),
            log_body=_typed(data, "logBody", bool, False, where),
        )

    def check(self) -> None:
        """Raise ConfigurationError when the body check mode is unknown."""
        if self.body_expect_type not in EXPECT_TYPES:
            raise ConfigurationError(
                f"Unknown bodyExpectType '{self.body_expect_type}', expected one of {EXPECT_TYPES}"
            )


@dataclass(frozen=True)
class EndpointConfig:
    """One API under test: request template, rate control and expectation."""

    name: str
    scheme: str = "http"
    host: str = ""
    path: str = "/"
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Body] = None
    timeout: int = 0  # seconds, 0 = no timeout
    req_per_sec: int = 0
    duration: int = 0  # seconds
    max_running_req: int = 0
    expect: ExpectConfig = field(default_factory=ExpectConfig)
    fail_exit: bool = False

    @classmethod
    def from_dict(cls, raw: Any, index: int = 0) -> "EndpointConfig":
        where = f"apis[{index}]"
        data = _lower_keys(raw, where)
        name = _typed(data, "name", str, f"api-{index}", where)
        where = f"{where} ({name})"

        headers = _typed(data, "headers", dict, {}, where)
        headers = {str(k): str(v) for k, v in headers.items()}

        body: Optional[Body] = None
        if "body" in data and data["body"] is not None:
            raw_body = data["body"]
            body = RawBody(raw_body) if isinstance(raw_body, str) else JsonBody(raw_body)

        return cls(
            name=name,
            scheme=_typed(data, "scheme", str, "http", where),
            host=_typed(data, "host", str, "", where),
            path=_typed(data, "path", str, "/", where),
            method=_typed(data, "method", str, "GET", where).upper(),
            headers=headers,
            body=body,
            timeout=_typed(data, "timeout", int, 0, where),
            req_per_sec=_typed(data, "reqPerSec", int, 0, where),
            duration=_typed(data, "duration", int, 0, where),
            max_running_req=_typed(data, "maxRunningReq", int, 0, where),
            expect=ExpectConfig.from_dict(data.get("expect") or {}, f"{where} expect"),
            fail_exit=_typed(data, "failExit", bool, False, where),
        )

    @property
    def url(self) -> str:
        return f"{self.scheme}://{self.host}{self.path}"

    def request_body(self) -> Optional[bytes]:
        """Resolve the configured body into the bytes sent on the wire."""
        if self.body is None:
            return None
        if isinstance(self.body, RawBody):
            return self.body.text.encode("utf-8")
        try:
            return json.dumps(self.body.value, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Cannot serialize body of '{self.name}' as JSON: {e}")

    def check(self) -> None:
        """Validate everything a run needs before the first request goes out."""
        if not self.host:
            raise ConfigurationError(f"'{self.name}' has no host")
        if self.scheme not in SCHEMES:
            raise ConfigurationError(f"'{self.name}' has unsupported scheme '{self.scheme}', expected one of {SCHEMES}")
        self.expect.check()
        self.request_body()

    def with_overrides(
        self,
        host: Optional[str] = None,
        scheme: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> "EndpointConfig":
        """
        Copy this endpoint with run-time overrides merged in.

        Args:
            host: Replaces the configured host when set
            scheme: Replaces the configured scheme when set
            headers: Extra headers; the endpoint's own headers win on conflict

        Returns:
            A new EndpointConfig; this one is left untouched
        """
        changes: Dict[str, Any] = {}
        if host:
            changes["host"] = host
        if scheme:
            changes["scheme"] = scheme
        if headers:
            merged = dict(headers)
            merged.update(self.headers)
            changes["headers"] = merged
        return replace(self, **changes)


@dataclass(frozen=True)
class StressConfig:
    apis: List[EndpointConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Any) -> "StressConfig":
        data = _lower_keys(raw, "config")
        apis = data.get("apis")
        if not isinstance(apis, list):
            raise ConfigurationError("config: 'apis' must be a list of endpoints")
        return cls(apis=[EndpointConfig.from_dict(item, i) for i, item in enumerate(apis)])


def load_config(path: str) -> StressConfig:
    """Read and decode a stress config JSON file."""
    try:
        with open(path) as f:
            raw = json.load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Config file {path} is not valid JSON: {e}")
    return StressConfig.from_dict(raw)


def load_headers_from_env() -> Dict[str, str]:
    """Load extra request headers from environment variables."""
    headers = {}

    api_key = os.getenv("API_KEY")
    bearer_token = os.getenv("BEARER_TOKEN")

    if api_key:
        headers["X-API-Key"] = api_key
    if bearer_token:
        headers["Authorization"] = f"Bearer {bearer_token}"

    custom = os.getenv("CUSTOM_HEADERS")
    if custom:
        try:
            parsed = json.loads(custom)
        except json.JSONDecodeError:
            print_warning("CUSTOM_HEADERS is not valid JSON")
        else:
            if isinstance(parsed, dict):
                headers.update({str(k): str(v) for k, v in parsed.items()})
            else:
                print_warning("CUSTOM_HEADERS must be a JSON object")

    return headers
