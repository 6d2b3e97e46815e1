"""
Unit tests for config loading and endpoint copies.
"""

import json

import pytest

from api_stress.config import (
    EndpointConfig,
    ExpectConfig,
    JsonBody,
    RawBody,
    load_config,
    load_headers_from_env,
)
from api_stress.errors import ConfigurationError

SAMPLE = {
    "Apis": [
        {
            "Name": "login",
            "Scheme": "https",
            "Host": "a.com",
            "Path": "/api/login",
            "Method": "post",
            "Headers": {"Content-Type": "application/json"},
            "Body": {"user": "bob"},
            "Timeout": 5,
            "ReqPerSec": 20,
            "Duration": 10,
            "MaxRunningReq": 50,
            "Expect": {"Status": [200], "BodyExpectType": "pcp", "BodyExp": "[\"==\", 1, 1]", "LogBody": True},
            "FailExit": True,
        },
        {"name": "health", "host": "a.com", "body": "ping",
         "expect": {"status": [200], "bodyExpectType": "equal", "bodyExp": "ok"}},
    ]
}


def write_config(tmp_path, data):
    path = tmp_path / "stress_conf.json"
    path.write_text(json.dumps(data))
    return str(path)


def test_load_config_reads_keys_case_insensitively(tmp_path):
    config = load_config(write_config(tmp_path, SAMPLE))
    login, health = config.apis

    assert login.name == "login"
    assert login.url == "https://a.com/api/login"
    assert login.method == "POST"
    assert login.body == JsonBody({"user": "bob"})
    assert (login.timeout, login.req_per_sec, login.duration, login.max_running_req) == (5, 20, 10, 50)
    assert login.expect == ExpectConfig(status=[200], body_expect_type="pcp", body_exp='["==", 1, 1]', log_body=True)
    assert login.fail_exit is True

    assert health.scheme == "http"
    assert health.method == "GET"
    assert health.body == RawBody("ping")
    assert health.fail_exit is False


def test_request_body_is_verbatim_string_or_json(tmp_path):
    login, health = load_config(write_config(tmp_path, SAMPLE)).apis
    assert json.loads(login.request_body()) == {"user": "bob"}
    assert health.request_body() == b"ping"
    assert EndpointConfig(name="empty", host="a.com").request_body() is None


@pytest.mark.parametrize("content", ["{not json", json.dumps({"endpoints": []}), json.dumps({"apis": [{"reqPerSec": "x"}]})])
def test_bad_config_files_raise_configuration_error(tmp_path, content):
    path = tmp_path / "bad.json"
    path.write_text(content)
    with pytest.raises(ConfigurationError):
        load_config(str(path))


def test_missing_config_file_raises_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError, match="Cannot read"):
        load_config(str(tmp_path / "missing.json"))


def test_with_overrides_returns_copy_and_leaves_original():
    original = EndpointConfig(name="api", host="a.com", scheme="http", headers={"X-Trace": "1"})
    copy = original.with_overrides(host="b.com", scheme="https", headers={"X-Trace": "env", "X-API-Key": "k"})

    assert copy.url == "https://b.com/"
    assert copy.headers == {"X-Trace": "1", "X-API-Key": "k"}
    assert original.host == "a.com"
    assert original.scheme == "http"
    assert original.headers == {"X-Trace": "1"}


def test_with_overrides_without_values_keeps_fields():
    original = EndpointConfig(name="api", host="a.com")
    assert original.with_overrides() == original


@pytest.mark.parametrize("expect, message", [
    (ExpectConfig(status=[200], body_expect_type="contains", body_exp="x"), "Unknown bodyExpectType"),
    (ExpectConfig(status=[200]), "Unknown bodyExpectType"),
])
def test_check_rejects_unusable_expectations(expect, message):
    endpoint = EndpointConfig(name="api", host="a.com", expect=expect)
    with pytest.raises(ConfigurationError, match=message):
        endpoint.check()


@pytest.mark.parametrize("mode, body_exp", [("reg", 5), ("pcp", None), ("equal", {"a": 1})])
def test_check_leaves_non_string_body_exp_to_each_request(mode, body_exp):
    """A non-string bodyExp fails requests at run time, not the run up front."""
    expect = ExpectConfig(status=[200], body_expect_type=mode, body_exp=body_exp)
    EndpointConfig(name="api", host="a.com", expect=expect).check()


def test_check_rejects_unserializable_body_and_bad_scheme():
    ok_expect = ExpectConfig(status=[200], body_expect_type="equal", body_exp="ok")
    with pytest.raises(ConfigurationError, match="serialize"):
        EndpointConfig(name="api", host="a.com", body=JsonBody({1, 2}), expect=ok_expect).check()
    with pytest.raises(ConfigurationError, match="scheme"):
        EndpointConfig(name="api", host="a.com", scheme="ftp", expect=ok_expect).check()


def test_load_headers_from_env(monkeypatch, capsys):
    monkeypatch.setenv("API_KEY", "secret")
    monkeypatch.setenv("BEARER_TOKEN", "tok")
    monkeypatch.setenv("CUSTOM_HEADERS", '{"X-Env": "staging"}')
    assert load_headers_from_env() == {
        "X-API-Key": "secret",
        "Authorization": "Bearer tok",
        "X-Env": "staging",
    }

    monkeypatch.setenv("CUSTOM_HEADERS", "not json")
    assert "X-Env" not in load_headers_from_env()
    assert "CUSTOM_HEADERS is not valid JSON" in capsys.readouterr().out
