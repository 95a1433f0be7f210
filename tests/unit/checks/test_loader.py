"""Tests for loading and validating the checks document."""

import re

import pytest

from smokegate.checks.loader import (
    find_checks_file,
    load_checks,
    parse_checks,
    resolve_checks_file,
)
from smokegate.core.errors import ConfigurationError

VALID = """\
checks:
  - name: api-server
    description: Kubernetes API answers
    layer: 1
    command: kubectl --context {{ context }} get --raw /healthz
    validate:
      contains: ok
    retry: true
    timeout: 10s
  - name: dns
    layer: 2
    script:
      path: scripts/dns.sh
      args: ["{{ cluster }}", "example.com"]
    expect:
      gating: false
"""


def test_load_valid_document(tmp_path):
    path = tmp_path / "checks.yaml"
    path.write_text(VALID)

    suite = load_checks(path)

    assert [c.name for c in suite.checks] == ["api-server", "dns"]
    api, dns = suite.checks
    assert api.validation.contains == "ok"
    assert api.retry is True
    assert api.timeout == 10.0
    assert api.gating is True
    assert dns.script.path == "scripts/dns.sh"
    assert dns.script.args == ["{{ cluster }}", "example.com"]
    assert dns.gating is False
    assert dns.timeout is None


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="failed to read"):
        load_checks(tmp_path / "nope.yaml")


def test_malformed_yaml(tmp_path):
    path = tmp_path / "checks.yaml"
    path.write_text("checks: [unclosed\n")

    with pytest.raises(ConfigurationError, match="failed to parse"):
        load_checks(path)


@pytest.mark.parametrize(
    ("document", "message"),
    [
        ({}, "must have a 'checks' list"),
        ([], "must have a 'checks' list"),
        ({"checks": "nope"}, "'checks' must be a list"),
        ({"checks": []}, "no checks defined"),
        ({"checks": [{"command": "true"}]}, "check 0: name"),
        ({"checks": [{"name": " ", "command": "true"}]}, "missing name"),
        (
            {"checks": [{"name": "a"}]},
            "check 0 (a): must have command or script",
        ),
        (
            {"checks": [{
                "name": "both",
                "command": "true",
                "script": {"path": "x.sh"},
            }]},
            "must not have both command and script",
        ),
        (
            {"checks": [{"name": "s", "script": {"path": ""}}]},
            "script missing path",
        ),
        (
            {"checks": [{"name": "s", "script": {"args": ["a"]}}]},
            "script.path",
        ),
        (
            {"checks": [{"name": "t", "command": "true", "timeout": "soon"}]},
            "invalid duration",
        ),
        (
            {"checks": [{"name": "u", "command": "true", "colour": "red"}]},
            "colour",
        ),
    ],
)
def test_rejected_documents(document, message):
    with pytest.raises(ConfigurationError, match=re.escape(message)):
        parse_checks(document)


def test_invalid_regex_names_check():
    """A bad regex is caught at load time and the check is named."""
    document = {"checks": [
        {"name": "ok", "command": "true"},
        {"name": "dns", "command": "true", "validate": {"regex": "("}},
    ]}

    with pytest.raises(ConfigurationError) as excinfo:
        parse_checks(document)

    assert str(excinfo.value).startswith("check 1 (dns): ")
    assert "invalid regex '('" in str(excinfo.value)


def test_find_checks_file_order(tmp_path):
    assert find_checks_file(tmp_path) is None

    nested = tmp_path / "tools" / "smoke" / "checks.yaml"
    nested.parent.mkdir(parents=True)
    nested.write_text(VALID)
    assert find_checks_file(tmp_path) == nested

    top = tmp_path / "checks.yaml"
    top.write_text(VALID)
    assert find_checks_file(tmp_path) == top


def test_resolve_prefers_explicit_path(tmp_path):
    explicit = tmp_path / "custom.yaml"

    assert resolve_checks_file(explicit) == explicit


def test_resolve_without_default(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    with pytest.raises(ConfigurationError, match="checks.yaml not found"):
        resolve_checks_file(None)
