"""Configuration and app factory tests."""

import json
import logging

import pytest

from projecthub.config import ProductionConfig, _parse_feature_flags
from projecthub.middleware.logging_config import JSONFormatter, ReadableFormatter
from projecthub.utils.helpers import coerce_id, parse_date_input


def test_testing_config_loaded(app):
    assert app.config["TESTING"] is True
    assert app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite")
    assert app.config["FEATURE_FLAGS"]["prototype"] is True


def test_feature_flag_parsing():
    assert _parse_feature_flags("prototype=off, tasklist=on,,milestone=0") == {
        "prototype": False, "tasklist": True, "milestone": False,
    }
    assert _parse_feature_flags("") == {}


def test_production_refuses_missing_env(monkeypatch):
    monkeypatch.delenv("SECRET_KEY", raising=False)
    with pytest.raises(RuntimeError):
        ProductionConfig()


def test_json_formatter_includes_request_fields():
    record = logging.LogRecord("projecthub", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    record.request_id = "abc123"
    record.status = 201
    output = JSONFormatter().format(record)
    assert '"message": "hello world"' in output
    assert '"request_id": "abc123"' in output
    assert '"status": 201' in output


def _request_record():
    record = logging.LogRecord("projecthub.middleware.timing", logging.INFO, __file__, 1, "Request", (), None)
    record.path = "/api/v1/projects/3/components/40"
    record.principal_id = "prov-1"
    record.principal_role = "provider"
    record.project_id = 3
    record.stage_id = None
    record.component_id = 40
    return record


def test_json_formatter_groups_entity_scope():
    entry = json.loads(JSONFormatter().format(_request_record()))
    assert entry["path"] == "/api/v1/projects/3/components/40"
    assert entry["scope"] == {
        "project_id": 3, "component_id": 40, "principal_id": "prov-1", "principal_role": "provider",
    }


def test_readable_formatter_tags_scope():
    line = ReadableFormatter().format(_request_record())
    assert "[p=3 c=40]: Request" in line
    plain = logging.LogRecord("projecthub", logging.INFO, __file__, 1, "boot", (), None)
    assert "projecthub: boot" in ReadableFormatter().format(plain)


def test_input_helpers():
    assert parse_date_input("2026-05-04").isoformat() == "2026-05-04"
    assert parse_date_input("04.05.2026").isoformat() == "2026-05-04"
    assert parse_date_input("") is None
    with pytest.raises(ValueError):
        parse_date_input("May 4th")
    assert coerce_id("12") == 12
    assert coerce_id(None) is None
    with pytest.raises(ValueError):
        coerce_id("twelve")
