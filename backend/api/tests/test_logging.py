import json
import logging

from tenantcms.config import Settings
from tenantcms.logging_config import JsonFormatter, setup_logging, trace_id_var


def test_json_formatter_carries_trace_id_and_extras():
    record = logging.LogRecord("tenantcms.service", logging.INFO, __file__, 1, "story %s", ("created",), None)
    record.resource_id = "s1"
    token = trace_id_var.set("trace-123")
    try:
        entry = json.loads(JsonFormatter().format(record))
    finally:
        trace_id_var.reset(token)

    assert entry["msg"] == "story created"
    assert entry["level"] == "INFO"
    assert entry["trace_id"] == "trace-123"
    assert entry["resource_id"] == "s1"


def test_setup_logging_prefers_yaml_file(tmp_path):
    path = tmp_path / "logging.yaml"
    path.write_text(
        "version: 1\n"
        "disable_existing_loggers: false\n"
        "loggers:\n"
        "  tenantcms.test:\n"
        "    level: ERROR\n"
    )
    config = setup_logging(Settings(log_config_path=str(path)))
    assert config["loggers"]["tenantcms.test"]["level"] == "ERROR"
    assert logging.getLogger("tenantcms.test").level == logging.ERROR


def test_setup_logging_defaults_from_settings():
    config = setup_logging(Settings(log_level="debug", log_format="text"))
    assert config["handlers"]["console"]["formatter"] == "text"
    assert config["loggers"]["tenantcms"]["level"] == "DEBUG"
