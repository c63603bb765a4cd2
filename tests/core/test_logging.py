import json
import logging

import pytest

from lms_authz.common.logging import (
    ConsoleLogFormatter,
    JsonLogFormatter,
    bind_request_context,
    clear_request_context,
    current_request_id,
    log_context,
    setup_logging,
)
from lms_authz.settings import Settings


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="lms_authz.features.rbac.overrides",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="rbac.override.grant",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_log_context_drops_missing_fields() -> None:
    assert log_context(user_id="u1", permission="read:courses", changed=True) == {
        "user_id": "u1",
        "permission": "read:courses",
        "changed": True,
    }


def test_console_formatter_appends_sorted_extras() -> None:
    line = ConsoleLogFormatter().format(
        _record(**log_context(user_id="u1", permission="read:courses", changed=False))
    )

    assert "[cid=-] rbac.override.grant" in line
    assert line.endswith("changed=False permission=read:courses user_id=u1")


def test_json_formatter_includes_correlation_id() -> None:
    bind_request_context("req-42")
    try:
        payload = json.loads(JsonLogFormatter().format(_record(user_id="u1")))
    finally:
        clear_request_context()

    assert payload["message"] == "rbac.override.grant"
    assert payload["service"] == "lms-authz"
    assert payload["correlation_id"] == "req-42"
    assert payload["user_id"] == "u1"
    assert current_request_id() is None


@pytest.mark.usefixtures("restore_root_logger")
def test_setup_logging_installs_configured_formatter() -> None:
    setup_logging(Settings(_env_file=None, log_format="json", log_level="WARNING"))

    root = logging.getLogger()
    assert root.level == logging.WARNING
    assert isinstance(root.handlers[0].formatter, JsonLogFormatter)
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


@pytest.mark.usefixtures("restore_root_logger")
def test_json_service_name_comes_from_settings() -> None:
    setup_logging(Settings(_env_file=None, log_format="json", app_name="lms-authz-eu"))

    formatter = logging.getLogger().handlers[0].formatter
    payload = json.loads(formatter.format(_record()))

    assert payload["service"] == "lms-authz-eu"
