import pytest

from tenantcms.errors import ErrorKind
from tenantcms.responses import (
    GENERIC_MESSAGE,
    MAX_MESSAGE_LENGTH,
    ResponseFormatter,
    format_success_response,
    group_field_errors,
)


@pytest.fixture
def prod():
    return ResponseFormatter(production=True, sensitive_terms=("cms_session",))


@pytest.mark.parametrize(
    "message",
    [
        "could not connect to server: Connection refused",
        "psycopg2.OperationalError: FATAL",
        "connect ECONNREFUSED 10.0.0.5:5432",
        "listening on ::1",
        "UPDATE stories SET title=? WHERE stories.id = ?",
        "NOT NULL constraint failed [SQL: INSERT INTO stories]",
        "bound to fe80::1ff",
        "failed on localhost:8000",
        "File /app/tenantcms/repo.py, line 12",
        "duplicate key value violates unique constraint users_email_key",
        "cookie cms_session is invalid",
        "x" * (MAX_MESSAGE_LENGTH + 1),
    ],
)
def test_production_sanitizes_internals(prod, message):
    assert prod.sanitize(message) == GENERIC_MESSAGE


def test_production_keeps_plain_business_messages(prod):
    assert prod.sanitize("Story not found") == "Story not found"
    assert prod.sanitize("Event starts at 12:30:45") == "Event starts at 12:30:45"
    assert prod.sanitize("Please select a value from the list") == "Please select a value from the list"
    assert prod.sanitize("Use the Gallery::Item notation") == "Use the Gallery::Item notation"
    assert prod.sanitize("Update the title, then set a date") == "Update the title, then set a date"


def test_production_internal_errors_always_generic(prod):
    body = prod.error_body("Tenant not found", ErrorKind.INTERNAL_ERROR, stack="trace")
    assert body["error"] == GENERIC_MESSAGE
    assert body["code"] == "INTERNAL_ERROR"
    assert "stack" not in body
    assert body["success"] is False
    assert body["timestamp"].endswith("Z")


def test_production_passes_through_business_rejections(prod):
    body = prod.error_body("You can only act on your own tenant's resources", ErrorKind.AUTHORIZATION_ERROR)
    assert body["error"] == "You can only act on your own tenant's resources"


def test_development_keeps_raw_message_and_stack():
    dev = ResponseFormatter(production=False)
    body = dev.error_body("could not connect to postgres", ErrorKind.INTERNAL_ERROR, stack="Traceback ...")
    assert body["error"] == "could not connect to postgres"
    assert body["stack"] == "Traceback ..."


def test_field_errors_are_grouped_by_path():
    grouped = group_field_errors(
        [
            {"loc": ("body", "title"), "msg": "Field required"},
            {"loc": ("body", "title"), "msg": "Too short"},
            {"loc": ("query", "limit"), "msg": "Too big"},
            {"loc": ("body", "tags", 0), "msg": "Not a string"},
        ]
    )
    assert grouped == {"title": ["Field required", "Too short"], "limit": ["Too big"], "tags.0": ["Not a string"]}


def test_success_envelope():
    body = format_success_response({"id": "1"}, "Created")
    assert body["success"] is True
    assert body["data"] == {"id": "1"}
    assert body["message"] == "Created"
    assert "message" not in format_success_response([])
