"""Result envelope and error response shapes."""

from pairing.core.errors import (
    DatabaseError, RateLimitExceededError, ResourceNotFoundError,
    SelfPartnershipError, TransactionAbortedError,
)
from pairing.core.result import Result


def test_success_envelope():
    result = Result.ok({"request_id": "preq_1"}, "Partnership request sent successfully")
    assert result.to_dict() == {
        "success": True,
        "data": {"request_id": "preq_1"},
        "message": "Partnership request sent successfully",
    }


def test_success_without_message_omits_it():
    assert Result.ok([]).to_dict() == {"success": True, "data": []}


def test_failure_copies_error_fields():
    result = Result.fail(ResourceNotFoundError("Student", "s9"))
    assert not result.success
    assert result.http_status == 404
    assert result.to_dict() == {
        "success": False,
        "error": "Student 's9' not found",
        "code": "RESOURCE_NOT_FOUND",
    }


def test_domain_and_infrastructure_errors_are_told_apart():
    assert SelfPartnershipError().is_domain
    assert not DatabaseError("boom", "query").is_domain
    assert not TransactionAbortedError("accept", 5).is_domain
    assert not RateLimitExceededError("partnership_request", 60).is_domain


def test_rate_limit_error_response_carries_retry_after():
    body = RateLimitExceededError("partnership_request", 120).to_response()
    assert body["code"] == "RATE_LIMITED"
    assert body["retry_after_seconds"] == 120
    assert body["success"] is False
