"""Unit tests for API error payload and status mapping behavior."""

from __future__ import annotations

from listify.core.exceptions import _sanitize_validation_errors, error_payload, status_for_kind, status_for_step_code


def test_sanitize_validation_errors_removes_input_and_serializes_exception_ctx() -> None:
  """Validation errors stay JSON-serializable and never echo the (possibly huge) image payload."""
  errors = [{"type": "value_error", "loc": ("body", "image"), "msg": "Value error, bad image", "input": "data:image/png;base64,AAAA", "ctx": {"error": ValueError("bad image"), "input": "AAAA"}}]
  sanitized = _sanitize_validation_errors(errors)
  assert "input" not in sanitized[0]
  assert sanitized[0]["ctx"]["error"] == "ValueError: bad image"
  assert "input" not in sanitized[0]["ctx"]
  assert sanitized[0]["loc"] == ["body", "image"]


def test_error_payload_shape() -> None:
  assert error_payload("nope") == {"success": False, "message": "nope"}
  assert error_payload("nope", request_id="abc", error_kind="auth") == {"success": False, "message": "nope", "errorKind": "auth", "requestId": "abc"}


def test_status_mapping() -> None:
  assert status_for_kind("invalid_input") == 400
  assert status_for_kind("policy_blocked") == 422
  assert status_for_kind("rate_limit") == 429
  assert status_for_kind("missing_payload") == 502
  assert status_for_kind(None) == 502
  assert status_for_step_code("MISSING_REQUIRED_FIELD") == 400
  assert status_for_step_code("API_TIMEOUT") == 504
  assert status_for_step_code("API_ERROR") == 502
