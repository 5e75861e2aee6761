from __future__ import annotations

from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from listify.ai.backoff import RetryPolicy
from listify.ai.errors import ErrorKind, ProviderError
from listify.ai.image_edit import ImageEditClient
from listify.ai.providers.mock import MockCompletionChannel
from listify.ai.text_completion import ChannelRoute, TextCompletionClient
from listify.api import deps
from listify.config import get_settings
from listify.main import app
from listify.storage.content_cache import InMemoryContentCache
from tests.fakes import ScriptedChannel, ScriptedTransport, blocked_response, image_response, make_image_bytes, to_data_url

PATTERN = "Cast on 20 stitches. Knit every row for 40 rows. Bind off and weave in ends."


@pytest.fixture
def api(test_settings, executor):
  """TestClient with authentication configured and provider clients replaced by scripted fakes."""
  state: dict[str, object] = {"transport": ScriptedTransport(image_response(make_image_bytes(1024, 1024))), "channel": MockCompletionChannel()}

  def _image_client() -> ImageEditClient:
    return ImageEditClient(transport=state["transport"], cache=state.setdefault("cache", InMemoryContentCache()), executor=executor)

  def _completion_client() -> TextCompletionClient:
    return TextCompletionClient([ChannelRoute(state["channel"], RetryPolicy(max_retries=1, initial_delay=0.1))], executor=executor)

  app.dependency_overrides[get_settings] = lambda: test_settings
  app.dependency_overrides[deps.get_image_edit_client] = _image_client
  app.dependency_overrides[deps.get_text_completion_client] = _completion_client
  app.dependency_overrides[deps.get_completion_proxy_client] = _completion_client
  try:
    yield TestClient(app), state
  finally:
    app.dependency_overrides.clear()


def test_health_is_public(api) -> None:
  client, _ = api
  response = client.get("/health")
  assert response.status_code == 200
  assert response.json() == {"status": "ok"}


def test_missing_token_is_rejected(api) -> None:
  client, _ = api
  response = client.post("/api/workflow/run", json={"pattern": PATTERN})

  assert response.status_code == 401
  body = response.json()
  assert body["success"] is False
  assert body["message"] == "Missing bearer token"
  assert body["requestId"] == response.headers["x-request-id"]


def test_wrong_token_is_rejected(api) -> None:
  client, _ = api
  response = client.post("/api/workflow/run", json={"pattern": PATTERN}, headers={"Authorization": "Bearer nope"})
  assert response.status_code == 401


def test_unconfigured_tokens_reject_everything(api, test_settings, auth_headers) -> None:
  client, _ = api
  app.dependency_overrides[get_settings] = lambda: replace(test_settings, api_tokens=())
  response = client.post("/api/workflow/run", json={"pattern": PATTERN}, headers=auth_headers)
  assert response.status_code == 403


def test_request_id_is_propagated(api, auth_headers) -> None:
  client, _ = api
  response = client.post("/api/workflow/run", json={"pattern": ""}, headers={**auth_headers, "X-Request-ID": "client-123"})
  assert response.headers["x-request-id"] == "client-123"
  assert response.json()["requestId"] == "client-123"


def test_edit_image_success_then_cache_hit(api, auth_headers) -> None:
  client, state = api
  payload = {"image": to_data_url(make_image_bytes(640, 640)), "prompt": "Put the mug on a wooden table", "category": "decor", "platform": "etsy"}

  first = client.post("/api/edit-image", json=payload, headers=auth_headers)
  second = client.post("/api/edit-image", json=payload, headers=auth_headers)

  assert first.status_code == 200
  body = first.json()
  assert body["success"] is True
  assert body["result"]["image"].startswith("data:image/png;base64,")
  assert body["result"]["cached"] is False
  assert body["promptEnhanced"] is False
  assert body["requestId"]
  assert second.json()["result"]["cached"] is True
  assert second.json()["result"]["image"] == body["result"]["image"]
  assert state["transport"].call_count == 1


def test_edit_image_policy_block_maps_to_422(api, auth_headers) -> None:
  client, state = api
  state["transport"] = ScriptedTransport(blocked_response())

  response = client.post("/api/edit-image", json={"image": to_data_url(make_image_bytes(64, 64)), "prompt": "Add a logo"}, headers=auth_headers)

  assert response.status_code == 422
  body = response.json()
  assert body["success"] is False
  assert body["errorKind"] == "policy_blocked"
  assert "result" not in body


def test_edit_image_invalid_payload_maps_to_400(api, auth_headers) -> None:
  client, state = api
  response = client.post("/api/edit-image", json={"image": "data:image/png;base64,***", "prompt": "Brighten"}, headers=auth_headers)

  assert response.status_code == 400
  assert response.json()["errorKind"] == "invalid_input"
  assert state["transport"].call_count == 0


def test_edit_image_provider_exhaustion_maps_to_502(api, auth_headers) -> None:
  client, state = api
  state["transport"] = ScriptedTransport(ProviderError(ErrorKind.SERVER_ERROR, "500 Internal Server Error"))

  response = client.post("/api/edit-image", json={"image": to_data_url(make_image_bytes(64, 64)), "prompt": "Brighten the photo"}, headers=auth_headers)

  assert response.status_code == 502
  assert state["transport"].call_count == 5


def test_edit_image_validation_error_does_not_echo_input(api, auth_headers) -> None:
  client, _ = api
  image = to_data_url(make_image_bytes(64, 64))
  response = client.post("/api/edit-image", json={"image": image}, headers=auth_headers)

  assert response.status_code == 422
  body = response.json()
  assert body["message"] == "Request validation failed"
  assert image not in response.text


def test_workflow_run(api, auth_headers) -> None:
  client, _ = api
  response = client.post("/api/workflow/run", json={"pattern": PATTERN, "title": "Garter Scarf", "tags": ["scarf"]}, headers=auth_headers)

  assert response.status_code == 200
  body = response.json()
  assert body["success"] is True
  assert body["workflowId"].startswith("wf_")
  assert set(body["results"]) == {"pattern_optimization", "pdf_generation", "etsy_listing"}
  assert body["results"]["etsy_listing"]["payload"]["title"]
  assert body["warnings"] == []
  assert body["message"] == "Workflow completed successfully."
  assert body["requestId"] == response.headers["x-request-id"]


def test_workflow_run_with_empty_pattern_is_400(api, auth_headers) -> None:
  client, state = api
  response = client.post("/api/workflow/run", json={"pattern": "  "}, headers=auth_headers)

  assert response.status_code == 400
  body = response.json()
  assert body["success"] is False
  assert body["message"].startswith("Pattern optimization failed")
  assert state["channel"].calls == []


def test_workflow_single_step(api, auth_headers) -> None:
  client, _ = api
  response = client.post("/api/workflow/steps/pdf_generation", json={"input": {"optimizedPattern": PATTERN}}, headers=auth_headers)

  assert response.status_code == 200
  body = response.json()
  assert body["success"] is True
  assert body["payload"]["pdfContent"].startswith("#")
  assert body["message"] == "Step pdf_generation completed successfully."


def test_workflow_step_validation_failure_is_400(api, auth_headers) -> None:
  client, _ = api
  response = client.post("/api/workflow/steps/etsy_listing", json={"input": {}}, headers=auth_headers)

  assert response.status_code == 400
  body = response.json()
  assert body["errorCode"] == "MISSING_REQUIRED_FIELD"
  assert body["recoverable"] is False


def test_unknown_workflow_step_is_404(api, auth_headers) -> None:
  client, _ = api
  response = client.post("/api/workflow/steps/shipping_labels", json={"input": PATTERN}, headers=auth_headers)

  assert response.status_code == 404
  assert response.json()["success"] is False


def test_completions_proxy(api, auth_headers) -> None:
  client, state = api
  channel = ScriptedChannel("Hello from the model")
  state["channel"] = channel

  response = client.post(
    "/api/completions",
    json={"model": "deepseek-chat", "messages": [{"role": "system", "content": "Be brief."}, {"role": "user", "content": "Say hello"}], "max_tokens": 50, "featureKey": "chat"},
    headers=auth_headers,
  )

  assert response.status_code == 200
  assert response.json()["choices"][0]["message"] == {"role": "assistant", "content": "Hello from the model"}
  request = channel.calls[0]
  assert (request.system_prompt, request.user_prompt, request.max_tokens, request.feature_key) == ("Be brief.", "Say hello", 50, "chat")


def test_completions_require_a_user_message(api, auth_headers) -> None:
  client, _ = api
  response = client.post("/api/completions", json={"messages": [{"role": "system", "content": "x"}]}, headers=auth_headers)
  assert response.status_code == 422


def test_completions_exhaustion_maps_kind_to_status(api, auth_headers) -> None:
  client, state = api
  state["channel"] = ScriptedChannel(ProviderError(ErrorKind.RATE_LIMIT, "429 Too Many Requests"))

  response = client.post("/api/completions", json={"messages": [{"role": "user", "content": "hi"}]}, headers=auth_headers)

  assert response.status_code == 429
  body = response.json()
  assert body == {"success": False, "message": "The text completion provider is unavailable. Please try again later.", "errorKind": "rate_limit", "requestId": response.headers["x-request-id"]}


def test_missing_provider_configuration_is_503(test_settings, auth_headers, monkeypatch) -> None:
  unconfigured = replace(test_settings, deepseek_api_key=None, completion_proxy_url=None, mock_mode=False)
  monkeypatch.setattr(deps, "get_settings", lambda: unconfigured)
  deps.reset_dependency_caches()
  app.dependency_overrides[get_settings] = lambda: test_settings
  try:
    response = TestClient(app).post("/api/completions", json={"messages": [{"role": "user", "content": "hi"}]}, headers=auth_headers)
  finally:
    app.dependency_overrides.clear()
    deps.reset_dependency_caches()

  assert response.status_code == 503
  assert response.json()["message"] == "Text completion provider is not configured."
