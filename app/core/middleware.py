import json
import logging
import re
import time
import uuid
from typing import Any

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.config import get_settings

logger = logging.getLogger("app.core.middleware")

_SENSITIVE_KEYS = frozenset({"password", "token", "authorization", "cookie", "secret", "api_key", "email", "phone"})
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{8,128}$")
_STRIPPED_RESPONSE_HEADERS = ("x-powered-by", "server")


def _redact_sensitive_keys(data: Any) -> Any:
  """Replace values of sensitive keys recursively."""
  if isinstance(data, dict):
    return {key: ("***" if key.lower() in _SENSITIVE_KEYS else _redact_sensitive_keys(value)) for key, value in data.items()}
  if isinstance(data, list):
    return [_redact_sensitive_keys(item) for item in data]
  return data


def _header(scope: Scope, name: str) -> str | None:
  target = name.encode("latin-1")
  for key, value in scope.get("headers", []):
    if key.lower() == target:
      return value.decode("latin-1")
  return None


def _resolve_request_id(scope: Scope) -> str:
  """Reuse a well-formed inbound x-request-id so traces span the gateway and this service."""
  inbound = _header(scope, "x-request-id")
  if inbound and _REQUEST_ID_PATTERN.match(inbound):
    return inbound
  return str(uuid.uuid4())


def _format_body_for_log(body: bytes, content_type: str | None, max_bytes: int) -> str:
  """Render a body for logs: JSON is redacted, other text is clipped, binary is summarized."""
  if not body:
    return "<empty>"

  normalized = (content_type or "").lower()
  is_json = "application/json" in normalized or normalized.endswith("+json")
  if not is_json and not normalized.startswith("text/"):
    return f"<non-text body {len(body)} bytes>"

  if len(body) > max_bytes:
    # Truncated JSON would not parse; log the raw prefix.
    return body[:max_bytes].decode("utf-8", errors="replace") + "...(truncated)"

  text = body.decode("utf-8", errors="replace")
  if not is_json:
    return text
  try:
    parsed = json.loads(text)
  except json.JSONDecodeError:
    return text
  return json.dumps(_redact_sensitive_keys(parsed), ensure_ascii=True)


class RequestLoggingMiddleware:
  """Assign a request id, log method/path/status/latency, and optionally log redacted bodies."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    settings = get_settings()
    log_bodies = settings.log_http_bodies
    max_body_bytes = settings.log_http_body_bytes

    request_id = _resolve_request_id(scope)
    scope.setdefault("state", {})["request_id"] = request_id

    start_time = time.perf_counter()
    method = scope.get("method", "UNKNOWN")
    path = scope.get("path", "")
    logger.info("Incoming request request_id=%s %s %s", request_id, method, path)

    downstream_receive = receive
    if log_bodies:
      request_body = await _drain_body(receive)
      logger.info("Request body request_id=%s body=%s", request_id, _format_body_for_log(request_body, _header(scope, "content-type"), max_body_bytes))
      downstream_receive = _replay_body(request_body)

    status_code = 0
    response_content_type: str | None = None
    response_chunks: list[bytes] = []
    captured = 0

    async def send_wrapper(message: Message) -> None:
      nonlocal status_code, response_content_type, captured
      if message["type"] == "http.response.start":
        status_code = message.get("status", 0)
        headers = MutableHeaders(scope=message)
        if "x-request-id" not in headers:
          headers["x-request-id"] = request_id
        response_content_type = headers.get("content-type")
      elif log_bodies and message["type"] == "http.response.body" and captured <= max_body_bytes:
        # Keep one byte past the cap so the formatter can tell the body was clipped.
        chunk = message.get("body", b"")[: max_body_bytes + 1 - captured]
        response_chunks.append(chunk)
        captured += len(chunk)

      await send(message)

    try:
      await self.app(scope, downstream_receive, send_wrapper)
    finally:
      elapsed_ms = (time.perf_counter() - start_time) * 1000
      logger.info("Response request_id=%s status=%s (took %.2fms)", request_id, status_code, elapsed_ms)
      if log_bodies:
        logger.info("Response body request_id=%s status=%s body=%s", request_id, status_code, _format_body_for_log(b"".join(response_chunks), response_content_type, max_body_bytes))


async def _drain_body(receive: Receive) -> bytes:
  chunks: list[bytes] = []
  while True:
    message = await receive()
    if message["type"] != "http.request":
      break
    chunks.append(message.get("body", b""))
    if not message.get("more_body", False):
      break
  return b"".join(chunks)


def _replay_body(body: bytes) -> Receive:
  """Return a receive callable that hands the drained body to downstream handlers once."""
  sent = False

  async def receive() -> Message:
    nonlocal sent
    if sent:
      return {"type": "http.request", "body": b"", "more_body": False}
    sent = True
    return {"type": "http.request", "body": body, "more_body": False}

  return receive


class SecurityHeadersMiddleware:
  """Strip server-identifying headers from responses."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    async def send_wrapper(message: Message) -> None:
      if message["type"] == "http.response.start":
        headers = MutableHeaders(scope=message)
        for name in _STRIPPED_RESPONSE_HEADERS:
          if name in headers:
            del headers[name]
        headers.setdefault("x-content-type-options", "nosniff")

      await send(message)

    await self.app(scope, receive, send_wrapper)
