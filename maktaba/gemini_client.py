"""Gemini generateContent client with key rotation (text path)."""

from dataclasses import dataclass, fields

import httpx

from maktaba.catalog import Catalog
from maktaba.credentials import CredentialPool, mask
from maktaba.errors import (
    AuthRejected,
    CredentialFailure,
    EmptyResponse,
    QuotaExceeded,
    ServerError,
    TransportError,
)
from maktaba.logging_config import get_logger
from maktaba.prompts import build_system_prompt, build_user_turn
from maktaba.rotation import call_with_rotation
from maktaba.session_state import SessionState

log = get_logger(__name__)

DEFAULT_ENDPOINT = (
    "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent"
)
DEFAULT_TIMEOUT = 30.0

_QUOTA_STATUSES = {429}
_AUTH_STATUSES = {402, 403}


@dataclass(frozen=True)
class GenerationConfig:
    temperature: float = 0.4
    top_k: int = 20
    top_p: float = 0.9
    max_output_tokens: int = 512

    def to_payload(self) -> dict:
        return {
            "temperature": self.temperature,
            "topK": self.top_k,
            "topP": self.top_p,
            "maxOutputTokens": self.max_output_tokens,
        }

    @classmethod
    def from_mapping(cls, values: dict) -> "GenerationConfig":
        """Build from a config section, ignoring keys that aren't fields."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            log.warning("Ignoring unknown generation settings: %s", ", ".join(unknown))
        return cls(**{k: v for k, v in values.items() if k in known})


def _error_detail(response: httpx.Response) -> str:
    """The API's error.message when the body has one, else the status line."""
    try:
        message = response.json().get("error", {}).get("message")
    except (ValueError, AttributeError):
        message = None
    return message or f"HTTP {response.status_code}"


def _reply_text(data) -> str | None:
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text or None


class GeminiTextClient:
    """Single-turn completions against the generateContent endpoint.

    One ``send`` makes at most ``len(pool)`` sequential attempts, each with
    the next key in round-robin order. ``retry_server_errors=False`` reserves
    rotation for quota/auth/transport failures and fails fast on the rest.
    """

    def __init__(
        self,
        pool: CredentialPool,
        catalog: Catalog,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = DEFAULT_TIMEOUT,
        generation: GenerationConfig | None = None,
        retry_server_errors: bool = True,
        transport: httpx.BaseTransport | None = None,
    ):
        self.pool = pool
        self.catalog = catalog
        self.endpoint = endpoint
        self.generation = generation or GenerationConfig()
        if retry_server_errors:
            self.retryable = (CredentialFailure,)
        else:
            self.retryable = (QuotaExceeded, AuthRejected, TransportError)
        self.client = httpx.Client(
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: dict, pool: CredentialPool, catalog: Catalog) -> "GeminiTextClient":
        gemini = config.get("gemini", {})
        return cls(
            pool,
            catalog,
            endpoint=gemini.get("endpoint", DEFAULT_ENDPOINT),
            timeout=float(gemini.get("timeout", DEFAULT_TIMEOUT)),
            generation=GenerationConfig.from_mapping(gemini.get("generation") or {}),
            retry_server_errors=gemini.get("retry_server_errors", True),
        )

    def send(self, message: str, session: SessionState) -> str:
        """Send one user message with the session-derived system prompt.

        Raises:
            NoCredentials: Pool is empty; no request is made.
            ServiceBusy: Every key failed; ``last_error`` has the last cause.
            ServerError / EmptyResponse: Only when ``retry_server_errors`` is off.
        """
        text = build_user_turn(build_system_prompt(self.catalog, session), message)
        payload = {
            "contents": [{"role": "user", "parts": [{"text": text}]}],
            "generationConfig": self.generation.to_payload(),
        }
        return call_with_rotation(
            self.pool,
            lambda key: self._attempt(key, payload),
            retryable=self.retryable,
        )

    def _attempt(self, key: str, payload: dict) -> str:
        try:
            response = self.client.post(self.endpoint, params={"key": key}, json=payload)
        except httpx.TimeoutException as e:
            raise TransportError(f"request timed out: {e}") from e
        except httpx.TransportError as e:
            raise TransportError(f"network error: {e}") from e

        status = response.status_code
        if status in _QUOTA_STATUSES:
            raise QuotaExceeded(_error_detail(response), status_code=status)
        if status in _AUTH_STATUSES:
            raise AuthRejected(_error_detail(response), status_code=status)
        if not response.is_success:
            log.error("Gemini API error with key %s: HTTP %d", mask(key), status)
            raise ServerError(_error_detail(response), status_code=status)

        try:
            data = response.json()
        except ValueError as e:
            raise EmptyResponse(f"response body is not JSON: {e}", status_code=status) from e

        text = _reply_text(data)
        if text is None:
            raise EmptyResponse("response has no candidate text", status_code=status)
        log.debug("Reply received with key %s (%d chars)", mask(key), len(text))
        return text

    def close(self):
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
