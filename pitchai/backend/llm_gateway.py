import json
import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx

from .config import Settings, load_settings
from .errors import GenerationError, TransientGenerationError
from .retry import call_with_retries


logger = logging.getLogger("uvicorn.error")
MAX_PROVIDER_ERROR_CHARS = 1200
RETRYABLE_STATUS_CODES = (408, 429)
SYSTEM_PROMPT = (
    "You are an experienced venture investor and pitch coach. "
    "Give candid, specific feedback that a founder can act on."
)


class LLMGateway(Protocol):
    def generate_text(self, prompt: str, model: str, max_tokens: int) -> str:
        pass


def _truncate(text: str, max_chars: int = MAX_PROVIDER_ERROR_CHARS) -> str:
    value = (text or "").strip()
    if len(value) <= max_chars:
        return value
    return value[: max_chars - 3] + "..."


def _extract_content(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, list):
        parts: List[str] = []
        for item in value:
            if isinstance(item, dict):
                text = item.get("text")
                if text:
                    parts.append(str(text))
        return "\n".join(parts).strip()
    return str(value or "").strip()


def _is_temperature_unsupported(error_message: str) -> bool:
    lowered = (error_message or "").lower()
    return "temperature" in lowered and "default (1)" in lowered


def _error_detail(response: httpx.Response) -> str:
    try:
        error_payload = response.json()
    except ValueError:
        return response.text or ""
    if isinstance(error_payload, dict):
        error = error_payload.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or "")
        if error:
            return str(error)
    return response.text or ""


class ChatCompletionGateway:
    """LLM gateway for any OpenAI-compatible ``/chat/completions`` endpoint."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        client: Optional[httpx.Client] = None,
        temperature: float = 0.3,
    ) -> None:
        self._settings = settings or load_settings()
        self._client = client
        self._temperature = temperature

    @property
    def default_model(self) -> str:
        return self._settings.llm_model

    def _auth_headers(self) -> Dict[str, str]:
        api_key = self._settings.llm_api_key
        if not api_key:
            raise GenerationError(
                "Missing PITCHAI_LLM_API_KEY. Set it before requesting an analysis "
                '(example: export PITCHAI_LLM_API_KEY="YOUR_KEY_HERE").'
            )
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }

    def _send(self, payload: Dict[str, Any]) -> httpx.Response:
        endpoint = self._settings.llm_base_url.rstrip("/") + "/chat/completions"
        timeout = self._settings.llm_timeout_seconds
        try:
            if self._client is not None:
                return self._client.post(endpoint, headers=self._auth_headers(), json=payload, timeout=timeout)
            return httpx.post(endpoint, headers=self._auth_headers(), json=payload, timeout=timeout)
        except httpx.TimeoutException as exc:
            raise TransientGenerationError(f"LLM request timed out after {int(timeout)} seconds.") from exc
        except httpx.HTTPError as exc:
            raise TransientGenerationError(f"Failed to call LLM provider: {exc}") from exc

    def _request_once(self, prompt: str, model: str, max_tokens: int) -> str:
        payload: Dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self._temperature,
            "max_tokens": int(max_tokens),
        }

        response = self._send(payload)
        if response.status_code == 400 and _is_temperature_unsupported(_error_detail(response)):
            payload = {key: value for key, value in payload.items() if key != "temperature"}
            response = self._send(payload)

        if response.status_code >= 400:
            detail = _truncate(_error_detail(response) or "Unknown provider error")
            message = f"LLM provider error {response.status_code}: {detail}"
            if response.status_code in RETRYABLE_STATUS_CODES or response.status_code >= 500:
                raise TransientGenerationError(message)
            raise GenerationError(message)

        try:
            body = response.json()
        except json.JSONDecodeError as exc:
            raise GenerationError("LLM provider returned a non-JSON HTTP response.") from exc

        choices = body.get("choices") if isinstance(body, dict) else None
        if not choices:
            raise GenerationError("LLM response did not contain choices.")

        first_choice = choices[0] if isinstance(choices, list) else None
        message = first_choice.get("message") if isinstance(first_choice, dict) else None
        content = _extract_content(message.get("content") if isinstance(message, dict) else "")
        if not content:
            raise GenerationError("LLM provider returned empty assistant content.")
        return content

    def generate_text(self, prompt: str, model: Optional[str] = None, max_tokens: int = 1500) -> str:
        if not (prompt or "").strip():
            raise GenerationError("Prompt is empty.")
        model_name = (model or "").strip() or self.default_model
        content = call_with_retries(
            lambda: self._request_once(prompt, model_name, max_tokens),
            operation="llm_generate_text",
            max_retries=self._settings.max_retries,
            backoff_seconds=self._settings.retry_backoff_seconds,
            retry_on=(TransientGenerationError,),
        )
        logger.info("llm_generate_text_done model=%s chars=%s", model_name, len(content))
        return content
