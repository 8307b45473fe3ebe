from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from openai import OpenAI

from hireflow.config import Settings
from hireflow.types import ModelResponse

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a careful recruitment analyst. Answer with a single JSON object."


@dataclass(slots=True)
class ProviderConfig:
    name: str
    base_url: str
    api_key: str
    timeout_sec: int
    temperature: float = 0.3


class LLMProvider:
    def __init__(self, config: ProviderConfig):
        self.config = config
        self.client = OpenAI(
            base_url=config.base_url,
            api_key=config.api_key,
            timeout=float(config.timeout_sec),
        )

    def complete_json(self, *, model: str, prompt: str) -> dict[str, Any]:
        response = self.complete_text(model=model, prompt=prompt)
        if not response.content.strip():
            raise ValueError("model returned an empty response")
        return parse_json(response.content)

    def complete_text(self, *, model: str, prompt: str) -> ModelResponse:
        try:
            return self._complete_via_json_mode(model=model, prompt=prompt)
        except Exception as exc:
            if not self._is_unsupported_json_mode(exc):
                raise
            logger.warning(
                "JSON response_format rejected by provider=%s base_url=%s; retrying without it (%s)",
                self.config.name,
                self.config.base_url,
                exc,
            )
            return self._complete_plain(model=model, prompt=prompt)

    def _messages(self, prompt: str) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]

    def _complete_via_json_mode(self, *, model: str, prompt: str) -> ModelResponse:
        response = self.client.chat.completions.create(
            model=model,
            messages=self._messages(prompt),
            response_format={"type": "json_object"},
            temperature=self.config.temperature,
        )
        return self._to_model_response(response, api_path="chat_completions_json")

    def _complete_plain(self, *, model: str, prompt: str) -> ModelResponse:
        response = self.client.chat.completions.create(
            model=model,
            messages=self._messages(prompt),
            temperature=self.config.temperature,
        )
        return self._to_model_response(response, api_path="chat_completions")

    def _to_model_response(self, response: Any, *, api_path: str) -> ModelResponse:
        raw = response.model_dump() if hasattr(response, "model_dump") else {}
        if not isinstance(raw, dict):
            raw = {"raw": raw}
        raw["api_path"] = api_path
        return ModelResponse(content=self._extract_chat_text(response), raw=raw)

    @staticmethod
    def _extract_chat_text(response: Any) -> str:
        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""

        message = getattr(choices[0], "message", None)
        if message is None:
            return ""

        content = getattr(message, "content", "")
        if isinstance(content, str):
            return content
        if content is None:
            return ""
        return str(content)

    @staticmethod
    def _is_unsupported_json_mode(exc: Exception) -> bool:
        status_code = getattr(exc, "status_code", None)
        if status_code not in {400, 422}:
            return False
        message = str(exc).lower()
        return "response_format" in message or "json_object" in message


def parse_json(content: str) -> dict[str, Any]:
    """Extract one JSON object from model output, tolerating markdown fences."""
    candidate = content.strip()
    if "```" in candidate:
        for part in candidate.split("```"):
            part = part.strip()
            if part.startswith("json"):
                part = part[4:].strip()
            if part.startswith("{") and part.endswith("}"):
                candidate = part
                break

    value = json.loads(candidate)
    if not isinstance(value, dict):
        raise ValueError("model output is not a JSON object")
    return value


class ProviderPool:
    def __init__(self, settings: Settings):
        self.settings = settings
        self._openai: LLMProvider | None = None

    @property
    def enabled(self) -> bool:
        return bool(self.settings.openai_api_key)

    def openai(self) -> LLMProvider:
        if self._openai is None:
            self._openai = LLMProvider(
                ProviderConfig(
                    name="openai",
                    base_url=self.settings.openai_base_url,
                    api_key=self.settings.openai_api_key,
                    timeout_sec=self.settings.openai_timeout_sec,
                    temperature=self.settings.llm_temperature,
                )
            )
        return self._openai
