"""LLM client for the completion service
Sends the prompt (plus any question images) to an OpenAI-compatible
chat/completions endpoint and returns the decoded reply.

The reply is returned as parsed JSON when the body is JSON, otherwise as
the raw text; response_parser.response_content() accepts either.
"""
import json
import time
import logging
from typing import Any, Dict, List, Optional

import httpx

from config import SolverConfig

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a precise assistant. Reply exactly as asked."


class CompletionError(Exception):
    """The completion service could not be reached or answered with an error"""


def make_seed() -> int:
    """Current time in ms clamped to a positive 32-bit int (some proxies validate this)"""
    return int(time.time() * 1000) & 0x7FFFFFFF


class LLMClient:
    """Completion-service client; one call per solve cycle"""

    def __init__(self, config: SolverConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport
        self.last_response: Any = None

    def build_payload(self, prompt: str, images: Optional[List[str]] = None) -> Dict[str, Any]:
        images = images or []
        content: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
        for src in images:
            content.append({"type": "image_url", "image_url": {"url": src}})

        if self.config.think_before_answer:
            reasoning_effort = "high"
        elif self.config.instant_mode:
            reasoning_effort = "low"
        else:
            reasoning_effort = "medium"

        return {
            "model": self.config.vision_model if images else self.config.default_model,
            "reasoning_effort": reasoning_effort,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": content},
            ],
            "max_tokens": 65535 if self.config.think_before_answer else 64,
            "temperature": 1,
            "seed": make_seed(),
        }

    def build_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    async def complete(self, prompt: str, images: Optional[List[str]] = None) -> Any:
        """
        Ask the completion service

        Args:
            prompt: Full prompt text
            images: Image URLs to attach (switches to the vision model)

        Returns:
            Decoded JSON body, or the raw body text when it is not JSON

        Raises:
            CompletionError: proxy not configured or non-2xx status
            httpx.TimeoutException: no reply within PROXY_TIMEOUT_MS
        """
        if not self.config.proxy_url:
            raise CompletionError("Proxy not configured")

        payload = self.build_payload(prompt, images)
        logger.debug(f"[LLM_CALL] Using model: {payload['model']} for prompt with {len(images or [])} images, seed {payload['seed']}")
        logger.debug(f"[LLM_CALL] Prompt: {prompt[:200]}...")

        async with httpx.AsyncClient(timeout=self.config.proxy_timeout, transport=self._transport) as client:
            response = await client.post(self.config.proxy_url, headers=self.build_headers(), json=payload)
            if response.is_error:
                raise CompletionError(f"HTTP {response.status_code}: {response.text[:500]}")
            raw_text = response.text

        try:
            data = json.loads(raw_text)
        except json.JSONDecodeError:
            logger.debug(f"[LLM_RESPONSE] Received non-JSON response: {raw_text[:200]}")
            data = raw_text
        self.last_response = data
        return data
