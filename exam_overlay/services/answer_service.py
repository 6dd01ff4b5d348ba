"""
services/answer_service.py

One submission → one generation call → one string.

Public API:
  - build_request(prompt, attachments, config) -> GenerationRequest
  - AnswerService.ask(prompt, attachments, config) -> str   (async)

Design:
- temperature 0.0 (default temperature on reasoning models) and a per-style output cap for fast, repeatable answers
- text-only questions go to the fast tier, image questions to the vision tier
- exactly one attempt: no retries, no distinct error branch for the caller
- any failure is logged and returned as SENTINEL_TEXT
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from openai import APIError, OpenAI
from pydantic import BaseModel, Field

import config as settings
from exam_overlay.models.exam_config import ExamConfiguration
from exam_overlay.services import attachment_codec
from exam_overlay.services.config_translator import Tier, translate

# ── Logger ──────────────────────────────────────────────────────────────────
logger = logging.getLogger(__name__)

SENTINEL_TEXT = "Error."
FALLBACK_PROMPT = "Solve this. Output answer only."

# Reasoning model families and the lowest effort each accepts.
# They only take the default temperature; other models have no
# reasoning step to disable.
_LOWEST_REASONING_EFFORT = (
    ("gpt-5", "minimal"),
    ("o1", "low"),
    ("o3", "low"),
    ("o4", "low"),
)


class GenerationRequest(BaseModel):
    """Transport-neutral generation request."""

    model: Tier = Field(..., description="fast / vision")
    system_instruction: str = Field(..., description="Instruction from the config translator")
    contents: Union[str, List[Dict[str, Any]]] = Field(
        ...,
        description="Plain prompt text, or ordered image parts followed by one text part",
    )
    temperature: float = Field(default=0.0, description="Fixed at 0.0")
    max_output_tokens: int = Field(..., gt=0, description="Token budget for the style")
    reasoning_enabled: bool = Field(default=False, description="Always disabled")


def build_request(
    prompt_text: str,
    attachments: Sequence[str],
    config: ExamConfiguration,
) -> GenerationRequest:
    """
    Build the request for one submission.

    Raises:
        ConfigValidationError: propagated from translate().
    """
    has_attachments = len(attachments) > 0
    translation = translate(config, has_attachments)

    if has_attachments:
        parts: List[Dict[str, Any]] = []
        for raw in attachments:
            decoded = attachment_codec.decode(raw)
            parts.append({"type": "image", "mime": decoded.mime, "data": decoded.payload})
        text = prompt_text if prompt_text and prompt_text.strip() else FALLBACK_PROMPT
        parts.append({"type": "text", "text": text})
        contents: Union[str, List[Dict[str, Any]]] = parts
    else:
        contents = prompt_text

    return GenerationRequest(
        model=translation.tier,
        system_instruction=translation.instruction,
        contents=contents,
        temperature=0.0,
        max_output_tokens=translation.token_budget,
    )


# ── OpenAI client ───────────────────────────────────────────────────────────

def _make_client(api_key: str) -> Optional[OpenAI]:
    """Create an OpenAI client with retries disabled."""
    if not api_key:
        logger.warning("No OpenAI API key configured.")
        return None
    try:
        return OpenAI(api_key=api_key, max_retries=0)
    except Exception as e:
        logger.error(f"OpenAI client initialisation failed: {e}")
        return None


def _lowest_reasoning_effort(model_name: str) -> Optional[str]:
    """None for models without a reasoning stage."""
    for prefix, effort in _LOWEST_REASONING_EFFORT:
        if model_name.startswith(prefix):
            return effort
    return None


def to_chat_kwargs(request: GenerationRequest, model_name: str) -> Dict[str, Any]:
    """GenerationRequest → keyword arguments for chat.completions.create()."""
    if isinstance(request.contents, str):
        user_content: Union[str, List[Dict[str, Any]]] = request.contents
    else:
        user_content = []
        for part in request.contents:
            if part["type"] == "image":
                url = attachment_codec.to_data_url(
                    attachment_codec.DecodedAttachment(part["mime"], part["data"])
                )
                user_content.append({"type": "image_url", "image_url": {"url": url}})
            else:
                user_content.append({"type": "text", "text": part["text"]})

    kwargs: Dict[str, Any] = {
        "model": model_name,
        "messages": [
            {"role": "system", "content": request.system_instruction},
            {"role": "user", "content": user_content},
        ],
        "max_completion_tokens": request.max_output_tokens,
    }
    effort = _lowest_reasoning_effort(model_name)
    if effort is None:
        kwargs["temperature"] = request.temperature
    elif not request.reasoning_enabled:
        kwargs["reasoning_effort"] = effort
    return kwargs


class AnswerService:
    """
    Generation gateway shared by every session.

    Args:
        client:  Pre-built OpenAI-compatible client (tests inject a fake).
        api_key: Used to build a client when none is given.
        models:  Tier → model name mapping.
    """

    def __init__(
        self,
        client: Optional[Any] = None,
        api_key: Optional[str] = None,
        models: Optional[Dict[Tier, str]] = None,
    ):
        self._api_key = settings.OPENAI_API_KEY if api_key is None else api_key
        self._client = client
        self.models: Dict[Tier, str] = models or {
            Tier.FAST: settings.FAST_MODEL,
            Tier.VISION: settings.VISION_MODEL,
        }

    def _get_client(self):
        if self._client is None:
            self._client = _make_client(self._api_key)
        return self._client

    def generate(self, request: GenerationRequest) -> str:
        """Blocking call. Raises whatever the transport raises."""
        client = self._get_client()
        if client is None:
            raise RuntimeError("OpenAI client is not configured.")

        model_name = self.models[request.model]
        logger.info(
            f"generate: model={model_name} budget={request.max_output_tokens} "
            f"parts={1 if isinstance(request.contents, str) else len(request.contents)}"
        )
        response = client.chat.completions.create(**to_chat_kwargs(request, model_name))
        return response.choices[0].message.content or ""

    async def ask(
        self,
        prompt_text: str,
        attachments: Sequence[str],
        config: ExamConfiguration,
    ) -> str:
        """
        Answer one submission. Always resolves, never raises.

        Returns:
            The response text ("" when the service returned none), or
            SENTINEL_TEXT on any failure.
        """
        try:
            request = build_request(prompt_text, list(attachments), config)
            return await asyncio.to_thread(self.generate, request)
        except APIError as e:
            logger.error(f"Generation API error: {type(e).__name__}: {e}")
        except Exception as e:
            logger.error(f"Generation failed: {type(e).__name__}: {e}")
        return SENTINEL_TEXT
