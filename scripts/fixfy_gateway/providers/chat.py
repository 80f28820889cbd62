"""Chat-completions adapter for OpenAI-compatible gateways.

One adapter covers every mode on this family:

* ``generate`` asks an image-capable chat model for an image part
  (``modalities=["image", "text"]``); edits attach the source image.
* ``analyze`` sends the photo with the detection prompt.
* ``estimate`` sends the project description with the estimator system prompt.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from fixfy_gateway.core.contracts import GatewayResult, ResolvedRequest
from fixfy_gateway.core.credentials import Credential
from fixfy_gateway.core.errors import InvalidRequestError
from fixfy_gateway.core.normalize import (
    detections_from_reply,
    estimate_from_reply,
    failure_for_status,
    first_reference,
    malformed,
)
from fixfy_gateway.core.prompts import (
    ANALYSIS_PROMPT,
    ESTIMATE_SYSTEM_PROMPT,
    chat_create_prompt,
    chat_edit_prompt,
    estimate_prompt,
)
from fixfy_gateway.core.registry import FAMILY_CHAT
from fixfy_gateway.core.utils import image_reference, is_data_uri
from .base import CallContext, RawResponse, WireRequest
from .openai_sdk import ClientFactory, call_sdk, default_client_factory, sdk_client

logger = logging.getLogger(__name__)


def _image_part(image: Any) -> Dict[str, Any]:
    return {"type": "image_url", "image_url": {"url": image_reference(image)}}


def _first_message(payload: Any) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        return {}
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], Mapping):
        return {}
    message = choices[0].get("message")
    return message if isinstance(message, Mapping) else {}


def _message_text(message: Mapping[str, Any]) -> str:
    content = message.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = [
            part.get("text", "")
            for part in content
            if isinstance(part, Mapping) and part.get("type") == "text"
        ]
        return "".join(t for t in texts if isinstance(t, str))
    return ""


def _image_candidates(message: Mapping[str, Any]) -> List[Any]:
    candidates: List[Any] = []
    images = message.get("images")
    if isinstance(images, list):
        for item in images:
            if isinstance(item, Mapping):
                url = item.get("image_url")
                candidates.append(url.get("url") if isinstance(url, Mapping) else url)
    content = message.get("content")
    if isinstance(content, list):
        for part in content:
            if isinstance(part, Mapping) and part.get("type") == "image_url":
                url = part.get("image_url")
                candidates.append(url.get("url") if isinstance(url, Mapping) else url)
    elif isinstance(content, str) and is_data_uri(content.strip()):
        candidates.append(content.strip())
    return candidates


class ChatCompletionAdapter:
    family = FAMILY_CHAT

    def __init__(self, client_factory: Optional[ClientFactory] = None) -> None:
        self._client_factory = client_factory or default_client_factory

    def build(self, resolved: ResolvedRequest, credential: Credential) -> WireRequest:
        if resolved.mode == "generate":
            body = self._generation_body(resolved)
        elif resolved.mode == "analyze":
            if resolved.image is None:
                raise InvalidRequestError("Image is required for analysis.")
            body = {
                "model": resolved.model,
                "messages": [
                    {
                        "role": "user",
                        "content": [{"type": "text", "text": ANALYSIS_PROMPT}, _image_part(resolved.image)],
                    }
                ],
                "max_tokens": 2000,
                "temperature": 0.3,
            }
        else:
            body = {
                "model": resolved.model,
                "messages": [
                    {"role": "system", "content": ESTIMATE_SYSTEM_PROMPT},
                    {"role": "user", "content": estimate_prompt(resolved.prompt)},
                ],
                "max_tokens": 1000,
                "temperature": 0.3,
            }
        label = resolved.label or resolved.provider_id
        return WireRequest(method="SDK", url=resolved.endpoint, body=body, credential=credential, label=label)

    def _generation_body(self, resolved: ResolvedRequest) -> Dict[str, Any]:
        if resolved.is_edit:
            content: Any = [
                {"type": "text", "text": chat_edit_prompt(resolved.prompt, resolved.strength)},
                _image_part(resolved.image),
            ]
        else:
            content = chat_create_prompt(resolved.prompt)
        return {
            "model": resolved.model,
            "messages": [{"role": "user", "content": content}],
            "extra_body": {"modalities": ["image", "text"]},
        }

    def send(self, wire: WireRequest, context: CallContext) -> RawResponse:
        client = sdk_client(wire, context, self._client_factory)
        return call_sdk(client.chat.completions.create, wire.body, wire.label or "chat")

    def normalize(self, raw: RawResponse, resolved: ResolvedRequest) -> GatewayResult:
        label = resolved.label or resolved.provider_id
        status_failure = failure_for_status(raw, resolved, label)
        if status_failure is not None:
            return status_failure
        message = _first_message(raw.payload)
        if resolved.mode == "generate":
            result = first_reference(_image_candidates(message), resolved)
            if result is None:
                logger.debug("No image part in %s reply: %s", label, _message_text(message)[:200])
                return malformed(resolved, f"No image received from {label}.")
            return result
        text = _message_text(message)
        if resolved.mode == "analyze":
            return detections_from_reply(text, resolved)
        return estimate_from_reply(text, resolved)
