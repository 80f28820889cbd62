import pathlib
import sys
import unittest

ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "scripts"))
sys.path.insert(0, str(ROOT / "tests"))

import httpx
import openai
import requests
from google.genai import errors as genai_errors
from google.genai import types

from fakes import (
    PNG_B64,
    PNG_BYTES,
    PNG_DATA_URI,
    FakeGeminiClient,
    FakeOpenAIClient,
    FakeSession,
    binary_response,
    chat_reply,
    json_response,
)
from fixfy_gateway.core.contracts import (
    AnalysisRequest,
    DetectionsResult,
    EstimateRequest,
    EstimateResult,
    Failure,
    GenerationRequest,
    ImageResult,
)
from fixfy_gateway.core.credentials import Credential
from fixfy_gateway.core.errors import ProviderCallError
from fixfy_gateway.core.prompts import ANALYSIS_PROMPT, ESTIMATE_SYSTEM_PROMPT
from fixfy_gateway.core.registry import default_registry
from fixfy_gateway.core.solver import resolve_request
from fixfy_gateway.providers import get_adapter
from fixfy_gateway.providers.base import CallContext, PollingAdapter, RawResponse
from fixfy_gateway.providers.chat import ChatCompletionAdapter
from fixfy_gateway.providers.gemini import GeminiAdapter
from fixfy_gateway.providers.huggingface import HuggingFaceAdapter
from fixfy_gateway.providers.openai_images import OpenAIImagesAdapter
from fixfy_gateway.providers.replicate import MODEL_VERSIONS, ReplicateAdapter
from fixfy_gateway.providers.stability import StabilityAdapter

CREDENTIAL = Credential(key="TEST_KEY", secret="secret-123")


def _resolve(provider_id, request, mode="generate"):
    return resolve_request(request, default_registry().lookup(provider_id), mode)


def _context(session=None) -> CallContext:
    return CallContext(session=session or FakeSession(), timeout=5.0)


def _status_error(cls, status: int):
    response = httpx.Response(status, request=httpx.Request("POST", "https://api.example.test/v1"))
    return cls("provider said no", response=response, body={"error": {"message": "provider said no"}})


class TestAdapterRegistry(unittest.TestCase):
    def test_families_resolve_to_adapters(self) -> None:
        self.assertIsInstance(get_adapter("chat"), ChatCompletionAdapter)
        self.assertIsInstance(get_adapter("IMAGES"), OpenAIImagesAdapter)
        self.assertIsInstance(get_adapter("job"), ReplicateAdapter)
        self.assertIsInstance(get_adapter("blob"), HuggingFaceAdapter)
        self.assertIsInstance(get_adapter("stability"), StabilityAdapter)
        self.assertIsInstance(get_adapter("gemini"), GeminiAdapter)
        self.assertIs(get_adapter("chat"), get_adapter("chat"))

    def test_unknown_family(self) -> None:
        with self.assertRaises(ValueError):
            get_adapter("carrier-pigeon")

    def test_only_job_family_polls(self) -> None:
        self.assertIsInstance(ReplicateAdapter(), PollingAdapter)
        self.assertNotIsInstance(StabilityAdapter(), PollingAdapter)
        self.assertNotIsInstance(ChatCompletionAdapter(), PollingAdapter)


class TestOpenAIImagesAdapter(unittest.TestCase):
    def test_create_round(self) -> None:
        client = FakeOpenAIClient(reply={"data": [{"b64_json": PNG_B64}]})
        adapter = OpenAIImagesAdapter(client_factory=client.factory)
        resolved = _resolve("OPENAI", GenerationRequest(prompt="Japandi bedroom"))
        wire = adapter.build(resolved, CREDENTIAL)
        self.assertEqual(
            wire.body,
            {"model": "gpt-image-1", "prompt": "Japandi bedroom", "n": 1, "size": "1024x1024", "quality": "high"},
        )
        raw = adapter.send(wire, _context())
        self.assertEqual(client.init_args, ("secret-123", "https://api.openai.com/v1", 5.0))
        result = adapter.normalize(raw, resolved)
        self.assertIsInstance(result, ImageResult)
        self.assertEqual(result.reference, PNG_DATA_URI)

    def test_edit_is_folded_into_prompt(self) -> None:
        adapter = OpenAIImagesAdapter(client_factory=FakeOpenAIClient().factory)
        resolved = _resolve("OPENAI", GenerationRequest(prompt="Add plants", source_image=PNG_DATA_URI, strength=0.8))
        wire = adapter.build(resolved, CREDENTIAL)
        self.assertIn("Transformation intensity: 80%", wire.body["prompt"])
        self.assertNotIn(PNG_B64, str(wire.body))

    def test_dalle_requests_b64(self) -> None:
        adapter = OpenAIImagesAdapter(client_factory=FakeOpenAIClient().factory)
        resolved = _resolve("OPENAI", GenerationRequest(prompt="x", model_id="dall-e-3", width=1792, height=1024))
        wire = adapter.build(resolved, CREDENTIAL)
        self.assertEqual(wire.body["response_format"], "b64_json")
        self.assertEqual(wire.body["size"], "1792x1024")

    def test_url_response_and_missing_image(self) -> None:
        adapter = OpenAIImagesAdapter(client_factory=FakeOpenAIClient().factory)
        resolved = _resolve("OPENAI", GenerationRequest(prompt="x"))
        client = FakeOpenAIClient(reply={"data": [{"url": "https://cdn.example.test/a.png"}]})
        raw = OpenAIImagesAdapter(client_factory=client.factory).send(adapter.build(resolved, CREDENTIAL), _context())
        self.assertEqual(adapter.normalize(raw, resolved).reference, "https://cdn.example.test/a.png")
        empty = FakeOpenAIClient(reply={"data": []})
        raw = OpenAIImagesAdapter(client_factory=empty.factory).send(adapter.build(resolved, CREDENTIAL), _context())
        self.assertEqual(adapter.normalize(raw, resolved).kind, "malformed_response")

    def test_rate_limit_is_captured(self) -> None:
        client = FakeOpenAIClient(error=_status_error(openai.RateLimitError, 429))
        adapter = OpenAIImagesAdapter(client_factory=client.factory)
        resolved = _resolve("OPENAI", GenerationRequest(prompt="x"))
        raw = adapter.send(adapter.build(resolved, CREDENTIAL), _context())
        self.assertEqual(raw.status, 429)
        result = adapter.normalize(raw, resolved)
        self.assertEqual(result.kind, "rate_limited")

    def test_connection_error_raises(self) -> None:
        error = openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1"))
        adapter = OpenAIImagesAdapter(client_factory=FakeOpenAIClient(error=error).factory)
        resolved = _resolve("OPENAI", GenerationRequest(prompt="x"))
        with self.assertRaises(ProviderCallError):
            adapter.send(adapter.build(resolved, CREDENTIAL), _context())


class TestChatCompletionAdapter(unittest.TestCase):
    def test_create_uses_plain_prompt_and_image_modality(self) -> None:
        client = FakeOpenAIClient(reply=chat_reply("Here you go", images=[PNG_DATA_URI]))
        adapter = ChatCompletionAdapter(client_factory=client.factory)
        resolved = _resolve("LOVABLE", GenerationRequest(prompt="Boho balcony"))
        wire = adapter.build(resolved, CREDENTIAL)
        self.assertEqual(wire.body["messages"][0]["content"], "Generate a room renovation image: Boho balcony")
        self.assertEqual(wire.body["extra_body"], {"modalities": ["image", "text"]})
        raw = adapter.send(wire, _context())
        self.assertEqual(client.calls[0]["model"], "google/gemini-2.5-flash-image")
        self.assertEqual(client.init_args[1], "https://ai.gateway.lovable.dev/v1")
        result = adapter.normalize(raw, resolved)
        self.assertIsInstance(result, ImageResult)
        self.assertEqual(result.reference, PNG_DATA_URI)

    def test_edit_attaches_source_image(self) -> None:
        adapter = ChatCompletionAdapter(client_factory=FakeOpenAIClient().factory)
        resolved = _resolve("LOVABLE", GenerationRequest(prompt="paint walls sage", source_image=PNG_BYTES, strength=0.3))
        content = adapter.build(resolved, CREDENTIAL).body["messages"][0]["content"]
        self.assertEqual(content[0]["type"], "text")
        self.assertIn("Strength of changes: 30%", content[0]["text"])
        self.assertEqual(content[1], {"type": "image_url", "image_url": {"url": PNG_DATA_URI}})

    def test_image_in_content_parts(self) -> None:
        adapter = ChatCompletionAdapter()
        resolved = _resolve("LOVABLE", GenerationRequest(prompt="x"))
        payload = chat_reply([{"type": "image_url", "image_url": {"url": "https://cdn.example.test/out.png"}}])
        result = adapter.normalize(RawResponse(status=200, payload=payload), resolved)
        self.assertEqual(result.reference, "https://cdn.example.test/out.png")

    def test_text_only_generation_is_malformed(self) -> None:
        client = FakeOpenAIClient(reply=chat_reply("I cannot draw that."))
        adapter = ChatCompletionAdapter(client_factory=client.factory)
        resolved = _resolve("LOVABLE", GenerationRequest(prompt="x"))
        result = adapter.normalize(adapter.send(adapter.build(resolved, CREDENTIAL), _context()), resolved)
        self.assertIsInstance(result, Failure)
        self.assertEqual(result.kind, "malformed_response")

    def test_analysis_round(self) -> None:
        reply = chat_reply('```json\n{"detectedObjects": [{"name": "sofa", "confidence": 0.9}]}\n```')
        client = FakeOpenAIClient(reply=reply)
        adapter = ChatCompletionAdapter(client_factory=client.factory)
        resolved = _resolve("GROQ", AnalysisRequest(image=PNG_DATA_URI), "analyze")
        wire = adapter.build(resolved, CREDENTIAL)
        content = wire.body["messages"][0]["content"]
        self.assertEqual(content[0], {"type": "text", "text": ANALYSIS_PROMPT})
        self.assertEqual(content[1]["image_url"]["url"], PNG_DATA_URI)
        self.assertEqual(wire.body["max_tokens"], 2000)
        result = adapter.normalize(adapter.send(wire, _context()), resolved)
        self.assertIsInstance(result, DetectionsResult)
        self.assertEqual(result.objects[0].name, "sofa")
        self.assertEqual(result.provider_id, "GROQ")

    def test_analysis_prose_falls_back(self) -> None:
        client = FakeOpenAIClient(reply=chat_reply("Nice room! Lots of natural light."))
        adapter = ChatCompletionAdapter(client_factory=client.factory)
        resolved = _resolve("OPENAI", AnalysisRequest(image=PNG_DATA_URI), "analyze")
        result = adapter.normalize(adapter.send(adapter.build(resolved, CREDENTIAL), _context()), resolved)
        self.assertIsInstance(result, DetectionsResult)
        self.assertTrue(result.fallback)

    def test_estimate_round(self) -> None:
        client = FakeOpenAIClient(reply=chat_reply('{"estimatedCost": 12000, "estimatedTime": 4, "breakdown": "paint"}'))
        adapter = ChatCompletionAdapter(client_factory=client.factory)
        resolved = _resolve("LOVABLE", EstimateRequest(prompt="Repaint bedroom"), "estimate")
        wire = adapter.build(resolved, CREDENTIAL)
        self.assertEqual(wire.body["messages"][0], {"role": "system", "content": ESTIMATE_SYSTEM_PROMPT})
        self.assertIn('Renovation Request: "Repaint bedroom"', wire.body["messages"][1]["content"])
        result = adapter.normalize(adapter.send(wire, _context()), resolved)
        self.assertIsInstance(result, EstimateResult)
        self.assertEqual(result.estimate.estimated_time_days, 4.0)

    def test_payment_required_is_transient(self) -> None:
        client = FakeOpenAIClient(error=_status_error(openai.APIStatusError, 402))
        adapter = ChatCompletionAdapter(client_factory=client.factory)
        resolved = _resolve("LOVABLE", EstimateRequest(prompt="x"), "estimate")
        result = adapter.normalize(adapter.send(adapter.build(resolved, CREDENTIAL), _context()), resolved)
        self.assertEqual(result.kind, "transient_error")
        self.assertEqual(result.http_status, 402)
        self.assertIn("Lovable AI API error: 402", result.message)


class TestReplicateAdapter(unittest.TestCase):
    def test_submit_body(self) -> None:
        adapter = ReplicateAdapter()
        resolved = _resolve("REPLICATE", GenerationRequest(prompt="Coastal kitchen", width=768, height=512))
        wire = adapter.build(resolved, CREDENTIAL)
        self.assertEqual(wire.headers["Authorization"], "Token secret-123")
        self.assertEqual(wire.body["version"], MODEL_VERSIONS["black-forest-labs/flux-schnell"])
        self.assertEqual(wire.body["input"]["num_inference_steps"], 4)
        self.assertNotIn("image", wire.body["input"])
        self.assertNotIn("strength", wire.body["input"])

    def test_edit_body(self) -> None:
        resolved = _resolve("REPLICATE", GenerationRequest(prompt="x", source_image=PNG_DATA_URI, strength=0.6))
        body = ReplicateAdapter().build(resolved, CREDENTIAL).body
        self.assertEqual(body["input"]["image"], PNG_DATA_URI)
        self.assertEqual(body["input"]["strength"], 0.6)
        self.assertEqual(body["input"]["num_inference_steps"], 25)

    def test_poll_helpers(self) -> None:
        adapter = ReplicateAdapter()
        resolved = _resolve("REPLICATE", GenerationRequest(prompt="x"))
        wire = adapter.build(resolved, CREDENTIAL)
        session = FakeSession(
            posts=[json_response(201, {"id": "p-1", "status": "starting"})],
            gets=[json_response(200, {"id": "p-1", "status": "succeeded", "output": ["https://replicate.delivery/a.png"]})],
        )
        context = _context(session)
        raw = adapter.send(wire, context)
        self.assertEqual(adapter.job_handle(raw), "p-1")
        self.assertEqual(adapter.job_status(raw), "starting")
        polled = adapter.fetch_status("p-1", wire, context)
        self.assertEqual(session.calls[1]["method"], "GET")
        self.assertEqual(session.calls[1]["url"], "https://api.replicate.com/v1/predictions/p-1")
        self.assertEqual(session.calls[1]["headers"], {"Authorization": "Token secret-123"})
        result = adapter.normalize(polled, resolved)
        self.assertEqual(result.reference, "https://replicate.delivery/a.png")

    def test_failed_prediction(self) -> None:
        resolved = _resolve("REPLICATE", GenerationRequest(prompt="x"))
        raw = RawResponse(status=200, payload={"id": "p-1", "status": "failed", "error": "NSFW content detected"})
        result = ReplicateAdapter().normalize(raw, resolved)
        self.assertEqual(result.kind, "transient_error")
        self.assertEqual(result.message, "Generation failed: NSFW content detected")

    def test_transport_failure(self) -> None:
        class _Broken(FakeSession):
            def post(self, url, headers=None, json=None, timeout=None):
                raise requests.ConnectionError("connection reset")

        adapter = ReplicateAdapter()
        resolved = _resolve("REPLICATE", GenerationRequest(prompt="x"))
        with self.assertRaises(ProviderCallError):
            adapter.send(adapter.build(resolved, CREDENTIAL), _context(_Broken()))


class TestHuggingFaceAdapter(unittest.TestCase):
    def test_blob_response_becomes_data_uri(self) -> None:
        adapter = HuggingFaceAdapter()
        resolved = _resolve("HUGGINGFACE", GenerationRequest(prompt="Rustic study"))
        wire = adapter.build(resolved, CREDENTIAL)
        self.assertEqual(wire.url, "https://api-inference.huggingface.co/models/black-forest-labs/FLUX.1-schnell")
        self.assertEqual(wire.body["inputs"], "Rustic study")
        session = FakeSession(posts=[binary_response(PNG_BYTES)])
        result = adapter.normalize(adapter.send(wire, _context(session)), resolved)
        self.assertIsInstance(result, ImageResult)
        self.assertEqual(result.reference, PNG_DATA_URI)

    def test_flux_edit_drops_image(self) -> None:
        resolved = _resolve("HUGGINGFACE", GenerationRequest(prompt="x", source_image=PNG_DATA_URI))
        body = HuggingFaceAdapter().build(resolved, CREDENTIAL).body
        self.assertEqual(body["inputs"], "x")

    def test_stable_diffusion_edit_keeps_image(self) -> None:
        request = GenerationRequest(
            prompt="x",
            source_image=PNG_DATA_URI,
            model_id="stabilityai/stable-diffusion-xl-base-1.0",
            strength=0.4,
        )
        body = HuggingFaceAdapter().build(_resolve("HUGGINGFACE", request), CREDENTIAL).body
        self.assertEqual(body["inputs"], {"prompt": "x", "image": PNG_DATA_URI, "strength": 0.4})

    def test_json_body_and_errors(self) -> None:
        adapter = HuggingFaceAdapter()
        resolved = _resolve("HUGGINGFACE", GenerationRequest(prompt="x"))
        wire = adapter.build(resolved, CREDENTIAL)
        loading = FakeSession(posts=[json_response(503, {"error": "Model is loading", "estimated_time": 20})])
        result = adapter.normalize(adapter.send(wire, _context(loading)), resolved)
        self.assertEqual(result.kind, "transient_error")
        self.assertIn("Model is loading", result.message)
        odd = FakeSession(posts=[json_response(200, {"generated_text": "no image"})])
        self.assertEqual(adapter.normalize(adapter.send(wire, _context(odd)), resolved).kind, "malformed_response")
        limited = FakeSession(posts=[json_response(429, {"error": "Rate limit reached"})])
        self.assertEqual(adapter.normalize(adapter.send(wire, _context(limited)), resolved).kind, "rate_limited")


class TestStabilityAdapter(unittest.TestCase):
    def test_round(self) -> None:
        adapter = StabilityAdapter()
        resolved = _resolve("STABILITY", GenerationRequest(prompt="Art deco lounge", source_image=PNG_DATA_URI))
        wire = adapter.build(resolved, CREDENTIAL)
        self.assertEqual(
            wire.url,
            "https://api.stability.ai/v1/generation/stable-diffusion-xl-1024-v1-0/text-to-image",
        )
        self.assertEqual(wire.body["text_prompts"], [{"text": "Art deco lounge", "weight": 1}])
        self.assertNotIn(PNG_B64, str(wire.body))
        session = FakeSession(posts=[json_response(200, {"artifacts": [{"base64": PNG_B64, "finishReason": "SUCCESS"}]})])
        result = adapter.normalize(adapter.send(wire, _context(session)), resolved)
        self.assertEqual(result.reference, PNG_DATA_URI)
        self.assertTrue(result.warnings)

    def test_filtered_artifacts(self) -> None:
        resolved = _resolve("STABILITY", GenerationRequest(prompt="x"))
        raw = RawResponse(status=200, payload={"artifacts": [{"base64": PNG_B64, "finishReason": "CONTENT_FILTERED"}]})
        self.assertEqual(StabilityAdapter().normalize(raw, resolved).kind, "malformed_response")


class TestGeminiAdapter(unittest.TestCase):
    def test_analysis_round(self) -> None:
        client = FakeGeminiClient(text='{"detectedObjects": [{"name": "bookshelf", "confidence": 0.8}]}')
        adapter = GeminiAdapter(client_factory=client.factory)
        resolved = _resolve("GOOGLE", AnalysisRequest(image=PNG_DATA_URI), "analyze")
        wire = adapter.build(resolved, CREDENTIAL)
        raw = adapter.send(wire, _context())
        self.assertEqual(client.init_args, ("secret-123", 5.0))
        call = client.calls[0]
        self.assertEqual(call["model"], "gemini-2.5-flash")
        self.assertEqual(call["contents"][0], ANALYSIS_PROMPT)
        self.assertIsInstance(call["contents"][1], types.Part)
        self.assertEqual(call["config"].response_mime_type, "application/json")
        result = adapter.normalize(raw, resolved)
        self.assertIsInstance(result, DetectionsResult)
        self.assertEqual(result.objects[0].name, "bookshelf")

    def test_estimate_is_text_only(self) -> None:
        client = FakeGeminiClient(text='{"estimatedCost": 8000, "estimatedTime": 2}')
        adapter = GeminiAdapter(client_factory=client.factory)
        resolved = _resolve("GOOGLE", EstimateRequest(prompt="New curtains"), "estimate")
        result = adapter.normalize(adapter.send(adapter.build(resolved, CREDENTIAL), _context()), resolved)
        self.assertIsInstance(result, EstimateResult)
        self.assertEqual(len(client.calls[0]["contents"]), 1)
        self.assertEqual(client.calls[0]["config"].system_instruction, ESTIMATE_SYSTEM_PROMPT)

    def test_quota_error_is_rate_limited(self) -> None:
        error = genai_errors.ClientError(
            429, {"error": {"code": 429, "message": "Quota exceeded", "status": "RESOURCE_EXHAUSTED"}}
        )
        adapter = GeminiAdapter(client_factory=FakeGeminiClient(error=error).factory)
        resolved = _resolve("GOOGLE", EstimateRequest(prompt="x"), "estimate")
        result = adapter.normalize(adapter.send(adapter.build(resolved, CREDENTIAL), _context()), resolved)
        self.assertEqual(result.kind, "rate_limited")
        self.assertIn("Google Gemini rate limit exceeded", result.message)

    def test_empty_reply_is_malformed(self) -> None:
        adapter = GeminiAdapter(client_factory=FakeGeminiClient(text=None).factory)
        resolved = _resolve("GOOGLE", AnalysisRequest(image=PNG_DATA_URI), "analyze")
        result = adapter.normalize(adapter.send(adapter.build(resolved, CREDENTIAL), _context()), resolved)
        self.assertEqual(result.kind, "malformed_response")


class TestCreateNeverReferencesImage(unittest.TestCase):
    def test_create_bodies_carry_no_image(self) -> None:
        cases = [
            ("OPENAI", OpenAIImagesAdapter(client_factory=FakeOpenAIClient().factory)),
            ("LOVABLE", ChatCompletionAdapter(client_factory=FakeOpenAIClient().factory)),
            ("REPLICATE", ReplicateAdapter()),
            ("HUGGINGFACE", HuggingFaceAdapter()),
            ("STABILITY", StabilityAdapter()),
        ]
        for provider_id, adapter in cases:
            with self.subTest(provider=provider_id):
                resolved = _resolve(provider_id, GenerationRequest(prompt="Plain create"))
                self.assertIsNone(resolved.image)
                body = str(adapter.build(resolved, CREDENTIAL).body)
                self.assertNotIn("image_url", body)
                self.assertNotIn("data:", body)


if __name__ == "__main__":
    unittest.main()
