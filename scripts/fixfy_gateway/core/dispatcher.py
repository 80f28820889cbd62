"""Single entry point that routes a canonical request to one provider.

A dispatch walks a fixed sequence: validate, route, resolve, look up the
credential, build, send, poll (job providers only) and normalize. Every
path ends in exactly one ``GatewayResult``; failures are values, not
exceptions.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Mapping, Optional

import requests

from .config import GatewaySettings
from .contracts import (
    AnalysisRequest,
    EstimateRequest,
    Failure,
    GatewayRequest,
    GatewayResult,
    GenerationRequest,
    Mode,
    ResolvedRequest,
    request_mode,
)
from .credentials import CredentialResolver, MissingCredential
from .diagnostics import sanitize_payload
from .errors import GatewayError, InvalidRequestError
from .normalize import failure, malformed
from .poller import JobPoller
from .registry import ProviderRegistry, default_registry
from .router import resolve_provider
from .solver import resolve_request

logger = logging.getLogger(__name__)


def _client_error(message: str, *, provider_id: Optional[str] = None, model_id: Optional[str] = None, metadata=None) -> Failure:
    return Failure(
        kind="client_error",
        message=message,
        provider_id=provider_id,
        model_id=model_id,
        metadata=metadata or {},
    )


def _validate(request: GatewayRequest) -> Optional[Failure]:
    if isinstance(request, (GenerationRequest, EstimateRequest)):
        if not isinstance(request.prompt, str) or not request.prompt.strip():
            return _client_error("Prompt is required.")
    if isinstance(request, AnalysisRequest):
        image = request.image
        if image is None or (isinstance(image, (str, bytes)) and not image.strip()):
            return _client_error("Image is required.")
    return None


class Dispatcher:
    """Route requests through the registry, credential store and adapters.

    ``adapters`` maps adapter family to adapter instance; families missing
    from it fall back to the lazily built defaults in ``fixfy_gateway.providers``.
    """

    def __init__(
        self,
        registry: Optional[ProviderRegistry] = None,
        credentials: Optional[CredentialResolver] = None,
        settings: Optional[GatewaySettings] = None,
        adapters: Optional[Mapping[str, object]] = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.registry = registry or default_registry()
        self.credentials = credentials or CredentialResolver()
        self.settings = settings or GatewaySettings.from_env()
        self._adapters = dict(adapters or {})
        self._session_factory = session_factory
        self._sleep = sleep

    def _adapter_for(self, family: str):
        adapter = self._adapters.get(family)
        if adapter is None:
            from fixfy_gateway.providers import get_adapter

            adapter = get_adapter(family)
        return adapter

    def dispatch(self, request: GatewayRequest, cancel: Optional[threading.Event] = None) -> GatewayResult:
        mode = request_mode(request)
        result = self._dispatch(request, mode, cancel)
        if isinstance(result, Failure):
            logger.warning(
                "%s via %s failed (%s): %s",
                mode,
                result.provider_id or "-",
                result.kind,
                result.message,
            )
        else:
            logger.info("%s via %s/%s succeeded", mode, result.provider_id, result.model_id)
        return result

    def _dispatch(self, request: GatewayRequest, mode: Mode, cancel: Optional[threading.Event]) -> GatewayResult:
        invalid = _validate(request)
        if invalid is not None:
            return invalid

        provider_id = resolve_provider(request.provider_id, mode, dict(self.settings.default_providers))
        descriptor = self.registry.lookup(provider_id)
        if descriptor is None:
            available = list(self.registry.provider_ids(mode))
            return _client_error(
                f"Unknown provider '{provider_id}'. Available providers: {', '.join(available)}",
                provider_id=provider_id,
                metadata={"availableProviders": available},
            )
        if not descriptor.supports(mode):
            return Failure(
                kind="out_of_service",
                message=f"{descriptor.display_name} does not support {mode} requests.",
                provider_id=descriptor.provider_id,
                metadata={"availableProviders": list(self.registry.provider_ids(mode))},
            )
        logger.debug("Routing %s request to %s", mode, descriptor.provider_id)

        try:
            resolved = resolve_request(
                request,
                descriptor,
                mode,
                strength_policy=self.settings.strength_policy,
            )
        except InvalidRequestError as exc:
            return _client_error(exc.message, provider_id=descriptor.provider_id, model_id=request.model_id)
        resolved.analysis_fallback = self.settings.analysis_fallback
        for warning in resolved.warnings:
            logger.warning("%s: %s", descriptor.provider_id, warning)

        credential = self.credentials.resolve(descriptor)
        if isinstance(credential, MissingCredential):
            return Failure(
                kind="out_of_service",
                message=credential.message,
                provider_id=descriptor.provider_id,
                model_id=resolved.model,
                metadata={"keyName": credential.key},
            )

        session = self._session_factory()
        try:
            return self._call(resolved, credential, session, cancel)
        except GatewayError as exc:
            return failure(exc.kind, exc.message, resolved, details=exc.details)
        except Exception as exc:
            # Provider SDKs raise outside their documented error types.
            logger.exception("%s call raised unexpectedly", resolved.provider_id)
            return failure("transient_error", f"{resolved.label} request failed: {exc}", resolved)
        finally:
            session.close()

    def _call(self, resolved: ResolvedRequest, credential, session, cancel) -> GatewayResult:
        from fixfy_gateway.providers.base import CallContext, PollingAdapter

        adapter = self._adapter_for(resolved.family)
        context = CallContext(session=session, timeout=self.settings.request_timeout, cancel=cancel)
        wire = adapter.build(resolved, credential)
        logger.debug("%s %s %s", wire.method, wire.url, sanitize_payload(wire.body))
        if context.cancelled:
            return failure("transient_error", "Request cancelled before it was sent.", resolved)

        raw = adapter.send(wire, context)
        logger.debug("%s responded %s", resolved.provider_id, raw.status)

        if raw.ok and isinstance(adapter, PollingAdapter):
            handle = adapter.job_handle(raw)
            if not handle:
                return malformed(resolved, f"{resolved.label} did not return a prediction id.")
            poller = JobPoller(
                interval=self.settings.poll_interval,
                max_attempts=self.settings.poll_max_attempts,
                sleep=self._sleep,
            )
            state = poller.wait(
                raw,
                status_of=adapter.job_status,
                fetch=lambda: adapter.fetch_status(handle, wire, context),
                is_ok=lambda response: response.ok,
                cancel=cancel,
            )
            if state.reason == "exhausted":
                return failure(
                    "transient_error",
                    f"Generation timed out after {state.attempts} attempts.",
                    resolved,
                    details=f"last status: {state.status}",
                )
            if state.reason == "cancelled":
                return failure("transient_error", "Generation cancelled while waiting for the provider.", resolved)
            raw = state.raw

        return adapter.normalize(raw, resolved)


_DEFAULT_DISPATCHER: Optional[Dispatcher] = None


def default_dispatcher() -> Dispatcher:
    global _DEFAULT_DISPATCHER
    if _DEFAULT_DISPATCHER is None:
        _DEFAULT_DISPATCHER = Dispatcher()
    return _DEFAULT_DISPATCHER


def dispatch(request: GatewayRequest, cancel: Optional[threading.Event] = None) -> GatewayResult:
    return default_dispatcher().dispatch(request, cancel=cancel)
