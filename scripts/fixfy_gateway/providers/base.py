"""Provider adapter interfaces."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

import requests

from fixfy_gateway.core.contracts import GatewayResult, ResolvedRequest
from fixfy_gateway.core.credentials import Credential


@dataclass
class WireRequest:
    """A provider call ready to send: an HTTP request or SDK call kwargs."""

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None
    credential: Optional[Credential] = field(default=None, repr=False)
    label: str = ""


@dataclass
class RawResponse:
    status: int
    payload: Any = None
    content: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def content_type(self) -> str:
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return str(value).split(";", 1)[0].strip().lower()
        return ""


@dataclass
class CallContext:
    """Per-dispatch I/O resources; never shared across dispatches."""

    session: requests.Session
    timeout: float
    cancel: Optional[threading.Event] = None

    @property
    def cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()


class ProviderAdapter(Protocol):
    family: str

    def build(self, resolved: ResolvedRequest, credential: Credential) -> WireRequest:
        ...

    def send(self, wire: WireRequest, context: CallContext) -> RawResponse:
        ...

    def normalize(self, raw: RawResponse, resolved: ResolvedRequest) -> GatewayResult:
        ...


@runtime_checkable
class PollingAdapter(Protocol):
    """Adapter whose submit call returns a job handle instead of a result."""

    family: str

    def job_handle(self, raw: RawResponse) -> Optional[str]:
        ...

    def job_status(self, raw: RawResponse) -> str:
        ...

    def fetch_status(self, handle: str, wire: WireRequest, context: CallContext) -> RawResponse:
        ...
