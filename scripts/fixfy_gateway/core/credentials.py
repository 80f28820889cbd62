"""Credential lookup against the process-wide configuration store."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Union

from .registry import ProviderDescriptor


@dataclass(frozen=True)
class Credential:
    key: str
    secret: str = field(repr=False)


@dataclass(frozen=True)
class MissingCredential:
    key: str
    provider_id: str
    display_name: str

    @property
    def message(self) -> str:
        return f"{self.display_name} API key not configured. Please add {self.key} to your secrets."


CredentialLookup = Union[Credential, MissingCredential]


class CredentialResolver:
    """Read-only view over an opaque key-value store (``os.environ`` by default)."""

    def __init__(self, store: Optional[Mapping[str, str]] = None) -> None:
        self._store = store

    @property
    def store(self) -> Mapping[str, str]:
        return os.environ if self._store is None else self._store

    def resolve(self, descriptor: ProviderDescriptor) -> CredentialLookup:
        secret = self.store.get(descriptor.credential_key)
        if secret is None or not str(secret).strip():
            return MissingCredential(
                key=descriptor.credential_key,
                provider_id=descriptor.provider_id,
                display_name=descriptor.display_name,
            )
        return Credential(key=descriptor.credential_key, secret=str(secret).strip())
