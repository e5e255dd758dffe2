"""Key resolution strategies and their registry.

A key resolver maps an invocation context to a stable bucket key. The
enforcer picks the resolver named by ``RateLimitConfig.key_resolver`` from a
``KeyResolverRegistry`` built once at startup; the unset sentinel always
means "use the default resolver".
"""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Iterable

from fastapi import Request

from quotaguard.core.errors import ConfigurationAppError, ValidationAppError
from quotaguard.domain.context import UNSET_KEY_RESOLVER, RateLimitContext
from quotaguard.domain.policy import RateLimitScope


class AbstractKeyResolver(ABC):
    """Interface for key resolvers.

    Attributes:
        name: Identity under which the resolver is registered.
    """

    name: str = ""

    @abstractmethod
    def resolve_key(self, context: RateLimitContext) -> str:
        """Return a non-empty key, stable for the same caller/operation."""
        raise NotImplementedError


def _require_config(context: RateLimitContext | None):
    if context is None:
        raise ValidationAppError(code="missing_context", message="context must not be None")
    if context.config is None:
        raise ValidationAppError(
            code="missing_config",
            message="context must carry a rate limit configuration",
        )
    return context.config


def normalize_scope(raw_scope: str | None) -> str:
    """Lower-cased scope for key derivation; blank falls back to global."""
    if raw_scope is None or not str(raw_scope).strip():
        return RateLimitScope.GLOBAL.value.lower()
    return RateLimitScope.from_value(raw_scope).value.lower()


class DefaultKeyResolver(AbstractKeyResolver):
    """Stable keys from scope + static key or call-site metadata.

    ``scope:key`` when a static key is declared, ``scope:target#method``
    otherwise, so two call sites only share a bucket when explicitly aliased.
    """

    name = "default"

    def resolve_key(self, context: RateLimitContext) -> str:
        config = _require_config(context)
        scope = normalize_scope(config.scope)
        if config.key and config.key.strip():
            return f"{scope}:{config.key.strip()}"
        return f"{scope}:{context.target}#{context.method}"


class ClientKeyResolver(AbstractKeyResolver):
    """Partition a call-site key per HTTP client.

    The caller is identified by its API key (hashed, never stored raw) unless
    the scope is IP or no key was sent, in which case the client IP is used.
    """

    name = "client"

    def __init__(self, *, api_key_header: str = "X-API-Key", base: AbstractKeyResolver | None = None) -> None:
        self._api_key_header = api_key_header
        self._base = base or DefaultKeyResolver()

    def resolve_key(self, context: RateLimitContext) -> str:
        config = _require_config(context)
        request = next((a for a in context.iter_arguments() if isinstance(a, Request)), None)
        if request is None:
            raise ValidationAppError(
                code="missing_request",
                message="client key resolver requires a Request among the call arguments",
            )

        base_key = self._base.resolve_key(context)
        api_key = request.headers.get(self._api_key_header)
        if api_key and normalize_scope(config.scope) != RateLimitScope.IP.value.lower():
            digest = hashlib.sha256(api_key.encode()).hexdigest()[:16]
            return f"{base_key}:api_key:{digest}"

        client_host = request.client.host if request.client else "unknown"
        return f"{base_key}:ip:{client_host}"


class KeyResolverRegistry:
    """Immutable mapping from resolver identity to resolver instance."""

    def __init__(
        self,
        default: AbstractKeyResolver,
        resolvers: Iterable[AbstractKeyResolver] = (),
    ) -> None:
        if default is None:
            raise ConfigurationAppError(
                code="missing_default_key_resolver",
                message="default key resolver must not be None",
            )
        by_name: dict[str, AbstractKeyResolver] = {}
        for resolver in resolvers:
            if resolver is None:
                continue
            name = self._require_name(resolver)
            if name in by_name and by_name[name] is not resolver:
                raise ConfigurationAppError(
                    code="duplicate_key_resolver",
                    message=f"Key resolver already registered under name: {name}",
                    details={"resolver": name},
                )
            by_name[name] = resolver
        by_name.setdefault(self._require_name(default), default)

        self._default = default
        self._by_name = MappingProxyType(by_name)

    @staticmethod
    def _require_name(resolver: AbstractKeyResolver) -> str:
        name = getattr(resolver, "name", None)
        if name is None or not name.strip() or name == UNSET_KEY_RESOLVER:
            raise ConfigurationAppError(
                code="invalid_key_resolver_name",
                message=f"Key resolver {type(resolver).__name__} must declare a non-blank name",
            )
        return name

    @property
    def default(self) -> AbstractKeyResolver:
        return self._default

    def names(self) -> list[str]:
        return sorted(self._by_name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self._by_name)

    def resolve(self, name: str | None) -> AbstractKeyResolver:
        """Return the resolver for ``name``.

        Raises:
            ConfigurationAppError: If a non-sentinel name was never registered.
        """
        if name is None or name == UNSET_KEY_RESOLVER:
            return self._default
        resolver = self._by_name.get(name)
        if resolver is None:
            raise ConfigurationAppError(
                code="key_resolver_not_registered",
                message=f"No key resolver registered under name: {name}",
                details={"resolver": name},
            )
        return resolver
