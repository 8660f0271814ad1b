"""
Protocol-polymorphic LLM client over ``httpx.AsyncClient``.

Every provider goes through the same request path: look up the provider's
:class:`~summarizator.services.llm.providers.ProviderSpec`, resolve its
credential, build the request, send it under a concurrency semaphore and
interpret the status uniformly:

    2xx  -> extract the provider's field path (MalformedResponseError if absent)
    401  -> AuthenticationFailedError
    429  -> RateLimitedError
    else -> UnexpectedStatusError

Network-layer failures become ``TransportFailureError`` with the httpx
exception chained as ``__cause__``. Nothing is retried here.
"""

import asyncio
import logging

import httpx

from summarizator.core.config import Settings
from summarizator.core.exceptions import (
    AuthenticationFailedError,
    MalformedResponseError,
    MissingCredentialError,
    RateLimitedError,
    SecretNotFoundError,
    TransportFailureError,
    UnexpectedStatusError,
)
from summarizator.services.llm.base import BaseLLM, ProgressCallback
from summarizator.services.llm.providers import LLMProvider, ProviderSpec, get_spec
from summarizator.services.secrets.base import BaseSecretStore

logger = logging.getLogger(__name__)

# Coarse milestones reported through ``on_progress`` (cosmetic only).
PROGRESS_REQUEST_BUILT = 0.1
PROGRESS_REQUEST_SENT = 0.3
PROGRESS_RESPONSE_RECEIVED = 0.7
PROGRESS_RESPONSE_PARSED = 1.0


def _parse_retry_after(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


class LLMClient(BaseLLM):
    """Shared HTTP execution path for all five provider wire formats.

    Args:
        settings: Explicit configuration (endpoints, timeout, concurrency).
        secrets: Store holding one API key per provider.
        http_client: Optional pre-built ``httpx.AsyncClient`` (tests inject
            one backed by ``httpx.MockTransport``). The client owns and
            closes it only when it created it itself.
    """

    def __init__(
        self,
        settings: Settings,
        secrets: BaseSecretStore,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._secrets = secrets
        self._semaphore = asyncio.Semaphore(max(settings.llm_max_concurrent, 1))
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=settings.llm_timeout)

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "LLMClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _resolve_secret(self, spec: ProviderSpec) -> str | None:
        if not spec.requires_credential:
            return None
        try:
            return self._secrets.get(spec.provider.credential_key)
        except SecretNotFoundError:
            raise MissingCredentialError(spec.provider.value) from None

    def build_request(
        self,
        spec: ProviderSpec,
        text: str,
        instruction: str,
        model: str,
        secret: str | None,
    ) -> httpx.Request:
        """Assemble the provider-specific POST request."""
        return self._http.build_request(
            "POST",
            spec.url(self._settings, model),
            headers=spec.headers(self._settings, secret),
            params=spec.params(secret),
            json=spec.build_body(text, instruction, model),
        )

    def _interpret(self, spec: ProviderSpec, response: httpx.Response) -> str:
        provider = spec.provider.value
        status = response.status_code

        if 200 <= status < 300:
            try:
                payload = response.json()
            except ValueError as exc:
                raise MalformedResponseError(provider, "body is not JSON") from exc
            try:
                return spec.extract(payload)
            except ValueError as exc:
                raise MalformedResponseError(provider, str(exc)) from exc

        if status == 401:
            logger.warning("%s rejected the API key (401)", provider)
            raise AuthenticationFailedError(provider)
        if status == 429:
            retry_after = _parse_retry_after(response.headers.get("retry-after"))
            logger.warning("%s rate limit hit (retry-after=%s)", provider, retry_after)
            raise RateLimitedError(provider, retry_after=retry_after)

        logger.warning("%s returned unexpected status %s", provider, status)
        raise UnexpectedStatusError(provider, status)

    async def generate(
        self,
        text: str,
        instruction: str,
        provider: LLMProvider | str,
        model: str,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """Send *text* with *instruction* to *provider* and return the generated text.

        Raises:
            MissingCredentialError: No key stored (checked before any network call).
            AuthenticationFailedError: HTTP 401.
            RateLimitedError: HTTP 429.
            UnexpectedStatusError: Any other non-2xx status.
            MalformedResponseError: 2xx without the expected field path.
            TransportFailureError: Timeout, DNS or connection failure.
        """
        spec = get_spec(provider)
        model = model or spec.default_model

        def report(fraction: float) -> None:
            if on_progress is not None:
                on_progress(fraction)

        secret = self._resolve_secret(spec)
        request = self.build_request(spec, text, instruction, model, secret)
        report(PROGRESS_REQUEST_BUILT)

        async with self._semaphore:
            logger.debug("Sending %s request (model=%s)", spec.provider.value, model)
            report(PROGRESS_REQUEST_SENT)
            try:
                response = await self._http.send(request)
            except httpx.TransportError as exc:
                logger.warning("%s transport failure: %s", spec.provider.value, exc)
                raise TransportFailureError(spec.provider.value, exc) from exc

        report(PROGRESS_RESPONSE_RECEIVED)
        result = self._interpret(spec, response)
        report(PROGRESS_RESPONSE_PARSED)
        return result
