"""
LLM provider endpoints.

Expose the provider catalogue and manage the per-provider API keys held
in the secret store. Keys are write-only: they are never returned.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from summarizator.api.dependencies import get_secret_store
from summarizator.api.middleware.error_handler import error_responses
from summarizator.core.models import ProviderInfo, SecretUpdate
from summarizator.services.llm.providers import PROVIDER_SPECS, LLMProvider
from summarizator.services.secrets.base import BaseSecretStore

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/providers",
    tags=["providers"],
    responses=error_responses(404, 422),
)


def _parse_provider(name: str) -> LLMProvider:
    try:
        return LLMProvider.parse(name)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get("", response_model=list[ProviderInfo])
async def list_providers(secrets: BaseSecretStore = Depends(get_secret_store)):
    """List every provider with its models and whether a key is stored."""
    return [
        ProviderInfo(
            name=provider.name,
            display_name=provider.value,
            default_model=spec.default_model,
            available_models=list(spec.available_models),
            requires_credential=spec.requires_credential,
            has_credential=secrets.has(provider.credential_key),
        )
        for provider, spec in PROVIDER_SPECS.items()
    ]


@router.put("/{provider}/secret", status_code=status.HTTP_204_NO_CONTENT)
async def put_secret(
    provider: str,
    body: SecretUpdate,
    secrets: BaseSecretStore = Depends(get_secret_store),
) -> None:
    """Store (or replace) the API key for *provider*."""
    llm_provider = _parse_provider(provider)
    secrets.put(llm_provider.credential_key, body.secret)
    logger.info("Stored API key for %s", llm_provider.value)


@router.delete("/{provider}/secret", status_code=status.HTTP_204_NO_CONTENT)
async def delete_secret(
    provider: str,
    secrets: BaseSecretStore = Depends(get_secret_store),
) -> None:
    secrets.delete(_parse_provider(provider).credential_key)
