"""
Status and provider configuration endpoints.

WHAT: Provider registry, connection checks, health
WHY: Settings screen validates a model configuration before chatting
HOW: FastAPI endpoints calling StreamingChatSession.check_connection
"""

from dataclasses import asdict
from typing import List

from fastapi import APIRouter, Depends

from ....core.config import settings, default_chat_config
from ....llm.providers import PROVIDER_SPECS
from ....llm.session import StreamingChatSession
from ....llm.session_factory import get_session
from ....models.api_schemas import ChatConfigIn, ProviderInfoOut, ProviderStatusOut
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/llm/providers", response_model=List[ProviderInfoOut])
async def list_providers():
    """List supported providers with their auth scheme and default base URL."""
    return [
        ProviderInfoOut(
            provider=spec.provider,
            display_name=spec.display_name,
            auth_type=spec.auth_type.value,
            default_base_url=spec.default_base_url,
        )
        for spec in PROVIDER_SPECS.values()
    ]


@router.post("/llm/validate", response_model=ProviderStatusOut)
async def validate_config(
    config: ChatConfigIn,
    session: StreamingChatSession = Depends(get_session),
):
    """
    Validate a client-supplied model configuration.

    Returns:
        Provider status with a sample of available models
    """
    status = await session.check_connection(config.to_config())
    return ProviderStatusOut(**asdict(status))


@router.get("/llm/status", response_model=ProviderStatusOut)
async def llm_status(session: StreamingChatSession = Depends(get_session)):
    """Check the server-side default configuration."""
    status = await session.check_connection(default_chat_config())
    return ProviderStatusOut(**asdict(status))


@router.get("/health")
async def health_check():
    """
    Overall application health check.

    Returns:
        JSON with app metadata and the default provider name
    """
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "default_provider": settings.LLM_PROVIDER,
        "default_provider_configured": bool(settings.LLM_API_KEY),
    }
