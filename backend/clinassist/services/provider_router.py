from __future__ import annotations

from typing import Optional

from clinassist.core.config import Settings, settings as default_settings
from clinassist.core.exceptions import (
    AllProvidersUnavailable,
    ProviderError,
    ProviderResponseMalformed,
    ProviderUnavailable,
)
from clinassist.services.prompt_compiler import CompiledPrompt
from clinassist.services.provider_gateway import GenerationProvider, ProviderResponse, get_provider
from clinassist.utils.logger import logger


class ProviderRouter:
    """
    Primary provider plus at most one retry against a secondary.
    No backoff, no second retry.
    """

    def __init__(
        self,
        primary: GenerationProvider,
        secondary: Optional[GenerationProvider] = None,
        *,
        fallback_enabled: bool = True,
    ):
        self.primary = primary
        self.secondary = secondary
        self.fallback_enabled = fallback_enabled

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "ProviderRouter":
        config = config or default_settings
        primary = get_provider(config.PRIMARY_PROVIDER, config)
        secondary = None
        if config.FALLBACK_PROVIDER and config.FALLBACK_PROVIDER != config.PRIMARY_PROVIDER:
            secondary = get_provider(config.FALLBACK_PROVIDER, config)
        return cls(primary, secondary, fallback_enabled=config.FALLBACK_ENABLED)

    @property
    def primary_id(self) -> str:
        return self.primary.provider_id

    def generate(self, prompt: CompiledPrompt) -> ProviderResponse:
        errors: list[ProviderError] = []

        try:
            return self.primary.generate(prompt)
        except (ProviderUnavailable, ProviderResponseMalformed) as e:
            errors.append(e)
            logger.warning(f"Primary provider failed: {e}")

        if not self.fallback_enabled or self.secondary is None:
            raise AllProvidersUnavailable(errors)

        try:
            response = self.secondary.generate(prompt)
        except (ProviderUnavailable, ProviderResponseMalformed) as e:
            errors.append(e)
            logger.error(f"Fallback provider failed: {e}")
            raise AllProvidersUnavailable(errors) from e

        logger.warning(f"Served by fallback provider {self.secondary.provider_id}")
        return response

    def probe(self) -> dict[str, bool]:
        status = {self.primary.provider_id: self.primary.probe()}
        if self.secondary is not None:
            status[self.secondary.provider_id] = self.secondary.probe()
        return status
