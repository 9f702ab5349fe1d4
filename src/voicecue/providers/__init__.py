# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Speech capability factory and registry.

This module provides a factory for creating speech capabilities and
managing the registry of available providers.
"""

from collections.abc import Callable
from typing import Any

from ..capability import ModelInfo, SpeechCapability
from .vosk_provider import VoskCapability

# Registry of available providers
PROVIDER_REGISTRY: dict[str, type[VoskCapability]] = {
    "vosk": VoskCapability,
}


def _provider_class(provider_name: str) -> type[VoskCapability]:
    provider_class = PROVIDER_REGISTRY.get(provider_name)
    if not provider_class:
        available = ", ".join(PROVIDER_REGISTRY.keys())
        raise ValueError(
            f"Unknown provider: {provider_name}. Available providers: {available}"
        )
    return provider_class


def create_capability(provider_name: str, model_id: str, **kwargs: Any) -> SpeechCapability:
    """
    Factory function to create a speech capability.

    Args:
        provider_name: Name of the provider ("vosk")
        model_id: Model identifier to use
        **kwargs: Provider options (model_path, device, chunk_ms, sample_rate)

    Returns:
        Speech capability instance (models load on first start)

    Raises:
        ValueError: If provider_name is not registered
    """
    return _provider_class(provider_name)(model_id, **kwargs)


def get_all_available_models() -> list[ModelInfo]:
    """
    Get all available models from all registered providers.

    Returns:
        List of ModelInfo objects from all providers
    """
    models: list[ModelInfo] = []
    for provider_class in PROVIDER_REGISTRY.values():
        models.extend(provider_class.get_available_models())
    return models


def is_model_downloaded(provider_name: str, model_id: str) -> bool:
    """Check if a model is already downloaded."""
    provider_class = PROVIDER_REGISTRY.get(provider_name)
    if not provider_class:
        return False
    return provider_class.is_model_downloaded(model_id)


def download_model(
    provider_name: str,
    model_id: str,
    progress_callback: Callable[[str, int], None] | None = None
) -> str:
    """
    Download a model with optional progress tracking.

    Returns:
        Path to the downloaded model

    Raises:
        ValueError: If provider or model is not recognized
    """
    return _provider_class(provider_name).download_model(
        model_id, progress_callback=progress_callback)


__all__ = [
    "create_capability",
    "get_all_available_models",
    "is_model_downloaded",
    "download_model",
    "PROVIDER_REGISTRY",
    "VoskCapability",
]
