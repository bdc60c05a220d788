"""
Application DI Container (dependency-injector).

Centralizes service creation and lifecycle management. This module and the
presentation layer are the only places that read environment variables;
every inner component receives plain values.

Usage::

    from scholar_qa.container import ApplicationContainer, load_config_from_env

    container = ApplicationContainer()
    container.config.from_dict(load_config_from_env())

    pipeline = container.pipeline()

    # In tests, override any provider:
    container.text_provider.override(providers.Object(fake_provider))
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import Any

from dependency_injector import containers, providers

from scholar_qa import __version__
from scholar_qa.shared.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


# =============================================================================
# Environment
# =============================================================================


def _env_str(env: Mapping[str, str], name: str, default: str | None = None) -> str | None:
    value = env.get(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_number(env: Mapping[str, str], name: str, default: float, cast: type = int) -> Any:
    raw = _env_str(env, name)
    if raw is None:
        return default
    try:
        value = cast(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def load_config_from_env(env: Mapping[str, str] | None = None) -> dict[str, Any]:
    """
    Build the container configuration from environment variables.

    Args:
        env: Mapping to read instead of ``os.environ`` (tests)
    """
    env = os.environ if env is None else env
    return {
        "app": {
            "version": __version__,
            "environment": _env_str(env, "APP_ENV", "production"),
            "log_level": (_env_str(env, "LOG_LEVEL", "INFO") or "INFO").upper(),
            "host": _env_str(env, "HOST", "0.0.0.0"),
            "port": _env_number(env, "PORT", 3000),
        },
        "openai": {
            "api_key": _env_str(env, "OPENAI_API_KEY"),
            "base_url": _env_str(env, "OPENAI_BASE_URL"),
            "cheap_model": _env_str(env, "OPENAI_CHEAP_MODEL", "gpt-4o-mini"),
            "premium_model": _env_str(env, "OPENAI_PREMIUM_MODEL", "gpt-4o"),
            "timeout": 60.0,
        },
        "sources": {
            "sources": _env_str(env, "SCHOLAR_QA_SOURCES"),
            "timeout": 30.0,
            "s2_api_key": _env_str(env, "S2_API_KEY"),
            "ncbi_api_key": _env_str(env, "NCBI_API_KEY"),
            "ncbi_email": _env_str(env, "NCBI_EMAIL"),
            "core_api_key": _env_str(env, "CORE_API_KEY"),
        },
        "pipeline": {
            "target_count": _env_number(env, "SCHOLAR_QA_TARGET_COUNT", 20),
            "max_papers": _env_number(env, "SCHOLAR_QA_MAX_PAPERS", 10),
            "analysis_batch_size": 5,
            "cache_ttl": _env_number(env, "SCHOLAR_QA_CACHE_TTL", 3600.0, cast=float),
            "search_timeout": 30.0,
            "expansion_length_threshold": 100,
        },
        "cache": {
            "max_size": 512,
        },
    }


# =============================================================================
# Lazy factories
# =============================================================================


def _create_pipeline_config(settings: Mapping[str, Any] | None) -> object:
    from scholar_qa.application.answer import PipelineConfig

    return PipelineConfig(**(settings or {}))


def _create_cache(max_size: int | None, default_ttl: float | None) -> object:
    from scholar_qa.infrastructure.cache import QueryCache

    return QueryCache(max_size=max_size or 512, default_ttl=default_ttl or 3600.0)


def _create_source_adapters(settings: Mapping[str, Any] | None) -> object:
    from scholar_qa.infrastructure.sources import create_source_adapters

    return create_source_adapters(settings or {})


def _create_text_provider(settings: Mapping[str, Any] | None) -> object:
    from scholar_qa.infrastructure.llm import OpenAIProvider

    settings = settings or {}
    return OpenAIProvider(
        api_key=settings.get("api_key"),
        base_url=settings.get("base_url"),
        cheap_model=settings.get("cheap_model") or "gpt-4o-mini",
        premium_model=settings.get("premium_model") or "gpt-4o",
        timeout=settings.get("timeout") or 60.0,
    )


def _create_expander(provider: object, pipeline_config: Any) -> object:
    from scholar_qa.application.search import QueryExpander

    return QueryExpander(provider, length_threshold=pipeline_config.expansion_length_threshold)


def _create_aggregator(adapters: object, expander: object, cache: object, pipeline_config: Any) -> object:
    from scholar_qa.application.search import QueryAggregator

    return QueryAggregator(
        adapters,
        expander,
        cache,
        cache_ttl=pipeline_config.cache_ttl,
        search_timeout=pipeline_config.search_timeout,
    )


def _create_relevance_filter(provider: object) -> object:
    from scholar_qa.application.search import RelevanceFilter

    return RelevanceFilter(provider)


def _create_pipeline(provider: object, aggregator: object, relevance_filter: object, pipeline_config: Any) -> object:
    from scholar_qa.application.answer import ResearchPipeline

    return ResearchPipeline(provider, aggregator, relevance_filter, pipeline_config)


class ApplicationContainer(containers.DeclarativeContainer):
    """Central DI container for Scholar QA.

    Manages creation and lifecycle of all core services:
    - ``cache``: process-wide query result cache
    - ``source_adapters``: enabled academic search adapters
    - ``text_provider``: OpenAI-compatible text generation
    - ``expander`` / ``aggregator`` / ``relevance_filter``: search services
    - ``pipeline``: the research question pipeline
    """

    config = providers.Configuration()

    pipeline_config = providers.Singleton(
        _create_pipeline_config,
        settings=config.pipeline,
    )

    cache = providers.Singleton(
        _create_cache,
        max_size=config.cache.max_size,
        default_ttl=config.pipeline.cache_ttl,
    )

    source_adapters = providers.Singleton(
        _create_source_adapters,
        settings=config.sources,
    )

    text_provider = providers.Singleton(
        _create_text_provider,
        settings=config.openai,
    )

    expander = providers.Singleton(
        _create_expander,
        provider=text_provider,
        pipeline_config=pipeline_config,
    )

    aggregator = providers.Singleton(
        _create_aggregator,
        adapters=source_adapters,
        expander=expander,
        cache=cache,
        pipeline_config=pipeline_config,
    )

    relevance_filter = providers.Singleton(
        _create_relevance_filter,
        provider=text_provider,
    )

    pipeline = providers.Singleton(
        _create_pipeline,
        provider=text_provider,
        aggregator=aggregator,
        relevance_filter=relevance_filter,
        pipeline_config=pipeline_config,
    )


async def close_container(container: ApplicationContainer) -> None:
    """Close the HTTP clients of the source adapters."""
    for adapter in container.source_adapters():
        await adapter.close()
    container.source_adapters.reset()


__all__ = ["ApplicationContainer", "close_container", "load_config_from_env"]
