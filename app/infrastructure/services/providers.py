"""Process-wide providers.

Integration clients and the notification factory call these directly;
FastAPI routes receive the same objects through the aliases in
``infrastructure.services.dependencies``.
"""

from functools import lru_cache

from infrastructure.configuration import Settings


@lru_cache
def get_settings() -> Settings:
    """Relay settings, loaded from the environment once per process.

    Tests override it with ``app.dependency_overrides[get_settings]`` for
    routes, and call ``reset_settings()`` so clients built afterwards see a
    freshly loaded environment.
    """
    return Settings()


def reset_settings() -> None:
    """Drop the cached settings so the next call reloads the environment."""
    get_settings.cache_clear()
