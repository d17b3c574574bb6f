"""
Configuration for the recipe finder backend.
Reads provider credentials and search tuning from the environment.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv

from app_models import ConfigurationError

logger = logging.getLogger(__name__)

SPOONACULAR = "spoonacular"
EDAMAM = "edamam"
PROVIDERS = (SPOONACULAR, EDAMAM)

# Values shipped in example config files that were never replaced
PLACEHOLDER_PREFIXES = ("YOUR_",)


@dataclass(frozen=True)
class ProviderConfig:
    """Base URL and credentials for one upstream recipe API."""
    name: str
    base_url: str
    credentials: Dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        """
        Check that the base URL and every credential are usable.

        Raises:
            ConfigurationError: If anything is missing or still a placeholder
        """
        if not self.base_url or not self.base_url.startswith(("http://", "https://")):
            raise ConfigurationError(f"{self.name} base URL is missing or invalid")

        for key, value in self.credentials.items():
            if not value:
                raise ConfigurationError(f"{self.name} credential '{key}' is missing")
            if value.startswith(PLACEHOLDER_PREFIXES):
                raise ConfigurationError(f"{self.name} credential '{key}' is still a placeholder")


@dataclass(frozen=True)
class AppConfig:
    """Everything the search core needs, passed in at construction."""
    provider: str
    providers: Dict[str, ProviderConfig]
    max_results: int = 12
    candidate_multiplier: int = 2
    min_used_ratio: float = 0.5
    max_missed_ingredients: int = 3
    used_weight: int = 2
    missed_weight: int = 1
    request_timeout: float = 10

    @property
    def active(self) -> ProviderConfig:
        """Config of the selected provider."""
        try:
            return self.providers[self.provider]
        except KeyError:
            raise ConfigurationError(f"Unknown recipe provider '{self.provider}'")

    @property
    def candidate_count(self) -> int:
        """How many ingredient matches to request before filtering."""
        return self.max_results * self.candidate_multiplier

    def validate(self) -> "AppConfig":
        """
        Validate the active provider and the numeric settings.

        Returns:
            The same config, so calls can be chained

        Raises:
            ConfigurationError: If the config cannot drive a search
        """
        if self.provider not in PROVIDERS:
            raise ConfigurationError(
                f"Unknown recipe provider '{self.provider}'; expected one of {', '.join(PROVIDERS)}"
            )
        self.active.validate()

        if self.max_results < 1:
            raise ConfigurationError("MAX_RESULTS must be at least 1")
        if self.candidate_multiplier < 1:
            raise ConfigurationError("CANDIDATE_MULTIPLIER must be at least 1")
        if not (0 <= self.min_used_ratio <= 1):
            raise ConfigurationError("MIN_USED_RATIO must be between 0 and 1")
        if self.max_missed_ingredients < 0:
            raise ConfigurationError("MAX_MISSED_INGREDIENTS must not be negative")
        if self.request_timeout <= 0:
            raise ConfigurationError("REQUEST_TIMEOUT must be positive")
        return self


def _number(env: Mapping[str, str], name: str, default, cast=int):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got '{raw}'")


def load_config(env: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Build an AppConfig from environment variables.

    Args:
        env: Mapping to read from; defaults to os.environ after loading .env

    Returns:
        Unvalidated AppConfig; call validate() before searching
    """
    if env is None:
        load_dotenv()
        env = os.environ

    providers = {
        SPOONACULAR: ProviderConfig(
            name=SPOONACULAR,
            base_url=env.get("SPOONACULAR_BASE_URL", "https://api.spoonacular.com/recipes").rstrip("/"),
            credentials={"apiKey": env.get("SPOONACULAR_API_KEY", "")},
        ),
        EDAMAM: ProviderConfig(
            name=EDAMAM,
            base_url=env.get("EDAMAM_BASE_URL", "https://api.edamam.com/api/recipes/v2").rstrip("/"),
            credentials={
                "app_id": env.get("EDAMAM_APP_ID", ""),
                "app_key": env.get("EDAMAM_APP_KEY", ""),
            },
        ),
    }

    config = AppConfig(
        provider=env.get("RECIPE_PROVIDER", SPOONACULAR).strip().lower(),
        providers=providers,
        max_results=_number(env, "MAX_RESULTS", 12),
        candidate_multiplier=_number(env, "CANDIDATE_MULTIPLIER", 2),
        min_used_ratio=_number(env, "MIN_USED_RATIO", 0.5, float),
        max_missed_ingredients=_number(env, "MAX_MISSED_INGREDIENTS", 3),
        used_weight=_number(env, "USED_WEIGHT", 2),
        missed_weight=_number(env, "MISSED_WEIGHT", 1),
        request_timeout=_number(env, "REQUEST_TIMEOUT", 10, float),
    )
    logger.info(f"Loaded config for provider '{config.provider}' (max results: {config.max_results})")
    return config
