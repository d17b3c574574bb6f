"""
Service layer for the upstream recipe APIs.
Each provider implements name search, ingredient search and detail lookup;
RecipeSearchService picks one at startup and runs searches against it.
"""

import logging
from abc import ABC, abstractmethod
from itertools import count
from typing import List, Any, Optional, Sequence

import requests

from app_config import AppConfig, SPOONACULAR, EDAMAM
from app_models import (
    Recipe, RecipeId, SearchQuery, SearchOutcome, ProviderError, ConfigurationError,
    NAME_MODE, INGREDIENTS_MODE,
)
from query_builder import RequestDescriptor, SpoonacularQueryBuilder, EdamamQueryBuilder
import normalizer

logger = logging.getLogger(__name__)


def fetch_json(request: RequestDescriptor, timeout: float) -> Any:
    """
    Execute a GET request and decode its JSON body.

    Args:
        request: Request descriptor from a query builder
        timeout: Seconds to wait for the provider

    Returns:
        Decoded JSON payload

    Raises:
        ProviderError: On transport failure, non-2xx status or invalid JSON
    """
    logger.info(f"Fetching from: {request.log_safe()}")
    try:
        response = requests.get(request.url, params=list(request.params), timeout=timeout)
        response.raise_for_status()
    except requests.exceptions.HTTPError as e:
        status = e.response.status_code if e.response is not None else None
        detail = _error_detail(e.response)
        logger.error(f"{request.provider} HTTP error {status}: {detail}")
        raise ProviderError(f"Recipe service returned an error ({status}). Please try again.", cause=e)
    except requests.exceptions.RequestException as e:
        logger.error(f"{request.provider} request failed: {type(e).__name__}")
        raise ProviderError("Could not reach the recipe service. Please try again.", cause=e)

    try:
        return response.json()
    except ValueError as e:
        logger.error(f"{request.provider} returned a body that is not JSON")
        raise ProviderError("Recipe service returned an unreadable response.", cause=e)


def _error_detail(response: Optional[requests.Response]) -> str:
    if response is None:
        return "no response"
    try:
        body = response.json()
    except ValueError:
        return response.reason or "Unknown API error"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason or "Unknown API error"


class RecipeProvider(ABC):
    """One upstream recipe API."""

    name = ""

    def __init__(self, config: AppConfig):
        self.config = config
        self.timeout = config.request_timeout

    def _fetch(self, request: RequestDescriptor) -> Any:
        return fetch_json(request, self.timeout)

    def _filter(self, candidates, ingredients: Sequence[str]):
        return normalizer.filter_candidates(
            candidates,
            requested_count=len(ingredients),
            cap=self.config.max_results,
            min_used_ratio=self.config.min_used_ratio,
            max_missed=self.config.max_missed_ingredients,
        )

    def _rank(self, recipes: List[Recipe]) -> List[Recipe]:
        return normalizer.rank(
            recipes,
            used_weight=self.config.used_weight,
            missed_weight=self.config.missed_weight,
        )

    @abstractmethod
    def search_by_name(self, query: str) -> List[Recipe]:
        """Recipes whose name matches the query."""

    @abstractmethod
    def search_by_ingredients(self, ingredients: Sequence[str]) -> List[Recipe]:
        """Recipes ranked by how well they use the given ingredients."""

    @abstractmethod
    def fetch_details(self, recipe_id: RecipeId) -> Optional[Recipe]:
        """Full detail for one recipe, or None if the provider has no usable record."""


class SpoonacularService(RecipeProvider):
    """Spoonacular recipes API."""

    name = SPOONACULAR

    def __init__(self, config: AppConfig):
        super().__init__(config)
        self.builder = SpoonacularQueryBuilder(config.providers[SPOONACULAR])

    def search_by_name(self, query: str) -> List[Recipe]:
        data = self._fetch(self.builder.search_by_name(query, self.config.max_results))
        recipes = normalizer.normalize_search_results(data, cap=self.config.max_results)
        logger.info(f"Spoonacular found {len(recipes)} recipes for '{query}'")
        return recipes

    def search_by_ingredients(self, ingredients: Sequence[str]) -> List[Recipe]:
        """
        Match lookup, filter, bulk detail lookup, then rank.

        Args:
            ingredients: Trimmed, lower-cased, de-duplicated ingredients

        Returns:
            Recipes sorted by match score, highest first

        Raises:
            ProviderError: If either request fails
        """
        # Step 1: over-fetch lightweight matches so filtering still fills a page
        data = self._fetch(self.builder.search_by_ingredients(ingredients, self.config.candidate_count))
        candidates = normalizer.normalize_candidates(data)
        logger.info(f"Initial ingredient search returned {len(candidates)} recipes")
        if not candidates:
            return []

        # Step 2: filter
        survivors = self._filter(candidates, ingredients)
        if not survivors:
            return []

        # Step 3: bulk detail for exactly the survivors
        details_data = self._fetch(self.builder.information_bulk([c.id for c in survivors]))
        details = normalizer.normalize_details(details_data)
        logger.info(f"Retrieved full details for {len(details)} recipes")

        # Step 4: merge and rank
        return self._rank(normalizer.merge_details(survivors, details))

    def fetch_details(self, recipe_id: RecipeId) -> Optional[Recipe]:
        data = self._fetch(self.builder.information(recipe_id))
        return normalizer.normalize_recipe(data)


class EdamamService(RecipeProvider):
    """
    Edamam Recipe Search API v2.
    Search hits already carry full detail, so ingredient mode needs one request.
    """

    name = EDAMAM

    def __init__(self, config: AppConfig):
        super().__init__(config)
        self.builder = EdamamQueryBuilder(config.providers[EDAMAM])

    def search_by_name(self, query: str) -> List[Recipe]:
        data = self._fetch(self.builder.search_by_name(query))
        recipes = normalizer.normalize_edamam_hits(data, cap=self.config.max_results)
        logger.info(f"Edamam found {len(recipes)} recipes for '{query}'")
        return recipes

    def search_by_ingredients(self, ingredients: Sequence[str]) -> List[Recipe]:
        data = self._fetch(self.builder.search_by_ingredients(ingredients))
        candidates = normalizer.edamam_candidates(data, ingredients)
        logger.info(f"Edamam ingredient search returned {len(candidates)} recipes")
        survivors = self._filter(candidates, ingredients)
        if not survivors:
            return []
        details = normalizer.normalize_edamam_hits(data)
        return self._rank(normalizer.merge_details(survivors, _only(details, survivors)))

    def fetch_details(self, recipe_id: RecipeId) -> Optional[Recipe]:
        data = self._fetch(self.builder.recipe(recipe_id))
        return normalizer.normalize_edamam_detail(data)


def _only(recipes: List[Recipe], candidates) -> List[Recipe]:
    """Recipes whose id belongs to a candidate, in candidate order."""
    by_id = {str(r.id): r for r in recipes}
    return [by_id[str(c.id)] for c in candidates if str(c.id) in by_id]


PROVIDER_CLASSES = {
    SPOONACULAR: SpoonacularService,
    EDAMAM: EdamamService,
}


def create_provider(config: AppConfig) -> RecipeProvider:
    """
    Validate the config and build the provider it selects.

    Raises:
        ConfigurationError: If the config is incomplete or names an unknown provider
    """
    config.validate()
    provider_class = PROVIDER_CLASSES.get(config.provider)
    if provider_class is None:
        raise ConfigurationError(f"Unknown recipe provider '{config.provider}'")
    return provider_class(config)


class RecipeSearchService:
    """High-level search orchestration; holds only the latest result set."""

    def __init__(self, provider: RecipeProvider):
        """Initialize with the provider selected at startup."""
        self.provider = provider
        self._sequence = count(1)
        self.last_outcome: Optional[SearchOutcome] = None

    @classmethod
    def from_config(cls, config: AppConfig) -> "RecipeSearchService":
        return cls(create_provider(config))

    def search(self, query: SearchQuery) -> SearchOutcome:
        """
        Run one search and replace the stored result set.

        Args:
            query: Validated search input

        Returns:
            SearchOutcome with status "ok" or "empty"

        Raises:
            ProviderError: If the provider fails; the stored result set is kept
        """
        sequence = next(self._sequence)
        logger.info(f"Search #{sequence} ({query.mode}) via {self.provider.name}: {query.display}")

        if query.mode == INGREDIENTS_MODE:
            recipes = self.provider.search_by_ingredients(query.ingredients)
        elif query.mode == NAME_MODE:
            recipes = self.provider.search_by_name(query.query)
        else:
            raise ValueError(f"Unsupported search mode: {query.mode}")

        if not recipes:
            logger.warning(f"No recipes found for search #{sequence}")

        outcome = SearchOutcome.from_recipes(recipes, query=query, sequence=sequence)
        self.last_outcome = outcome
        return outcome

    def get_details(self, recipe_id: RecipeId) -> Optional[Recipe]:
        """
        Detail lookup for the recipe modal.
        Falls back to the latest result set if the provider has no usable record.
        """
        recipe = self.provider.fetch_details(recipe_id)
        if recipe is None and self.last_outcome is not None:
            recipe = self.last_outcome.find(recipe_id)
        return recipe
