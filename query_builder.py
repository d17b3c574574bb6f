"""
Query builders for the upstream recipe APIs.
Turns search input into provider-specific request descriptors.
Nothing here performs I/O.
"""

from dataclasses import dataclass
from typing import List, Tuple, Any, Sequence
from urllib.parse import urlencode

from app_config import ProviderConfig, SPOONACULAR, EDAMAM
from app_models import InvalidInput, RecipeId

REDACTED = "********"

# Fields requested from Edamam so a search hit carries what a result card needs
EDAMAM_FIELDS = (
    "uri", "label", "image", "totalTime", "yield", "calories",
    "ingredientLines", "url", "source", "cuisineType", "dietLabels", "dishType",
)


@dataclass(frozen=True)
class RequestDescriptor:
    """One GET request: endpoint path plus ordered query parameters."""
    provider: str
    base_url: str
    endpoint: str
    params: Tuple[Tuple[str, Any], ...]
    credential_keys: Tuple[str, ...] = ()

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.endpoint}"

    def param(self, key: str) -> Any:
        """First value of a parameter, or None."""
        for name, value in self.params:
            if name == key:
                return value
        return None

    def log_safe(self) -> str:
        """Full URL with credential values replaced by a fixed placeholder."""
        params = [
            (key, REDACTED if key in self.credential_keys else value)
            for key, value in self.params
        ]
        return f"{self.url}?{urlencode(params, safe='*')}"

    def __repr__(self) -> str:
        return f"RequestDescriptor({self.provider} {self.log_safe()})"


def _flag(value: bool) -> str:
    return "true" if value else "false"


def _require_query(query: str) -> str:
    text = (query or "").strip()
    if not text:
        raise InvalidInput("Search query must not be empty", "query")
    return text


def _require_ingredients(ingredients: Sequence[str]) -> List[str]:
    items = [i for i in ingredients or [] if i]
    if not items:
        raise InvalidInput("At least one ingredient is required", "ingredients")
    return items


class SpoonacularQueryBuilder:
    """Requests for the Spoonacular recipes API."""

    INGREDIENT_SEPARATOR = ",+"

    def __init__(self, provider: ProviderConfig):
        self.provider = provider
        self.api_key = provider.credentials.get("apiKey", "")

    def _request(self, endpoint: str, params: List[Tuple[str, Any]]) -> RequestDescriptor:
        params = params + [("apiKey", self.api_key)]
        return RequestDescriptor(
            provider=SPOONACULAR,
            base_url=self.provider.base_url,
            endpoint=endpoint,
            params=tuple(params),
            credential_keys=("apiKey",),
        )

    def search_by_name(self, query: str, number: int) -> RequestDescriptor:
        return self._request("/complexSearch", [
            ("query", _require_query(query)),
            ("number", number),
            ("addRecipeInformation", _flag(True)),
            ("fillIngredients", _flag(True)),
            ("addRecipeNutrition", _flag(True)),
        ])

    def search_by_ingredients(self, ingredients: Sequence[str], number: int) -> RequestDescriptor:
        """
        Match lookup by ingredients.

        Args:
            ingredients: Trimmed, lower-cased, de-duplicated ingredients
            number: Candidates to request, already multiplied over the result cap

        Returns:
            Request for the findByIngredients endpoint
        """
        items = _require_ingredients(ingredients)
        return self._request("/findByIngredients", [
            ("ingredients", self.INGREDIENT_SEPARATOR.join(items)),
            ("number", number),
            # 1 = maximize used ingredients, then minimize missing ones
            ("ranking", 1),
            ("ignorePantry", _flag(True)),
        ])

    def information_bulk(self, recipe_ids: Sequence[RecipeId]) -> RequestDescriptor:
        if not recipe_ids:
            raise InvalidInput("At least one recipe id is required", "ids")
        return self._request("/informationBulk", [
            ("ids", ",".join(str(i) for i in recipe_ids)),
            ("includeNutrition", _flag(True)),
        ])

    def information(self, recipe_id: RecipeId) -> RequestDescriptor:
        return self._request(f"/{recipe_id}/information", [
            ("includeNutrition", _flag(True)),
        ])


class EdamamQueryBuilder:
    """Requests for the Edamam Recipe Search API v2."""

    INGREDIENT_SEPARATOR = " "

    def __init__(self, provider: ProviderConfig):
        self.provider = provider
        self.app_id = provider.credentials.get("app_id", "")
        self.app_key = provider.credentials.get("app_key", "")

    def _request(self, endpoint: str, params: List[Tuple[str, Any]], with_fields: bool = True) -> RequestDescriptor:
        params = [("type", "public")] + params + [("app_id", self.app_id), ("app_key", self.app_key)]
        if with_fields:
            params += [("field", name) for name in EDAMAM_FIELDS]
        return RequestDescriptor(
            provider=EDAMAM,
            base_url=self.provider.base_url,
            endpoint=endpoint,
            params=tuple(params),
            credential_keys=("app_id", "app_key"),
        )

    def search_by_name(self, query: str, number: int = None) -> RequestDescriptor:
        # Edamam has no result count parameter; the normalizer applies the cap
        return self._request("", [("q", _require_query(query))])

    def search_by_ingredients(self, ingredients: Sequence[str], number: int = None) -> RequestDescriptor:
        items = _require_ingredients(ingredients)
        return self._request("", [("q", self.INGREDIENT_SEPARATOR.join(items))])

    def recipe(self, recipe_id: RecipeId) -> RequestDescriptor:
        return self._request(f"/{recipe_id}", [], with_fields=False)
