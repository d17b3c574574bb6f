"""
Data models and validation for the recipe finder.
Provider-agnostic recipe records, search input and the error types.
"""

from dataclasses import dataclass, replace
from typing import List, Optional, Dict, Any, Tuple, Union

RecipeId = Union[int, str]

NAME_MODE = "name"
INGREDIENTS_MODE = "ingredients"

STATUS_OK = "ok"
STATUS_EMPTY = "empty"
STATUS_ERROR = "error"


class ValidationError(Exception):
    """Custom exception for validation errors."""
    def __init__(self, message: str, field: str = None):
        self.message = message
        self.field = field
        super().__init__(self.message)


class InvalidInput(ValidationError):
    """Search input that cannot be turned into a provider request."""
    pass


class APIError(Exception):
    """Base exception for API errors."""
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class ConfigurationError(APIError):
    """Missing or invalid provider credentials, base URL or settings."""
    def __init__(self, message: str):
        super().__init__(message, status_code=500)


class ProviderError(APIError):
    """
    Upstream recipe API failure: non-2xx status, transport error or bad JSON.
    The original exception is kept on `cause` for logs, never shown to users.
    """
    def __init__(self, message: str, cause: Optional[BaseException] = None, status_code: int = 502):
        self.cause = cause
        super().__init__(message, status_code=status_code)


@dataclass(frozen=True)
class InstructionStep:
    """One numbered step of a structured instruction list."""
    number: int
    step: str

    def to_dict(self) -> Dict[str, Any]:
        return {"number": self.number, "step": self.step}


@dataclass(frozen=True)
class RecipeCandidate:
    """Lightweight ingredient match, before detail enrichment."""
    id: RecipeId
    title: Optional[str] = None
    image: Optional[str] = None
    used_ingredient_count: int = 0
    missed_ingredient_count: int = 0
    used_ingredients: Tuple[str, ...] = ()
    missed_ingredients: Tuple[str, ...] = ()

    def used_ratio(self, requested_count: int) -> float:
        """Share of the requested ingredients this recipe uses."""
        if requested_count <= 0:
            return 0.0
        return self.used_ingredient_count / requested_count


@dataclass(frozen=True)
class Recipe:
    """Normalized recipe, identical in shape for every provider."""
    id: RecipeId
    title: str
    image: Optional[str] = None
    ready_in_minutes: Optional[int] = None
    servings: Optional[int] = None
    calories: Optional[int] = None
    ingredients: Tuple[str, ...] = ()
    summary: Optional[str] = None
    instructions: Optional[str] = None
    analyzed_instructions: Tuple[InstructionStep, ...] = ()
    source_url: Optional[str] = None
    source_name: Optional[str] = None
    diets: Tuple[str, ...] = ()
    dish_types: Tuple[str, ...] = ()
    cuisine_type: Tuple[str, ...] = ()
    # Ingredient-mode only
    used_ingredient_count: Optional[int] = None
    missed_ingredient_count: Optional[int] = None
    used_ingredients: Optional[Tuple[str, ...]] = None
    missed_ingredients: Optional[Tuple[str, ...]] = None
    match_score: Optional[int] = None

    def with_match(self, candidate: Optional[RecipeCandidate]) -> "Recipe":
        """
        Attach ingredient match data from a candidate.

        Args:
            candidate: Matching candidate, or None when no match exists

        Returns:
            New Recipe; counts default to 0 and lists to empty without a candidate
        """
        if candidate is None:
            return replace(
                self,
                used_ingredient_count=0,
                missed_ingredient_count=0,
                used_ingredients=(),
                missed_ingredients=(),
            )
        return replace(
            self,
            used_ingredient_count=candidate.used_ingredient_count,
            missed_ingredient_count=candidate.missed_ingredient_count,
            used_ingredients=candidate.used_ingredients,
            missed_ingredients=candidate.missed_ingredients,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        return {
            "id": self.id,
            "title": self.title,
            "image": self.image,
            "readyInMinutes": self.ready_in_minutes,
            "totalTime": self.ready_in_minutes,
            "servings": self.servings,
            "calories": self.calories,
            "ingredients": list(self.ingredients),
            "summary": self.summary,
            "instructions": self.instructions,
            "analyzedInstructions": [s.to_dict() for s in self.analyzed_instructions],
            "sourceUrl": self.source_url,
            "sourceName": self.source_name,
            "diets": list(self.diets),
            "dishTypes": list(self.dish_types),
            "cuisineType": list(self.cuisine_type),
            "usedIngredientCount": self.used_ingredient_count,
            "missedIngredientCount": self.missed_ingredient_count,
            "usedIngredients": list(self.used_ingredients) if self.used_ingredients is not None else None,
            "missedIngredients": list(self.missed_ingredients) if self.missed_ingredients is not None else None,
            "matchScore": self.match_score,
        }


class IngredientList:
    """
    Ingredients collected for an ingredient search.
    Entries are trimmed and lower-cased; case-insensitive duplicates are refused.
    """

    def __init__(self, items: Optional[List[str]] = None):
        self._items: List[str] = []
        for item in items or []:
            self.add(item)

    @staticmethod
    def _normalize(ingredient: Any) -> str:
        if ingredient is None:
            return ""
        return str(ingredient).strip().lower()

    def add(self, ingredient: Any) -> bool:
        """Add an ingredient; False if empty or already present."""
        normalized = self._normalize(ingredient)
        if not normalized or normalized in self._items:
            return False
        self._items.append(normalized)
        return True

    def remove(self, ingredient: Any) -> bool:
        """Remove an ingredient; False if it was not in the list."""
        normalized = self._normalize(ingredient)
        if normalized not in self._items:
            return False
        self._items.remove(normalized)
        return True

    def clear(self) -> None:
        self._items = []

    @property
    def items(self) -> Tuple[str, ...]:
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items)


@dataclass(frozen=True)
class SearchQuery:
    """Validated user intent: a recipe name or a set of ingredients."""
    mode: str
    query: Optional[str] = None
    ingredients: Tuple[str, ...] = ()

    @staticmethod
    def by_name(query: str) -> "SearchQuery":
        text = (query or "").strip()
        if not text:
            raise InvalidInput("Please enter a recipe name to search.", "query")
        return SearchQuery(mode=NAME_MODE, query=text)

    @staticmethod
    def by_ingredients(ingredients: List[str]) -> "SearchQuery":
        collected = IngredientList(ingredients)
        if not len(collected):
            raise InvalidInput("Please add at least one ingredient to search.", "ingredients")
        return SearchQuery(mode=INGREDIENTS_MODE, ingredients=collected.items)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "SearchQuery":
        """
        Create SearchQuery from a request body with full validation.

        Args:
            data: Dictionary from JSON request

        Returns:
            SearchQuery with trimmed, de-duplicated input

        Raises:
            InvalidInput: If the mode or the input is unusable
        """
        if not isinstance(data, dict):
            raise InvalidInput("Request body must be a JSON object", "body")

        mode = str(data.get("mode", NAME_MODE)).strip().lower()
        # The browser toggle calls name search "recipe"
        if mode == "recipe":
            mode = NAME_MODE

        if mode == NAME_MODE:
            query = data.get("query")
            if query is not None and not isinstance(query, str):
                raise InvalidInput("query must be a string", "query")
            return SearchQuery.by_name(query)

        if mode == INGREDIENTS_MODE:
            raw = data.get("ingredients")
            if raw is None:
                raw = data.get("query", "")
            if isinstance(raw, str):
                raw = raw.split(",")
            if not isinstance(raw, list):
                raise InvalidInput("ingredients must be an array or a comma-separated string", "ingredients")
            return SearchQuery.by_ingredients(raw)

        raise InvalidInput(f"Invalid search mode '{mode}': must be 'name' or 'ingredients'", "mode")

    @property
    def display(self) -> str:
        """Text shown back to the user, e.g. in a no-results message."""
        if self.mode == INGREDIENTS_MODE:
            return ",".join(self.ingredients)
        return self.query or ""


@dataclass(frozen=True)
class SearchOutcome:
    """Result of one search call; replaces any global loading/status flag."""
    status: str
    query: Optional[SearchQuery] = None
    recipes: Tuple[Recipe, ...] = ()
    error: Optional[str] = None
    sequence: int = 0

    @staticmethod
    def from_recipes(recipes: List[Recipe], query: Optional[SearchQuery] = None, sequence: int = 0) -> "SearchOutcome":
        status = STATUS_OK if recipes else STATUS_EMPTY
        return SearchOutcome(status=status, query=query, recipes=tuple(recipes), sequence=sequence)

    @staticmethod
    def failed(message: str, query: Optional[SearchQuery] = None, sequence: int = 0) -> "SearchOutcome":
        return SearchOutcome(status=STATUS_ERROR, query=query, error=message, sequence=sequence)

    @property
    def ok(self) -> bool:
        return self.status != STATUS_ERROR

    def find(self, recipe_id: RecipeId) -> Optional[Recipe]:
        """Look up a recipe of this result set by id (ids compared as strings)."""
        for recipe in self.recipes:
            if str(recipe.id) == str(recipe_id):
                return recipe
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        return {
            "success": self.ok,
            "status": self.status,
            "mode": self.query.mode if self.query else None,
            "query": self.query.display if self.query else None,
            "sequence": self.sequence,
            "recipe_count": len(self.recipes),
            "recipes": [r.to_dict() for r in self.recipes],
            "error": self.error,
        }
