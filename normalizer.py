"""
Result normalization and ingredient-match ranking.

Converts raw provider JSON into provider-agnostic Recipe records. Every
function here is pure: the same payload always gives the same output, and a
missing or malformed results array gives an empty list instead of raising.
"""

import math
import logging
from dataclasses import replace
from typing import List, Dict, Any, Optional, Sequence, Iterable

from app_models import Recipe, RecipeCandidate, InstructionStep

logger = logging.getLogger(__name__)

EDAMAM_RECIPE_MARKER = "#recipe_"

# Ingredients Edamam recipes nearly always list; kept out of the missing count
PANTRY_STAPLES = ("salt", "pepper", "water", "oil", "sugar", "ice")


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives, as the browser's Math.round does."""
    return int(math.floor(value + 0.5))


def _int_or_none(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return round_half_up(number)


def _str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _strings(values: Any) -> tuple:
    if not isinstance(values, list):
        return ()
    return tuple(str(v) for v in values if v is not None and str(v).strip())


def _list(payload: Any, key: Optional[str] = None) -> List[Any]:
    """Top-level array of a payload, or [] when it is missing or not an array."""
    if key is not None:
        payload = payload.get(key) if isinstance(payload, dict) else None
    return payload if isinstance(payload, list) else []


def _ingredient_lines(entries: Any) -> tuple:
    """Human-readable lines from Spoonacular ingredient objects."""
    lines = []
    for entry in _list(entries):
        if isinstance(entry, dict):
            text = entry.get("original") or entry.get("originalString") or entry.get("name")
            if text:
                lines.append(str(text))
        elif isinstance(entry, str) and entry.strip():
            lines.append(entry)
    return tuple(lines)


def extract_calories(nutrition: Any) -> Optional[int]:
    """
    Find the "Calories" entry in a nutrient breakdown and round it.

    Args:
        nutrition: Spoonacular nutrition object ({"nutrients": [...]})

    Returns:
        Rounded calories, or None when there is no Calories nutrient
    """
    if not isinstance(nutrition, dict):
        return None
    for nutrient in _list(nutrition, "nutrients"):
        if isinstance(nutrient, dict) and nutrient.get("name") == "Calories":
            return _int_or_none(nutrient.get("amount"))
    return None


def _analyzed_steps(blocks: Any) -> tuple:
    steps = []
    for block in _list(blocks):
        if not isinstance(block, dict):
            continue
        for step in _list(block, "steps"):
            if isinstance(step, dict) and _str_or_none(step.get("step")):
                number = _int_or_none(step.get("number")) or len(steps) + 1
                steps.append(InstructionStep(number=number, step=step["step"].strip()))
    return tuple(steps)


def normalize_recipe(raw: Any) -> Optional[Recipe]:
    """
    Map one Spoonacular recipe object (search result or detail) to a Recipe.

    Returns None when the entry has no id or no title.
    """
    if not isinstance(raw, dict):
        return None
    recipe_id = raw.get("id")
    title = _str_or_none(raw.get("title"))
    if recipe_id is None or title is None:
        logger.debug(f"Skipping recipe without id or title: {recipe_id!r}")
        return None

    return Recipe(
        id=recipe_id,
        title=title,
        image=_str_or_none(raw.get("image")),
        ready_in_minutes=_int_or_none(raw.get("readyInMinutes")),
        servings=_int_or_none(raw.get("servings")),
        calories=extract_calories(raw.get("nutrition")),
        ingredients=_ingredient_lines(raw.get("extendedIngredients")),
        summary=_str_or_none(raw.get("summary")),
        instructions=_str_or_none(raw.get("instructions")),
        analyzed_instructions=_analyzed_steps(raw.get("analyzedInstructions")),
        source_url=_str_or_none(raw.get("sourceUrl")),
        source_name=_str_or_none(raw.get("sourceName")),
        diets=_strings(raw.get("diets")),
        dish_types=_strings(raw.get("dishTypes")),
        cuisine_type=_strings(raw.get("cuisines")),
    )


def _normalize_all(entries: Iterable[Any], normalize, cap: Optional[int] = None) -> List[Recipe]:
    recipes = []
    for entry in entries:
        recipe = normalize(entry)
        if recipe is not None:
            recipes.append(recipe)
    if cap is not None:
        recipes = recipes[:cap]
    return recipes


def normalize_search_results(payload: Any, cap: Optional[int] = None) -> List[Recipe]:
    """Spoonacular name search ({"results": [...]}) to Recipes."""
    return _normalize_all(_list(payload, "results"), normalize_recipe, cap)


def normalize_details(payload: Any) -> List[Recipe]:
    """Spoonacular informationBulk (a bare array) to Recipes, order kept."""
    return _normalize_all(_list(payload), normalize_recipe)


def _candidate_from_spoonacular(raw: Any) -> Optional[RecipeCandidate]:
    if not isinstance(raw, dict) or raw.get("id") is None:
        return None
    return RecipeCandidate(
        id=raw["id"],
        title=_str_or_none(raw.get("title")),
        image=_str_or_none(raw.get("image")),
        used_ingredient_count=_int_or_none(raw.get("usedIngredientCount")) or 0,
        missed_ingredient_count=_int_or_none(raw.get("missedIngredientCount")) or 0,
        used_ingredients=_ingredient_lines(raw.get("usedIngredients")),
        missed_ingredients=_ingredient_lines(raw.get("missedIngredients")),
    )


def normalize_candidates(payload: Any) -> List[RecipeCandidate]:
    """Spoonacular findByIngredients (a bare array) to candidates."""
    candidates = []
    for entry in _list(payload):
        candidate = _candidate_from_spoonacular(entry)
        if candidate is not None:
            candidates.append(candidate)
    return candidates


def keep_candidate(
    candidate: RecipeCandidate,
    requested_count: int,
    min_used_ratio: float = 0.5,
    max_missed: int = 3,
) -> bool:
    """
    Decide whether an ingredient match is worth enriching.

    A single-ingredient search can only pass on the used ratio. With more
    than one ingredient, a recipe missing few ingredients also passes.
    """
    if candidate.used_ratio(requested_count) >= min_used_ratio:
        return True
    return requested_count > 1 and candidate.missed_ingredient_count <= max_missed


def filter_candidates(
    candidates: Sequence[RecipeCandidate],
    requested_count: int,
    cap: int,
    min_used_ratio: float = 0.5,
    max_missed: int = 3,
) -> List[RecipeCandidate]:
    """
    Keep matching candidates in provider order, truncated to the result cap.

    Args:
        candidates: Candidates in the provider's order
        requested_count: Number of ingredients the user asked for
        cap: Maximum candidates to keep
        min_used_ratio: Used/requested ratio that always passes
        max_missed: Missed count that passes for multi-ingredient searches

    Returns:
        Surviving candidates
    """
    kept = [
        c for c in candidates
        if keep_candidate(c, requested_count, min_used_ratio, max_missed)
    ]
    logger.info(f"{len(kept)} of {len(candidates)} candidates passed the ingredient filter")
    return kept[:cap]


def _recipe_from_candidate(candidate: RecipeCandidate) -> Optional[Recipe]:
    if candidate.title is None:
        return None
    return Recipe(
        id=candidate.id,
        title=candidate.title,
        image=candidate.image,
        ingredients=candidate.used_ingredients + candidate.missed_ingredients,
    ).with_match(candidate)


def merge_details(candidates: Sequence[RecipeCandidate], details: Sequence[Recipe]) -> List[Recipe]:
    """
    Attach candidate match data to detailed recipes by id.

    Detailed recipes keep their enrichment order; one without a candidate
    gets zero counts. A candidate without a detail record is appended as a
    lightweight recipe built from the candidate itself.
    """
    by_id: Dict[str, RecipeCandidate] = {str(c.id): c for c in candidates}
    merged = []
    seen = set()
    for detail in details:
        key = str(detail.id)
        merged.append(detail.with_match(by_id.get(key)))
        seen.add(key)

    for candidate in candidates:
        if str(candidate.id) in seen:
            continue
        logger.warning(f"No detail returned for recipe {candidate.id}; using match data only")
        fallback = _recipe_from_candidate(candidate)
        if fallback is not None:
            merged.append(fallback)
    return merged


def match_score(recipe: Recipe, used_weight: int = 2, missed_weight: int = 1) -> int:
    """Used ingredients count twice as much as missing ones by default."""
    used = recipe.used_ingredient_count or 0
    missed = recipe.missed_ingredient_count or 0
    return used * used_weight - missed * missed_weight


def rank(recipes: Sequence[Recipe], used_weight: int = 2, missed_weight: int = 1) -> List[Recipe]:
    """Score every recipe and sort by score, highest first; ties keep their order."""
    scored = [
        replace(r, match_score=match_score(r, used_weight, missed_weight))
        for r in recipes
    ]
    return sorted(scored, key=lambda r: -r.match_score)


# --- Edamam ---

def edamam_recipe_id(uri: Any) -> Optional[str]:
    """Recipe id from an Edamam uri (the part after '#recipe_')."""
    if not isinstance(uri, str) or EDAMAM_RECIPE_MARKER not in uri:
        return None
    recipe_id = uri.split(EDAMAM_RECIPE_MARKER, 1)[1].strip()
    return recipe_id or None


def normalize_edamam_recipe(raw: Any) -> Optional[Recipe]:
    """Map one Edamam recipe object to a Recipe; calories are per serving."""
    if not isinstance(raw, dict):
        return None
    recipe_id = edamam_recipe_id(raw.get("uri"))
    title = _str_or_none(raw.get("label"))
    if recipe_id is None or title is None:
        return None

    servings = _int_or_none(raw.get("yield")) or None
    calories = None
    total = raw.get("calories")
    if isinstance(total, (int, float)) and not isinstance(total, bool):
        calories = round_half_up(total / servings) if servings else round_half_up(total)

    return Recipe(
        id=recipe_id,
        title=title,
        image=_str_or_none(raw.get("image")),
        # Edamam reports 0 when the time is unknown
        ready_in_minutes=_int_or_none(raw.get("totalTime")) or None,
        servings=servings,
        calories=calories,
        ingredients=_strings(raw.get("ingredientLines")),
        source_url=_str_or_none(raw.get("url")),
        source_name=_str_or_none(raw.get("source")),
        diets=_strings(raw.get("dietLabels")),
        dish_types=_strings(raw.get("dishType")),
        cuisine_type=_strings(raw.get("cuisineType")),
    )


def _edamam_hit_recipes(payload: Any) -> List[Any]:
    return [hit.get("recipe") for hit in _list(payload, "hits") if isinstance(hit, dict)]


def normalize_edamam_hits(payload: Any, cap: Optional[int] = None) -> List[Recipe]:
    """Edamam search ({"hits": [{"recipe": {...}}]}) to Recipes."""
    return _normalize_all(_edamam_hit_recipes(payload), normalize_edamam_recipe, cap)


def normalize_edamam_detail(payload: Any) -> Optional[Recipe]:
    """Edamam single-recipe lookup ({"recipe": {...}}) to a Recipe."""
    if not isinstance(payload, dict):
        return None
    return normalize_edamam_recipe(payload.get("recipe"))


def _is_pantry(line: str) -> bool:
    words = line.lower().replace(",", " ").split()
    return any(staple in words for staple in PANTRY_STAPLES)


def edamam_candidates(payload: Any, ingredients: Sequence[str]) -> List[RecipeCandidate]:
    """
    Derive ingredient matches from Edamam hits, which carry no match counts.

    A requested ingredient is used when any ingredient line mentions it.
    Lines mentioning no requested ingredient are missing, unless they are
    pantry staples.
    """
    requested = [i.lower() for i in ingredients if i]
    candidates = []
    for recipe in normalize_edamam_hits(payload):
        used_lines, missed_lines = [], []
        used = set()
        for line in recipe.ingredients:
            lowered = line.lower()
            hits = [i for i in requested if i in lowered]
            if hits:
                used.update(hits)
                used_lines.append(line)
            elif not _is_pantry(line):
                missed_lines.append(line)
        candidates.append(RecipeCandidate(
            id=recipe.id,
            title=recipe.title,
            image=recipe.image,
            used_ingredient_count=len(used),
            missed_ingredient_count=len(missed_lines),
            used_ingredients=tuple(used_lines),
            missed_ingredients=tuple(missed_lines),
        ))
    return candidates
