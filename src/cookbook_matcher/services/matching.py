"""Ingredient availability matching and recipe scoring."""

from collections.abc import Sequence
from dataclasses import dataclass

from cookbook_matcher.domain.ingredients import (
    IngredientMatch,
    IngredientRef,
    InventoryItem,
    MatchOutcome,
)
from cookbook_matcher.domain.recipes import Recipe
from cookbook_matcher.services.similarity import similarity
from cookbook_matcher.services.text import normalize_ingredient_name

DEFAULT_THRESHOLD = 85.0
EXACT_SIMILARITY = 100.0
SUBSTRING_SIMILARITY = 95.0

_NO_MATCH = IngredientMatch(matched=False, item=None, similarity=0.0)


def match_ingredient(
    name: str,
    inventory: Sequence[InventoryItem],
    threshold: float = DEFAULT_THRESHOLD,
    *,
    prefer_best: bool = False,
) -> IngredientMatch:
    """Decide whether an ingredient is available in the inventory.

    Each inventory item is tried in order against three tiers: exact equality
    of the normalized names, substring containment in either direction, and
    an edit-distance similarity of at least ``threshold``. By default the
    first item that passes any tier is returned. With ``prefer_best`` every
    item is scored and the highest similarity wins, ties going to the earlier
    item.
    """
    normalized = [(item, normalize_ingredient_name(item.name)) for item in inventory]
    return _match_normalized(
        normalize_ingredient_name(name), normalized, threshold, prefer_best
    )


def calculate_match(
    ingredients: Sequence[IngredientRef],
    inventory: Sequence[InventoryItem],
    threshold: float = DEFAULT_THRESHOLD,
    *,
    prefer_best: bool = False,
) -> MatchOutcome:
    """Partition a recipe's ingredients into available and missing."""
    normalized = [(item, normalize_ingredient_name(item.name)) for item in inventory]
    return _calculate_normalized(ingredients, normalized, threshold, prefer_best)


@dataclass(frozen=True)
class RankedRecipe:
    """A recipe with its match outcome."""

    recipe: Recipe
    outcome: MatchOutcome


@dataclass(frozen=True)
class RankedPage:
    """One page of recipes ordered by match percentage."""

    items: list[RankedRecipe]
    total: int
    offset: int
    limit: int

    @property
    def has_more(self) -> bool:
        return self.offset + self.limit < self.total


def rank_recipes(  # noqa: PLR0913
    recipes: Sequence[Recipe],
    inventory: Sequence[InventoryItem],
    *,
    min_percentage: int = 0,
    offset: int = 0,
    limit: int = 20,
    threshold: float = DEFAULT_THRESHOLD,
    prefer_best: bool = False,
) -> RankedPage:
    """Score many recipes, keep those above ``min_percentage`` and paginate.

    Recipes without ingredients are skipped. Sorting is stable, so recipes
    with the same percentage keep their input order.
    """
    normalized = [(item, normalize_ingredient_name(item.name)) for item in inventory]
    ranked: list[RankedRecipe] = []
    for recipe in recipes:
        if not recipe.ingredients:
            continue
        outcome = _calculate_normalized(
            recipe.ingredients, normalized, threshold, prefer_best
        )
        if outcome.match_percentage >= min_percentage:
            ranked.append(RankedRecipe(recipe=recipe, outcome=outcome))
    ranked.sort(key=lambda entry: entry.outcome.match_percentage, reverse=True)
    start = max(offset, 0)
    return RankedPage(
        items=ranked[start : start + max(limit, 0)],
        total=len(ranked),
        offset=start,
        limit=limit,
    )


def match_percentage(available: int, total: int) -> int:
    """Return ``round(100 * available / total)``, or 0 for an empty recipe."""
    if total == 0:
        return 0
    return round(100 * available / total)


def _calculate_normalized(
    ingredients: Sequence[IngredientRef],
    inventory: list[tuple[InventoryItem, str]],
    threshold: float,
    prefer_best: bool,
) -> MatchOutcome:
    available: list[IngredientRef] = []
    missing: list[IngredientRef] = []
    for ingredient in ingredients:
        result = _match_normalized(
            normalize_ingredient_name(ingredient.name),
            inventory,
            threshold,
            prefer_best,
        )
        if result.matched:
            available.append(ingredient)
        else:
            missing.append(ingredient)
    return MatchOutcome(
        match_percentage=match_percentage(len(available), len(ingredients)),
        available_ingredients=available,
        missing_ingredients=missing,
    )


def _match_normalized(
    name: str,
    inventory: list[tuple[InventoryItem, str]],
    threshold: float,
    prefer_best: bool,
) -> IngredientMatch:
    best = _NO_MATCH
    for item, item_name in inventory:
        score = _tier_score(name, item_name, threshold)
        if score is None:
            continue
        if not prefer_best or score == EXACT_SIMILARITY:
            return IngredientMatch(matched=True, item=item, similarity=score)
        if score > best.similarity:
            best = IngredientMatch(matched=True, item=item, similarity=score)
    return best


def _tier_score(name: str, item_name: str, threshold: float) -> float | None:
    """Return the similarity of the first tier that fires, or None."""
    if name == item_name:
        return EXACT_SIMILARITY
    if name and item_name and (name in item_name or item_name in name):
        return SUBSTRING_SIMILARITY
    score = similarity(name, item_name)
    if score >= threshold:
        return score
    return None
