from collections import Counter
from typing import Hashable, Iterable, TypeVar


RecipeId = TypeVar("RecipeId", bound=Hashable)
CategoryId = TypeVar("CategoryId", bound=Hashable)


def filter_recipes_by_all_categories(
    associations: Iterable[tuple[RecipeId, CategoryId]],
    requested_category_ids: Iterable[CategoryId],
) -> set[RecipeId]:
    """Recipes carrying every requested category (AND, not OR).

    Pairs outside the requested categories are ignored and duplicate pairs
    count once, so passing the full association table is as correct as
    passing a pre-filtered slice of it.

    "No filter requested" is a caller decision: an empty request is refused
    instead of silently matching nothing.
    """
    requested = set(requested_category_ids)
    if not requested:
        raise ValueError("Request at least one category id.")

    pairs = {(r, c) for r, c in associations if c in requested}
    tally = Counter(recipe_id for recipe_id, _ in pairs)
    return {recipe_id for recipe_id, n in tally.items() if n == len(requested)}
