import random

import pytest

from domain.category_filter import filter_recipes_by_all_categories


ASSOCIATIONS = [
    ("r1", "c1"),
    ("r1", "c2"),
    ("r2", "c1"),
    ("r3", "c2"),
    ("r3", "c3"),
    ("r4", "c1"),
    ("r4", "c2"),
    ("r4", "c3"),
]


@pytest.mark.parametrize(
    "requested,expected",
    (
        ({"c1"}, {"r1", "r2", "r4"}),
        ({"c1", "c2"}, {"r1", "r4"}),
        ({"c1", "c2", "c3"}, {"r4"}),
        ({"c2", "c3"}, {"r3", "r4"}),
        ({"c9"}, set()),
        ({"c1", "c9"}, set()),
    ),
)
def test_filter(requested: set[str], expected: set[str]) -> None:
    assert filter_recipes_by_all_categories(ASSOCIATIONS, requested) == expected


def test_and_not_or() -> None:
    associations = [("r1", "c1"), ("r1", "c2"), ("r2", "c1")]
    assert filter_recipes_by_all_categories(associations, {"c1", "c2"}) == {"r1"}


def test_duplicate_pairs_do_not_count_twice() -> None:
    associations = [("r1", "c1"), ("r1", "c1")]
    assert filter_recipes_by_all_categories(associations, {"c1", "c2"}) == set()


def test_order_and_duplicates_do_not_matter() -> None:
    shuffled = ASSOCIATIONS * 2
    random.Random(7).shuffle(shuffled)
    for requested in ({"c1"}, {"c1", "c2"}, {"c2", "c3"}):
        assert filter_recipes_by_all_categories(
            shuffled, requested
        ) == filter_recipes_by_all_categories(ASSOCIATIONS, requested)


def test_adding_categories_never_grows_the_result() -> None:
    one = filter_recipes_by_all_categories(ASSOCIATIONS, {"c2"})
    two = filter_recipes_by_all_categories(ASSOCIATIONS, {"c2", "c3"})
    three = filter_recipes_by_all_categories(ASSOCIATIONS, {"c1", "c2", "c3"})
    assert three <= two <= one


def test_result_recipes_have_every_category() -> None:
    requested = {"c1", "c2"}
    for recipe in filter_recipes_by_all_categories(ASSOCIATIONS, requested):
        assert requested <= {c for r, c in ASSOCIATIONS if r == recipe}


def test_requested_ids_may_repeat() -> None:
    assert filter_recipes_by_all_categories(ASSOCIATIONS, ["c1", "c2", "c1"]) == {"r1", "r4"}


def test_empty_request_is_refused() -> None:
    with pytest.raises(ValueError):
        filter_recipes_by_all_categories(ASSOCIATIONS, set())
