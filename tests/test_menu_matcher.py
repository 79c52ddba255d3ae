from types import SimpleNamespace

from orderhub.services import menu_matcher

CATALOG = [
    SimpleNamespace(id=1, name="Butter Chicken"),
    SimpleNamespace(id=2, name="Naan"),
    SimpleNamespace(id=3, name="Garlic Naan"),
    SimpleNamespace(id=4, name="Margherita Pizza"),
    SimpleNamespace(id=5, name="Mango Lassi"),
]


def _summary(result):
    return [(entry.item.name, entry.quantity) for entry in result.matches]


def test_two_clauses_resolve_with_their_quantities():
    result = menu_matcher.match("2 butter chicken, 3 naan", CATALOG)

    assert _summary(result) == [("Butter Chicken", 2), ("Naan", 3)]
    assert result.unresolved == []


def test_unknown_clause_is_reported_not_fabricated():
    result = menu_matcher.match("order 5 pizzas of nothing", CATALOG)

    assert result.matches == []
    assert result.unresolved == ["order 5 pizzas of nothing"]


def test_number_words_and_articles_are_quantities():
    result = menu_matcher.match("a mango lassi and two garlic naans", CATALOG)

    assert _summary(result) == [("Mango Lassi", 1), ("Garlic Naan", 2)]


def test_trailing_quantity_and_multiplier():
    assert _summary(menu_matcher.match("butter chicken x3", CATALOG)) == [("Butter Chicken", 3)]
    assert _summary(menu_matcher.match("naan 4", CATALOG)) == [("Naan", 4)]


def test_missing_quantity_defaults_to_one():
    assert _summary(menu_matcher.match("butter chicken", CATALOG)) == [("Butter Chicken", 1)]


def test_longest_contained_name_wins():
    result = menu_matcher.match("one garlic naan", CATALOG)

    assert _summary(result) == [("Garlic Naan", 1)]
    assert result.matches[0].confidence == 1.0


def test_fragment_of_name_matches_with_lower_confidence():
    result = menu_matcher.match("2 lassi", CATALOG)

    assert _summary(result) == [("Mango Lassi", 2)]
    assert 0.5 < result.matches[0].confidence < 1.0


def test_zero_quantity_is_unresolved():
    result = menu_matcher.match("0 naan", CATALOG)

    assert result.matches == []
    assert result.unresolved == ["0 naan"]


def test_weak_overlap_below_threshold_is_unresolved():
    result = menu_matcher.match("chicken burger deluxe", CATALOG)

    assert result.matches == []
    assert result.unresolved == ["chicken burger deluxe"]


def test_accents_and_punctuation_are_ignored():
    catalog = [SimpleNamespace(id=9, name="Crème Brûlée")]

    result = menu_matcher.match("2 creme-brulee!", catalog)

    assert _summary(result) == [("Crème Brûlée", 2)]


def test_empty_text_gives_empty_result():
    result = menu_matcher.match("", CATALOG)

    assert len(result) == 0
    assert result.unresolved == []


def test_number_inside_menu_name_is_not_a_quantity():
    catalog = [SimpleNamespace(id=1, name="Butter Chicken"), SimpleNamespace(id=2, name="Chicken 65")]

    assert _summary(menu_matcher.match("chicken 65", catalog)) == [("Chicken 65", 1)]
    assert _summary(menu_matcher.match("2 chicken 65", catalog)) == [("Chicken 65", 2)]
    assert _summary(menu_matcher.match("butter chicken 3", catalog)) == [("Butter Chicken", 3)]
