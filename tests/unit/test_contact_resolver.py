"""
Tests for contact resolution: exact, fuzzy and fallback labeling.
"""

from callmonitor.services.contacts import ContactResolver, DirectoryCache


def test_empty_input_resolves_to_none(make_resolver):
    resolver = make_resolver([])
    assert resolver.resolve_one("") is None
    assert resolver.resolve_one("   ") is None


def test_fallback_without_snapshot_labels_landline_with_city(normalizer):
    resolver = ContactResolver(DirectoryCache(normalizer=normalizer), normalizer)

    result = resolver.resolve_one("0625182755")

    assert result.name == ""
    assert result.contact_id == 0
    assert result.city == "Bensheim"
    assert result.formatted == "+49 6251 82755"
    assert result.fuzzy is None


def test_fallback_labels_mobile_and_special(make_resolver):
    resolver = make_resolver([])

    mobile = resolver.resolve_one("01705664234")
    special = resolver.resolve_one("08001234567")

    assert mobile.city == "Mobil"
    assert mobile.formatted == "+49 170 5664234"
    assert special.city == "Sonderrufnummer"


def test_fallback_for_unknown_number_uses_stripped_raw(make_resolver):
    resolver = make_resolver([])

    result = resolver.resolve_one(" 12345 ")

    assert result.name == ""
    assert result.contact_id == 0
    assert result.city is None
    assert result.formatted == "12345"


def test_exact_match(make_resolver):
    resolver = make_resolver(
        [("0625182755", "Firma ABC", 1), ("+49 170 5664234", "Max Mobil", 2)]
    )

    landline = resolver.resolve_one("0625182755")
    reformatted = resolver.resolve_one("+49 6251 82755")
    mobile = resolver.resolve_one("01705664234")

    assert (landline.name, landline.contact_id, landline.fuzzy) == ("Firma ABC", 1, None)
    assert reformatted.name == "Firma ABC"
    assert reformatted.fuzzy is None
    assert mobile.name == "Max Mobil"
    assert mobile.city == "Mobil"


def test_exact_match_wins_over_fuzzy(make_resolver):
    resolver = make_resolver([("062518275", "Fuzzy Match", 2), ("0625182755", "Exact Match", 1)])

    result = resolver.resolve_one("0625182755")

    assert result.name == "Exact Match"
    assert result.fuzzy is None


def test_first_exact_entry_in_directory_order_wins(make_resolver):
    resolver = make_resolver([("0625182755", "Erster", 1), ("06251 82755", "Zweiter", 2)])

    assert resolver.resolve_one("0625182755").name == "Erster"


def test_fuzzy_match_with_extra_trailing_digits(make_resolver):
    resolver = make_resolver([("062518275", "Firma Kurz", 10)])

    assert resolver.resolve_one("0625182755").fuzzy == 1
    assert resolver.resolve_one("06251827512").fuzzy == 2
    assert resolver.resolve_one("062518275123").fuzzy == 3
    assert resolver.resolve_one("062518275123").name == "Firma Kurz"


def test_no_fuzzy_match_beyond_three_digits(make_resolver):
    resolver = make_resolver([("062518275", "Firma Kurz", 10)])

    result = resolver.resolve_one("0625182751234")

    assert result.name == ""
    assert result.fuzzy is None
    assert result.city == "Bensheim"


def test_fuzzy_match_when_directory_entry_is_longer(make_resolver):
    resolver = make_resolver([("06251827551", "Firma Lang", 11)])

    result = resolver.resolve_one("0625182755")

    assert result.name == "Firma Lang"
    assert result.contact_id == 11
    assert result.fuzzy == 1


def test_fuzzy_result_keeps_city_and_formatting(make_resolver):
    resolver = make_resolver([("062518275", "Firma Kurz", 10)])

    result = resolver.resolve_one("0625182755")

    assert result.city == "Bensheim"
    assert result.formatted == "+49 6251 82755"


def test_no_fuzzy_match_for_mobile_numbers(make_resolver):
    resolver = make_resolver([("0170566423", "Mobil Contact", 20)])

    result = resolver.resolve_one("01705664234")

    assert result.name == ""
    assert result.city == "Mobil"


def test_no_fuzzy_match_for_special_numbers(make_resolver):
    resolver = make_resolver([("0800123456", "Hotline", 30)])

    result = resolver.resolve_one("08001234567")

    assert result.name == ""
    assert result.city == "Sonderrufnummer"


def test_fuzzy_needs_six_remaining_digits(make_resolver):
    resolver = make_resolver([("06251", "Zu Kurz", 41)])

    result = resolver.resolve_one("062518")

    assert result.name == ""
    assert result.fuzzy is None


def test_fuzzy_match_for_short_landline(make_resolver):
    resolver = make_resolver([("0625182", "Lang Genug", 42)])

    result = resolver.resolve_one("06251823")

    assert result.name == "Lang Genug"
    assert result.fuzzy == 1


def test_fuzzy_match_with_exactly_six_remaining_digits(make_resolver):
    resolver = make_resolver([("062518", "Sechs", 43)])

    result = resolver.resolve_one("0625189")

    assert result.name == "Sechs"
    assert result.fuzzy == 1


def test_smaller_trim_wins_over_directory_order(make_resolver):
    resolver = make_resolver([("06251827", "Zwei", 1), ("062518275", "Eins", 2)])

    result = resolver.resolve_one("0625182755")

    assert result.name == "Eins"
    assert result.fuzzy == 1


def test_resolve_many_skips_empty_inputs(make_resolver):
    resolver = make_resolver([("062518275", "Batch Fuzzy", 50)])

    results = resolver.resolve_many(["0625182755", "01705664234", ""])

    assert set(results) == {"0625182755", "01705664234"}
    assert results["0625182755"].name == "Batch Fuzzy"
    assert results["0625182755"].fuzzy == 1
    assert resolver.resolve_many(["", "", ""]) == {}


def test_match_serialization_omits_unset_fields(make_resolver):
    resolver = make_resolver([("0625182755", "Firma ABC", 1)])

    data = resolver.resolve_one("0625182755").to_dict()

    assert data == {
        "name": "Firma ABC",
        "contactId": 1,
        "city": "Bensheim",
        "formatted": "+49 6251 82755",
    }
