from .normalizer import (
    MIN_MATCH_DIGITS,
    PhoneNormalizer,
    PhoneType,
    classify_phone,
    format_phone_nice,
    lookup_city,
    normalize_phone,
    phone_normalizer,
    phones_match,
)

__all__ = [
    "MIN_MATCH_DIGITS",
    "PhoneNormalizer",
    "PhoneType",
    "classify_phone",
    "format_phone_nice",
    "lookup_city",
    "normalize_phone",
    "phone_normalizer",
    "phones_match",
]
