"""
Phone number normalization, classification and formatting for German numbers.

All numbers are reduced to a digits-only national form in which a leading
"0" denotes a German number ("+49 6251 82755" -> "0625182755"). Matching
tolerates a missing trunk prefix (Kopfnummer) on one side by accepting
suffix matches with enough overlapping digits.
"""

import re
from collections.abc import Mapping, Sequence
from enum import Enum

from callmonitor.config import settings
from callmonitor.services.phone.area_codes import AREA_CODES

_SEPARATORS = re.compile(r"[\s\-()/.]")
_NON_DIGITS = re.compile(r"\D")

# A bare leading "49" is read as the country code only for numbers at least
# this long; shorter strings are kept as subscriber numbers.
BARE_COUNTRY_CODE_MIN_LENGTH = 7

# Suffix matches need this much overlap; exact equality is always accepted.
MIN_MATCH_DIGITS = 6

AREA_CODE_MAX_LENGTH = 5
AREA_CODE_MIN_LENGTH = 2

COUNTRY_PREFIX = "+49"


class PhoneType(str, Enum):
    MOBILE = "mobile"
    SPECIAL = "special"
    LANDLINE = "landline"
    UNKNOWN = "unknown"


class PhoneNormalizer:
    """
    Canonicalizes and classifies raw phone strings.

    Prefix lists are tested in order, mobile before special, so a more
    specific range must be listed before a broader one.
    """

    def __init__(
        self,
        mobile_prefixes: Sequence[str] | None = None,
        special_prefixes: Sequence[str] | None = None,
        area_codes: Mapping[str, str] | None = None,
    ):
        self.mobile_prefixes = tuple(
            settings.PHONE_MOBILE_PREFIXES if mobile_prefixes is None else mobile_prefixes
        )
        self.special_prefixes = tuple(
            settings.PHONE_SPECIAL_PREFIXES if special_prefixes is None else special_prefixes
        )
        self.area_codes = AREA_CODES if area_codes is None else area_codes

    def normalize(self, raw: str) -> str:
        """
        Normalize a raw phone string to digits in national format.

        Examples:
            "+49 170-5664234"  -> "01705664234"
            "0049625182755"    -> "0625182755"
            "49625182755"      -> "0625182755"
            "49123"            -> "49123"
        """
        if not raw:
            return ""

        s = _SEPARATORS.sub("", raw)
        if s.startswith("+"):
            s = "00" + s[1:]

        if s.startswith("0049"):
            s = "0" + s[4:]
        elif s.startswith("49") and len(s) >= BARE_COUNTRY_CODE_MIN_LENGTH:
            s = "0" + s[2:]

        return _NON_DIGITS.sub("", s)

    def classify(self, normalized: str) -> PhoneType:
        """Classify a normalized number as mobile, special, landline or unknown."""
        if not normalized.startswith("0"):
            return PhoneType.UNKNOWN
        if self._matching_prefix(normalized, self.mobile_prefixes):
            return PhoneType.MOBILE
        if self._matching_prefix(normalized, self.special_prefixes):
            return PhoneType.SPECIAL
        return PhoneType.LANDLINE

    def is_landline(self, raw: str) -> bool:
        return self.classify(self.normalize(raw)) is PhoneType.LANDLINE

    def lookup_city(self, normalized: str) -> str | None:
        """Resolve the city of a national number by longest area-code prefix."""
        area_code = self._area_code(normalized)
        return self.area_codes[area_code] if area_code else None

    def format_nice(self, raw: str) -> str | None:
        """
        Render a number as "+49 <prefix> <remainder>".

        Returns None when the number is not in national format.
        """
        normalized = self.normalize(raw)
        if not normalized.startswith("0"):
            return None

        phone_type = self.classify(normalized)
        prefix_digits: str | None = None

        if phone_type is PhoneType.MOBILE:
            prefix = self._matching_prefix(normalized, self.mobile_prefixes)
            prefix_digits = prefix[1:] if prefix else None
        elif phone_type is PhoneType.SPECIAL:
            prefix = self._matching_prefix(normalized, self.special_prefixes)
            prefix_digits = prefix[1:] if prefix else None
        else:
            prefix_digits = self._area_code(normalized)

        digits = normalized[1:]
        if not prefix_digits:
            return f"{COUNTRY_PREFIX} {digits}"

        remainder = digits[len(prefix_digits):]
        if not remainder:
            return f"{COUNTRY_PREFIX} {prefix_digits}"
        return f"{COUNTRY_PREFIX} {prefix_digits} {remainder}"

    def match(self, a: str, b: str) -> bool:
        """Check whether two raw numbers denote the same line."""
        return self.match_normalized(self.normalize(a), self.normalize(b))

    @staticmethod
    def match_normalized(na: str, nb: str) -> bool:
        """
        Match two already-normalized numbers.

        Exact equality always matches, even for short internal extensions.
        Otherwise the shorter number must be a suffix of the longer one with
        at least MIN_MATCH_DIGITS digits of overlap.
        """
        if not na or not nb:
            return False
        if na == nb:
            return True
        if min(len(na), len(nb)) < MIN_MATCH_DIGITS:
            return False
        return na.endswith(nb) or nb.endswith(na)

    def _area_code(self, normalized: str) -> str | None:
        if not normalized.startswith("0"):
            return None
        national = normalized[1:]
        for length in range(AREA_CODE_MAX_LENGTH, AREA_CODE_MIN_LENGTH - 1, -1):
            if len(national) < length:
                continue
            candidate = national[:length]
            if candidate in self.area_codes:
                return candidate
        return None

    @staticmethod
    def _matching_prefix(normalized: str, prefixes: Sequence[str]) -> str | None:
        for prefix in prefixes:
            if normalized.startswith(prefix):
                return prefix
        return None


# Default instance configured from settings
phone_normalizer = PhoneNormalizer()


def normalize_phone(raw: str) -> str:
    return phone_normalizer.normalize(raw)


def classify_phone(normalized: str) -> PhoneType:
    return phone_normalizer.classify(normalized)


def lookup_city(normalized: str) -> str | None:
    return phone_normalizer.lookup_city(normalized)


def format_phone_nice(raw: str) -> str | None:
    return phone_normalizer.format_nice(raw)


def phones_match(a: str, b: str) -> bool:
    return phone_normalizer.match(a, b)
