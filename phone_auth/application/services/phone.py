import re
from typing import Optional

from ...exceptions import InvalidPhoneFormat

DEFAULT_COUNTRY_CODE = "+1"
# E.164 allows at most 15 digits including the country code
MAX_PHONE_DIGITS = 15


def normalize_phone(raw: Optional[str], country_code: Optional[str] = None) -> str:
    """Canonicalize user input into ``+<countrycode><digits>``.

    Numbers that already carry a leading ``+`` keep their own country code and
    lose every other non-digit character. Anything else is treated as a
    national number and gets ``country_code`` (``+1`` by default) prepended.
    Normalizing an already canonical number returns it unchanged.

    Raises:
        InvalidPhoneFormat: if nothing numeric is left after stripping, or the
            result is longer than E.164 allows.
    """
    if raw is None:
        raise InvalidPhoneFormat("Phone number is required")
    value = raw.strip()
    if not value:
        raise InvalidPhoneFormat("Phone number is required")

    digits = re.sub(r'\D', '', value)
    if not digits:
        raise InvalidPhoneFormat()

    if value.startswith('+'):
        canonical = f"+{digits}"
    else:
        prefix = re.sub(r'\D', '', country_code or DEFAULT_COUNTRY_CODE)
        if not prefix:
            raise InvalidPhoneFormat("Invalid country code")
        canonical = f"+{prefix}{digits}"

    if len(canonical) - 1 > MAX_PHONE_DIGITS:
        raise InvalidPhoneFormat()
    return canonical


def phone_suffix(phone: str, length: int = 4) -> str:
    return phone[-length:]


def default_display_name(phone: str) -> str:
    return f"User {phone_suffix(phone)}"
