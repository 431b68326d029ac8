# Role: Deterministic field extraction from free-text chat messages (plate, owner ID, email, phone, address).
# Every extractor returns None on a miss and never raises; false positives are worse than misses here.

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from renewal.models.state import OwnerIdType

_PLATE = re.compile(r"\b([A-Z]{1,3}\s?[0-9]{1,4}|[0-9][A-Z]{3}\s?[0-9]{1,4})\b", re.IGNORECASE)
_PLATE_EXCLUDE = {"NCD", "CC", "RM", "EMAIL", "NRIC", "IC"}
# "RM 796" or "NCD 20" read like plates; amounts and discounts are far more common in this chat.
_PLATE_EXCLUDED_PREFIXES = {"RM", "NCD", "IC", "CC"}
_PLATE_SHAPE = re.compile(r"^(?:[A-Z]{1,3}[0-9]{1,4}|[0-9][A-Z]{3}[0-9]{1,4})$")

_NRIC_CANDIDATE = re.compile(r"(?<![\d-])(\d{6})-?(\d{2})-?(\d{4})(?![\d-])")
_BARE_12_DIGITS = re.compile(r"(?<!\d)(\d{12})(?!\d)")
_MOBILE_LIKE = re.compile(r"^(?:60|0)1\d{8,9}$")

_ID_LABEL = re.compile(
    r"\b(passport|foreign\s+id(?:entification)?|army\s+ic|police\s+ic|company\s+reg(?:istration)?"
    r"|ssm|brn|roc|owner\s+id|id\s+number|id\s+no)\b",
    re.IGNORECASE,
)
_LABEL_FILLERS = {"number", "no", "no.", "num", "is", ":", "-", "#"}
_ID_TOKEN = re.compile(r"^[a-z0-9][a-z0-9\-/]{4,23}$", re.IGNORECASE)

_COMPANY_CONTEXT = re.compile(r"\b(ssm|brn|roc|company|sdn|bhd|berhad|enterprise|plt)\b", re.IGNORECASE)
_COMPANY_NUMBER = re.compile(r"(?<![\w-])(\d{5,12}(?:-[a-z])?)(?![\w-])", re.IGNORECASE)

_IDENTITY_CONTEXT = re.compile(
    r"\b(id|ic|nric|mykad|passport|owner|army|police|foreign|company|identification|identity)\b",
    re.IGNORECASE,
)
_MIXED_TOKEN = re.compile(r"\b([a-z]{1,4}\d{4,12}|\d{3,12}[a-z]{1,4}\d{1,8}|[a-z0-9]{6,18})\b", re.IGNORECASE)
_MIXED_BLOCKLIST = {"NCD", "EMAIL", "PHONE", "ROADTAX", "QUOTE", "ADDON", "IC", "COVID19", "MYVI"}

_EMAIL = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
_PHONE_WITH_CC = re.compile(r"(?<!\d)\+?60[\s-]?(1\d)[\s-]?(\d{3,4})[\s-]?(\d{4})(?!\d)")
_PHONE_LOCAL = re.compile(r"(?<!\d)(01\d)[\s-]?(\d{3,4})[\s-]?(\d{4})(?!\d)")

_QUESTION_START = re.compile(r"^(how|what|when|where|why|which|can|do|does|is|are|will|should)\b", re.IGNORECASE)
_STREET = re.compile(
    r"\b(jalan|jln|lorong|lrg|taman|tmn|persiaran|lebuh|lebuhraya|kampung|kg|blok|kondominium|residensi)\b",
    re.IGNORECASE,
)
_HOUSE_PREFIX = re.compile(r"(?:(?:no\.?|lot|unit)\s*)?[a-z]?\d+[a-z]?(?:-\d+)*\s*,?\s*$", re.IGNORECASE)
_POSTCODE = re.compile(r"(?<!\d)\d{5}(?!\d)")
_STATES = re.compile(
    r"\b(johor|kedah|kelantan|melaka|malacca|negeri sembilan|pahang|penang|pulau pinang|perak|perlis|"
    r"sabah|sarawak|selangor|terengganu|kuala lumpur|putrajaya|labuan)\b",
    re.IGNORECASE,
)
_ADDRESS_LEAD = re.compile(r"^(?:(?:my|the)\s+)?(?:delivery\s+)?address\s*(?:is)?\s*[:\-]?\s*", re.IGNORECASE)


@dataclass(frozen=True)
class OwnerIdMatch:
    value: str
    type: OwnerIdType


def _is_text(text: Any) -> bool:
    return isinstance(text, str) and bool(text.strip())


def _is_plausible_nric(digits: str) -> bool:
    # YYMMDD prefix: month 01-12, day 01-31.
    if len(digits) != 12 or not digits.isdigit():
        return False
    month = int(digits[2:4])
    day = int(digits[4:6])
    return 1 <= month <= 12 and 1 <= day <= 31


def _is_plate_shaped(token: str) -> bool:
    return bool(_PLATE_SHAPE.match(token.upper()))


def extract_registration_number(text: str) -> Optional[str]:
    """Malaysian plate (e.g. JRT 9289, WXY123, 1ABC234), normalized to upper-case without spaces."""
    if not _is_text(text):
        return None

    for match in _PLATE.finditer(text):
        candidate = re.sub(r"\s+", "", match.group(1)).upper()
        if len(candidate) < 4:
            continue
        if candidate in _PLATE_EXCLUDE:
            continue
        letters = re.match(r"^[A-Z]+", candidate)
        if letters and letters.group(0) in _PLATE_EXCLUDED_PREFIXES:
            continue
        return candidate
    return None


def _extract_nric(text: str) -> Optional[str]:
    for match in _NRIC_CANDIDATE.finditer(text):
        digits = "".join(match.groups())
        if _is_plausible_nric(digits):
            return digits
    return None


def _extract_labeled_id(text: str) -> Optional[OwnerIdMatch]:
    label_match = _ID_LABEL.search(text)
    if not label_match:
        return None

    label = label_match.group(1).lower()
    # Walk the words after the label, skipping fillers like "number" / "no" / "is".
    for raw in text[label_match.end():].split():
        word = raw.strip(":,#.;")
        if not word or word.lower() in _LABEL_FILLERS:
            continue
        if not _ID_TOKEN.match(word) or not re.search(r"\d", word):
            return None
        value = re.sub(r"[^A-Za-z0-9\-/]", "", word).upper()
        if len(value) < 5:
            return None
        return OwnerIdMatch(value=value, type=_type_for_label(label))
    return None


def _type_for_label(label: str) -> OwnerIdType:
    if "passport" in label or "foreign" in label:
        return OwnerIdType.FOREIGN_ID
    if "army" in label:
        return OwnerIdType.ARMY_IC
    if "police" in label:
        return OwnerIdType.POLICE_IC
    if re.search(r"company|ssm|brn|roc", label):
        return OwnerIdType.COMPANY_REG
    return OwnerIdType.OTHER_ID


def _extract_company_reg(text: str) -> Optional[OwnerIdMatch]:
    if not _COMPANY_CONTEXT.search(text):
        return None
    match = _COMPANY_NUMBER.search(text)
    if not match:
        return None
    return OwnerIdMatch(value=match.group(1).upper(), type=OwnerIdType.COMPANY_REG)


def _extract_bare_nric(text: str, short: bool, has_context: bool) -> Optional[OwnerIdMatch]:
    if not (short or has_context):
        return None
    for match in _BARE_12_DIGITS.finditer(text):
        digits = match.group(1)
        if not _MOBILE_LIKE.match(digits):
            return OwnerIdMatch(value=digits, type=OwnerIdType.NRIC)
    return None


def _extract_mixed_token(text: str, short: bool, has_context: bool) -> Optional[OwnerIdMatch]:
    if not (short or has_context):
        return None
    for match in _MIXED_TOKEN.finditer(text):
        token = match.group(1).upper()
        if token in _MIXED_BLOCKLIST:
            continue
        if not (re.search(r"[A-Z]", token) and re.search(r"\d", token)):
            continue
        if _is_plate_shaped(token):
            continue
        return OwnerIdMatch(value=token, type=OwnerIdType.OTHER_ID)
    return None


def extract_owner_identification(text: str) -> Optional[OwnerIdMatch]:
    """
    Tiered owner-ID extraction; the first tier that fires wins.

    1) plausible 12-digit NRIC (dashes allowed)
    2) explicit label followed by an ID token (passport / army ic / police ic / company reg / ...)
    3) company number next to a company keyword
    4) bare 12 digits in a short or identity-context message, unless it reads as a mobile number
    5) mixed letters+digits token in a short or identity-context message
    """
    if not _is_text(text):
        return None

    nric = _extract_nric(text)
    if nric:
        return OwnerIdMatch(value=nric, type=OwnerIdType.NRIC)

    labeled = _extract_labeled_id(text)
    if labeled:
        return labeled

    company = _extract_company_reg(text)
    if company:
        return company

    short = len(text.split()) <= 4
    has_context = bool(_IDENTITY_CONTEXT.search(text))

    return _extract_bare_nric(text, short, has_context) or _extract_mixed_token(text, short, has_context)


def extract_email(text: str) -> Optional[str]:
    if not _is_text(text):
        return None
    match = _EMAIL.search(text)
    return match.group(0) if match else None


def _find_phone(text: str) -> Optional[re.Match]:
    return _PHONE_WITH_CC.search(text) or _PHONE_LOCAL.search(text)


def extract_phone(text: str) -> Optional[str]:
    """Malaysian mobile number normalized to local form (01X..., 10-11 digits)."""
    if not _is_text(text):
        return None

    # Country code first so "+60 12..." is not read as a local number.
    match = _PHONE_WITH_CC.search(text)
    if match:
        phone = "0" + "".join(match.groups())
    else:
        match = _PHONE_LOCAL.search(text)
        if not match:
            return None
        phone = "".join(match.groups())

    if len(phone) in (10, 11) and phone.startswith("01"):
        return phone
    return None


def extract_address(text: str) -> Optional[str]:
    """
    Delivery address, only on a strong signal:
    - a street-type keyword (jalan, lorong, taman, ...), or
    - a 5-digit postcode together with at least two commas, or
    - a postcode together with a Malaysian state name.
    Email and phone substrings are removed first so their digits never look like postcodes.
    """
    if not _is_text(text):
        return None

    stripped = text.strip()
    if "?" in stripped or _QUESTION_START.match(stripped):
        return None

    # 1) Remove email + phone so they do not collide with postcode / house-number patterns
    cleaned = _EMAIL.sub(" ", stripped)
    phone_match = _find_phone(cleaned)
    while phone_match:
        cleaned = cleaned[: phone_match.start()] + " " + cleaned[phone_match.end():]
        phone_match = _find_phone(cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned).strip(" ,;")

    # 2) Require a strong positive signal
    street = _STREET.search(cleaned)
    has_postcode = bool(_POSTCODE.search(cleaned))
    strong = bool(street) or (has_postcode and cleaned.count(",") >= 2) or (has_postcode and _STATES.search(cleaned))
    if not strong:
        return None

    # 3) Cut from the house number before the street keyword, else drop a leading "my address is"
    if street:
        head = cleaned[: street.start()]
        house = _HOUSE_PREFIX.search(head)
        start = house.start() if house else street.start()
        address = cleaned[start:]
    else:
        address = _ADDRESS_LEAD.sub("", cleaned)

    address = re.sub(r"\s+", " ", address).strip().rstrip(".!")
    address = address.strip(" ,;")
    return address if len(address) > 10 else None


def extract_personal_info(text: str) -> Dict[str, Optional[str]]:
    return {
        "email": extract_email(text),
        "phone": extract_phone(text),
        "address": extract_address(text),
    }


def contains_personal_info(text: str) -> bool:
    return any(extract_personal_info(text).values())


def extract_vehicle_info(text: str) -> Dict[str, Any]:
    owner = extract_owner_identification(text)
    return {
        "plate_number": extract_registration_number(text),
        "owner_id": owner.value if owner else None,
        "owner_id_type": owner.type if owner else None,
    }
