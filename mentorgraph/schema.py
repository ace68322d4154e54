"""
Validation and parsing of records coming from the entity store.

Malformed records are per-item defects: callers skip them and keep going.
Field names follow the store's camelCase; snake_case is accepted too.
"""

import math
from typing import Any, Dict, List, Optional

from .constants import (
    ASK_DEFAULT_STATUS,
    ASK_TTL_SECONDS,
    DEFAULT_SPACE_ID,
    MAX_TIMESTAMP_MS,
    MS_PER_SECOND,
    OFFER_DEFAULT_STATUS,
    OFFER_TTL_SECONDS,
)
from .exceptions import PostingValidationError, StoreError
from .logger import StructuredLogger, get_logger
from .models import Ask, FetchResult, Offer, Posting, PostingKind, Profile, PushMessage
from .normalize import parse_timestamp_ms, split_csv

REQUIRED_STR_FIELDS = ["key", "wallet", "skill"]
OPTIONAL_STR_FIELDS = ["spaceId", "message", "status", "availabilityWindow", "txHash"]

_SNAKE = {
    "spaceId": "space_id",
    "createdAt": "created_at",
    "ttlSeconds": "ttl_seconds",
    "availabilityWindow": "availability_window",
    "txHash": "tx_hash",
    "displayName": "display_name",
    "mentorRoles": "mentor_roles",
    "learnerRoles": "learner_roles",
    "reputationScore": "reputation_score",
    "sessionsCompleted": "sessions_completed",
    "averageRating": "average_rating",
}


def _get(data: Dict[str, Any], name: str, default: Any = None) -> Any:
    if name in data:
        return data[name]
    snake = _SNAKE.get(name)
    if snake and snake in data:
        return data[snake]
    return default


def _has(data: Dict[str, Any], name: str) -> bool:
    return name in data or _SNAKE.get(name, name) in data


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def validate_posting(data: Any) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    """
    if not isinstance(data, dict):
        return [f"Posting must be an object, got {type(data).__name__}"]

    errors: List[str] = []

    for f in REQUIRED_STR_FIELDS:
        if not _has(data, f):
            errors.append(f"Missing required field: {f}")
        elif not _is_non_empty_str(_get(data, f)):
            errors.append(f"Field '{f}' must be a non-empty string")

    for f in OPTIONAL_STR_FIELDS:
        v = _get(data, f)
        if v is not None and not isinstance(v, str):
            errors.append(f"Field '{f}' must be a string if provided")

    if not _has(data, "createdAt"):
        errors.append("Missing required field: createdAt")
    else:
        try:
            parse_timestamp_ms(_get(data, "createdAt"))
        except (ValueError, OverflowError):
            errors.append("Field 'createdAt' must be an ISO-8601 string or epoch milliseconds")

    ttl = _get(data, "ttlSeconds")
    if ttl is not None and not _is_int(ttl):
        errors.append("Field 'ttlSeconds' must be an integer if provided")
    elif ttl is not None and abs(ttl) * MS_PER_SECOND > MAX_TIMESTAMP_MS:
        errors.append("Field 'ttlSeconds' is out of range")

    return errors


def parse_posting(data: Any, kind: PostingKind) -> Posting:
    """
    Build an Ask or Offer from a store record.

    Raises:
        PostingValidationError: If the record is malformed
    """
    errors = validate_posting(data)
    if errors:
        key = data.get("key") if isinstance(data, dict) else None
        raise PostingValidationError(errors, key=key if isinstance(key, str) else None)

    is_offer = kind == PostingKind.OFFER
    ttl = _get(data, "ttlSeconds")
    common = dict(
        key=data["key"],
        wallet=data["wallet"],
        skill=data["skill"].strip(),
        space_id=_get(data, "spaceId") or DEFAULT_SPACE_ID,
        created_at=parse_timestamp_ms(_get(data, "createdAt")),
        ttl_seconds=ttl if ttl is not None else (OFFER_TTL_SECONDS if is_offer else ASK_TTL_SECONDS),
        message=_get(data, "message") or "",
        status=_get(data, "status") or (OFFER_DEFAULT_STATUS if is_offer else ASK_DEFAULT_STATUS),
        tx_hash=_get(data, "txHash"),
    )
    if is_offer:
        return Offer(availability_window=_get(data, "availabilityWindow") or "", **common)
    return Ask(**common)


def _optional_float(value: Any, name: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Field '{name}' must be a number")
    try:
        number = float(value)
    except OverflowError:
        raise ValueError(f"Field '{name}' is out of range")
    if not math.isfinite(number):
        raise ValueError(f"Field '{name}' must be finite")
    return number


def _optional_str(value: Any, name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"Field '{name}' must be a string")
    return value


def _str_list(value: Any, name: str) -> tuple[str, ...]:
    if value is None or isinstance(value, str):
        return split_csv(value)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"Field '{name}' must be a string or a list of strings")
    return split_csv(value)


def parse_profile(data: Any) -> Profile:
    """
    Build a Profile from a store record.

    Raises:
        ValueError: If the record is not an object, has no wallet, or has a
            field of the wrong type
    """
    if not isinstance(data, dict):
        raise ValueError(f"Profile must be an object, got {type(data).__name__}")
    wallet = data.get("wallet")
    if not _is_non_empty_str(wallet):
        raise ValueError("Profile is missing a wallet")

    sessions = _get(data, "sessionsCompleted", 0)
    if not _is_int(sessions):
        raise ValueError("Field 'sessionsCompleted' must be an integer")

    return Profile(
        wallet=wallet,
        display_name=_optional_str(_get(data, "displayName"), "displayName"),
        skills=", ".join(_str_list(data.get("skills"), "skills")),
        seniority=_optional_str(data.get("seniority"), "seniority"),
        mentor_roles=_str_list(_get(data, "mentorRoles"), "mentorRoles"),
        learner_roles=_str_list(_get(data, "learnerRoles"), "learnerRoles"),
        reputation_score=_optional_float(_get(data, "reputationScore"), "reputationScore") or 0.0,
        sessions_completed=sessions,
        average_rating=_optional_float(_get(data, "averageRating"), "averageRating"),
        timezone=_optional_str(data.get("timezone"), "timezone"),
        space_id=_optional_str(_get(data, "spaceId"), "spaceId") or DEFAULT_SPACE_ID,
    )


def _items(payload: Dict[str, Any], name: str) -> list:
    value = payload.get(name)
    if value is None:
        return []
    if not isinstance(value, list):
        raise StoreError(f"Fetch response field '{name}' must be a list")
    return value


def parse_fetch_response(
    payload: Any, logger: Optional[StructuredLogger] = None
) -> FetchResult:
    """
    Parse a `{asks, offers, profiles?}` fetch response.

    Malformed items are skipped one by one and counted in `skipped`;
    the rest of the response is still used.

    Raises:
        StoreError: If the payload itself is not an object of lists
    """
    logger = logger or get_logger()
    if not isinstance(payload, dict):
        raise StoreError(f"Fetch response must be an object, got {type(payload).__name__}")

    result = FetchResult()
    for name, kind, target in (
        ("asks", PostingKind.ASK, result.asks),
        ("offers", PostingKind.OFFER, result.offers),
    ):
        for item in _items(payload, name):
            try:
                target.append(parse_posting(item, kind))
            except PostingValidationError as e:
                result.skipped += 1
                logger.record_skipped_item(f"invalid_{kind.value}")
                logger.warning(f"Skipping malformed {kind.value}", key=e.key, errors=e.errors)

    for item in _items(payload, "profiles"):
        try:
            result.profiles.append(parse_profile(item))
        except ValueError as e:
            result.skipped += 1
            logger.record_skipped_item("invalid_profile")
            logger.warning("Skipping malformed profile", error=str(e))

    return result


def parse_push_message(payload: Any) -> PushMessage:
    """
    Parse one live-stream message.

    Accepts `{kind, posting}` and the store's `{type, entity}` shape.

    Raises:
        PostingValidationError: If the kind is unknown or the posting is malformed
    """
    if not isinstance(payload, dict):
        raise PostingValidationError([f"Message must be an object, got {type(payload).__name__}"])
    raw_kind = payload.get("kind", payload.get("type"))
    try:
        kind = PostingKind(raw_kind)
    except ValueError:
        raise PostingValidationError([f"Unknown message kind: {raw_kind!r}"])
    data = payload.get("posting", payload.get("entity"))
    return PushMessage(kind=kind, posting=parse_posting(data, kind))
