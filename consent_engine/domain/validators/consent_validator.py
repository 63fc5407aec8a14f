"""Validators for consent domain rules. Pure functions, no infrastructure or DB access."""

import json
import re
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from consent_engine.domain.exceptions import ConsentValidationError
from consent_engine.domain.models.consent import ConsentScope, ValidityWindow

MAX_DATA_CATEGORIES = 50
MAX_PURPOSE_LENGTH = 1000
DEFAULT_MAX_VALIDITY_DAYS = 365
MAX_PAGE_SIZE = 100

_CATEGORY_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_.\-]{0,63}$")


def validate_party_id(value: str, field_name: str) -> None:
    """Subject, requester and actor ids must be non-empty."""
    if not value or not value.strip():
        raise ConsentValidationError(f"{field_name} must not be empty")


def validate_scope(scope: ConsentScope) -> None:
    """Scope must name at least one data category and a purpose."""
    categories = scope.data_categories
    if not categories:
        raise ConsentValidationError("scope must include at least one data category")
    if len(categories) > MAX_DATA_CATEGORIES:
        raise ConsentValidationError(
            f"scope may include at most {MAX_DATA_CATEGORIES} data categories, got {len(categories)}"
        )
    if len(set(categories)) != len(categories):
        raise ConsentValidationError("scope data categories must be unique")
    for category in categories:
        if not isinstance(category, str) or not _CATEGORY_PATTERN.match(category):
            raise ConsentValidationError(f"Invalid data category: {category!r}")
    if not scope.purpose or not scope.purpose.strip():
        raise ConsentValidationError("scope purpose must not be empty")
    if len(scope.purpose) > MAX_PURPOSE_LENGTH:
        raise ConsentValidationError(
            f"scope purpose must be at most {MAX_PURPOSE_LENGTH} characters"
        )


def _require_aware(value: datetime, field_name: str) -> None:
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ConsentValidationError(f"{field_name} must be timezone-aware")


def validate_window(window: ValidityWindow, max_validity_days: int = DEFAULT_MAX_VALIDITY_DAYS) -> None:
    """start <= end when end is present; span bounded by max_validity_days."""
    _require_aware(window.start, "valid_from")
    if window.end is None:
        return
    _require_aware(window.end, "valid_to")
    if window.start > window.end:
        raise ConsentValidationError("valid_from must not be after valid_to")
    if window.end - window.start > timedelta(days=max_validity_days):
        raise ConsentValidationError(
            f"validity window must not exceed {max_validity_days} days"
        )


def validate_metadata(metadata: Optional[Dict[str, Any]]) -> None:
    """Ensure metadata is JSON-serializable."""
    if metadata is None:
        return
    try:
        json.dumps(metadata)
    except (TypeError, ValueError) as e:
        raise ConsentValidationError("metadata must be JSON-serializable") from e


def validate_paging(page: int, page_size: int) -> None:
    if page < 1:
        raise ConsentValidationError(f"page must be >= 1, got {page}")
    if not (1 <= page_size <= MAX_PAGE_SIZE):
        raise ConsentValidationError(
            f"page_size must be between 1 and {MAX_PAGE_SIZE}, got {page_size}"
        )


def validate_new_consent(
    subject_id: str,
    requester_id: str,
    scope: ConsentScope,
    window: ValidityWindow,
    metadata: Optional[Dict[str, Any]] = None,
    max_validity_days: int = DEFAULT_MAX_VALIDITY_DAYS,
) -> None:
    """
    Validate everything needed to create a consent record.
    Raises ConsentValidationError on the first violation.
    """
    validate_party_id(subject_id, "subject_id")
    validate_party_id(requester_id, "requester_id")
    validate_scope(scope)
    validate_window(window, max_validity_days)
    validate_metadata(metadata)
