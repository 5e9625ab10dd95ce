"""Validation layer: per-operation rule sets for inbound requests.

Every operation the API exposes is a member of the closed ``Operation``
enum, and every member is bound at import time to a ``RuleSet``. A rule set
is an ordered tuple of field rules plus an optional refinement step for
cross-field checks. Rules are pure: they read the request mapping and
return a ``FieldError`` or nothing. All failures are collected so a client
can fix every field in one round trip.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from moddesk.errors import ValidationError

logger = logging.getLogger(__name__)

_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d")

POST_ID_PATTERN = re.compile(r"[a-zA-Z0-9_-]+")
REVIEW_TEXT_PATTERN = re.compile(r"[a-zA-Z0-9\s.,!?-]+")

POST_STATUSES = ("pending", "approved", "rejected")
REVIEW_DECISIONS = ("approved", "rejected")
REJECTION_CATEGORIES = ("inappropriate", "copyright", "quality", "other")
URGENCY_LEVELS = ("low", "medium", "high")
SORT_FIELDS = ("date", "title", "uploader", "category")
SORT_ORDERS = ("asc", "desc")
REPORT_FORMATS = ("pdf", "csv", "excel")
REPORT_METRICS = ("approvals", "rejections", "pending", "response_time")


class DateRangeMode(str, Enum):
    """Date range presets accepted by the reviewer queue."""

    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    CUSTOM = "custom"


class ReportType(str, Enum):
    """Report periods."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class Operation(str, Enum):
    """Every validated operation. Each member must have a rule set."""

    ADMIN_SEARCH = "adminSearch"
    POST_QUERY = "postQuery"
    REVIEW_QUERY = "reviewQuery"
    DATE_RANGE = "dateRangeValidation"
    POST_REVIEW = "postReview"
    POST_REJECTION = "postRejection"
    REPORT = "reportValidation"
    CATEGORY_UPSERT = "categoryUpsert"


@dataclass(frozen=True)
class FieldError:
    """A single failing field and the reason it failed."""

    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


def parse_date(value: Any) -> Optional[date]:
    """Parse a calendar date string, returning None when it is not one."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            day = datetime.strptime(text, fmt).date()
        except ValueError:
            continue
        # Day windows end at the next midnight, which must be representable.
        return day if day < date.max else None
    return None


def to_int(value: Any) -> Optional[int]:
    """Coerce an int or a decimal integer string; None for anything else."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and re.fullmatch(r"[+-]?\d+", value.strip()):
        return int(value.strip())
    return None


# ---------------------------------------------------------------------------
# Checks: each returns a predicate over a single (present) field value
# ---------------------------------------------------------------------------

def is_int(min_value: Optional[int] = None, max_value: Optional[int] = None) -> Callable[[Any], bool]:
    def check(value: Any) -> bool:
        number = to_int(value)
        if number is None:
            return False
        if min_value is not None and number < min_value:
            return False
        if max_value is not None and number > max_value:
            return False
        return True
    return check


def length(min_len: int = 0, max_len: Optional[int] = None) -> Callable[[Any], bool]:
    def check(value: Any) -> bool:
        if not isinstance(value, str):
            return False
        size = len(value.strip())
        return size >= min_len and (max_len is None or size <= max_len)
    return check


def matches(pattern: re.Pattern) -> Callable[[Any], bool]:
    def check(value: Any) -> bool:
        return isinstance(value, str) and pattern.fullmatch(value.strip()) is not None
    return check


def one_of(values: tuple) -> Callable[[Any], bool]:
    def check(value: Any) -> bool:
        return value in values
    return check


def each_of(values: tuple) -> Callable[[Any], bool]:
    # An empty list passes: every element (vacuously) belongs to the set.
    def check(value: Any) -> bool:
        return isinstance(value, list) and all(item in values for item in value)
    return check


def is_list(value: Any) -> bool:
    return isinstance(value, list)


def is_date(value: Any) -> bool:
    return parse_date(value) is not None


def not_blank(value: Any) -> bool:
    if isinstance(value, str):
        return bool(value.strip())
    return value is not None


@dataclass(frozen=True)
class Rule:
    """One field-level check.

    Optional rules pass when the field is absent. Required rules fail with
    their message when it is.
    """

    field: str
    check: Callable[[Any], bool]
    message: str
    optional: bool = True

    def apply(self, request: Mapping[str, Any]) -> Optional[FieldError]:
        value = request.get(self.field)
        if value is None:
            return None if self.optional else FieldError(self.field, self.message)
        if self.check(value):
            return None
        return FieldError(self.field, self.message)


@dataclass(frozen=True)
class RuleSet:
    """Ordered rules for one operation, plus an optional cross-field step."""

    rules: tuple[Rule, ...]
    refine: Optional[Callable[[Mapping[str, Any]], list[FieldError]]] = None

    def validate(self, request: Mapping[str, Any]) -> list[FieldError]:
        errors = []
        for rule in self.rules:
            error = rule.apply(request)
            if error is not None:
                errors.append(error)
        if self.refine is not None:
            errors.extend(self.refine(request))
        return errors


# ---------------------------------------------------------------------------
# Cross-field refinements
# ---------------------------------------------------------------------------

def _validate_custom_range(request: Mapping[str, Any]) -> list[FieldError]:
    """Check startDate/endDate for a custom range: both dates, end after start."""
    errors = []
    start = parse_date(request.get("startDate"))
    end = parse_date(request.get("endDate"))
    if start is None:
        errors.append(FieldError("startDate", "Invalid start date"))
    if end is None:
        errors.append(FieldError("endDate", "Invalid end date"))
    elif start is not None and end <= start:
        errors.append(FieldError("endDate", "End date must be after start date"))
    return errors


def _refine_date_range(request: Mapping[str, Any]) -> list[FieldError]:
    try:
        mode = DateRangeMode(request.get("dateRange"))
    except ValueError:
        # Absent or unknown; the membership rule reports the latter.
        return []
    if mode is DateRangeMode.CUSTOM:
        return _validate_custom_range(request)
    return []


def _refine_report(request: Mapping[str, Any]) -> list[FieldError]:
    try:
        report_type = ReportType(request.get("reportType"))
    except ValueError:
        return []
    if report_type is ReportType.CUSTOM:
        return _validate_custom_range(request)
    return []


def _refine_category(request: Mapping[str, Any]) -> list[FieldError]:
    level = to_int(request.get("level"))
    has_parent = request.get("parent_id") is not None
    if level == 2 and not has_parent:
        return [FieldError("parent_id", "parent_id is required for level 2 categories")]
    if level == 1 and has_parent:
        return [FieldError("parent_id", "parent_id must be empty for level 1 categories")]
    return []


# ---------------------------------------------------------------------------
# Rule sets
# ---------------------------------------------------------------------------

_PAGE = Rule("page", is_int(min_value=1), "Page must be a positive integer")
_LIMIT = Rule("limit", is_int(1, 50), "Limit must be between 1 and 50")

RULE_SETS: dict[Operation, RuleSet] = {
    Operation.ADMIN_SEARCH: RuleSet((_PAGE, _LIMIT)),
    Operation.POST_QUERY: RuleSet((
        _PAGE,
        _LIMIT,
        Rule("search", length(max_len=100), "Search query cannot exceed 100 characters"),
        Rule("status", one_of(POST_STATUSES), "Invalid status: status must be one of "
             + ", ".join(POST_STATUSES)),
        Rule("date", is_date, "Invalid date format"),
    )),
    Operation.REVIEW_QUERY: RuleSet((
        Rule("page", is_int(1, 100), "Page must be between 1 and 100"),
        Rule("limit", is_int(5, 50), "Limit must be between 5 and 50"),
        Rule("sortBy", one_of(SORT_FIELDS), "Invalid sort field: sortBy must be one of "
             + ", ".join(SORT_FIELDS)),
        Rule("order", one_of(SORT_ORDERS), "Invalid sort order: order must be asc or desc"),
    )),
    Operation.DATE_RANGE: RuleSet(
        (Rule("dateRange", one_of(tuple(m.value for m in DateRangeMode)),
              "Invalid date range: dateRange must be one of today, week, month, custom"),),
        refine=_refine_date_range,
    ),
    Operation.POST_REVIEW: RuleSet((
        Rule("postId", not_blank, "Post ID is required", optional=False),
        Rule("postId", matches(POST_ID_PATTERN), "Invalid post ID format"),
        Rule("decision", one_of(REVIEW_DECISIONS), "Invalid decision: decision must be approved or rejected",
             optional=False),
        Rule("notes", length(max_len=500), "Review notes cannot exceed 500 characters"),
    )),
    Operation.POST_REJECTION: RuleSet((
        Rule("notes", length(10, 500), "Review notes must be between 10 and 500 characters"),
        Rule("notes", matches(REVIEW_TEXT_PATTERN), "Review notes contain invalid characters"),
        Rule("category", one_of(REJECTION_CATEGORIES), "Invalid rejection category"),
        Rule("urgency", one_of(URGENCY_LEVELS), "Invalid urgency level"),
    )),
    Operation.REPORT: RuleSet(
        (
            Rule("reportType", one_of(tuple(t.value for t in ReportType)), "Invalid report type",
                 optional=False),
            Rule("format", one_of(REPORT_FORMATS), "Invalid report format", optional=False),
            Rule("metrics", is_list, "Metrics must be an array", optional=False),
            Rule("metrics", lambda v: not is_list(v) or each_of(REPORT_METRICS)(v),
                 "Invalid metrics selected: metrics must be drawn from "
                 + ", ".join(REPORT_METRICS)),
        ),
        refine=_refine_report,
    ),
    Operation.CATEGORY_UPSERT: RuleSet(
        (
            Rule("name", not_blank, "Category name is required", optional=False),
            Rule("name", length(1, 100), "Category name cannot exceed 100 characters"),
            Rule("description", length(max_len=500), "Description cannot exceed 500 characters"),
            Rule("level", is_int(1, 2), "Level must be 1 or 2", optional=False),
            Rule("sort_order", is_int(min_value=0), "sort_order must be a non-negative integer"),
            Rule("parent_id", is_int(min_value=1), "parent_id must be a positive integer"),
            Rule("status", one_of(("active", "inactive")), "Invalid status: status must be active or inactive"),
        ),
        refine=_refine_category,
    ),
}

_unbound = [op.value for op in Operation if op not in RULE_SETS]
if _unbound:
    raise RuntimeError(f"Operations without a rule set: {', '.join(_unbound)}")


def validate(request: Mapping[str, Any], *operations: Operation) -> list[FieldError]:
    """Run every rule of every given operation against the request.

    Args:
        request: Flat mapping of field name to raw value (path, query and
            body parameters merged).
        *operations: Operations whose rule sets apply. When several apply,
            all of them run, so the narrowest bound on a shared field wins.

    Returns:
        All failing fields in rule order. Empty means the request is valid.
    """
    errors: list[FieldError] = []
    for operation in operations:
        for error in RULE_SETS[operation].validate(request):
            if error not in errors:
                errors.append(error)
    return errors


def ensure_valid(request: Mapping[str, Any], *operations: Operation) -> None:
    """Raise ValidationError carrying every failure, if there are any."""
    errors = validate(request, *operations)
    if errors:
        names = ", ".join(op.value for op in operations)
        logger.warning(f"Rejected request for {names}: {len(errors)} invalid field(s)")
        raise ValidationError(errors)
