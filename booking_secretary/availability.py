"""Weekly availability rules: grouping and validation.

Validation only reports problems back to the person editing a schedule. The
slot resolver never calls it and assumes it is fed rules that passed.
"""

import logging
from typing import Dict, List, Sequence, Tuple

from booking_secretary.models import (
    DAYS_OF_WEEK_IN_ORDER,
    DayOfWeek,
    ValidationIssue,
    WeeklyAvailabilityRule,
)
from booking_secretary.timeutils import (
    is_valid_time_of_day,
    is_valid_timezone,
    time_of_day_to_fraction,
)

logger = logging.getLogger(__name__)

OVERLAP_MESSAGE = "Availability overlaps with another"
ORDER_MESSAGE = "End time must be after start time"
FORMAT_MESSAGE = "Time must be in the format HH:MM"


def group_rules_by_day(
    rules: Sequence[WeeklyAvailabilityRule],
) -> Dict[DayOfWeek, List[WeeklyAvailabilityRule]]:
    """Group rules by day. Every day is present; days without rules map to []."""
    grouped: Dict[DayOfWeek, List[WeeklyAvailabilityRule]] = {
        day: [] for day in DAYS_OF_WEEK_IN_ORDER
    }
    for rule in rules:
        grouped[rule.day_of_week].append(rule)
    return grouped


def _rules_overlap(a: WeeklyAvailabilityRule, b: WeeklyAvailabilityRule) -> bool:
    return time_of_day_to_fraction(a.start_time) < time_of_day_to_fraction(
        b.end_time
    ) and time_of_day_to_fraction(a.end_time) > time_of_day_to_fraction(b.start_time)


def validate_rules(rules: Sequence[WeeklyAvailabilityRule]) -> List[ValidationIssue]:
    """Report format, overlap and ordering problems in a rule set.

    Rules are checked in the given order. A rule is flagged for overlap when it
    overlaps any earlier rule on the same day, so only the later rule of each
    overlapping pair carries the issue. This is a pairwise O(n^2) scan, fine for
    the handful of rules a weekly schedule holds.
    """
    issues: List[ValidationIssue] = []
    well_formed: List[Tuple[int, WeeklyAvailabilityRule]] = []

    for index, rule in enumerate(rules):
        bad_format = False
        for field_name in ("start_time", "end_time"):
            if not is_valid_time_of_day(getattr(rule, field_name)):
                issues.append(ValidationIssue(field_name, FORMAT_MESSAGE, index))
                bad_format = True
        if bad_format:
            continue

        if any(
            other.day_of_week == rule.day_of_week and _rules_overlap(other, rule)
            for _, other in well_formed
        ):
            issues.append(ValidationIssue("start_time", OVERLAP_MESSAGE, index))

        if time_of_day_to_fraction(rule.start_time) >= time_of_day_to_fraction(
            rule.end_time
        ):
            issues.append(ValidationIssue("end_time", ORDER_MESSAGE, index))

        well_formed.append((index, rule))

    return issues


def validate_schedule(
    timezone: str, rules: Sequence[WeeklyAvailabilityRule]
) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    if not timezone:
        issues.append(ValidationIssue("timezone", "Required"))
    elif not is_valid_timezone(timezone):
        issues.append(
            ValidationIssue("timezone", f"Unknown timezone '{timezone}'")
        )
    return issues + validate_rules(rules)


def accepted_rules(
    rules: Sequence[WeeklyAvailabilityRule], issues: Sequence[ValidationIssue]
) -> List[WeeklyAvailabilityRule]:
    """Rules that carry no issue.

    Since only the later rule of an overlapping pair is flagged, the result
    never contains two overlapping rules.
    """
    rejected = {issue.index for issue in issues if issue.index is not None}
    kept = [rule for index, rule in enumerate(rules) if index not in rejected]
    if rejected:
        logger.info(f"Dropping {len(rejected)} invalid availability rule(s)")
    return kept
