"""
Role-based view projection for issue and user records.

Each role is granted a set of capabilities. A projection copies the
record and redacts every part the requester lacks the capability for.
Owners of a record always see all of it. The functions work on plain
dicts (serialized records), never raise, and leave absent keys absent.
"""

from typing import Any, Dict, FrozenSet, Optional

from civic_issues.models import ROLE_ADMIN, ROLE_MUNICIPAL

READ_REPORTER_IDENTITY = "reporter:identity"
READ_EXACT_LOCATION = "location:exact"
READ_STAFF_ASSIGNMENT = "assignment:staff"
READ_ALL_COMMENTS = "comments:all"
READ_ESCALATION = "escalation:read"
READ_INTERNAL_METRICS = "metrics:internal"

ALL_CAPABILITIES: FrozenSet[str] = frozenset({
    READ_REPORTER_IDENTITY,
    READ_EXACT_LOCATION,
    READ_STAFF_ASSIGNMENT,
    READ_ALL_COMMENTS,
    READ_ESCALATION,
    READ_INTERNAL_METRICS,
})

ROLE_CAPABILITIES: Dict[str, FrozenSet[str]] = {
    ROLE_ADMIN: ALL_CAPABILITIES,
    ROLE_MUNICIPAL: ALL_CAPABILITIES,
}

ANONYMOUS_NAME = "Anonymous User"
MASKED_EMAIL = "***@***.***"
MASKED_PHONE = "***-***-****"
HIDDEN_LOCATION = "Location Hidden"

STAFF_ASSIGNMENT_FIELDS = (
    "assigned_staff",
    "assigned_staff_id",
    "department_head",
    "department_head_id",
    "priority_overridden_by_id",
)
INTERNAL_METRIC_FIELDS = ("penalty_points", "resolution_time_hours")


def capabilities_for(role: Optional[str], is_owner: bool = False) -> FrozenSet[str]:
    """Capabilities of a requester; owners get everything."""
    if is_owner:
        return ALL_CAPABILITIES
    return ROLE_CAPABILITIES.get(role or "", frozenset())


def _masked(value: Any, mask: str) -> Any:
    """Replace a present value with the mask, never echoing the original."""
    if value is None:
        return None
    return None if value == mask else mask


def mask_email(email: Optional[str]) -> Optional[str]:
    return _masked(email, MASKED_EMAIL)


def mask_phone(phone: Optional[str]) -> Optional[str]:
    return _masked(phone, MASKED_PHONE)


def mask_address(address: Optional[str]) -> Optional[str]:
    """Keep the first two words of an address; shorter ones are hidden."""
    if address is None:
        return None
    parts = str(address).split()
    if len(parts) <= 2:
        return HIDDEN_LOCATION
    return " ".join(parts[:2]) + "..."


def _same_id(left: Any, right: Any) -> bool:
    return left is not None and right is not None and str(left) == str(right)


def _anonymize_person(person: Dict[str, Any]) -> Dict[str, Any]:
    redacted = dict(person)
    if "id" in redacted:
        redacted["id"] = None
    if "name" in redacted:
        redacted["name"] = ANONYMOUS_NAME
    if "email" in redacted:
        redacted["email"] = mask_email(redacted["email"])
    if "phone" in redacted:
        redacted["phone"] = mask_phone(redacted["phone"])
    if "address" in redacted:
        redacted["address"] = mask_address(redacted["address"])
    return redacted


def issue_owner_id(issue: Dict[str, Any]) -> Any:
    owner = issue.get("reported_by_id")
    if owner is None and isinstance(issue.get("reporter"), dict):
        owner = issue["reporter"].get("id")
    return owner


def project_issue_view(
    issue: Dict[str, Any],
    role: Optional[str],
    requester_id: Any = None,
) -> Dict[str, Any]:
    """
    Redact an issue for the given requester.

    Args:
        issue: Serialized issue
        role: Requester role, or None for anonymous public access
        requester_id: Requester user id, if authenticated

    Returns:
        A new dict; the input is not modified
    """
    is_owner = _same_id(issue_owner_id(issue), requester_id)
    capabilities = capabilities_for(role, is_owner)
    view = dict(issue)

    if READ_REPORTER_IDENTITY not in capabilities:
        if isinstance(view.get("reporter"), dict):
            view["reporter"] = _anonymize_person(view["reporter"])
        if "reported_by_id" in view:
            view["reported_by_id"] = None

    if READ_EXACT_LOCATION not in capabilities:
        if "latitude" in view:
            view["latitude"] = 0.0
        if "longitude" in view:
            view["longitude"] = 0.0
        if "address" in view:
            view["address"] = mask_address(view["address"])

    if READ_STAFF_ASSIGNMENT not in capabilities:
        for field in STAFF_ASSIGNMENT_FIELDS:
            if field in view:
                view[field] = None

    if READ_ALL_COMMENTS not in capabilities and "comments" in view:
        view["comments"] = [
            comment for comment in (view["comments"] or [])
            if isinstance(comment, dict) and _same_id(comment.get("author_id"), requester_id)
        ]

    if READ_ESCALATION not in capabilities:
        view.pop("escalation_history", None)

    if READ_INTERNAL_METRICS not in capabilities:
        for field in INTERNAL_METRIC_FIELDS:
            view.pop(field, None)

    return view


def project_user_view(
    user: Dict[str, Any],
    role: Optional[str],
    requester_id: Any = None,
) -> Dict[str, Any]:
    """Redact a user record for the given requester."""
    is_owner = _same_id(user.get("id"), requester_id)
    if READ_REPORTER_IDENTITY in capabilities_for(role, is_owner):
        return dict(user)
    return _anonymize_person(user)
