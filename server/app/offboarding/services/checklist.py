"""IT offboarding checklist: default template, completion stamping and bulk updates.

A termination owns its checklist as an ordered list of ``ChecklistItem`` values.
Every mutation here returns a new list and leaves the input untouched; the
store persists whatever list comes back.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

from ..models.termination import ChecklistItem
from .errors import ChecklistItemNotFoundError, TerminationValidationError

CATEGORY_ACTIVE_DIRECTORY = "Active Directory"
CATEGORY_MICROSOFT_365 = "Microsoft 365"
CATEGORY_SOFTWARE_ACCESS = "Software Access"
CATEGORY_PHONE_FAX = "Phone/Fax"

CUSTOM_ITEM_PREFIX = "custom-"

DEFAULT_CHECKLIST_TEMPLATE: tuple[tuple[str, str, str], ...] = (
    ("1", CATEGORY_ACTIVE_DIRECTORY, "Disable Active Directory user account"),
    ("2", CATEGORY_ACTIVE_DIRECTORY, "Reset account password"),
    ("3", CATEGORY_ACTIVE_DIRECTORY, "Remove from security and distribution groups"),
    ("4", CATEGORY_ACTIVE_DIRECTORY, "Move account to Disabled Users OU"),
    ("5", CATEGORY_ACTIVE_DIRECTORY, "Hide from Global Address List"),
    ("6", CATEGORY_MICROSOFT_365, "Block sign-in and revoke active sessions"),
    ("7", CATEGORY_MICROSOFT_365, "Convert mailbox to shared mailbox"),
    ("8", CATEGORY_MICROSOFT_365, "Set up mail forwarding to manager"),
    ("9", CATEGORY_MICROSOFT_365, "Transfer OneDrive files to manager"),
    ("10", CATEGORY_MICROSOFT_365, "Remove Microsoft 365 license (Outlook and Teams)"),
    ("11", CATEGORY_SOFTWARE_ACCESS, "Remove Automate license"),
    ("12", CATEGORY_SOFTWARE_ACCESS, "Remove ScreenConnect access"),
    ("13", CATEGORY_SOFTWARE_ACCESS, "Remove Adobe Acrobat license"),
    ("14", CATEGORY_SOFTWARE_ACCESS, "Revoke VPN and remote access"),
    ("15", CATEGORY_SOFTWARE_ACCESS, "Remove line-of-business application accounts"),
    ("16", CATEGORY_PHONE_FAX, "Disable phone extension and voicemail"),
    ("17", CATEGORY_PHONE_FAX, "Forward direct line to department"),
    ("18", CATEGORY_PHONE_FAX, "Remove fax number and eFax account"),
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def default_checklist() -> list[ChecklistItem]:
    """A fresh copy of the default template, nothing completed."""
    return [
        ChecklistItem(id=item_id, category=category, description=description)
        for item_id, category, description in DEFAULT_CHECKLIST_TEMPLATE
    ]


def categories(checklist: Sequence[ChecklistItem]) -> list[str]:
    seen: list[str] = []
    for item in checklist:
        if item.category not in seen:
            seen.append(item.category)
    return seen


def _stamp(item: ChecklistItem, completed: bool, actor: Optional[str], now: datetime) -> ChecklistItem:
    if not completed:
        return item.model_copy(update={"completed": False, "completed_by": None, "completed_date": None})
    if item.completed and item.completed_by and item.completed_date:
        return item
    return item.model_copy(update={"completed": True, "completed_by": actor, "completed_date": now})


def _require_actor(completed: bool, actor: Optional[str]) -> Optional[str]:
    normalized = (actor or "").strip()
    if completed and not normalized:
        raise TerminationValidationError("A user is required to complete checklist items")
    return normalized or None


def _apply(
    checklist: Sequence[ChecklistItem],
    matches,
    completed: bool,
    actor: Optional[str],
    now: Optional[datetime],
) -> list[ChecklistItem]:
    actor = _require_actor(completed, actor)
    now = now or _utcnow()
    return [_stamp(item, completed, actor, now) if matches(item) else item for item in checklist]


def set_item_completion(
    checklist: Sequence[ChecklistItem],
    item_id: str,
    completed: bool,
    actor: Optional[str],
    now: Optional[datetime] = None,
) -> list[ChecklistItem]:
    if not any(item.id == item_id for item in checklist):
        raise ChecklistItemNotFoundError(item_id)
    return _apply(checklist, lambda item: item.id == item_id, completed, actor, now)


def bulk_set_category(
    checklist: Sequence[ChecklistItem],
    category: str,
    completed: bool,
    actor: Optional[str],
    now: Optional[datetime] = None,
) -> list[ChecklistItem]:
    """Apply completion to every item in ``category``. Unknown categories are a no-op."""
    return _apply(checklist, lambda item: item.category == category, completed, actor, now)


def bulk_set_all(
    checklist: Sequence[ChecklistItem],
    completed: bool,
    actor: Optional[str],
    now: Optional[datetime] = None,
) -> list[ChecklistItem]:
    return _apply(checklist, lambda item: True, completed, actor, now)


def _custom_item_id(existing_ids: set[str], now: datetime) -> str:
    stamp = int(now.timestamp() * 1000)
    candidate = f"{CUSTOM_ITEM_PREFIX}{stamp}"
    while candidate in existing_ids:
        stamp += 1
        candidate = f"{CUSTOM_ITEM_PREFIX}{stamp}"
    return candidate


def add_item(
    checklist: Sequence[ChecklistItem],
    category: str,
    description: str,
    now: Optional[datetime] = None,
) -> tuple[list[ChecklistItem], ChecklistItem]:
    category = (category or "").strip()
    description = (description or "").strip()
    if not category:
        raise TerminationValidationError("category cannot be empty")
    if not description:
        raise TerminationValidationError("description cannot be empty")

    item = ChecklistItem(
        id=_custom_item_id({existing.id for existing in checklist}, now or _utcnow()),
        category=category,
        description=description,
    )
    return [*checklist, item], item


def remove_item(checklist: Sequence[ChecklistItem], item_id: str) -> list[ChecklistItem]:
    remaining = [item for item in checklist if item.id != item_id]
    if len(remaining) == len(checklist):
        raise ChecklistItemNotFoundError(item_id)
    return remaining


def completion_ratio(checklist: Sequence[ChecklistItem]) -> float:
    """Fraction of completed items. An empty checklist counts as 0.0 (not complete)."""
    if not checklist:
        return 0.0
    completed = sum(1 for item in checklist if item.completed)
    return completed / len(checklist)


def completion_percent(checklist: Sequence[ChecklistItem]) -> int:
    return round(completion_ratio(checklist) * 100)


def is_complete(checklist: Sequence[ChecklistItem]) -> bool:
    return completion_ratio(checklist) == 1.0


def normalize_checklist(
    items: Iterable[ChecklistItem],
    actor: Optional[str],
    now: Optional[datetime] = None,
) -> list[ChecklistItem]:
    """Validate a caller-supplied checklist and restore the completion pairing.

    Completed items that arrive without ``completed_by``/``completed_date`` are
    stamped with ``actor``; incomplete items have both cleared.
    """
    now = now or _utcnow()
    normalized: list[ChecklistItem] = []
    seen_ids: set[str] = set()
    for item in items:
        item_id = (item.id or "").strip()
        if not item_id:
            raise TerminationValidationError("Checklist item id cannot be empty")
        if item_id in seen_ids:
            raise TerminationValidationError(f"Duplicate checklist item id '{item_id}'")
        if not item.category.strip() or not item.description.strip():
            raise TerminationValidationError(
                f"Checklist item '{item_id}' requires a category and description"
            )
        seen_ids.add(item_id)

        if item.completed:
            completed_by = (item.completed_by or "").strip() or _require_actor(True, actor)
            item = item.model_copy(update={
                "id": item_id,
                "completed_by": completed_by,
                "completed_date": item.completed_date or now,
            })
        else:
            item = item.model_copy(update={"id": item_id, "completed_by": None, "completed_date": None})
        normalized.append(item)
    return normalized


def resolve_initial_checklist(
    items: Optional[Sequence[ChecklistItem]],
    actor: Optional[str],
    now: Optional[datetime] = None,
) -> list[ChecklistItem]:
    """The checklist a new termination starts with: the caller's if non-empty, else the default."""
    if not items:
        return default_checklist()
    return normalize_checklist(items, actor, now)
