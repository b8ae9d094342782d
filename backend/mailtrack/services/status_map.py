"""
MailTrack Backend: Letter Status Vocabulary
=============================================

What:  The one table translating internal letter statuses to the labels
       shown on the tracking screen, and back.
How:   Both directions are derived from `_DISPLAY_LABELS`, so a label
       always maps back to the status it came from. Reverse lookups are
       case-insensitive; a label that is not defined for the letter type
       raises ValidationError instead of being guessed.

    Display label        Incoming      Outgoing
    ──────────────────── ───────────── ────────────────
    Pending              RECEIVED      PENDING_DISPATCH
    In Progress          TRANSFERRED   -
    Collected            COLLECTED     -
    Archived             ARCHIVED      -
    Handled to Courier   -             DISPATCHED
    Delivered            -             DELIVERED
    Returned             -             RETURNED
"""

from typing import Dict, List, Optional

from mailtrack.exceptions import ValidationError
from mailtrack.models.enums import IncomingStatus, LetterType, OutgoingStatus

_DISPLAY_LABELS: Dict[LetterType, Dict[str, str]] = {
    LetterType.INCOMING: {
        IncomingStatus.RECEIVED.value: "Pending",
        IncomingStatus.TRANSFERRED.value: "In Progress",
        IncomingStatus.COLLECTED.value: "Collected",
        IncomingStatus.ARCHIVED.value: "Archived",
    },
    LetterType.OUTGOING: {
        OutgoingStatus.PENDING_DISPATCH.value: "Pending",
        OutgoingStatus.DISPATCHED.value: "Handled to Courier",
        OutgoingStatus.DELIVERED.value: "Delivered",
        OutgoingStatus.RETURNED.value: "Returned",
    },
}

# lowercased label → internal status, per letter type
_INTERNAL_STATUSES: Dict[LetterType, Dict[str, str]] = {
    letter_type: {label.lower(): status for status, label in labels.items()}
    for letter_type, labels in _DISPLAY_LABELS.items()
}


def to_display(letter_type: LetterType, internal_status: str) -> str:
    """Internal status → display label. Unknown statuses pass through unchanged."""
    return _DISPLAY_LABELS[LetterType(letter_type)].get(internal_status, internal_status)


def find_internal(letter_type: LetterType, display_label: str) -> Optional[str]:
    """Display label → internal status, or None when the label is undefined for the type."""
    return _INTERNAL_STATUSES[LetterType(letter_type)].get(display_label.strip().lower())


def to_internal(letter_type: LetterType, display_label: str) -> str:
    """Display label → internal status; raises ValidationError for unmapped labels."""
    status = find_internal(letter_type, display_label)
    if status is None:
        raise ValidationError(
            message=(
                f"Invalid status '{display_label}' for {LetterType(letter_type).value} letters. "
                f"Allowed: {', '.join(display_labels(letter_type))}"
            ),
            field="status",
            context={"status": display_label, "type": LetterType(letter_type).value},
        )
    return status


def display_labels(letter_type: LetterType) -> List[str]:
    return list(_DISPLAY_LABELS[LetterType(letter_type)].values())
