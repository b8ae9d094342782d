# Models package init: importing it registers every table with Base.metadata
from mailtrack.models.courier import Courier
from mailtrack.models.letter import IncomingLetter, OutgoingLetter
from mailtrack.models.notification import Notification
from mailtrack.models.user import Department, User

__all__ = [
    "Courier",
    "Department",
    "IncomingLetter",
    "Notification",
    "OutgoingLetter",
    "User",
]
