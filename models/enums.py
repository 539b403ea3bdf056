from enum import Enum


class BaseStrEnum(str, Enum):
    """
    Base enum that serializes cleanly to a string
    and provides a .list() method for UI dropdowns.
    """

    def __str__(self):
        return str(self.value)

    @classmethod
    def list(cls):
        return [item.value for item in cls]


# -----------------------------------------------------
# RESOURCE TYPE
# -----------------------------------------------------
class ResourceType(BaseStrEnum):
    """Tour-scoped resource families guarded by isolation rules."""

    tour = "tour"
    event = "event"
    staff = "staff"
    financial = "financial"
    logistics = "logistics"


# -----------------------------------------------------
# MODIFICATION OPERATION
# -----------------------------------------------------
class Operation(BaseStrEnum):
    create = "create"
    update = "update"
    delete = "delete"


# -----------------------------------------------------
# TOUR ACCESS LEVEL
# -----------------------------------------------------
class TourAccessLevel(BaseStrEnum):
    """Coarse summary of what a user can do on one tour."""

    none = "none"
    view = "view"
    edit = "edit"
    manage = "manage"
    admin = "admin"
