"""Services package for the device registrar."""

from .errors import (
    RegistrationError,
    RegistrationRejected,
    RegistrationConflict,
    RegistrationFailed,
)
from .details import (
    DetailRef,
    save_details,
    load_details,
    find_device_by_characteristic,
)

__all__ = [
    "RegistrationError",
    "RegistrationRejected",
    "RegistrationConflict",
    "RegistrationFailed",
    "DetailRef",
    "save_details",
    "load_details",
    "find_device_by_characteristic",
]
