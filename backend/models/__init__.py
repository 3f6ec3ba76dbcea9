from .taxonomy import Brand, Model, DeviceType
from .device import Device, Mac, Ip
from .group import Group, device_groups
from .detail_record import DetailRecord, Characteristic

__all__ = [
    "Brand",
    "Model",
    "DeviceType",
    "Device",
    "Mac",
    "Ip",
    "Group",
    "device_groups",
    "DetailRecord",
    "Characteristic",
]
