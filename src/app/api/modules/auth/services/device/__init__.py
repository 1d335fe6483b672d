from app.api.modules.auth.services.device.fingerprint import (
    DeviceDescriptor,
    parse_fingerprint,
)
from app.api.modules.auth.services.device.registry import DeviceRegistry

__all__ = ("DeviceDescriptor", "DeviceRegistry", "parse_fingerprint")
