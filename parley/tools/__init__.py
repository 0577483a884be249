from .date_plugin import DATE_PLUGIN_NAME, DatePlugin, date_plugin_descriptor
from .registry import (
    CapabilityDescriptor,
    CapabilityFunction,
    CapabilityKind,
    CapabilityRegistry,
    capability,
)

__all__ = [
    "capability",
    "CapabilityRegistry",
    "CapabilityDescriptor",
    "CapabilityFunction",
    "CapabilityKind",
    "DatePlugin",
    "DATE_PLUGIN_NAME",
    "date_plugin_descriptor",
]
