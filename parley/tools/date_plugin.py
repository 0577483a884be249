"""Built-in date and time functions attached to every routed engine."""

from datetime import datetime, timezone

from parley.tools.registry import CapabilityDescriptor, CapabilityRegistry, capability

DATE_PLUGIN_NAME = "System_DatePlugin"


class DatePlugin:
    @staticmethod
    @capability("Get the current date in ISO format (YYYY-MM-DD), in UTC.")
    def get_current_date() -> str:
        return datetime.now(timezone.utc).date().isoformat()

    @staticmethod
    @capability("Get the current date and time in ISO 8601 format, in UTC.")
    def get_current_datetime() -> str:
        return datetime.now(timezone.utc).replace(microsecond=0).isoformat()

    @staticmethod
    @capability("Get the current day of the week, e.g. Monday.")
    def get_day_of_week() -> str:
        return datetime.now(timezone.utc).strftime("%A")


_descriptor = None


def date_plugin_descriptor() -> CapabilityDescriptor:
    global _descriptor
    if _descriptor is None:
        _descriptor = CapabilityRegistry().register(DatePlugin, name=DATE_PLUGIN_NAME)
    return _descriptor
