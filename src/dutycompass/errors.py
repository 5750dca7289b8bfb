# src/dutycompass/errors.py


class DutyCompassError(Exception):
    """Base class for everything raised by dutycompass."""


class MalformedDate(DutyCompassError, ValueError):
    """A date value could not be parsed."""

    def __init__(self, value):
        super().__init__(f"unparsable date: {value!r}")
        self.value = value
