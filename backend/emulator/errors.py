"""Exception hierarchy shared by the emulator core and its HTTP surface."""

from __future__ import annotations


class EmulatorError(Exception):
    """Base class for every error raised by the emulator."""


class ConfigurationError(EmulatorError):
    """A device profile, field spec, library or fleet config is malformed."""


class ValidationError(EmulatorError):
    """A caller-supplied value cannot be used (bad DevEUI, unsupported scenario, ...)."""


class NotFoundError(EmulatorError):
    """An id does not resolve to a known scenario, alarm trigger, profile or device."""

    def __init__(self, kind: str, ident: str):
        super().__init__(f"Unknown {kind}: {ident}")
        self.kind = kind
        self.ident = ident
