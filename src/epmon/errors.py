"""Exceptions raised by epmon collaborators."""


class EpmonError(Exception):
    """Base class for epmon errors."""


class ConfigFetchError(EpmonError):
    """The watch-list source could not be fetched or decoded."""


class ConfigFormatError(ConfigFetchError):
    """The watch-list source answered with an unexpected body shape."""


class ReportError(EpmonError):
    """A report could not be delivered to the results collector."""
