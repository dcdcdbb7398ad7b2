"""Exceptions raised by crowd-whisper."""


class CrowdWhisperError(Exception):
    """Base class for engine errors."""


class ZoneStoreUnavailable(CrowdWhisperError):
    """
    The zone store could not be read.

    Raised from Engine.ingest. Transient: the caller decides whether to
    retry or drop the reading.
    """
