"""Exceptions raised by reefer."""


class ReeferError(Exception):
    """Base class for errors that stop a reefer run."""


class BlasrError(ReeferError):
    """The blasr aligner could not be run or failed."""
