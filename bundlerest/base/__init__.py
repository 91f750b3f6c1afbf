"""
Foundational classes and utilities shared by the bundlerest subsystems.

This package is organized into the following modules:

``config``
    loading of configuration data from files or URLs and the set-up of logging
"""
try:
    from .version import __version__
except ImportError:
    __version__ = "(unset)"

SYSTEM_NAME = "Bundle Runtime REST Interface"
SYSTEM_ABBREV = "bundlerest"

class BundleRestException(Exception):
    """
    a general base class for all exceptions raised by the bundlerest subsystems.
    """

    def __init__(self, message: str=None, cause: Exception=None):
        """
        create the exception
        :param str     message:  a description of the problem; if not provided, one will be
                                 derived from the cause (if given).
        :param Exception cause:  an underlying exception that triggered this one
        """
        if not message:
            if cause:
                message = str(cause)
            else:
                message = "Unknown bundlerest failure"
        super(BundleRestException, self).__init__(message)
        self.cause = cause
