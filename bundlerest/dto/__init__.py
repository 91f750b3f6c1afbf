"""
The data transfer objects (DTOs) exchanged over the REST interface and the codec that converts
them to and from their wire representations.

This package is organized into the following modules:

``shapes``
    the DTO classes, each described by an explicit table of its fields, plus the shapes of
    the top-level collections (lists and string maps)
``media``
    the media types identifying the logical kind and the wire syntax (JSON or XML) of a
    representation
``codec``
    the functions, :py:func:`~bundlerest.dto.codec.encode` and
    :py:func:`~bundlerest.dto.codec.decode`, that convert between DTOs and bytes
"""
from bundlerest.base import BundleRestException

try:
    from .version import __version__
except ImportError:
    __version__ = "(unset)"

class DecodeError(BundleRestException):
    """
    an exception indicating that a wire representation could not be converted into its target
    shape, either because it is syntactically malformed or because a value could not be
    coerced into its declared type.
    """

    def __init__(self, path: str, message: str, cause: Exception=None):
        """
        :param str path:     the path to the offending field (e.g. ``bundle.registeredServices[2]``);
                             an empty string refers to the document as a whole
        :param str message:  a description of the problem
        """
        self.path = path
        self.problem = message
        if path:
            message = "%s: %s" % (path, message)
        super(DecodeError, self).__init__(message, cause)

class EncodeError(BundleRestException):
    """
    an exception indicating that a value cannot be written in the requested wire syntax, such
    as a string holding a character that XML does not allow.
    """

    def __init__(self, path: str, message: str):
        self.path = path
        self.problem = message
        if path:
            message = "%s: %s" % (path, message)
        super(EncodeError, self).__init__(message)

class UnsupportedMediaType(BundleRestException):
    """
    an exception indicating that a media type does not identify a supported wire syntax
    """
    def __init__(self, mediatype: str):
        super(UnsupportedMediaType, self).__init__("Unsupported media type: " + str(mediatype))
        self.mediatype = mediatype

from .shapes import *
from .media import MediaKind, syntax_of, JSON, XML
from .codec import encode, decode
