"""
Media types for the representations exchanged over the REST interface.

Every logical kind of representation has exactly two media types, differing only in their
suffix: ``application/org.osgi.<kind>+json`` and ``application/org.osgi.<kind>+xml``.
"""
from collections import OrderedDict

from . import UnsupportedMediaType

JSON = "json"
XML = "xml"
SYNTAXES = (JSON, XML)

MEDIA_PREFIX = "application/org.osgi."

class MediaKind(object):
    """
    a logical kind of representation (e.g. "bundle") together with its two media types
    """

    def __init__(self, name: str):
        self.name = name

    @property
    def json_type(self) -> str:
        return "%s%s+%s" % (MEDIA_PREFIX, self.name, JSON)

    @property
    def xml_type(self) -> str:
        return "%s%s+%s" % (MEDIA_PREFIX, self.name, XML)

    def for_syntax(self, syntax: str) -> str:
        """
        return the media type of this kind for the given wire syntax ("json" or "xml")
        """
        if syntax == JSON:
            return self.json_type
        if syntax == XML:
            return self.xml_type
        raise ValueError("Unsupported syntax: " + str(syntax))

    def __str__(self):
        return self.name

    def __repr__(self):
        return "MediaKind(%r)" % self.name

FRAMEWORK_STARTLEVEL = MediaKind("framework.startlevel")
BUNDLE = MediaKind("bundle")
BUNDLES = MediaKind("bundles")
BUNDLES_REPRESENTATIONS = MediaKind("bundles.representations")
BUNDLE_STATE = MediaKind("bundle.state")
BUNDLE_HEADER = MediaKind("bundle.header")
BUNDLE_STARTLEVEL = MediaKind("bundle.startlevel")
SERVICE = MediaKind("service")
SERVICES = MediaKind("services")
SERVICES_REPRESENTATIONS = MediaKind("services.representations")
EXTENSIONS = MediaKind("extensions")

kinds = OrderedDict((k.name, k) for k in [
    FRAMEWORK_STARTLEVEL, BUNDLE, BUNDLES, BUNDLES_REPRESENTATIONS, BUNDLE_STATE, BUNDLE_HEADER,
    BUNDLE_STARTLEVEL, SERVICE, SERVICES, SERVICES_REPRESENTATIONS, EXTENSIONS
])

def syntax_of(mediatype: str) -> str:
    """
    return the wire syntax, "json" or "xml", indicated by a media type.  Both the kind-specific
    types (ending in ``+json`` or ``+xml``) and the generic ones (e.g. ``application/json``,
    ``text/xml``) are recognized; parameters (e.g. ``; charset=utf-8``) are ignored.

    :raises UnsupportedMediaType:  if the media type indicates neither syntax
    """
    mt = (mediatype or "").split(';')[0].strip().lower()
    for syntax in SYNTAXES:
        if mt.endswith('+' + syntax) or mt.endswith('/' + syntax):
            return syntax
    raise UnsupportedMediaType(mediatype)
