"""
The DTO classes and the shapes of the top-level collections.

Each DTO class declares its fields in an explicit table, ``FIELDS``, of :py:class:`Field`
instances; the codec walks this table rather than inspecting instances.  Fields that are not
given at construction are set to a zero-value that depends on their kind:

=========  ============
kind       zero-value
=========  ============
``int``    ``0``
``bool``   ``False``
``str``    ``None``
``list``   ``None`` (absent)
``map``    ``None`` (absent)
``record`` ``None`` (absent)
=========  ============

An empty list or map is distinct from an absent one.
"""
from collections import namedtuple, OrderedDict
from typing import Mapping

__all__ = [ "INT", "STR", "BOOL", "FLOAT", "LIST", "RECORD", "MAP", "SCALAR_KINDS",
            "Field", "DTO", "ListOf", "MapOf", "FrameworkStartLevelDTO", "BundleDTO",
            "BundleStateDTO", "BundleStartLevelDTO", "ServiceReferenceDTO", "ExtensionDTO" ]

INT = "int"
STR = "str"
BOOL = "bool"
FLOAT = "float"   # allowed only as a map value
LIST = "list"
RECORD = "record"
MAP = "map"

SCALAR_KINDS = (INT, STR, BOOL, FLOAT)

_zero_values = { INT: 0, BOOL: False }

class Field(namedtuple("Field", ["name", "kind", "item"])):
    """
    a description of a DTO field.

    :param str name:  the field's name as it appears on the wire
    :param str kind:  one of ``int``, ``str``, ``bool``, ``list``, ``record``, or ``map``
    :param item:      for a ``list``, the kind of its items: a scalar kind or a DTO class;
                      for a ``record``, the DTO class of the nested record.
    """
    __slots__ = ()

    def __new__(cls, name: str, kind: str, item=None):
        if kind in (LIST, RECORD) and not item:
            raise ValueError("Field %s: %s kind requires an item shape" % (name, kind))
        return super(Field, cls).__new__(cls, name, kind, item)

    @property
    def zero_value(self):
        return _zero_values.get(self.kind)

class DTO(object):
    """
    the base class for the records exchanged over the REST interface.  Subclasses set
    ``FIELDS``, a sequence of :py:class:`Field` instances, and ``ELEMENT``, the name given to
    the record's element in XML.
    """
    FIELDS = ()
    ELEMENT = "record"

    def __init__(self, **kw):
        names = set(f.name for f in self.FIELDS)
        unknown = [k for k in kw if k not in names]
        if unknown:
            raise TypeError("%s: unrecognized field(s): %s" % (type(self).__name__, ", ".join(unknown)))
        for f in self.FIELDS:
            setattr(self, f.name, kw.get(f.name, f.zero_value))

    @classmethod
    def field(cls, name: str) -> Field:
        for f in cls.FIELDS:
            if f.name == name:
                return f
        return None

    def to_dict(self) -> Mapping:
        """
        return the present (non-None) fields as a dictionary
        """
        return OrderedDict((f.name, getattr(self, f.name)) for f in self.FIELDS
                           if getattr(self, f.name) is not None)

    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return all(getattr(self, f.name) == getattr(other, f.name) for f in self.FIELDS)

    def __ne__(self, other):
        eq = self.__eq__(other)
        return eq if eq is NotImplemented else not eq

    def __repr__(self):
        return "%s(%s)" % (type(self).__name__,
                           ", ".join("%s=%r" % (f.name, getattr(self, f.name)) for f in self.FIELDS))

class ListOf(object):
    """
    the shape of a top-level homogeneous list
    :param item:  the kind of the list's items: a scalar kind or a DTO class
    """
    ELEMENT = "list"

    def __init__(self, item):
        self.item = item

    def __eq__(self, other):
        return isinstance(other, ListOf) and self.item == other.item

    def __repr__(self):
        return "ListOf(%s)" % getattr(self.item, "__name__", self.item)

class MapOf(object):
    """
    the shape of a top-level map with string keys.  By default, the values are strings; if
    ``value`` is None, values may be of any scalar kind or a list of scalars.
    """
    ELEMENT = "map"

    def __init__(self, value=STR):
        self.value = value

    def __eq__(self, other):
        return isinstance(other, MapOf) and self.value == other.value

    def __repr__(self):
        return "MapOf(%s)" % self.value


class FrameworkStartLevelDTO(DTO):
    """
    the start level of the runtime and the start level assigned to newly installed bundles
    """
    ELEMENT = "frameworkStartLevel"
    FIELDS = (
        Field("startLevel", INT),
        Field("initialBundleStartLevel", INT)
    )

class BundleDTO(DTO):
    """
    a description of an installed bundle.  The services it registers and the services it uses
    are referred to by their identifiers.
    """
    ELEMENT = "bundle"
    FIELDS = (
        Field("id", INT),
        Field("lastModified", INT),
        Field("state", INT),
        Field("symbolicName", STR),
        Field("version", STR),
        Field("location", STR),
        Field("registeredServices", LIST, INT),
        Field("servicesInUse", LIST, INT)
    )

class BundleStateDTO(DTO):
    ELEMENT = "bundleState"
    FIELDS = (
        Field("state", INT),
        Field("options", INT)
    )

class BundleStartLevelDTO(DTO):
    ELEMENT = "bundleStartLevel"
    FIELDS = (
        Field("bundle", INT),
        Field("startLevel", INT),
        Field("activationPolicyUsed", BOOL),
        Field("persistentlyStarted", BOOL)
    )

class ServiceReferenceDTO(DTO):
    """
    a description of a registered service: its identifier, the bundle that registered it, its
    properties, and the bundles currently using it.
    """
    ELEMENT = "serviceReference"
    FIELDS = (
        Field("id", INT),
        Field("bundle", INT),
        Field("properties", MAP),
        Field("usingBundles", LIST, INT)
    )

class ExtensionDTO(DTO):
    ELEMENT = "extension"
    FIELDS = (
        Field("name", STR),
        Field("path", STR)
    )
