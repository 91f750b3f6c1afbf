r"""
The representation codec: conversion of DTOs and simple collections to and from JSON or XML.

The wire syntax is selected by the media type given to :py:func:`encode` or :py:func:`decode`
(see :py:func:`~bundlerest.dto.media.syntax_of`).  The conversion is directed by the target's
shape: a :py:class:`~bundlerest.dto.shapes.DTO` class, a
:py:class:`~bundlerest.dto.shapes.ListOf`, or a :py:class:`~bundlerest.dto.shapes.MapOf`.

In XML, a record is an element named after its DTO (e.g. ``<bundle>``) containing one child
element per present field.  Items of a list of scalars are held by ``<value>`` elements; the
items of a list of records are record elements.  Map entries are ``<entry key="...">``
elements; an entry whose value is not a string carries a ``type`` attribute (``int``,
``float``, ``bool``, or ``list:``\ *kind*) so that its value survives the round trip.  A
top-level list is held by a ``<list>`` element and a top-level map by a ``<map>`` element.
"""
import re, json
from collections import OrderedDict
from collections.abc import Mapping
from inspect import isclass

from lxml import etree

from . import DecodeError, EncodeError
from .media import syntax_of, JSON
from .shapes import (INT, STR, BOOL, FLOAT, LIST, RECORD, MAP, SCALAR_KINDS,
                     DTO, ListOf, MapOf)

__all__ = [ "encode", "decode" ]

LIST_TYPE_PREFIX = "list:"

def encode(value, mediatype: str, shape=None) -> bytes:
    """
    convert a value into bytes in the wire syntax indicated by a media type.

    :param value:          the DTO, list, or map to encode
    :param str mediatype:  the media type of the representation to produce
    :param shape:          the shape of the value; if not given, it is determined from the value
    :raises UnsupportedMediaType:  if the media type does not indicate JSON or XML
    :raises TypeError:     if the value is not of a supported shape
    :raises EncodeError:   if a value cannot be carried by the wire syntax (e.g. a control
                           character in XML)
    """
    syntax = syntax_of(mediatype)
    if shape is None:
        shape = _shape_of(value)

    if syntax == JSON:
        return json.dumps(_to_json(value, shape)).encode('utf-8')
    return etree.tostring(_to_xml(value, shape), xml_declaration=True, encoding="UTF-8")

def decode(data, mediatype: str, shape):
    """
    convert bytes in the wire syntax indicated by a media type into a value of the given shape.

    :param data:           the representation to decode, as bytes or str
    :param str mediatype:  the media type of the representation
    :param shape:          the shape to decode into: a DTO class, a ListOf, or a MapOf
    :raises DecodeError:   if the data is malformed or does not fit the shape
    :raises UnsupportedMediaType:  if the media type does not indicate JSON or XML
    """
    syntax = syntax_of(mediatype)
    if isinstance(data, str):
        data = data.encode('utf-8')

    if syntax == JSON:
        try:
            doc = json.loads(data.decode('utf-8'))
        except (ValueError, UnicodeDecodeError) as ex:
            raise DecodeError("", "malformed JSON document: " + str(ex), ex)
        return _from_json(doc, shape)

    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    try:
        root = etree.fromstring(data, parser)
    except etree.XMLSyntaxError as ex:
        raise DecodeError("", "malformed XML document: " + str(ex), ex)
    return _from_xml(root, shape)


def _sub(path, name):
    return "%s.%s" % (path, name) if path else name

def _idx(path, i):
    return "%s[%d]" % (path, i)

def _is_record(item):
    return isclass(item) and issubclass(item, DTO)

def _kind_of_scalar(value):
    if isinstance(value, bool):
        return BOOL
    if isinstance(value, int):
        return INT
    if isinstance(value, float):
        return FLOAT
    if isinstance(value, str):
        return STR
    return None

def _shape_of(value):
    if isinstance(value, DTO):
        return type(value)
    if isinstance(value, (list, tuple)):
        if not value:
            return ListOf(STR)
        if isinstance(value[0], DTO):
            return ListOf(type(value[0]))
        return ListOf(_kind_of_scalar(value[0]) or STR)
    if isinstance(value, Mapping):
        if all(isinstance(v, str) for v in value.values()):
            return MapOf()
        return MapOf(None)
    raise TypeError("Unable to encode value of type " + type(value).__name__)

## JSON

def _to_json(value, shape):
    if _is_record(shape):
        return _record_to_json(value, shape)
    if isinstance(shape, ListOf):
        return _value_to_json(value, LIST, shape.item)
    if isinstance(shape, MapOf):
        return _value_to_json(value, MAP, None)
    raise TypeError("Unsupported shape: " + repr(shape))

def _record_to_json(rec, shape):
    out = OrderedDict()
    for f in shape.FIELDS:
        v = getattr(rec, f.name)
        if v is not None:
            out[f.name] = _value_to_json(v, f.kind, f.item)
    return out

def _value_to_json(value, kind, item):
    if kind == LIST:
        if _is_record(item):
            return [_record_to_json(v, item) for v in value]
        return list(value)
    if kind == RECORD:
        return _record_to_json(value, item)
    if kind == MAP:
        return OrderedDict((k, list(v) if isinstance(v, (list, tuple)) else v)
                           for k, v in value.items())
    return value

def _from_json(doc, shape):
    if _is_record(shape):
        return _json_record(doc, shape, shape.ELEMENT)
    if isinstance(shape, ListOf):
        return _json_value(doc, LIST, shape.item, "")
    if isinstance(shape, MapOf):
        return _json_map(doc, shape.value, "")
    raise TypeError("Unsupported shape: " + repr(shape))

def _json_record(doc, shape, path):
    if not isinstance(doc, Mapping):
        raise DecodeError(path, "expected an object for %s" % shape.ELEMENT)
    kw = {}
    for f in shape.FIELDS:
        if doc.get(f.name) is not None:
            kw[f.name] = _json_value(doc[f.name], f.kind, f.item, _sub(path, f.name))
    return shape(**kw)

def _json_value(value, kind, item, path):
    if kind == LIST:
        if not isinstance(value, list):
            raise DecodeError(path, "expected an array")
        if _is_record(item):
            return [_json_record(v, item, _idx(path, i)) for i, v in enumerate(value)]
        return [_coerce(v, item, _idx(path, i)) for i, v in enumerate(value)]
    if kind == RECORD:
        return _json_record(value, item, path)
    if kind == MAP:
        return _json_map(value, None, path)
    return _coerce(value, kind, path)

def _json_map(value, valkind, path):
    if not isinstance(value, Mapping):
        raise DecodeError(path, "expected an object")
    out = OrderedDict()
    for k, v in value.items():
        p = _sub(path, k)
        if valkind:
            out[k] = _coerce(v, valkind, p)
        elif isinstance(v, list):
            out[k] = [_coerce(x, _kind_of_scalar(x), _idx(p, i)) for i, x in enumerate(v)]
        else:
            out[k] = _coerce(v, _kind_of_scalar(v), p)
    return out

def _coerce(value, kind, path):
    """
    convert a scalar wire value (a JSON scalar or XML text) to the given scalar kind
    """
    if kind is None or isinstance(value, (list, Mapping)) or value is None:
        raise DecodeError(path, "expected a scalar value")

    if kind == STR:
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    if kind == BOOL:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise DecodeError(path, "not a boolean value: %r" % value)

    if isinstance(value, bool):
        raise DecodeError(path, "not a %s value: %r" % (kind, value))

    if kind == INT:
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                pass
        raise DecodeError(path, "not an integer value: %r" % value)

    if kind == FLOAT:
        try:
            return float(value)
        except (TypeError, ValueError):
            raise DecodeError(path, "not a numeric value: %r" % value)

    raise DecodeError(path, "unsupported value type: " + str(kind))

## XML

# characters that XML 1.0 cannot carry, even escaped
_xml_illegal_re = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff\ud800-\udfff]')

def _xml_text(value, path):
    if isinstance(value, bool):
        return "true" if value else "false"
    out = str(value)
    m = _xml_illegal_re.search(out)
    if m:
        raise EncodeError(path, "character %r cannot be represented in XML" % m.group())
    return out

def _to_xml(value, shape):
    if _is_record(shape):
        return _record_to_xml(value, shape)
    if isinstance(shape, ListOf):
        root = etree.Element(ListOf.ELEMENT)
        _fill_xml(root, value, LIST, shape.item, "")
        return root
    if isinstance(shape, MapOf):
        root = etree.Element(MapOf.ELEMENT)
        _fill_xml(root, value, MAP, None, "")
        return root
    raise TypeError("Unsupported shape: " + repr(shape))

def _record_to_xml(rec, shape, el=None, path=None):
    if el is None:
        el = etree.Element(shape.ELEMENT)
    if path is None:
        path = shape.ELEMENT
    for f in shape.FIELDS:
        v = getattr(rec, f.name)
        if v is not None:
            _fill_xml(etree.SubElement(el, f.name), v, f.kind, f.item, _sub(path, f.name))
    return el

def _fill_xml(el, value, kind, item, path):
    if kind == LIST:
        for i, v in enumerate(value):
            if _is_record(item):
                el.append(_record_to_xml(v, item, path=_idx(path, i)))
            else:
                etree.SubElement(el, "value").text = _xml_text(v, _idx(path, i))
    elif kind == RECORD:
        _record_to_xml(value, item, el, path)
    elif kind == MAP:
        for k, v in value.items():
            p = _sub(path, str(k))
            entry = etree.SubElement(el, "entry", attrib={"key": _xml_text(k, p)})
            if isinstance(v, (list, tuple)):
                ikind = _kind_of_scalar(v[0]) if v else STR
                entry.set("type", LIST_TYPE_PREFIX + (ikind or STR))
                for i, x in enumerate(v):
                    etree.SubElement(entry, "value").text = _xml_text(x, _idx(p, i))
            else:
                vkind = _kind_of_scalar(v) or STR
                if vkind != STR:
                    entry.set("type", vkind)
                entry.text = _xml_text(v, p)
    else:
        el.text = _xml_text(value, path)

def _children(el):
    # skip comments and processing instructions
    return [c for c in el if isinstance(c.tag, str)]

def _from_xml(root, shape):
    if _is_record(shape):
        if root.tag != shape.ELEMENT:
            raise DecodeError(shape.ELEMENT, "expected <%s> element, found <%s>" %
                              (shape.ELEMENT, root.tag))
        return _xml_record(root, shape, shape.ELEMENT)
    if isinstance(shape, ListOf):
        return _xml_value(root, LIST, shape.item, "")
    if isinstance(shape, MapOf):
        return _xml_map(root, shape.value, "")
    raise TypeError("Unsupported shape: " + repr(shape))

def _xml_record(el, shape, path):
    byname = dict((c.tag, c) for c in _children(el))
    kw = {}
    for f in shape.FIELDS:
        if f.name in byname:
            kw[f.name] = _xml_value(byname[f.name], f.kind, f.item, _sub(path, f.name))
    return shape(**kw)

def _xml_value(el, kind, item, path):
    if kind == LIST:
        out = []
        for i, c in enumerate(_children(el)):
            p = _idx(path, i)
            if _is_record(item):
                if c.tag != item.ELEMENT:
                    raise DecodeError(p, "expected <%s> element, found <%s>" % (item.ELEMENT, c.tag))
                out.append(_xml_record(c, item, p))
            else:
                if c.tag != "value":
                    raise DecodeError(p, "expected <value> element, found <%s>" % c.tag)
                out.append(_xml_value(c, item, None, p))
        return out
    if kind == RECORD:
        return _xml_record(el, item, path)
    if kind == MAP:
        return _xml_map(el, None, path)

    if _children(el):
        raise DecodeError(path, "expected a scalar value")
    return _coerce(el.text or "", kind, path)

def _xml_map(el, valkind, path):
    out = OrderedDict()
    for c in _children(el):
        if c.tag != "entry" or c.get("key") is None:
            raise DecodeError(path, "expected <entry key=...> element, found <%s>" % c.tag)
        key = c.get("key")
        p = _sub(path, key)
        tp = valkind or c.get("type", STR)
        if tp.startswith(LIST_TYPE_PREFIX) and tp[len(LIST_TYPE_PREFIX):] in SCALAR_KINDS:
            out[key] = _xml_value(c, LIST, tp[len(LIST_TYPE_PREFIX):], p)
        elif tp in SCALAR_KINDS:
            out[key] = _xml_value(c, tp, None, p)
        else:
            raise DecodeError(p, "unsupported entry type: " + tp)
    return out
