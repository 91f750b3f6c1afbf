"""
Parsing and evaluation of LDAP-style (RFC 1960) filters over service properties.

Supported syntax::

   (&(objectClass=org.example.Greeter)(|(lang=en)(lang=fr))(!(service.ranking<=0)))

Items can test equality (``=``), approximate equality (``~=``, case- and whitespace-insensitive),
ordering (``>=``, ``<=``), presence (``attr=*``), and substrings (``name=org.*.Greeter``).
Attribute names are matched without regard to case.  A backslash escapes the following
character in a value.
"""
from collections.abc import Mapping

from . import InvalidFilter

__all__ = [ "parse", "Filter" ]

class Filter(object):
    """
    a parsed filter.  Use :py:meth:`matches` to test a set of properties.
    """
    def matches(self, props: Mapping) -> bool:
        raise NotImplementedError()

class _And(Filter):
    def __init__(self, subs):
        self.subs = subs
    def matches(self, props):
        return all(s.matches(props) for s in self.subs)

class _Or(Filter):
    def __init__(self, subs):
        self.subs = subs
    def matches(self, props):
        return any(s.matches(props) for s in self.subs)

class _Not(Filter):
    def __init__(self, sub):
        self.sub = sub
    def matches(self, props):
        return not self.sub.matches(props)

def _lookup(props, attr):
    attr = attr.lower()
    for k, v in props.items():
        if k.lower() == attr:
            return v
    return None

def _values(val):
    return list(val) if isinstance(val, (list, tuple, set)) else [val]

class _Present(Filter):
    def __init__(self, attr):
        self.attr = attr
    def matches(self, props):
        return _lookup(props, self.attr) is not None

class _Compare(Filter):
    def __init__(self, attr, op, value):
        self.attr = attr
        self.op = op
        self.value = value

    def matches(self, props):
        val = _lookup(props, self.attr)
        if val is None:
            return False
        return any(self._cmp(v) for v in _values(val))

    def _cmp(self, v):
        target = self.value
        if isinstance(v, bool):
            v = "true" if v else "false"
            target = target.strip().lower()
        elif isinstance(v, (int, float)):
            try:
                target = type(v)(target.strip())
            except ValueError:
                return False
        else:
            v = str(v)

        if self.op == "=":
            return v == target
        if self.op == "~=":
            return "".join(str(v).split()).lower() == "".join(str(target).split()).lower()
        if self.op == ">=":
            return v >= target
        return v <= target

class _Substring(Filter):
    def __init__(self, attr, parts):
        # parts: the literal pieces between the wildcards
        self.attr = attr
        self.parts = parts

    def matches(self, props):
        val = _lookup(props, self.attr)
        if val is None:
            return False
        return any(self._match(str(v)) for v in _values(val))

    def _match(self, s):
        first, last = self.parts[0], self.parts[-1]
        if not s.startswith(first):
            return False
        pos = len(first)
        for mid in self.parts[1:-1]:
            i = s.find(mid, pos)
            if i < 0:
                return False
            pos = i + len(mid)
        return len(s) - pos >= len(last) and s.endswith(last)

class _Parser(object):

    def __init__(self, text):
        self.text = text
        self.pos = 0

    def fail(self, msg):
        raise InvalidFilter(self.text, "%s at position %d" % (msg, self.pos))

    def skipws(self):
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def expect(self, c):
        self.skipws()
        if self.pos >= len(self.text) or self.text[self.pos] != c:
            self.fail("expected '%s'" % c)
        self.pos += 1

    def parse(self):
        out = self.parse_filter()
        self.skipws()
        if self.pos != len(self.text):
            self.fail("unexpected trailing characters")
        return out

    def parse_filter(self):
        self.expect('(')
        self.skipws()
        if self.pos >= len(self.text):
            self.fail("unexpected end of filter")
        c = self.text[self.pos]
        if c in "&|":
            self.pos += 1
            subs = self.parse_list()
            out = _And(subs) if c == '&' else _Or(subs)
        elif c == '!':
            self.pos += 1
            out = _Not(self.parse_filter())
        else:
            out = self.parse_item()
        self.expect(')')
        return out

    def parse_list(self):
        subs = []
        self.skipws()
        while self.pos < len(self.text) and self.text[self.pos] == '(':
            subs.append(self.parse_filter())
            self.skipws()
        if not subs:
            self.fail("expected a filter list")
        return subs

    def parse_item(self):
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] not in "=<>~()":
            self.pos += 1
        attr = self.text[start:self.pos].strip()
        if not attr:
            self.fail("missing attribute name")
        if self.pos >= len(self.text) or self.text[self.pos] in "()":
            self.fail("missing operator")

        op = self.text[self.pos]
        if op in "<>~":
            self.pos += 1
            if self.pos >= len(self.text) or self.text[self.pos] != '=':
                self.fail("invalid operator")
            op += '='
        self.pos += 1

        parts = self.parse_value()
        if op == '=':
            if parts == ["", ""]:
                return _Present(attr)
            if len(parts) > 1:
                return _Substring(attr, parts)
        elif len(parts) > 1:
            self.fail("wildcard not allowed with " + op)
        return _Compare(attr, op, parts[0])

    def parse_value(self):
        # returns the literal pieces separated by unescaped wildcards
        parts = []
        buf = []
        while self.pos < len(self.text):
            c = self.text[self.pos]
            if c == ')':
                break
            if c == '(':
                self.fail("unescaped '(' in value")
            if c == '\\':
                self.pos += 1
                if self.pos >= len(self.text):
                    self.fail("dangling escape")
                buf.append(self.text[self.pos])
            elif c == '*':
                parts.append("".join(buf))
                buf = []
            else:
                buf.append(c)
            self.pos += 1
        parts.append("".join(buf))
        return parts

def parse(text: str) -> Filter:
    """
    parse a filter string
    :raises InvalidFilter:  if the string is not a legal filter
    """
    if not isinstance(text, str) or not text.strip():
        raise InvalidFilter(str(text), "Empty filter")
    return _Parser(text.strip()).parse()
