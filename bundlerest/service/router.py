"""
A path router that maps URL path templates to resource handlers.

A template is a path made of literal segments and variable segments (``{name}``), e.g.
``/framework/bundle/{bundleId}/state``.  A request path matches a template when it has the same
number of segments, each literal segment is identical, and each variable segment is non-empty;
the values of the variable segments are returned as bindings.  When more than one template
matches, the one with a literal segment at the earliest position where the templates differ wins
(so ``/a/b`` is preferred over ``/a/{x}`` for the path ``/a/b``).

Entries can be attached and detached while requests are being routed.  The routing table is
an immutable snapshot; a change builds a new snapshot under a lock and replaces the reference
to the old one, so :py:meth:`Router.route` never needs to lock.
"""
import re, threading, logging
from collections import namedtuple, OrderedDict
from typing import Any, List, Mapping
from urllib.parse import unquote

from bundlerest.base import BundleRestException, SYSTEM_ABBREV

__all__ = [ "PathTemplate", "Router", "RouteEntry", "RouteMatch", "RoutingError", "RouteConflict" ]

class RoutingError(BundleRestException):
    """
    an exception indicating that no attached template matches a requested path.  This is
    expected to result in a 404 (Not Found) response.
    """
    def __init__(self, method: str, path: str):
        super(RoutingError, self).__init__("No resource matches %s %s" % (method, path))
        self.method = method
        self.path = path
        self.status = 404

class RouteConflict(BundleRestException):
    """
    an exception indicating an attempt to attach a template that is structurally identical to
    one already attached
    """
    def __init__(self, template, existing):
        super(RouteConflict, self).__init__("Template %s conflicts with attached template %s" %
                                            (str(template), str(existing)))
        self.template = template
        self.existing = existing

_pchar_re = re.compile(r"^(?:[A-Za-z0-9\-._~!$&'()*+,;=:@]|%[0-9A-Fa-f]{2})+$")
_var_re = re.compile(r"^\{([A-Za-z_][A-Za-z0-9_]*)\}$")

class PathTemplate(object):
    """
    a parsed path template.  Each segment is either a literal string or, for a variable segment,
    an instance of :py:class:`PathTemplate.Var`.
    """
    Var = namedtuple("Var", ["name"])

    def __init__(self, text: str, segments):
        self._text = text
        self._segs = tuple(segments)

    @classmethod
    def parse(cls, template: str):
        """
        parse a template string
        :raises ValueError:  if the template is not syntactically legal (e.g. it contains an
                             empty segment, unbalanced braces, or an illegal character)
        """
        if isinstance(template, PathTemplate):
            return template
        if not isinstance(template, str):
            raise ValueError("Path template must be a str: " + repr(template))
        text = template[1:] if template.startswith('/') else template
        if not text:
            return cls('/', [])

        segs = []
        names = set()
        for seg in text.split('/'):
            if not seg:
                raise ValueError("%s: empty path segment" % template)
            if '{' in seg or '}' in seg:
                m = _var_re.match(seg)
                if not m:
                    raise ValueError("%s: illegal variable segment: %s" % (template, seg))
                if m.group(1) in names:
                    raise ValueError("%s: duplicate variable name: %s" % (template, m.group(1)))
                names.add(m.group(1))
                segs.append(cls.Var(m.group(1)))
            elif seg in ('.', '..'):
                raise ValueError("%s: relative path segment not allowed" % template)
            elif not _pchar_re.match(seg):
                raise ValueError("%s: illegal character in segment: %s" % (template, seg))
            else:
                segs.append(unquote(seg))
        return cls('/' + text, segs)

    @property
    def segments(self):
        return self._segs

    @property
    def variables(self) -> List[str]:
        return [s.name for s in self._segs if isinstance(s, self.Var)]

    @property
    def signature(self):
        """
        a value that is equal for structurally identical templates: the same literals and
        variables in the same positions, regardless of the variables' names
        """
        return tuple(None if isinstance(s, self.Var) else s for s in self._segs)

    @property
    def precedence(self):
        """
        a sort key that orders templates with literal segments before variable ones at the
        first differing position
        """
        return tuple(1 if isinstance(s, self.Var) else 0 for s in self._segs)

    def match(self, segments) -> Mapping[str, str]:
        """
        return the variable bindings if the given path segments match this template, or None
        """
        if len(segments) != len(self._segs):
            return None
        out = OrderedDict()
        for tseg, pseg in zip(self._segs, segments):
            if isinstance(tseg, self.Var):
                out[tseg.name] = pseg
            elif tseg != pseg:
                return None
        return out

    def __eq__(self, other):
        return isinstance(other, PathTemplate) and self._segs == other._segs

    def __hash__(self):
        return hash(self._segs)

    def __str__(self):
        return self._text

    def __repr__(self):
        return "PathTemplate(%r)" % self._text

RouteEntry = namedtuple("RouteEntry", ["template", "handler", "owner"])

class RouteMatch(namedtuple("RouteMatch", ["entry", "bindings", "method", "path"])):
    """
    the result of routing a request: the matching entry and the values bound to its variables
    """
    __slots__ = ()

    @property
    def handler(self):
        return self.entry.handler

    @property
    def template(self) -> PathTemplate:
        return self.entry.template

class _Table(object):
    # an immutable routing snapshot

    def __init__(self, entries):
        self.entries = tuple(sorted(entries, key=lambda e: e.template.precedence))
        bylen = {}
        for e in self.entries:
            bylen.setdefault(len(e.template.segments), []).append(e)
        self.bylen = dict((n, tuple(es)) for n, es in bylen.items())

class Router(object):
    """
    a thread-safe registry of path templates and the handlers attached to them
    """

    def __init__(self, log: logging.Logger=None):
        if not log:
            log = logging.getLogger(SYSTEM_ABBREV).getChild("router")
        self.log = log
        self._lock = threading.Lock()
        self._table = _Table([])

    def attach(self, template, handler: Any, owner: str=None) -> RouteEntry:
        """
        attach a handler to a path template.

        :param template:      the path template as a str or PathTemplate
        :param handler:       the handler (typically a Handler class or factory) to return for
                              matching paths
        :param str owner:     an identifier for the party attaching the entry; entries can be
                              detached together by owner.
        :raises ValueError:   if the template is not legal
        :raises RouteConflict:  if a structurally identical template is already attached
        """
        tmpl = PathTemplate.parse(template)
        entry = RouteEntry(tmpl, handler, owner)
        with self._lock:
            for e in self._table.entries:
                if e.template.signature == tmpl.signature:
                    raise RouteConflict(tmpl, e.template)
            self._table = _Table(self._table.entries + (entry,))
        self.log.debug("Attached %s (owner=%s)", str(tmpl), str(owner))
        return entry

    def detach(self, template=None, owner: str=None) -> List[RouteEntry]:
        """
        remove entries from the routing table, either the one attached to the given template,
        the ones attached by the given owner, or (if both are given) the entry that satisfies both.

        :return:  the list of entries that were removed
        """
        if template is None and owner is None:
            raise ValueError("detach(): either template or owner must be given")
        sig = PathTemplate.parse(template).signature if template is not None else None

        def selected(e):
            return (sig is None or e.template.signature == sig) and \
                   (owner is None or e.owner == owner)

        with self._lock:
            removed = [e for e in self._table.entries if selected(e)]
            if removed:
                self._table = _Table([e for e in self._table.entries if not selected(e)])
        for e in removed:
            self.log.debug("Detached %s (owner=%s)", str(e.template), str(e.owner))
        return removed

    def route(self, method: str, path: str) -> RouteMatch:
        """
        find the entry that matches a request path
        :raises RoutingError:  if no attached template matches the path
        """
        table = self._table
        rel = path[1:] if path.startswith('/') else path
        segs = [unquote(s) for s in rel.split('/')] if rel else []
        if '' not in segs:
            for e in table.bylen.get(len(segs), ()):
                bindings = e.template.match(segs)
                if bindings is not None:
                    return RouteMatch(e, bindings, method, path)
        raise RoutingError(method, path)

    def entries(self) -> List[RouteEntry]:
        """
        return the currently attached entries, in order of precedence
        """
        return list(self._table.entries)
