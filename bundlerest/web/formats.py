"""
Support for managing the output formats offered by a Handler.

A resource may be returned in one of several formats, where a format is a logical name (like
"json") associated with one or more content types.  A :py:class:`FormatSupport` instance collects
the formats a resource supports and picks the one that best satisfies the client's request, as
expressed via a ``format`` query parameter or the ``Accept`` HTTP header.
"""
import re
from collections import namedtuple
from typing import List

from .utils import acceptable

class UnsupportedFormat(Exception):
    """
    An exception indicating that none of the client-requested formats are supported by the handler
    for the requested resource.  This exception is expected to result in a 400 (Bad Request) response
    to the client.
    """
    pass

class Unacceptable(Exception):
    """
    An expection indicating that the requested (or otherwise selected) format corresponds to a
    content-type that is not acceptable to the client.  This exception is expected to result in a
    406 (Not Acceptable) response to the client.
    """
    pass

Format = namedtuple("Format", ["name", "ctype"])

class FormatSupport(object):
    """
    a class that encapsulates the formats supported by a Handler and which can be
    used to select the most appropriate format among those acceptable to the client.
    """

    def __init__(self):
        self._lu = {}
        self._ctps = {}
        self._deffmt = None

    def support(self, format: Format, cts: List[str]=[], asdefault: bool=False):
        """
        add support for a named format.
        :param Format format:  the format to support (providing its name and default content type label)
        :param cts:  a list of the content types that, when requested, should result in the given format
                     to be returned.
        :param bool asdefault:  if True, set this to be the default Format (i.e. the format returned
                     when the client has not specified a desired format).
        :raises ValueError:  if any of the content types is already associated with a different format
        """
        registered = [c for c in cts if c in self._lu and self._lu[c].name != format.name]
        if registered:
            raise ValueError("Content types already supported by a registered format: "+
                             str(registered))

        if format.name in self._ctps:
            # replace the previous registration
            self._lu = dict(item for item in self._lu.items() if item[1].name != format.name)

        for ct in list(cts) + [format.ctype]:
            self._lu[ct] = format
        self._lu[format.name] = format
        self._ctps[format.name] = set(cts) | { format.ctype }

        if asdefault or not self._deffmt:
            self._deffmt = format

    _wildc_ct_re = re.compile(r'^([\w\.\-\+]+)/\*$')

    def match(self, fmtreq: str) -> Format:
        """
        return the Format object that best matches the given content type or format name
        :param str fmtreq:  the requested format to match.  This should either be a MIME-type label
                            or a format's logical name (e.g. "json", "xml").
        :return:  the supported Format associated with the given format identifier, or None if the
                  name or MIME-type is not registered as supported.
        """
        if fmtreq in ('*/*', '*'):
            return self.default_format()

        m = self._wildc_ct_re.match(fmtreq)
        if m:
            mimestart = m.group(1) + '/'
            if self.default_format() and self.default_format().ctype.startswith(mimestart):
                return self.default_format()
            for ct in self._lu:
                if ct.startswith(mimestart):
                    return self._lu[ct]
            return None

        return self._lu.get(fmtreq)

    def default_format(self) -> Format:
        """
        the format that should be returned to the client when the client has not indicated a
        specific format in its request.
        """
        return self._deffmt

    def select_format(self, formats: List[str], accepts: List[str]) -> Format:
        """
        given format choices ordered by precedence by the client, pick a supported format to return.
        None is returned if both `formats` and `accepts` are empty; the caller can then fall back
        on :py:meth:`default_format`.

        :param formats:  the formats requested via URL query parameters, in order of precedence.
                         These take precedence over `accepts`; however, the selected format must
                         still correspond to a content type included in `accepts` (if non-empty).
        :param accepts:  the acceptable content types, in order of preference, as given via the
                         ``Accept`` header.
        :raise UnsupportedFormat:  if all values given in `formats` indicate unsupported formats
        :raise Unacceptable:       if no supported format is consistent with `accepts`
        """
        if formats:
            unacceptable = []
            for label in formats:
                fmt = self.match(label)
                if not fmt:
                    continue
                if not accepts or '*' in accepts or '*/*' in accepts:
                    return fmt
                for ct in accepts:
                    mct = acceptable(ct, sorted(self._ctps.get(fmt.name, [])))
                    if mct:
                        return fmt
                unacceptable.append(label)

            if unacceptable:
                raise Unacceptable("format parameter is inconsistent with Accept header")
            raise UnsupportedFormat("Unsupported format requested: " + ", ".join(formats))

        if accepts:
            for label in accepts:
                fmt = self.match(label)
                if fmt:
                    return fmt
            raise Unacceptable("No given Accept types supported")

        return None

    def content_types(self, name: str) -> List[str]:
        """
        return the content types associated with the named format
        """
        return sorted(self._ctps.get(name, []))
