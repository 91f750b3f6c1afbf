"""
Support for JSON-formatted error content for HTTP responses.

A REST client should use the HTTP status for determining if a request has resulted in an
error; however, the service can say more about what went wrong than fits into the status
line, and in a machine-readable way.  This module provides a consistent model for returning
error data as a JSON object.  At a minimum such an object contains:

``http:status``
     the HTTP status number (e.g. 400, 503, etc.), matching the value given in the response header.

``http:reason``
     the text briefly describing the error, matching the value given in the response header.

``oar:message``
     a longer message explaining what went wrong.

Implementations may add custom properties; the resource handlers, for instance, add a
``field`` property naming the part of a request body that could not be decoded.
"""
import json
from logging import Logger
from collections import OrderedDict
from typing import Mapping, Callable

from .base import Handler

def make_message(code: int, reason: str, message: str=None, extra: Mapping=None):
    """
    create a compliant error message object from the inputs
    """
    out = OrderedDict([
        ("http:status", code),
        ("http:reason", reason),
        ("oar:message", message or reason)
    ])
    if extra:
        for k,v in extra.items():
            out[k] = v
    return out

class FatalError(Exception):
    """
    an exception that can be used to send data to be returned to the web client as an error
    JSON message object up the call stack.
    """
    def __init__(self, code: int, reason: str, explain=None, extra=None):
        """
        :param int    code:  the HTTP code to respond with
        :param str  reason:  the reason to return as the HTTP status message
        :param str explain:  the more extensive explanation as to the reason for the error;
                             this is returned only in the body of the message
        :param dict  extra:  a dictionary of additional properties to include in the output
                             message object.
        """
        if not explain:
            explain = reason or ''
        super(FatalError, self).__init__(explain)
        self.code = code
        self.reason = reason
        self.explain = explain
        self.data = extra

    def to_dict(self):
        return make_message(self.code, self.reason, self.explain, self.data)

    def to_json(self, indent=None):
        return json.dumps(self.to_dict(), indent=indent)

class ErrorHandling:
    """
    a Handler mixin class that provides extra methods for returning error message objects to
    web clients.
    """

    def send_error_obj(self, code: int, reason: str, explain=None, extra=None, ashead=False,
                       contenttype="application/json"):
        """
        send a JSON-formatted error message back to the web client
        :param int    code:  the HTTP code to respond with
        :param str  reason:  the reason to return as the HTTP status message
        :param str explain:  the more extensive explanation as to the reason for the error;
                             this is returned only in the body of the message
        :param dict  extra:  a dictionary of additional properties to include in the output
                             message object.
        """
        return self.send_fatal_error(FatalError(code, reason, explain, extra), ashead, contenttype)

    def send_fatal_error(self, fatalex: FatalError, ashead=False, contenttype="application/json"):
        """
        report a FatalError as a JSON-formatted error message back to the web client
        """
        return self.send_error(fatalex.code, fatalex.reason, fatalex.to_json(), contenttype, ashead)

class HandlerWithJSON(Handler, ErrorHandling):
    """
    a Handler that provides extra methods for returning to web clients error responses formatted in
    JSON.
    """

    def __init__(self, path: str, wsgienv: dict, start_resp: Callable, who=None,
                 config: dict={}, log: Logger=None, app=None):
        Handler.__init__(self, path, wsgienv, start_resp, who, config, log, app)
