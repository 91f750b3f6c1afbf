"""
Framework classes for creating REST web interfaces via WSGI

The small framework provided by this module provides foundation classes for RESTful web APIs
that wrap around a management runtime.  The framework allows for a strict approach to RESTful
service design via the following features:
  *  a resource-based model for handling requests.  The :py:class:`~bundlerest.web.rest.base.Handler`
     class is implemented to handle a single resource (given by a path).  The service
     implementation decides which Handler handles which path.
  *  the ability to present a service as a WSGI application via the
     :py:class:`~bundlerest.web.rest.base.ServiceApp` class.
  *  full but simple control over the returned HTTP status for proper error handling
  *  support for client-specified return formats either via query-parameters or the ``Accept``
     HTTP request header.
  *  extra convenience support for JSON-formatted error responses (see
     :py:mod:`~bundlerest.web.rest.jsonerr`)

A :py:class:`~bundlerest.web.rest.base.ServiceApp` instance is a compliant WSGI application by
itself.  However, it is typical to wrap it in an additional layer,
:py:class:`~bundlerest.web.rest.base.WSGIServiceApp`, to enable some additional features:
   * a base URL path can be defined to be prepended to paths handled by the ``ServiceApp``
   * it provides client authentication for the wrapped service
"""

from .base import *
