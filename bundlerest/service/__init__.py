"""
The REST interface to a bundle runtime, provided as a WSGI application.

This package is organized into the following modules:

``router``
    the path router that maps request paths onto Handlers; entries can be attached and
    detached while the service is running
``extensions``
    the registry of REST extensions and the bridge that attaches them to the router
``handlers``
    the Handlers for the built-in resources
``wsgi``
    the WSGI application, :py:class:`~bundlerest.service.wsgi.BundleRestApp`

The application recognizes the following configuration parameters:

``name``
    _str_.  a name for the service used in log messages and client identities
``base_ep``
    _str_.  the base URL path of all of the service's resources (default: "/")
``include_headers``
    _dict_.  HTTP headers to include in every response
``authentication``
    _dict_.  the client authentication to apply; its ``type`` is one of ``none`` (default),
    ``authkey``, or ``jwt`` (see :py:class:`~bundlerest.web.rest.base.AuthenticatedWSGIApp`)
``require_authenticated_updates``
    _bool_.  if True, PUT, POST, and DELETE requests from anonymous clients are rejected with
    401 (default: False)
``extensions``
    _list_.  REST extensions to attach at start-up (see
    :py:func:`~bundlerest.service.extensions.load_configured_extensions`)
``load_extension_entry_points``
    _bool_.  if True, attach the extensions advertised via the ``bundlerest.extensions``
    entry-point group (default: False)
``framework``
    _dict_.  the configuration of the in-memory runtime used when the app is not given a
    :py:class:`~bundlerest.framework.base.FrameworkManager` (see
    :py:class:`~bundlerest.framework.inmem.InMemoryFramework`)
"""
try:
    from .version import __version__
except ImportError:
    __version__ = "(unset)"

from .router import Router, PathTemplate, RoutingError, RouteConflict
from .extensions import (Extension, ExtensionListener, ExtensionBridge, ExtensionRegistry,
                         ExtensionRegistrationError)
from .handlers import ResourceHandler
from .wsgi import BundleRestApp, FrameworkServiceApp, app
