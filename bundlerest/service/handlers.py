"""
The Handlers for the resources of the REST interface.

Each Handler translates a request on one kind of resource into calls on the runtime's
:py:class:`~bundlerest.framework.base.FrameworkManager` and renders the results with the
representation codec.  The Handlers hold no state beyond the request they handle.

======================================== ================ =========================================
Path                                     Methods          Handler
======================================== ================ =========================================
/framework/startlevel                    GET, PUT         :py:class:`FrameworkStartLevelHandler`
/framework/bundles                       GET, POST        :py:class:`BundlesHandler`
/framework/bundles/representations       GET              :py:class:`BundleRepresentationsHandler`
/framework/bundle/{bundleId}             GET, PUT, DELETE :py:class:`BundleHandler`
/framework/bundle/{bundleId}/state       GET, PUT         :py:class:`BundleStateHandler`
/framework/bundle/{bundleId}/startlevel  GET, PUT         :py:class:`BundleStartLevelHandler`
/framework/bundle/{bundleId}/header      GET              :py:class:`BundleHeaderHandler`
/framework/services                      GET              :py:class:`ServicesHandler`
/framework/services/representations      GET              :py:class:`ServiceRepresentationsHandler`
/framework/service/{serviceId}           GET              :py:class:`ServiceHandler`
/extensions                              GET              :py:class:`ExtensionsHandler`
======================================== ================ =========================================
"""
import re
from collections.abc import Mapping, Callable

from bundlerest.web.rest.jsonerr import HandlerWithJSON
from bundlerest.web.formats import FormatSupport, Format, UnsupportedFormat, Unacceptable
from bundlerest.web.agent import Agent
from bundlerest.dto import DecodeError, EncodeError, UnsupportedMediaType
from bundlerest.dto import media, codec
from bundlerest.dto.shapes import (STR, ListOf, MapOf, FrameworkStartLevelDTO, BundleDTO,
                                   BundleStateDTO, BundleStartLevelDTO, ServiceReferenceDTO,
                                   ExtensionDTO)
from bundlerest.framework import (FrameworkException, EntityNotFound, BundleNotFound,
                                  ServiceNotFound, InvalidFilter)

BUNDLE_PATH = "framework/bundle/%d"
SERVICE_PATH = "framework/service/%d"
MUTATING_METHODS = ("PUT", "POST", "DELETE")

_numeric_re = re.compile(r'^\d+$')

def format_support_for(kind: media.MediaKind) -> FormatSupport:
    """
    return a FormatSupport that offers the JSON and XML media types of the given kind; the
    generic JSON and XML content types also select the respective syntax, and JSON is the default.
    """
    fmtsup = FormatSupport()
    fmtsup.support(Format(media.JSON, kind.json_type), [kind.json_type, "application/json"], True)
    fmtsup.support(Format(media.XML, kind.xml_type),
                   [kind.xml_type, "application/xml", "text/xml"])
    return fmtsup

class ResourceHandler(HandlerWithJSON):
    r"""
    the base class for the Handlers of the REST interface's resources.  Subclasses implement
    ``do_``\ *METHOD* functions for the methods they support.

    This class is also the base for extension Handlers; an extension Handler can reach the
    runtime via :py:attr:`manager` and its path variables via :py:attr:`pathvars`.
    """
    kind = None

    def __init__(self, app, path: str, wsgienv: Mapping, start_resp: Callable,
                 pathvars: Mapping=None, who: Agent=None):
        super(ResourceHandler, self).__init__(path, wsgienv, start_resp, who, app.cfg, app.log, app)
        self.manager = app.manager
        self.pathvars = pathvars or {}
        self._set_format_qp("format")
        if self.kind:
            self._set_default_format_support(format_support_for(self.kind))

    def preauthorize(self):
        if self._meth in MUTATING_METHODS and self.cfg.get('require_authenticated_updates'):
            return not self.who.is_anonymous
        return True

    def do_OPTIONS(self, path):
        return self.send_options(self.allowed_methods())

    def handle_exception(self, ex: Exception):
        ashead = self._meth == "HEAD"
        if isinstance(ex, DecodeError):
            self.log.info("%s %s: bad input: %s", self._meth, self._path, str(ex))
            return self.send_error_obj(400, "Bad Input", str(ex), {"field": ex.path}, ashead=ashead)
        if isinstance(ex, EncodeError):
            self.log.warning("%s %s: unencodable response: %s", self._meth, self._path, str(ex))
            return self.send_error_obj(406, "Not Acceptable",
                                       "Resource cannot be rendered in the requested format: " +
                                       str(ex), {"field": ex.path}, ashead=ashead)
        if isinstance(ex, UnsupportedMediaType):
            return self.send_error_obj(415, "Unsupported Media Type", str(ex), ashead=ashead)
        if isinstance(ex, UnsupportedFormat):
            return self.send_error_obj(400, "Unsupported Format", str(ex), ashead=ashead)
        if isinstance(ex, Unacceptable):
            return self.send_error_obj(406, "Not Acceptable", str(ex), ashead=ashead)
        if isinstance(ex, EntityNotFound):
            self.log.debug("%s %s: %s", self._meth, self._path, str(ex))
            return self.send_error_obj(404, "Not Found", str(ex), ashead=ashead)
        if isinstance(ex, InvalidFilter):
            return self.send_error_obj(400, "Invalid Filter", str(ex), ashead=ashead)
        if isinstance(ex, FrameworkException):
            self.log.exception("%s %s: runtime failure: %s", self._meth, self._path, str(ex))
            return self.send_error_obj(500, "Runtime Failure", str(ex), ashead=ashead)
        self.log.exception("%s %s: unexpected failure: %s", self._meth, self._path, str(ex))
        return self.send_error_obj(500, "Internal Server Error", ashead=ashead)

    def negotiate(self, kind: media.MediaKind=None) -> Format:
        """
        select the media type of the response from the client's ``Accept`` header or
        ``format`` query parameter.
        :param MediaKind kind:  the kind of representation to be returned; if not given, the
                                handler's default kind is assumed.
        :raises UnsupportedFormat:  if the requested format is not supported
        :raises Unacceptable:  if neither JSON nor XML is acceptable to the client
        """
        if kind:
            self._set_default_format_support(format_support_for(kind))
        return self.select_format()

    def send_rep(self, value, fmt: Format, shape=None, code: int=200, message: str="OK",
                 ashead: bool=False):
        """
        send a representation of a value in the given format
        """
        return self.send_ok(codec.encode(value, fmt.ctype, shape), fmt.ctype, message, code, ashead)

    def read_rep(self, shape):
        """
        decode the request body into the given shape.  The body's syntax is determined by the
        ``Content-Type`` header, defaulting to JSON.
        :raises DecodeError:  if the body is missing, malformed, or does not fit the shape
        :raises UnsupportedMediaType:  if the Content-Type indicates neither JSON nor XML
        """
        ctype = self.get_content_type() or "application/json"
        body = self.read_body()
        if not body.strip():
            raise DecodeError(getattr(shape, "ELEMENT", ""), "request body is empty")
        return codec.decode(body, ctype, shape)

    def read_location_or_stream(self):
        """
        interpret the request body as either a bundle location (when its content type is
        ``text/plain``) or the bundle's content.
        :return:  a 2-tuple of the location and the content (either of which may be None)
        """
        body = self.read_body()
        if self.get_content_type() == "text/plain":
            try:
                location = body.decode('utf-8').strip()
            except UnicodeDecodeError as ex:
                raise DecodeError("location", "not UTF-8 text", ex)
            if not location:
                raise DecodeError("location", "bundle location is empty")
            return (location, None)
        return (self._env.get('HTTP_CONTENT_LOCATION') or None, body or None)

    def id_var(self, name: str, notfound=EntityNotFound) -> int:
        """
        return the value of a numeric path variable
        :raises EntityNotFound:  (or the given subclass) if the value is not a non-negative integer
        """
        val = self.pathvars.get(name, '')
        if not _numeric_re.match(val):
            raise notfound(val)
        return int(val)

    def resource_url(self, relpath: str) -> str:
        """
        return the absolute URL of a resource given its path relative to the service's base
        """
        env = self._env
        host = env.get('HTTP_HOST')
        if not host:
            host = env.get('SERVER_NAME', 'localhost')
            port = env.get('SERVER_PORT')
            if port and port not in ('80', '443'):
                host += ':' + port
        reqpath = env.get('PATH_INFO', '/').rstrip('/')
        prefix = env.get('SCRIPT_NAME', '')
        mypath = self._path.strip('/')
        if mypath and reqpath.endswith(mypath):
            prefix += reqpath[:len(reqpath)-len(mypath)]
        else:
            prefix += '/'
        if not prefix.endswith('/'):
            prefix += '/'
        return "%s://%s%s%s" % (env.get('wsgi.url_scheme', 'http'), host, prefix, relpath)

class FrameworkStartLevelHandler(ResourceHandler):
    kind = media.FRAMEWORK_STARTLEVEL

    def do_GET(self, path, ashead=False):
        fmt = self.negotiate()
        return self.send_rep(self.manager.get_framework_startlevel(), fmt, ashead=ashead)

    def do_PUT(self, path):
        self.manager.set_framework_startlevel(self.read_rep(FrameworkStartLevelDTO))
        return self.send_no_content()

class BundlesHandler(ResourceHandler):
    """
    the collection of installed bundles.  GET returns the paths of the bundles; POST installs
    a bundle given either its location (as ``text/plain``) or its content (any other type, with
    its location optionally given via the ``Content-Location`` header).
    """
    kind = media.BUNDLES

    def do_GET(self, path, ashead=False):
        fmt = self.negotiate()
        paths = [BUNDLE_PATH % bid for bid in self.manager.bundle_ids()]
        return self.send_rep(paths, fmt, ListOf(STR), ashead=ashead)

    def do_POST(self, path):
        location, stream = self.read_location_or_stream()
        if not location and not stream:
            raise DecodeError("", "neither bundle location nor content provided")
        bundle = self.manager.install_bundle(location, stream)
        self.log.info("Installed bundle %d from %s", bundle.id, bundle.location)

        newpath = BUNDLE_PATH % bundle.id
        self.add_header("Location", self.resource_url(newpath))
        return self.send_ok(newpath, "text/plain", "Created", 201)

class BundleRepresentationsHandler(ResourceHandler):
    kind = media.BUNDLES_REPRESENTATIONS

    def do_GET(self, path, ashead=False):
        fmt = self.negotiate()
        return self.send_rep(self.manager.get_bundles(), fmt, ListOf(BundleDTO), ashead=ashead)

class BundleHandler(ResourceHandler):
    """
    a single bundle: GET describes it, PUT updates it (from a location given as ``text/plain``,
    from the given content, or, with an empty body, from its original location), and DELETE
    uninstalls it.  PUT and DELETE return the bundle's resulting description.
    """
    kind = media.BUNDLE

    def do_GET(self, path, ashead=False):
        fmt = self.negotiate()
        bundle = self.manager.get_bundle(self.id_var("bundleId", BundleNotFound))
        return self.send_rep(bundle, fmt, ashead=ashead)

    def do_PUT(self, path):
        fmt = self.negotiate()
        bid = self.id_var("bundleId", BundleNotFound)
        location, stream = (None, None)
        if self._env.get('CONTENT_LENGTH') not in (None, '', '0') or self.get_content_type():
            location, stream = self.read_location_or_stream()
        self.manager.update_bundle(bid, location, stream)
        return self.send_rep(self.manager.get_bundle(bid), fmt)

    def do_DELETE(self, path):
        fmt = self.negotiate()
        bundle = self.manager.uninstall_bundle(self.id_var("bundleId", BundleNotFound))
        self.log.info("Uninstalled bundle %d", bundle.id)
        return self.send_rep(bundle, fmt)

class BundleStateHandler(ResourceHandler):
    kind = media.BUNDLE_STATE

    def do_GET(self, path, ashead=False):
        fmt = self.negotiate()
        state = self.manager.get_bundle_state(self.id_var("bundleId", BundleNotFound))
        return self.send_rep(BundleStateDTO(state=state), fmt, ashead=ashead)

    def do_PUT(self, path):
        bid = self.id_var("bundleId", BundleNotFound)
        self.manager.get_bundle_state(bid)
        target = self.read_rep(BundleStateDTO)
        if not target.state:
            raise DecodeError(BundleStateDTO.ELEMENT + ".state", "target state is required")
        self.manager.set_bundle_state(bid, target.state, target.options)
        return self.send_no_content()

class BundleStartLevelHandler(ResourceHandler):
    kind = media.BUNDLE_STARTLEVEL

    def do_GET(self, path, ashead=False):
        fmt = self.negotiate()
        sl = self.manager.get_bundle_startlevel(self.id_var("bundleId", BundleNotFound))
        return self.send_rep(sl, fmt, ashead=ashead)

    def do_PUT(self, path):
        bid = self.id_var("bundleId", BundleNotFound)
        self.manager.get_bundle_startlevel(bid)
        sl = self.read_rep(BundleStartLevelDTO)
        if sl.startLevel < 1:
            raise DecodeError(BundleStartLevelDTO.ELEMENT + ".startLevel",
                              "a positive start level is required")
        self.manager.set_bundle_startlevel(bid, sl.startLevel)
        return self.send_no_content()

class BundleHeaderHandler(ResourceHandler):
    kind = media.BUNDLE_HEADER

    def do_GET(self, path, ashead=False):
        fmt = self.negotiate()
        headers = self.manager.get_bundle_headers(self.id_var("bundleId", BundleNotFound))
        return self.send_rep(headers, fmt, MapOf(), ashead=ashead)

class ServicesHandler(ResourceHandler):
    """
    the paths of the registered services, optionally restricted by an LDAP-style filter given
    via the ``filter`` query parameter
    """
    kind = media.SERVICES

    def do_GET(self, path, ashead=False):
        fmt = self.negotiate()
        paths = [SERVICE_PATH % sid for sid in self.manager.service_ids(self.get_query_param("filter"))]
        return self.send_rep(paths, fmt, ListOf(STR), ashead=ashead)

class ServiceRepresentationsHandler(ResourceHandler):
    kind = media.SERVICES_REPRESENTATIONS

    def do_GET(self, path, ashead=False):
        fmt = self.negotiate()
        refs = self.manager.get_services(self.get_query_param("filter"))
        return self.send_rep(refs, fmt, ListOf(ServiceReferenceDTO), ashead=ashead)

class ServiceHandler(ResourceHandler):
    kind = media.SERVICE

    def do_GET(self, path, ashead=False):
        fmt = self.negotiate()
        ref = self.manager.get_service(self.id_var("serviceId", ServiceNotFound))
        return self.send_rep(ref, fmt, ashead=ashead)

class ExtensionsHandler(ResourceHandler):
    """
    the list of the currently attached extensions
    """
    kind = media.EXTENSIONS

    def do_GET(self, path, ashead=False):
        fmt = self.negotiate()
        exts = [ExtensionDTO(name=e.name, path=str(self.app.bridge.template_for(e)).lstrip('/'))
                for e in self.app.bridge.extensions()]
        return self.send_rep(exts, fmt, ListOf(ExtensionDTO), ashead=ashead)

class RouteNotFoundHandler(HandlerWithJSON):
    """
    the Handler used when no resource matches the requested path
    """
    def handle(self):
        return self.send_error_obj(404, "Not Found", "No resource found at path: " + self._path,
                                   ashead=self._meth == "HEAD")

class HandlerFailureHandler(HandlerWithJSON):
    """
    the Handler used when the Handler attached to the requested path could not be created
    """
    def handle(self):
        return self.send_error_obj(500, "Internal Server Error",
                                   "Unable to handle request for path: " + self._path,
                                   ashead=self._meth == "HEAD")

BUILTIN_ROUTES = [
    ("/framework/startlevel",                    FrameworkStartLevelHandler),
    ("/framework/bundles",                       BundlesHandler),
    ("/framework/bundles/representations",       BundleRepresentationsHandler),
    ("/framework/bundle/{bundleId}",             BundleHandler),
    ("/framework/bundle/{bundleId}/state",       BundleStateHandler),
    ("/framework/bundle/{bundleId}/startlevel",  BundleStartLevelHandler),
    ("/framework/bundle/{bundleId}/header",      BundleHeaderHandler),
    ("/framework/services",                      ServicesHandler),
    ("/framework/services/representations",      ServiceRepresentationsHandler),
    ("/framework/service/{serviceId}",           ServiceHandler),
    ("/extensions",                              ExtensionsHandler)
]
