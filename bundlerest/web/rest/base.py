"""
The base REST framework classes
"""
import re
from abc import ABCMeta, abstractmethod
from functools import reduce
from logging import Logger
from urllib.parse import parse_qs
from typing import Mapping, Callable, List, Union

import jwt

from wsgiref.headers import Headers

from ..utils import order_accepts, parse_content_type
from ..formats import FormatSupport, Format, UnsupportedFormat
from ..agent import Agent
from bundlerest.base.config import ConfigurationException

__all__ = ["Handler", "ServiceApp", "Unauthenticated", "WSGIApp",
           "AuthenticatedWSGIApp", "WSGIServiceApp", "Agent",
           "authenticate_via_authkey", "authenticate_via_jwt", "make_agent_from_claimset" ]

class Handler(object):
    """
    a default web request handler that also serves as a base class for the
    handlers specialized for the supported resource paths.  Key features built into this
    class include:
      * the ``who`` property that holds the identity of the remote user making the request
      * content negotiation support
      * access to the request's query parameters and body
    """

    def __init__(self, path: str, wsgienv: dict, start_resp: Callable, who=None,
                 config: dict={}, log: Logger=None, app=None):
        self._path = path
        self._env = wsgienv
        self._start = start_resp
        self._hdr = Headers([])
        self._code = 0
        self._msg = "unknown status"
        self.cfg = config
        self.log = log

        self._app = app
        if self._app and hasattr(app, 'include_headers'):
            self._hdr = Headers(list(app.include_headers.items()))
        if not who:
            who = self._default_agent()
        self.who = who

        # the output formats supported by this Handler; if None, the client has no choice
        # over the output format.
        self._fmtsup = None

        # set to the name of the query parameter for requesting a named format (e.g. "format")
        self._format_qp = None

        self._meth = self._env.get('REQUEST_METHOD', 'GET')
        self._qparams = None

    @property
    def app(self):
        """
        the ServiceApp instance that created this handler
        """
        return self._app

    @property
    def format_qp(self):
        """
        the name of the query parameter that can by used by clients to request a named output
        format.  If None, such a parameter is not supported.
        """
        return self._format_qp

    def _set_format_qp(self, qpname):
        self._format_qp = qpname

    def _default_agent(self):
        name = "bundlerest" if not self.app else self.app.name
        return Agent(name, Agent.UNKN, Agent.ANONYMOUS, Agent.PUBLIC)

    def send_error(self, code, message, content=None, contenttype=None, ashead=None, encoding='utf-8'):
        """
        respond to the client with an error of a given code and reason

        :param int code:        the HTTP response code to assign
        :param str message:     the briefly-stated reason to give for the error; this text
                                is sent as the message that accompanies the code in the HTTP
                                response header
        :param content:         Content to return as the body.
                                :type content: str or byte or a list of either
        :param str contenttype: the MIME type to associate with the returned content.
        :param bool ashead:     True if this is being sent as if in response to a HEAD request; if
                                not provided, it will be set to True if the requested method is HEAD.
        :param str encoding:    The encoding required to turn the content--when given as str--into bytes.
        """
        return self._send(code, message, content, contenttype, ashead, encoding)

    def send_unauthorized(self, message="Unauthorized", content=None, contenttype=None, ashead=None,
                          encoding='utf-8'):
        return self.send_error(401, message, content, contenttype, ashead, encoding)

    def send_method_not_allowed(self, allowed: List[str]=None, ashead=None):
        if allowed:
            self.add_header("Allow", ", ".join(allowed))
        return self.send_error(405, self._meth + " not supported on this resource", ashead=ashead)

    def send_ok(self, content=None, contenttype=None, message="OK", code=200, ashead=None, encoding='utf-8'):
        """
        respond to the client a response of success.

        :param content:         Content to return as the body.  If not provided, the body will be
                                empty.
                                :type content: str or byte
        :param str contenttype: the MIME type to associate with the returned content.
        :param str message:     the briefly-stated reason to give for the status
        :param int code:        the HTTP response code to assign (default: 200)
        :param bool ashead:     True if the content should be withheld as for a HEAD request
        :param str encoding:    The encoding required to turn the content--when given as str--into bytes.
        """
        return self._send(code, message, content, contenttype, ashead, encoding)

    def send_no_content(self, message="No Content"):
        return self._send(204, message, None, None, True, 'utf-8')

    def send_options(self, allowed_methods: List[str]=None, origin: str=None, extra=None,
                     forcors: bool=True):
        """
        send a response to a OPTIONS request.  This implememtation is primarily for CORS preflight requests
        :param List[str] allowed_methods:   a list of the HTTP methods that are allowed for request
        :param str                origin:   the origin to allow
        :param dict|list           extra:   extra headers to include in the output.
        """
        meths = list(allowed_methods or [])
        if 'OPTIONS' not in meths:
            meths.append('OPTIONS')
        self.add_header('Allow', ", ".join(meths))
        if forcors:
            self.add_header('Access-Control-Allow-Methods', ", ".join(meths))
            if origin:
                self.add_header('Access-Control-Allow-Origin', origin)
            self.add_header('Access-Control-Allow-Headers', "Content-Type")
        if isinstance(extra, Mapping):
            for k,v in extra.items():
                self.add_header(k, v)
        elif isinstance(extra, (list, tuple)):
            for k,v in extra:
                self.add_header(k, v)

        return self.send_ok(message="No Content")

    def _send(self, code, message, content, contenttype, ashead, encoding):
        if ashead is None:
            ashead = self._meth.upper() == "HEAD"
        self.set_response(code, message)

        if content:
            if not isinstance(content, list):
                content = [ content ]
            badtype = [type(c) for c in content if not isinstance(c, (str, bytes))]
            if badtype:
                raise TypeError("send_*: non-str/bytes found in content")
            if not contenttype:
                contenttype = (isinstance(content[0], str) and "text/plain") or "application/octet-stream"
        elif content is None:
            content = []
        content = [(isinstance(c, str) and c.encode(encoding)) or c for c in content]

        if contenttype:
            self.add_header("Content-Type", contenttype)
        if len(content) > 0:
            self.add_header("Content-Length", str(reduce(lambda x, t: x+len(t), content, 0)))

        self.end_headers()
        return (not ashead and content) or []

    def add_header(self, name, value):
        """
        record a name-value pair to be sent as part of the response header.

        :param str name:  the name of the header field to cache
        :param str value: the value to give to the header field
        :raises UnicodeEncodeError:  if name or value includes Unicode characters (see PEP 333)
        """
        e = "ISO-8859-1"
        (name.encode(e), value.encode(e))

        self._hdr.add_header(name, value)

    def set_response(self, code, message):
        """
        record the response code and message to be sent when the response is triggered to push out.
        """
        self._code = code
        self._msg = message

    def end_headers(self):
        """
        trigger the delivery of response's header to the web client.
        """
        status = "{0} {1}".format(str(self._code), self._msg)
        self._start(status, self._hdr.items(), None)

    def handle(self):
        """
        handle the request encapsulated in this Handler (at construction time).

        The default implementation looks for a Handler method of the form, `do_`METH(), where METH is
        is the HTTP method requested (e.g. GET, HEAD, etc.) and calls it with the requested URL path
        (as set at construction).  If the requested method is HEAD and there is no `do_HEAD()`,
        `do_GET()` is called with ``ashead=True``.
        """
        meth = self._meth
        if self._env.get('HTTP_X_HTTP_METHOD_OVERRIDE'):
            meth = self._env.get('HTTP_X_HTTP_METHOD_OVERRIDE')
            self._meth = meth

        meth_handler = 'do_'+meth

        if not self.preauthorize():
            return self.send_unauthorized()

        try:
            if hasattr(self, meth_handler):
                return getattr(self, meth_handler)(self._path)
            elif meth == "HEAD" and hasattr(self, "do_GET"):
                return self.do_GET(self._path, ashead=True)
            else:
                return self.send_method_not_allowed(self.allowed_methods())
        except Exception as ex:
            return self.handle_exception(ex)

    def handle_exception(self, ex: Exception):
        """
        respond to an exception raised while handling the request.  This implementation logs
        the exception and responds with 500 (Server failure); subclasses can override this to
        map particular exceptions to other responses.
        """
        if self.log:
            self.log.exception("Unexpected failure: "+str(ex))
        return self.send_error(500, "Server failure")

    def allowed_methods(self) -> List[str]:
        """
        return the HTTP methods supported by this handler, as determined by its `do_`METH() methods
        """
        out = [m[3:] for m in dir(self) if m.startswith("do_") and m[3:].isupper()]
        if "GET" in out and "HEAD" not in out:
            out.append("HEAD")
        return sorted(out)

    def preauthorize(self):
        """
        do an initial test to see if the client identity is authorized to access this service.
        This method will get called prior to calling the specific method handling function (e.g.
        ``do_GET()``).  This implementation always returns True; subclasses may override this to
        provide tighter restrictions.
        """
        return True

    def get_accepts(self):
        """
        return the requested content types as a list ordered by their q-values.  An empty list
        is returned if no types were specified.
        """
        accepts = self._env.get('HTTP_ACCEPT')
        if not accepts:
            return []
        return order_accepts(accepts)

    def get_query_params(self) -> Mapping[str, List[str]]:
        """
        return the query parameters attached to the request URL as a dictionary whose values
        are lists of strings
        """
        if self._qparams is None:
            self._qparams = parse_qs(self._env.get('QUERY_STRING', ''))
        return self._qparams

    def get_query_param(self, name: str, defval: str=None) -> str:
        """
        return the first value of the named query parameter or ``defval`` if it was not given
        """
        vals = self.get_query_params().get(name)
        return vals[0] if vals else defval

    def get_requested_formats(self):
        """
        return the formats requested via format query parameters on the request URL.  (The actual
        query parameter name is given by ``self.format_qp``.)  An empty list is returned if
        parameter was not set or is not supported by this implementation.
        """
        if not self.format_qp:
            return []
        return self.get_query_params().get(self.format_qp, [])

    def get_content_type(self) -> str:
        """
        return the MIME-type of the request body (without its parameters) or None if not specified
        """
        return parse_content_type(self._env.get('CONTENT_TYPE'))[0]

    def read_body(self) -> bytes:
        """
        read and return the body of the request as bytes.  An empty bytes object is returned if
        the request has no body.
        """
        bodyin = self._env.get('wsgi.input')
        if bodyin is None:
            return b''
        try:
            clen = int(self._env.get('CONTENT_LENGTH') or -1)
        except ValueError:
            clen = -1
        body = bodyin.read(clen) if clen >= 0 else bodyin.read()
        if isinstance(body, str):
            body = body.encode('utf-8')
        return body

    def select_format(self, format: str=None, path: str=None, meth: str="GET") -> Format:
        """
        determine the best output format the given context.  The client's preferences, as given
        by the format query parameter and the ``Accept`` header, are matched against the
        :py:class:`FormatSupport` returned by :py:meth:`get_format_support`.

        :param str format:   the name of a format that was programmatically asked for, which
                             will override any preferences specified by the client.
        :param str   path:   the client-requested path that should be considered
        :param str   meth:   the client-requested HTTP method to be considered
        :raises UnsupportedFormat:  if the requested format is not supported
        :raises Unacceptable:  if none of the supported formats are acceptable to the client
        """
        fmtsup = self.get_format_support(path, meth)
        if isinstance(format, str):
            fmt = fmtsup.match(format) if fmtsup else None
            if not fmt:
                raise UnsupportedFormat(f"{format} not a supported format")
            return fmt

        if not fmtsup:
            return None

        # may raise UnsupportedFormat or Unacceptable
        format = fmtsup.select_format(self.get_requested_formats(), self.get_accepts())
        if not format:
            format = fmtsup.default_format()
        return format

    def get_format_support(self, path: str, method: str="GET") -> FormatSupport:
        """
        return a FormatSupport instance to use that is appropriate for a requested resource
        path and HTTP method.  This implementation returns the instance last set with
        :py:meth:`_set_default_format_support` (or None).
        """
        return self._fmtsup

    def _set_default_format_support(self, fmtsup: FormatSupport):
        self._fmtsup = fmtsup

class ServiceApp(metaclass=ABCMeta):
    """
    a base class WSGI implementation intended to run as a delegate handling a particular path
    within another WSGI application.
    """

    def __init__(self, appname: str, log: Logger, config: Mapping=None):
        self.log = log
        if config is None:
            config = {}
        self.cfg = config
        self._name = appname

        self.include_headers = Headers()
        if config.get("include_headers"):
            inclh = config.get("include_headers")
            if isinstance(inclh, Mapping):
                self.include_headers = Headers(list(inclh.items()))
            elif isinstance(inclh, list) and all(isinstance(h, (list, tuple)) and len(h) == 2
                                                 for h in inclh):
                self.include_headers = Headers([tuple(h) for h in inclh])
            else:
                raise ConfigurationException("include_headers: must be either a dict or a list of "+
                                             "name-value pairs")

    @property
    def name(self):
        """
        a name for the service provided by this ServiceApp instance (set at construction time).
        """
        return self._name

    @abstractmethod
    def create_handler(self, env: dict, start_resp: Callable, path: str, who: Agent) -> Handler:
        """
        return a handler instance to handle a particular request to a path
        :param Mapping env:  the WSGI environment containing the request
        :param Callable start_resp:  the start_resp function to use initiate the response
        :param str path:     the path to the resource being requested, relative to the path this
                             ServiceApp is configured to handle.
        """
        raise NotImplementedError()

    def handle_path_request(self, env: dict, start_resp: Callable, path: str=None, who: Agent=None):
        """
        respond to a request on a particular (relative) URL path.
        """
        if path is None:
            path = env.get('PATH_INFO', '')
        return self.create_handler(env, start_resp, path, who).handle()

    def __call__(self, env, start_resp):
        return self.handle_path_request(env, start_resp)

class Unauthenticated(Exception):
    """
    An exception indicating that a service client did not successfully authenticate itself.
    """
    pass

class WSGIApp(metaclass=ABCMeta):
    """
    A WSGI application base class for wrapping ServiceApp classes.  It provides a common
    authentication check and base endpoint handling.

    This base implementation will leverage two parameters from the configuration:

    ``base_ep``
        _str_.  The base endpoint URL for the web app given as a path starting with
                a forward slash, ``/``.  All resource path requests must start with
                this path; otherwise 404 (Not Found) is returned.
    ``name``
        _str_.  A short name to use to identify this web app (e.g. in log messages and
                authentication)
    """

    def __init__(self, config: Mapping, log: Logger, base_ep: str = None, name: str = None):
        self.log = log
        self.cfg = config
        self.name = name
        if not self.name:
            self.name = self.cfg.get("name", "")
        self.base_ep = None
        if not base_ep:
            base_ep = self.cfg.get("base_ep", "")
        base_ep = base_ep.strip('/')
        if base_ep:
            self.base_ep = '/%s/' % base_ep

    def authenticate(self, env) -> Union[Agent,None]:
        """
        determine and return the identity of the client.  This implementation returns None,
        reflecting that by default authentication is not supported.

        :raises Unauthenticated:  if the authentication process fails.
        """
        return None

    def handle_request(self, env: Mapping, start_resp: Callable):
        path = re.sub(r'/+', '/', env.get('PATH_INFO', '/'))

        # determine who is making the request
        try:
            who = self.authenticate(env)
        except Unauthenticated as ex:
            self.log.debug("Authentication failure: %s", str(ex))
            return Handler(path, env, start_resp).send_unauthorized("Authentication Failure")
        except Exception as ex:
            self.log.exception("Unexpected failure while authenticating: %s", str(ex))
            return Handler(path, env, start_resp).send_error(500, "Internal Server Error")

        if self.base_ep:
            if path.startswith(self.base_ep):
                path = path[len(self.base_ep):]

            elif self.base_ep == path+'/':
                path = ''

            else:
                return Handler(path, env, start_resp).send_error(404, "Not Found")

        return self.handle_path_request(path.strip('/'), env, start_resp, who)

    @abstractmethod
    def handle_path_request(self, path: str, env: Mapping, start_resp: Callable, who = None):
        """
        Dispatch a request on a resource path to a handler.
        :param str path:  the path requested by the client, relative to the base endpoint path
                          and without a leading slash.
        :param dict env:  the WSGI environment containing all request information
        :param func start_resp:  the start-response function provided by the WSGI engine.
        :param      who:  a representation of the client user.
        """
        raise NotImplementedError()

    def __call__(self, env, start_resp):
        return self.handle_request(env, start_resp)

class AuthenticatedWSGIApp(WSGIApp):
    """
    a WSGIApp base class that identifies its clients as :py:class:`~bundlerest.web.agent.Agent`
    instances.  The authentication mechanism is chosen by the ``type`` parameter within the
    ``authentication`` configuration object:

    ``none``
        (default) all clients are treated as anonymous
    ``authkey``
        clients present a shared key as a Bearer token (see :py:func:`authenticate_via_authkey`)
    ``jwt``
        clients present a JWT as a Bearer token (see :py:func:`authenticate_via_jwt`)

    Clients may identify the client software via the ``X-Client-Id`` HTTP header and a list of
    delegated agents via the ``X-Client-Agents`` header.
    """

    def __init__(self, config: Mapping, log: Logger, base_ep: str = None, name: str = None):
        super(AuthenticatedWSGIApp, self).__init__(config, log, base_ep, name)
        authcfg = self.cfg.get('authentication', {})
        if not isinstance(authcfg, Mapping):
            raise ConfigurationException("Config param, authentication, not a dictionary: "+
                                         str(authcfg))
        authtype = str(authcfg.get('type', 'none')).lower()
        if authtype not in ("none", "authkey", "jwt"):
            raise ConfigurationException("authentication: unsupported type: "+authtype)
        if authtype == "jwt" and not authcfg.get('key'):
            raise ConfigurationException("authentication: jwt type requires a key parameter")
        if authtype == "authkey" and not isinstance(authcfg.get('authorized'), list):
            raise ConfigurationException("authentication: authkey type requires an authorized list")
        self._authtype = authtype

    def authenticate(self, env) -> Agent:
        """
        determine and return the identity of the client as an :py:class:`Agent` instance.
        """
        client_id = env.get('HTTP_X_CLIENT_ID', '(unknown)')
        agents = env.get('HTTP_X_CLIENT_AGENTS', '').split()
        return self.authenticate_user(env, agents, client_id)

    def authenticate_user(self, env: Mapping, agents: List[str]=None, client_id: str=None) -> Agent:
        """
        determine the authenticated user according to the configured authentication type.
        :raises Unauthenticated:  if the authentication process fails and the configuration
                  requests an exception rather than an anonymous or invalid identity.
        """
        authcfg = self.cfg.get('authentication', {})
        vehicle = self.name or client_id
        if self._authtype == "authkey":
            return authenticate_via_authkey(vehicle, env, authcfg, self.log, agents, client_id)
        if self._authtype == "jwt":
            return authenticate_via_jwt(vehicle, env, authcfg, self.log, agents, client_id)

        if authcfg.get('raise_on_anonymous'):
            raise Unauthenticated("Unauthenticated by default")
        return Agent(vehicle, Agent.UNKN, Agent.ANONYMOUS, Agent.PUBLIC, agents)


def authenticate_via_authkey(svcname: str, env: Mapping, authcfg: Mapping, log: Logger,
                             agents: List[str]=None, client_id: str=None) -> Agent:
    """
    authenticate the user via a simple shared Bearer Authorization key.

    The recognized keys are given in the configuration via the ``authorized`` list; each item
    is an object with the following parameters:

    ``auth_key``
       _str_ (required).  A recognized opaque key looked for as a Bearer Authorization token
    ``user``
       _str_ (required).  the identifier to set as the returned Agent's ``actor``
    ``class``
       _str_ (optional).  the ``agent_class`` to assign to the returned Agent

    :param str   svcname: a name to provide as the agent software vehicle
    :param dict      env: the WSGI environment containing the request data
    :param dict  authcfg: the authentication configuration (see above)
    :param Logger    log: the logger that can be used to record messages
    :param [str]  agents: an optional list of agent strings to attach to output agent
    :param str client_id: an ID representing the client software being used to connect
    """
    auth = env.get('HTTP_AUTHORIZATION', "x").split()
    if len(auth) < 2 or auth[0] != "Bearer" or not auth[1]:
        log.debug("Client %s did not provide a Bearer authentication token", str(client_id))
        if authcfg.get('raise_on_anonymous'):
            raise Unauthenticated("No auth token provided")
        return Agent(svcname, Agent.UNKN, Agent.ANONYMOUS, Agent.PUBLIC, agents)

    for client in authcfg.get('authorized', []):
        if client.get("auth_key") == auth[1]:
            return Agent(svcname, Agent.AUTO, client.get('user', 'authorized'),
                         client.get('class', client_id), agents)

    log.warning("Unrecognized token from client %s", str(client_id))
    if authcfg.get('raise_on_invalid'):
        raise Unauthenticated("Unrecognized auth token")
    return Agent(svcname, Agent.UNKN, Agent.ANONYMOUS, Agent.INVALID, agents,
                 invalid_reason="Unrecognized auth token")

def authenticate_via_jwt(svcname: str, env: Mapping, jwtcfg: Mapping, log: Logger,
                         agents: List[str]=None, client_id: str=None,
                         claim_to_agent_func: Callable=None) -> Agent:
    """
    authenticate the remote user assuming a JWT was provided as an Authorization Bearer token.

    This function will look for the following properties in the provided configuration dictionary:

    ``key``
        (str) _required_.  The secret key shared with the token generator used to sign the token.
    ``algorithm``
        (str) _optional_.  The name of the signing algorithm (default: "HS256").
    ``require_expiration``
        (bool) _optional_.  If True (default), any JWT token that does not include an expiration
        time will be rejected, and the client user will be set to anonymous.

    :param function claim_to_agent_func:  a function that takes the service name, the JWT claimset
                          dictionary, the logger and the agents list and returns an Agent instance.
                          If not provided, :py:func:`make_agent_from_claimset` will be used.
    """
    auth = env.get('HTTP_AUTHORIZATION', "x").split()
    if len(auth) < 2 or auth[0] != "Bearer":
        log.debug("Client %s did not provide an authentication token", str(client_id))
        if jwtcfg.get('raise_on_anonymous'):
            raise Unauthenticated("JWT token not provided")
        return Agent(svcname, Agent.UNKN, Agent.ANONYMOUS, Agent.PUBLIC, agents)

    try:
        userinfo = jwt.decode(auth[1], jwtcfg.get("key", ""),
                              algorithms=[jwtcfg.get("algorithm", "HS256")])
    except jwt.InvalidTokenError as ex:
        log.warning("Invalid token can not be decoded: %s", str(ex))
        if jwtcfg.get('raise_on_invalid'):
            raise Unauthenticated("Undecodable JWT token")
        return Agent(svcname, Agent.UNKN, Agent.ANONYMOUS, Agent.INVALID, agents,
                     invalid_reason="Invalid token can not be decoded")

    # expiration itself was checked by jwt.decode()
    if jwtcfg.get('require_expiration', True) and not userinfo.get('exp'):
        log.warning("Rejecting non-expiring token for user %s", userinfo.get('sub', "(unknown)"))
        if jwtcfg.get('raise_on_invalid'):
            raise Unauthenticated("Non-expiring JWT token")
        return Agent(svcname, Agent.UNKN, Agent.ANONYMOUS, Agent.INVALID, agents,
                     invalid_reason="non-expiring token rejected")

    if not claim_to_agent_func:
        claim_to_agent_func = make_agent_from_claimset
    return claim_to_agent_func(svcname, userinfo, log, agents)

def make_agent_from_claimset(svcname: str, userinfo: Mapping, log: Logger, agents=None) -> Agent:
    """
    Create an Agent instance representing the end user given a JWT claim set.  The ``sub``
    claim provides the actor identifier; an optional ``class`` claim sets the agent class.
    """
    subj = userinfo.get('sub')
    if not subj:
        log.warning("User token is missing subject identifier; defaulting to anonymous")
        subj = Agent.ANONYMOUS
    umd = dict((k,v) for k,v in userinfo.items() if k not in ["sub", "class", "exp"])
    return Agent(svcname, Agent.USER, subj, userinfo.get('class', Agent.PUBLIC), agents, **umd)


class WSGIServiceApp(AuthenticatedWSGIApp):
    """
    a WSGI application wrapping a single ServiceApp instance.
    """

    def __init__(self, svcapp: ServiceApp, log: Logger, base_ep: str = None, config: Mapping={}):
        super(WSGIServiceApp, self).__init__(config, log, base_ep, svcapp.name)
        self.svcapp = svcapp

    def handle_path_request(self, path: str, env: Mapping, start_resp: Callable, who = None):
        return self.svcapp.handle_path_request(env, start_resp, path, who)
