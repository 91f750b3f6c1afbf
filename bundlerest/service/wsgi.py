"""
The WSGI application providing the REST interface to a bundle runtime.

The application can be created with :py:func:`app` (an alias for :py:class:`BundleRestApp`) from
the configuration parameters described in :py:mod:`bundlerest.service`.
"""
import logging
from collections.abc import Mapping, Callable

from bundlerest.base import SYSTEM_ABBREV
from bundlerest.base.config import ConfigurationException
from bundlerest.web.rest import ServiceApp, Handler, WSGIServiceApp, Agent
from bundlerest.framework.base import FrameworkManager
from bundlerest.framework.inmem import InMemoryFramework
from .router import Router, RoutingError
from .extensions import (ExtensionBridge, ExtensionRegistry, EXTENSIONS_MOUNT,
                         load_configured_extensions, load_entry_point_extensions)
from .handlers import BUILTIN_ROUTES, RouteNotFoundHandler, HandlerFailureHandler

deflog = logging.getLogger(SYSTEM_ABBREV).getChild('wsgi')

DEF_BASE_PATH = "/"

class FrameworkServiceApp(ServiceApp):
    """
    A ServiceApp wrapper around a :py:class:`~bundlerest.framework.base.FrameworkManager` that
    routes each request to the Handler attached to the requested path.  The built-in resources
    are attached at construction; extensions are attached and detached as they come and go in
    the app's :py:attr:`registry`.
    """

    def __init__(self, manager: FrameworkManager, log: logging.Logger, config: Mapping=None,
                 appname: str=None, registry: ExtensionRegistry=None):
        if config is None:
            config = {}
        if not appname:
            appname = config.get("name", SYSTEM_ABBREV)
        super(FrameworkServiceApp, self).__init__(appname, log, config)
        self.manager = manager

        self.router = Router(log.getChild("router"))
        for template, handler in BUILTIN_ROUTES:
            self.router.attach(template, handler)

        self.bridge = ExtensionBridge(self.router, EXTENSIONS_MOUNT, log.getChild("extensions"))
        if not registry:
            registry = ExtensionRegistry(log.getChild("extensions"))
        self.registry = registry
        self.registry.add_listener(self.bridge)

    def create_handler(self, env: Mapping, start_resp: Callable, path: str, who: Agent) -> Handler:
        try:
            match = self.router.route(env.get('REQUEST_METHOD', 'GET'), path)
        except RoutingError as ex:
            self.log.debug(str(ex))
            return RouteNotFoundHandler(path, env, start_resp, who, self.cfg, self.log, self)

        try:
            return match.handler(self, path, env, start_resp, match.bindings, who)
        except Exception as ex:
            self.log.exception("Failed to create handler for %s (owner: %s): %s",
                               path, match.entry.owner, str(ex))
            return HandlerFailureHandler(path, env, start_resp, who, self.cfg, self.log, self)

class BundleRestApp(WSGIServiceApp):
    """
    The WSGI application serving the REST interface to a bundle runtime
    """

    def __init__(self, config: Mapping, manager: FrameworkManager=None, base_ep: str=None,
                 log: logging.Logger=deflog, registry: ExtensionRegistry=None):
        """
        initialize the app
        :param Mapping config:  the collected configuration for the App
        :param FrameworkManager manager:  the interface to the runtime to expose; if not
                                provided, an in-memory runtime is created from the ``framework``
                                configuration parameter.
        :param str base_ep:     the resource path to assume as the base of all services provided by
                                this App.  If not provided, a value set in the configuration is
                                used (which itself defaults to "/").
        :param ExtensionRegistry registry:  the registry that extensions will be registered into;
                                if not provided, a new one is created.
        """
        if base_ep is None:
            base_ep = config.get('base_ep', DEF_BASE_PATH)
        if not isinstance(config.get('framework', {}), Mapping):
            raise ConfigurationException("Config param, framework, not a dictionary: "+
                                         str(config['framework']))
        if not manager:
            manager = InMemoryFramework(config.get('framework', {}), log.getChild("framework"))

        svcapp = FrameworkServiceApp(manager, log, config, registry=registry)
        super(BundleRestApp, self).__init__(svcapp, log, base_ep, config)

        if self._authtype == "none" and self.cfg.get('require_authenticated_updates'):
            log.warning("Updates require authentication, but no authentication is configured")

        load_configured_extensions(self.registry, self.cfg, log.getChild("extensions"))
        if self.cfg.get('load_extension_entry_points'):
            load_entry_point_extensions(self.registry, log=log.getChild("extensions"))

    @property
    def manager(self) -> FrameworkManager:
        return self.svcapp.manager

    @property
    def router(self) -> Router:
        return self.svcapp.router

    @property
    def registry(self) -> ExtensionRegistry:
        """
        the registry that REST extensions should be registered into
        """
        return self.svcapp.registry

app = BundleRestApp
