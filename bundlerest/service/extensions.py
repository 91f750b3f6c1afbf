"""
Support for REST extensions: resources contributed by third parties that are attached to and
detached from the running service.

An extension is described by an :py:class:`Extension` record giving its identity, the path it
serves (relative to the extensions mount point, ``/extensions``), and the Handler class that
serves it.  Extensions are registered into an :py:class:`ExtensionRegistry`, which notifies its
:py:class:`ExtensionListener` instances as extensions come and go.  The
:py:class:`ExtensionBridge` is the listener that attaches the extensions to the service's
:py:class:`~bundlerest.service.router.Router`.

Extensions can be registered programmatically, listed in the service configuration (see
:py:func:`load_configured_extensions`), or advertised by installed distributions via the
``bundlerest.extensions`` entry-point group (see :py:func:`load_entry_point_extensions`).
"""
import threading, logging, importlib
from abc import ABCMeta, abstractmethod
from collections import OrderedDict
from collections.abc import Mapping
from importlib import metadata
from typing import Any, List

from bundlerest.base import BundleRestException, SYSTEM_ABBREV
from bundlerest.base.config import ConfigurationException
from .router import Router, PathTemplate, RouteConflict

__all__ = [ "Extension", "ExtensionListener", "ExtensionBridge", "ExtensionRegistry",
            "ExtensionRegistrationError", "load_configured_extensions",
            "load_entry_point_extensions", "EXTENSIONS_MOUNT", "ENTRY_POINT_GROUP" ]

EXTENSIONS_MOUNT = "/extensions"
ENTRY_POINT_GROUP = "bundlerest.extensions"

deflog = logging.getLogger(SYSTEM_ABBREV).getChild("extensions")

class ExtensionRegistrationError(BundleRestException):
    """
    an exception indicating that an extension could not be attached (e.g. because it declares
    an illegal path or one that conflicts with an already attached resource)
    """
    def __init__(self, extid: str, message: str, cause: Exception=None):
        super(ExtensionRegistrationError, self).__init__("Extension %s: %s" % (extid, message), cause)
        self.extension_id = extid

class Extension(object):
    """
    the registration record for a REST extension

    :param str id:       the extension's unique identity
    :param str path:     the path template served by the extension, relative to the extensions
                         mount point (e.g. ``/hello/{name}``); a leading
                         "/" is assumed if missing
    :param handler:      the Handler class (or factory) that serves the path; it is called with
                         the arguments, ``(app, path, wsgienv, start_resp, pathvars, who)``.
    :param str name:     a display name for the extension (defaults to ``id``)
    """

    def __init__(self, id: str, path: str, handler: Any, name: str=None):
        self.id = id
        self.path = path
        self.handler = handler
        self.name = name or id

    def __repr__(self):
        return "Extension(%r, %r)" % (self.id, self.path)

class ExtensionListener(metaclass=ABCMeta):
    """
    an interface for receiving notifications of extensions coming and going
    """

    @abstractmethod
    def extension_available(self, ext: Extension):
        raise NotImplementedError()

    @abstractmethod
    def extension_unavailable(self, ext: Extension):
        raise NotImplementedError()

    @abstractmethod
    def extension_updated(self, ext: Extension):
        raise NotImplementedError()

class ExtensionBridge(ExtensionListener):
    """
    the listener that attaches available extensions to a Router under a mount point.  A failure
    to attach an extension is logged, and the extension is skipped; it does not affect other
    extensions or the built-in resources.
    """

    def __init__(self, router: Router, mount: str=EXTENSIONS_MOUNT, log: logging.Logger=None):
        self.router = router
        self.mount = '/' + mount.strip('/')
        if not log:
            log = deflog
        self.log = log
        self._lock = threading.Lock()
        self._attached = OrderedDict()

    def template_for(self, ext: Extension) -> PathTemplate:
        """
        return the full path template an extension would be attached at
        :raises ExtensionRegistrationError:  if the extension's path is not legal
        """
        path = ext.path
        if not isinstance(path, str) or not path:
            raise ExtensionRegistrationError(ext.id, "path must be a non-empty string: %r" % (path,))
        if not path.startswith('/'):
            path = '/' + path
        if path == self.mount or path.startswith(self.mount + '/'):
            path = path[len(self.mount):]
        if not path.strip('/'):
            raise ExtensionRegistrationError(ext.id, "path must name a resource below " + self.mount)
        try:
            return PathTemplate.parse(self.mount + path)
        except ValueError as ex:
            raise ExtensionRegistrationError(ext.id, "illegal path: " + str(ex), ex)

    def attach(self, ext: Extension):
        """
        attach an extension to the router
        :raises ExtensionRegistrationError:  if the extension cannot be attached
        """
        if not ext.id:
            raise ExtensionRegistrationError(str(ext.id), "missing identity")
        if not callable(ext.handler):
            raise ExtensionRegistrationError(ext.id, "handler is not callable")
        tmpl = self.template_for(ext)
        try:
            self.router.attach(tmpl, ext.handler, owner=ext.id)
        except RouteConflict as ex:
            raise ExtensionRegistrationError(ext.id, str(ex), ex)
        with self._lock:
            self._attached[ext.id] = ext
        self.log.info("Attached extension %s at %s", ext.id, str(tmpl))

    def detach(self, extid: str) -> int:
        """
        detach all routes owned by the identified extension
        :return:  the number of routes removed
        """
        removed = self.router.detach(owner=extid)
        with self._lock:
            self._attached.pop(extid, None)
        if removed:
            self.log.info("Detached extension %s", extid)
        return len(removed)

    def extension_available(self, ext: Extension):
        try:
            self.attach(ext)
        except ExtensionRegistrationError as ex:
            self.log.error("Skipping extension: %s", str(ex))

    def extension_unavailable(self, ext: Extension):
        self.detach(ext.id)

    def extension_updated(self, ext: Extension):
        self.detach(ext.id)
        self.extension_available(ext)

    def extensions(self) -> List[Extension]:
        """
        return the currently attached extensions
        """
        with self._lock:
            return list(self._attached.values())

class ExtensionRegistry(object):
    """
    a thread-safe registry of available extensions.  Listeners are notified synchronously as
    extensions are registered, updated, and unregistered; a listener added after extensions
    have been registered is notified of each of them as it is added.
    """

    def __init__(self, log: logging.Logger=None):
        if not log:
            log = deflog
        self.log = log
        self._lock = threading.RLock()
        self._exts = OrderedDict()
        self._listeners = []

    def add_listener(self, listener: ExtensionListener):
        with self._lock:
            self._listeners.append(listener)
            for ext in self._exts.values():
                self._notify(listener, "extension_available", ext)

    def remove_listener(self, listener: ExtensionListener):
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _notify(self, listener, event, ext):
        try:
            getattr(listener, event)(ext)
        except Exception as ex:
            self.log.exception("Extension listener failed to handle %s for %s: %s",
                               event, ext.id, str(ex))

    def _broadcast(self, event, ext):
        for listener in list(self._listeners):
            self._notify(listener, event, ext)

    def register(self, ext: Extension):
        """
        register an extension as available.  If an extension with the same id is already
        registered, it is replaced (and listeners are notified of an update).
        """
        with self._lock:
            update = ext.id in self._exts
            self._exts[ext.id] = ext
            self._broadcast("extension_updated" if update else "extension_available", ext)

    def update(self, ext: Extension):
        """
        replace a registered extension
        :raises KeyError:  if no extension with the given id is registered
        """
        with self._lock:
            if ext.id not in self._exts:
                raise KeyError(ext.id)
            self._exts[ext.id] = ext
            self._broadcast("extension_updated", ext)

    def unregister(self, extid: str) -> Extension:
        """
        remove an extension, returning it (or None if it was not registered)
        """
        if isinstance(extid, Extension):
            extid = extid.id
        with self._lock:
            ext = self._exts.pop(extid, None)
            if ext:
                self._broadcast("extension_unavailable", ext)
            return ext

    def extensions(self) -> List[Extension]:
        with self._lock:
            return list(self._exts.values())

def _import_handler(spec: str):
    # resolve "module:attr.subattr"
    modname, _, attr = spec.partition(':')
    if not modname or not attr:
        raise ValueError("handler must be given as module:attribute: " + spec)
    obj = importlib.import_module(modname)
    for name in attr.split('.'):
        obj = getattr(obj, name)
    return obj

def load_configured_extensions(registry: ExtensionRegistry, config: Mapping,
                               log: logging.Logger=None) -> List[Extension]:
    """
    register the extensions listed in the ``extensions`` configuration parameter.  Each item is
    a dictionary with ``id``, ``path``, ``handler`` (given as *module*:*attribute*), and
    optionally ``name``.  Items that cannot be loaded are logged and skipped.

    :raises ConfigurationException:  if ``extensions`` is not a list
    :return:  the extensions that were registered
    """
    if not log:
        log = deflog
    items = config.get('extensions', [])
    if not isinstance(items, list):
        raise ConfigurationException("Config param, extensions, not a list: " + str(items))

    out = []
    for item in items:
        if not isinstance(item, Mapping) or not item.get('id') or not item.get('handler'):
            log.error("Skipping malformed extension configuration: %s", str(item))
            continue
        try:
            handler = _import_handler(item['handler'])
        except (ImportError, AttributeError, ValueError) as ex:
            log.error("Skipping extension %s: unable to load handler %s: %s",
                      item['id'], item['handler'], str(ex))
            continue
        ext = Extension(item['id'], item.get('path', '/' + item['id']), handler, item.get('name'))
        registry.register(ext)
        out.append(ext)
    return out

def load_entry_point_extensions(registry: ExtensionRegistry, group: str=ENTRY_POINT_GROUP,
                                log: logging.Logger=None) -> List[Extension]:
    """
    register the extensions advertised by installed distributions under an entry-point group.
    An entry point may refer to an :py:class:`Extension` instance or to a Handler class with an
    ``extension_path`` attribute (in which case the entry point's name is the extension's id).
    Entry points that cannot be loaded are logged and skipped.

    :return:  the extensions that were registered
    """
    if not log:
        log = deflog
    out = []
    for ep in metadata.entry_points(group=group):
        try:
            obj = ep.load()
        except Exception as ex:
            log.error("Skipping extension %s: failed to load entry point: %s", ep.name, str(ex))
            continue

        if isinstance(obj, Extension):
            ext = obj
        elif getattr(obj, "extension_path", None):
            ext = Extension(ep.name, obj.extension_path, obj, getattr(obj, "extension_name", None))
        else:
            log.error("Skipping extension %s: entry point is neither an Extension nor a Handler "
                      "with an extension_path", ep.name)
            continue
        registry.register(ext)
        out.append(ext)
    return out
