"""
An implementation of the :py:class:`~bundlerest.framework.base.FrameworkManager` interface that
simulates a bundle runtime in memory.

This is provided primarily for testing and demonstration purposes.  Bundles are not loaded or
executed; a bundle's headers are read from the ``META-INF/MANIFEST.MF`` entry of its content
when that content is a JAR (zip) file, or else are derived from the name of its location.
A bundle may declare the services that it registers while it is active (see
:py:meth:`InMemoryFramework.install_bundle`); services can also be registered directly with
:py:meth:`InMemoryFramework.register_service`.
"""
import os, io, re, time, zipfile, threading, logging
from collections import OrderedDict
from collections.abc import Mapping
from copy import deepcopy
from typing import List
from urllib.parse import urlparse

from . import (UNINSTALLED, INSTALLED, RESOLVED, STARTING, ACTIVE, START_TRANSIENT,
               START_ACTIVATION_POLICY, STOP_TRANSIENT, SYSTEM_BUNDLE_ID, BundleNotFound,
               ServiceNotFound, FrameworkOperationError)
from .base import FrameworkManager
from . import filter as ldap
from bundlerest.base import SYSTEM_ABBREV
from bundlerest.dto.shapes import (FrameworkStartLevelDTO, BundleDTO, BundleStartLevelDTO,
                                   ServiceReferenceDTO)

__all__ = [ "InMemoryFramework", "read_manifest", "headers_from_location" ]

MANIFEST_ENTRY = "META-INF/MANIFEST.MF"
SYSTEM_BUNDLE_NAME = "org.bundlerest.framework.system"

_jar_name_re = re.compile(r'^(?P<name>.+?)[-_](?P<version>\d+(\.\d+){0,2}([.\-][\w\-]+)?)$')

def read_manifest(data: bytes) -> Mapping:
    """
    return the main headers from the manifest of a JAR file given as bytes, or None if the
    data is not a zip file or lacks a manifest.
    """
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as jar:
            text = jar.read(MANIFEST_ENTRY).decode('utf-8')
    except (zipfile.BadZipFile, KeyError, UnicodeDecodeError):
        return None

    out = OrderedDict()
    last = None
    for line in text.splitlines():
        if not line.strip():
            if out:
                # end of the main section
                break
            continue
        if line.startswith(' ') and last:
            out[last] += line[1:]
        elif ':' in line:
            last, val = line.split(':', 1)
            out[last] = val.strip()
    return out

def headers_from_location(location: str) -> Mapping:
    """
    derive minimal bundle headers from the file name at the end of a location, assuming
    the conventional *name*-*version*.jar naming.
    """
    name = os.path.basename(urlparse(location).path.rstrip('/')) or location
    if name.lower().endswith(".jar"):
        name = name[:-4]
    version = "0.0.0"
    m = _jar_name_re.match(name)
    if m:
        name, version = m.group('name'), m.group('version')
    return OrderedDict([
        ("Bundle-ManifestVersion", "2"),
        ("Bundle-SymbolicName", name),
        ("Bundle-Version", version)
    ])

def _symbolic_name(headers):
    # strip directives such as ";singleton:=true"
    bsn = headers.get("Bundle-SymbolicName")
    return bsn.split(';')[0].strip() if bsn else None

class _Bundle(object):

    def __init__(self, bid, location, headers, startlevel, services=None):
        self.id = bid
        self.location = location
        self.headers = headers
        self.state = INSTALLED
        self.startlevel = startlevel
        self.persistently_started = False
        self.activation_policy_used = False
        self.declared_services = list(services or [])
        self.last_modified = _now()

    @property
    def symbolic_name(self):
        return _symbolic_name(self.headers)

    @property
    def version(self):
        return self.headers.get("Bundle-Version", "0.0.0")

    @property
    def lazy(self):
        return self.headers.get("Bundle-ActivationPolicy", "").split(';')[0].strip() == "lazy"

class _Service(object):

    def __init__(self, sid, bundleid, properties):
        self.id = sid
        self.bundle = bundleid
        self.properties = properties
        self.using = set()

def _now():
    return int(time.time() * 1000)

class InMemoryFramework(FrameworkManager):
    """
    a FrameworkManager that simulates a bundle runtime in memory.  All operations are
    serialized with a reentrant lock.

    The configuration can include the following parameters:

    ``start_level``
        _int_.  the initial start level of the runtime (default: 1)
    ``initial_bundle_start_level``
        _int_.  the start level assigned to newly installed bundles (default: 1)
    ``bundles``
        _list_.  descriptions of bundles to install at construction; each is a dictionary
        with a ``location`` and optionally ``headers`` (a dictionary), ``services`` (a list of
        service property dictionaries), ``start_level``, and ``start`` (boolean, default False)
    """

    def __init__(self, config: Mapping=None, log: logging.Logger=None):
        if config is None:
            config = {}
        self.cfg = config
        if not log:
            log = logging.getLogger(SYSTEM_ABBREV).getChild("framework")
        self.log = log
        self.lock = threading.RLock()

        self._startlevel = int(config.get('start_level', 1))
        self._initial_bundle_startlevel = int(config.get('initial_bundle_start_level', 1))
        self._bundles = OrderedDict()
        self._services = OrderedDict()
        self._next_bid = SYSTEM_BUNDLE_ID + 1
        self._next_sid = 1

        sysb = _Bundle(SYSTEM_BUNDLE_ID, "System Bundle",
                       OrderedDict([("Bundle-ManifestVersion", "2"),
                                    ("Bundle-SymbolicName", SYSTEM_BUNDLE_NAME),
                                    ("Bundle-Version", "1.0.0"),
                                    ("Bundle-Name", "System Bundle")]), 0)
        sysb.state = ACTIVE
        sysb.persistently_started = True
        self._bundles[sysb.id] = sysb

        for desc in config.get('bundles', []):
            b = self.install_bundle(desc['location'], headers=desc.get('headers'),
                                    services=desc.get('services'))
            if desc.get('start_level'):
                self.set_bundle_startlevel(b.id, int(desc['start_level']))
            if desc.get('start'):
                self.set_bundle_state(b.id, ACTIVE)

    def _get(self, bundleid) -> _Bundle:
        b = self._bundles.get(bundleid)
        if not b:
            raise BundleNotFound(bundleid)
        return b

    def _to_dto(self, b: _Bundle) -> BundleDTO:
        return BundleDTO(id=b.id, lastModified=b.last_modified, state=b.state,
                         symbolicName=b.symbolic_name, version=b.version, location=b.location,
                         registeredServices=sorted(s.id for s in self._services.values()
                                                   if s.bundle == b.id),
                         servicesInUse=sorted(s.id for s in self._services.values()
                                              if b.id in s.using))

    def get_framework_startlevel(self) -> FrameworkStartLevelDTO:
        with self.lock:
            return FrameworkStartLevelDTO(startLevel=self._startlevel,
                                          initialBundleStartLevel=self._initial_bundle_startlevel)

    def set_framework_startlevel(self, startlevel: FrameworkStartLevelDTO):
        with self.lock:
            if startlevel.initialBundleStartLevel and startlevel.initialBundleStartLevel > 0:
                self._initial_bundle_startlevel = startlevel.initialBundleStartLevel
            if startlevel.startLevel and startlevel.startLevel > 0:
                self._startlevel = startlevel.startLevel
                self.log.info("Framework start level set to %d", self._startlevel)
                for b in list(self._bundles.values()):
                    self._apply_startlevel(b)

    def _apply_startlevel(self, b: _Bundle):
        # start or stop a bundle according to the current start levels
        if b.id == SYSTEM_BUNDLE_ID:
            return
        if b.state in (ACTIVE, STARTING) and b.startlevel > self._startlevel:
            self._deactivate(b)
        elif b.persistently_started and b.state in (INSTALLED, RESOLVED) and \
             b.startlevel <= self._startlevel:
            self._activate(b)

    def bundle_ids(self) -> List[int]:
        with self.lock:
            return sorted(self._bundles.keys())

    def get_bundle(self, bundleid: int) -> BundleDTO:
        with self.lock:
            return self._to_dto(self._get(bundleid))

    def _load(self, location, stream):
        if stream is None:
            url = urlparse(location)
            path = url.path if url.scheme == "file" else location
            if (url.scheme in ("", "file") or len(url.scheme) == 1) and os.path.isfile(path):
                with open(path, 'rb') as fd:
                    stream = fd.read()
        headers = read_manifest(stream) if stream else None
        if not headers or not _symbolic_name(headers):
            headers = headers_from_location(location)
        return headers

    def install_bundle(self, location: str=None, stream: bytes=None, headers: Mapping=None,
                       services: List[Mapping]=None) -> BundleDTO:
        """
        install a bundle.  Installing from a location that is already installed returns the
        existing bundle.

        :param str location:  the location identifying the bundle; if not given, one is assigned
        :param bytes stream:  the bundle's content (a JAR file)
        :param dict headers:  the bundle's headers; if given, the content is not consulted
        :param list services: the property dictionaries of the services the bundle registers
                              while active; each must include ``objectClass``.
        :raises FrameworkOperationError:  if a bundle with the same symbolic name and version
                              is already installed
        """
        if not location and stream is None:
            raise FrameworkOperationError("Neither bundle location nor content provided")
        with self.lock:
            if not location:
                location = "inputstream:%d" % self._next_bid
            for b in self._bundles.values():
                if b.location == location:
                    return self._to_dto(b)

            if headers:
                headers = OrderedDict(headers)
            else:
                headers = self._load(location, stream)
            self._check_unique(_symbolic_name(headers), headers.get("Bundle-Version", "0.0.0"))

            b = _Bundle(self._next_bid, location, headers, self._initial_bundle_startlevel,
                        services)
            self._next_bid += 1
            self._bundles[b.id] = b
            self.log.info("Installed bundle %d: %s", b.id, location)
            return self._to_dto(b)

    def _check_unique(self, bsn, version, exclude=None):
        for b in self._bundles.values():
            if b.id != exclude and b.symbolic_name == bsn and b.version == version:
                raise FrameworkOperationError("Bundle %s %s is already installed (id=%d)" %
                                              (bsn, version, b.id))

    def update_bundle(self, bundleid: int, location: str=None, stream: bytes=None) -> BundleDTO:
        with self.lock:
            b = self._get(bundleid)
            if b.id == SYSTEM_BUNDLE_ID:
                raise FrameworkOperationError("Updating the system bundle is not supported")
            wasactive = b.state in (ACTIVE, STARTING)
            headers = self._load(location or b.location, stream)
            self._check_unique(_symbolic_name(headers), headers.get("Bundle-Version", "0.0.0"), b.id)

            if wasactive:
                self._deactivate(b)
            b.headers = headers
            b.state = INSTALLED
            b.last_modified = _now()
            if wasactive:
                self._activate(b)
            self.log.info("Updated bundle %d", b.id)
            return self._to_dto(b)

    def uninstall_bundle(self, bundleid: int) -> BundleDTO:
        with self.lock:
            b = self._get(bundleid)
            if b.id == SYSTEM_BUNDLE_ID:
                raise FrameworkOperationError("The system bundle cannot be uninstalled")
            if b.state in (ACTIVE, STARTING):
                self._deactivate(b)
            for s in self._services.values():
                s.using.discard(b.id)
            b.state = UNINSTALLED
            b.last_modified = _now()
            del self._bundles[b.id]
            self.log.info("Uninstalled bundle %d", b.id)
            return self._to_dto(b)

    def get_bundle_state(self, bundleid: int) -> int:
        with self.lock:
            return self._get(bundleid).state

    def set_bundle_state(self, bundleid: int, state: int, options: int=0):
        """
        start (``state`` = ACTIVE) or stop (``state`` = RESOLVED) a bundle.
        :raises FrameworkOperationError:  if any other target state is requested or the
                 transition is not allowed
        """
        options = options or 0
        with self.lock:
            b = self._get(bundleid)
            if state == ACTIVE:
                self._start(b, options)
            elif state == RESOLVED:
                self._stop(b, options)
            else:
                raise FrameworkOperationError("Unsupported target state for bundle %d: %s" %
                                              (b.id, str(state)))

    def _start(self, b, options):
        if b.id == SYSTEM_BUNDLE_ID:
            return
        transient = bool(options & START_TRANSIENT)
        if b.startlevel > self._startlevel:
            if transient:
                raise FrameworkOperationError("Bundle %d start level (%d) exceeds framework "
                                              "start level (%d)" % (b.id, b.startlevel,
                                                                    self._startlevel))
            b.persistently_started = True
            b.activation_policy_used = bool(options & START_ACTIVATION_POLICY)
            return
        if not transient:
            b.persistently_started = True
            b.activation_policy_used = bool(options & START_ACTIVATION_POLICY)
        if b.state not in (ACTIVE, STARTING):
            self._activate(b, bool(options & START_ACTIVATION_POLICY))

    def _stop(self, b, options):
        if b.id == SYSTEM_BUNDLE_ID:
            raise FrameworkOperationError("Stopping the system bundle is not supported")
        if not (options & STOP_TRANSIENT):
            b.persistently_started = False
        if b.state in (ACTIVE, STARTING):
            self._deactivate(b)
        elif b.state == INSTALLED:
            b.state = RESOLVED

    def _activate(self, b, lazy=None):
        if lazy is None:
            lazy = b.activation_policy_used
        if lazy and b.lazy:
            # lazy activation: waits for its first use
            b.state = STARTING
        else:
            b.state = ACTIVE
            for props in b.declared_services:
                self._register(b.id, props)
        b.last_modified = _now()
        self.log.debug("Bundle %d now in state %d", b.id, b.state)

    def _deactivate(self, b):
        for sid in [s.id for s in self._services.values() if s.bundle == b.id]:
            del self._services[sid]
        for s in self._services.values():
            s.using.discard(b.id)
        b.state = RESOLVED
        b.last_modified = _now()
        self.log.debug("Bundle %d now in state %d", b.id, b.state)

    def get_bundle_headers(self, bundleid: int) -> Mapping[str, str]:
        with self.lock:
            return OrderedDict(self._get(bundleid).headers)

    def get_bundle_startlevel(self, bundleid: int) -> BundleStartLevelDTO:
        with self.lock:
            b = self._get(bundleid)
            return BundleStartLevelDTO(bundle=b.id, startLevel=b.startlevel,
                                       activationPolicyUsed=b.activation_policy_used,
                                       persistentlyStarted=b.persistently_started)

    def set_bundle_startlevel(self, bundleid: int, startlevel: int):
        with self.lock:
            b = self._get(bundleid)
            if b.id == SYSTEM_BUNDLE_ID:
                raise FrameworkOperationError("The start level of the system bundle cannot be changed")
            if startlevel is None or startlevel < 1:
                raise FrameworkOperationError("Illegal start level: " + str(startlevel))
            b.startlevel = startlevel
            self._apply_startlevel(b)

    def register_service(self, bundleid: int, properties: Mapping) -> ServiceReferenceDTO:
        """
        register a service on behalf of an active bundle
        :param dict properties:  the service's properties; must include ``objectClass``
        """
        with self.lock:
            b = self._get(bundleid)
            if b.state not in (ACTIVE, STARTING):
                raise FrameworkOperationError("Bundle %d is not active" % b.id)
            return self.get_service(self._register(b.id, properties))

    def _register(self, bundleid, properties):
        props = OrderedDict(deepcopy(dict(properties)))
        ocls = props.get('objectClass')
        if not ocls:
            raise FrameworkOperationError("Service properties are missing objectClass")
        if isinstance(ocls, str):
            props['objectClass'] = [ocls]
        s = _Service(self._next_sid, bundleid, props)
        self._next_sid += 1
        props['service.id'] = s.id
        props['service.bundleid'] = bundleid
        self._services[s.id] = s
        return s.id

    def unregister_service(self, serviceid: int):
        with self.lock:
            if serviceid not in self._services:
                raise ServiceNotFound(serviceid)
            del self._services[serviceid]

    def use_service(self, bundleid: int, serviceid: int):
        """
        record that a bundle is using a service
        """
        with self.lock:
            self._get(bundleid)
            s = self._services.get(serviceid)
            if not s:
                raise ServiceNotFound(serviceid)
            s.using.add(bundleid)

    def service_ids(self, filter: str=None) -> List[int]:
        flt = ldap.parse(filter) if filter else None
        with self.lock:
            return sorted(s.id for s in self._services.values()
                          if not flt or flt.matches(s.properties))

    def get_service(self, serviceid: int) -> ServiceReferenceDTO:
        with self.lock:
            s = self._services.get(serviceid)
            if not s:
                raise ServiceNotFound(serviceid)
            return ServiceReferenceDTO(id=s.id, bundle=s.bundle,
                                       properties=deepcopy(s.properties),
                                       usingBundles=sorted(s.using))
