"""
The management interface to a bundle runtime.

The REST handlers reach the runtime only through the :py:class:`~bundlerest.framework.base.FrameworkManager`
interface defined in this package; an implementation that simulates a runtime in memory,
:py:class:`~bundlerest.framework.inmem.InMemoryFramework`, is provided for testing and demonstration.

This package is organized into the following modules:

``base``
    the abstract :py:class:`~bundlerest.framework.base.FrameworkManager` interface
``filter``
    the parsing and evaluation of LDAP-style service filters
``inmem``
    the in-memory runtime
"""
from bundlerest.base import BundleRestException

try:
    from .version import __version__
except ImportError:
    __version__ = "(unset)"

# bundle states
UNINSTALLED = 1
INSTALLED = 2
RESOLVED = 4
STARTING = 8
STOPPING = 16
ACTIVE = 32

# options for starting and stopping bundles
START_TRANSIENT = 1
START_ACTIVATION_POLICY = 2
STOP_TRANSIENT = 1

SYSTEM_BUNDLE_ID = 0

class FrameworkException(BundleRestException):
    """
    a base class for failures reported by the management interface of a runtime
    """
    pass

class EntityNotFound(FrameworkException):
    """
    an exception indicating that a requested bundle or service does not exist
    """
    def __init__(self, entid, message: str=None):
        if not message:
            message = "%s not found: %s" % (self.entity_type, str(entid))
        super(EntityNotFound, self).__init__(message)
        self.id = entid

    entity_type = "Entity"

class BundleNotFound(EntityNotFound):
    entity_type = "Bundle"

class ServiceNotFound(EntityNotFound):
    entity_type = "Service"

class InvalidFilter(FrameworkException):
    """
    an exception indicating that a service filter is not syntactically legal
    """
    def __init__(self, filter: str, message: str=None):
        if not message:
            message = "Invalid filter"
        super(InvalidFilter, self).__init__("%s: %s" % (message, filter))
        self.filter = filter

class FrameworkOperationError(FrameworkException):
    """
    an exception indicating that a requested management operation failed (e.g. because it
    requested an illegal state transition)
    """
    pass

from .base import FrameworkManager
