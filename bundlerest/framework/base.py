"""
The abstract management interface to a bundle runtime.
"""
from abc import ABCMeta, abstractmethod
from typing import List, Mapping

from . import EntityNotFound
from bundlerest.dto.shapes import (FrameworkStartLevelDTO, BundleDTO, BundleStartLevelDTO,
                                   ServiceReferenceDTO)

__all__ = [ "FrameworkManager" ]

class FrameworkManager(metaclass=ABCMeta):
    """
    the interface the REST handlers use to inspect and manage a bundle runtime.  Entities are
    identified by their numeric identifiers and are returned as DTOs.  Operations on a bundle or
    service that does not exist raise a subclass of
    :py:class:`~bundlerest.framework.EntityNotFound`; operations that the runtime refuses raise
    :py:class:`~bundlerest.framework.FrameworkOperationError`.

    Implementations must be safe to call from concurrent request threads.
    """

    @abstractmethod
    def get_framework_startlevel(self) -> FrameworkStartLevelDTO:
        raise NotImplementedError()

    @abstractmethod
    def set_framework_startlevel(self, startlevel: FrameworkStartLevelDTO):
        """
        change the runtime's start level and/or the initial start level of new bundles.  A
        value of zero or less for either field leaves that setting unchanged.
        """
        raise NotImplementedError()

    @abstractmethod
    def bundle_ids(self) -> List[int]:
        """
        return the identifiers of all installed bundles, in increasing order
        """
        raise NotImplementedError()

    @abstractmethod
    def get_bundle(self, bundleid: int) -> BundleDTO:
        raise NotImplementedError()

    def get_bundles(self) -> List[BundleDTO]:
        """
        return descriptions of all installed bundles
        """
        out = []
        for bid in self.bundle_ids():
            try:
                out.append(self.get_bundle(bid))
            except EntityNotFound:
                # uninstalled since listing
                pass
        return out

    @abstractmethod
    def install_bundle(self, location: str, stream: bytes=None) -> BundleDTO:
        """
        install a bundle.
        :param str location:  the location identifying the bundle; if ``stream`` is not given,
                              the bundle content is retrieved from this location
        :param bytes stream:  the bundle's content
        :return:  the description of the installed bundle
        """
        raise NotImplementedError()

    @abstractmethod
    def update_bundle(self, bundleid: int, location: str=None, stream: bytes=None) -> BundleDTO:
        """
        replace the content of an installed bundle, either from the given stream, the given
        location, or its original location.
        """
        raise NotImplementedError()

    @abstractmethod
    def uninstall_bundle(self, bundleid: int) -> BundleDTO:
        """
        uninstall a bundle and return its final description
        """
        raise NotImplementedError()

    @abstractmethod
    def get_bundle_state(self, bundleid: int) -> int:
        raise NotImplementedError()

    @abstractmethod
    def set_bundle_state(self, bundleid: int, state: int, options: int=0):
        """
        start (``state`` = ACTIVE) or stop (``state`` = RESOLVED) a bundle
        """
        raise NotImplementedError()

    @abstractmethod
    def get_bundle_headers(self, bundleid: int) -> Mapping[str, str]:
        raise NotImplementedError()

    @abstractmethod
    def get_bundle_startlevel(self, bundleid: int) -> BundleStartLevelDTO:
        raise NotImplementedError()

    @abstractmethod
    def set_bundle_startlevel(self, bundleid: int, startlevel: int):
        raise NotImplementedError()

    @abstractmethod
    def service_ids(self, filter: str=None) -> List[int]:
        """
        return the identifiers of the registered services, in increasing order.
        :param str filter:  an LDAP-style filter that the properties of returned services must match
        :raises InvalidFilter:  if the filter is not legal
        """
        raise NotImplementedError()

    @abstractmethod
    def get_service(self, serviceid: int) -> ServiceReferenceDTO:
        raise NotImplementedError()

    def get_services(self, filter: str=None) -> List[ServiceReferenceDTO]:
        """
        return descriptions of the registered services that match a filter
        """
        out = []
        for sid in self.service_ids(filter):
            try:
                out.append(self.get_service(sid))
            except EntityNotFound:
                pass
        return out
