"""
A client library for managing a bundle runtime via its REST interface
"""
import re
from collections.abc import Mapping
from typing import List, Union

import requests

from . import RestServerError, RestClientError, RestResourceNotFound
from bundlerest.base.config import ConfigurationException
from bundlerest.dto import DecodeError, UnsupportedMediaType, media, codec
from bundlerest.dto.shapes import (STR, ListOf, MapOf, FrameworkStartLevelDTO, BundleDTO,
                                   BundleStateDTO, BundleStartLevelDTO, ServiceReferenceDTO,
                                   ExtensionDTO)
from bundlerest.framework import ACTIVE, RESOLVED

_numeric_re = re.compile(r'^\d+$')

class RestClient:
    """
    a client class for managing a bundle runtime via its REST interface.  Each method issues a
    single request; nothing is retried or cached.

    Lookups of a single bundle or service return None if the entity does not exist; other
    failures are raised as a :py:class:`~bundlerest.client.RestClientError` (for 4xx responses)
    or a :py:class:`~bundlerest.client.RestServerError` (for 5xx responses, unparseable
    responses, or transport failures).
    """
    STARTLEVEL_EP = "framework/startlevel"
    BUNDLES_EP = "framework/bundles"
    BUNDLE_REPS_EP = "framework/bundles/representations"
    BUNDLE_EP = "framework/bundle/{0}"
    SERVICES_EP = "framework/services"
    SERVICE_REPS_EP = "framework/services/representations"
    SERVICE_EP = "framework/service/{0}"
    EXTENSIONS_EP = "extensions"

    def __init__(self, baseurl: str, use_xml: bool=False, authconfig: Mapping=None, **requests_kw):
        """
        initialize the client
        :param str     baseurl:  the base URL for the service (i.e. the URL that the ``framework``
                                 resources are relative to)
        :param bool    use_xml:  if True, exchange representations in XML; otherwise JSON is used
        :param dict authconfig:  a dictionary providing credentials for connecting to the service; if
                                 not provided, it will be assumed that authentication is not required.
        :param requests_kw:      additional keyword arguments to pass to each ``requests`` call
                                 (e.g. ``timeout``)
        """
        self.baseurl = baseurl.rstrip('/')
        self.syntax = media.XML if use_xml else media.JSON
        self._reqkw = requests_kw

        self._authkw = {}
        self._authhdr = {}
        self._setup_auth(authconfig)

    def _setup_auth(self, config: Mapping=None):
        # erase any previously set-up authentication
        self._authkw = {}
        self._authhdr = {}

        if not config or config.get('type', '') is None:
            return      # no authentication required

        authtype = config.get('type', 'bearer')
        if isinstance(authtype, str):
            authtype = authtype.lower()

        if authtype == "none":
            pass      # no authentication required

        elif authtype == "userpass":
            self._authkw = { "auth": (config.get('user'), config.get('pass')) }
            if not all(self._authkw["auth"]):
                raise ConfigurationException("RestClient: authentication type userpass requires both "+
                                             "'user' and 'pass' config parameters")

        elif authtype == "bearer":
            token = config.get("token")
            if not token:
                raise ConfigurationException("RestClient: authentication type bearer requires "+
                                             "'token' config parameter")
            self._authhdr = { "Authorization": f"Bearer {token}" }

        elif authtype == "cert":
            self._authkw = { 'cert': (config.get('client_cert_path'), config.get('client_key_path')) }
            if not all(self._authkw["cert"]):
                raise ConfigurationException("RestClient: authentication type cert requires both "+
                                             "'client_cert_path' and 'client_key_path' config parameters")

            unreadable = []
            for cfile in self._authkw['cert']:
                try:
                    with open(cfile):
                        pass
                except OSError as ex:
                    unreadable.append(f"{cfile} ({str(ex)})")
            if unreadable:
                s = "s" if len(unreadable) > 1 else ""
                raise ConfigurationException("RestClient: certificate file%s unreadable:\n  %s" %
                                             (s, "\n  ".join(unreadable)))

        else:
            raise ConfigurationException("RestClient: authentication 'type' param value not supported: "+
                                         str(authtype))

    def _media(self, kind: media.MediaKind) -> str:
        return kind.for_syntax(self.syntax)

    def _request(self, meth: str, relurl: str, kind: media.MediaKind=None, body=None,
                 ctype: str=None, params: Mapping=None, headers: Mapping=None) -> requests.Response:
        relurl = relurl.lstrip('/')
        hdrs = {}
        if kind:
            hdrs["Accept"] = self._media(kind)
        if body is not None:
            hdrs["Content-Type"] = ctype or self._media(kind)
        if headers:
            hdrs.update(headers)
        hdrs.update(self._authhdr)
        kw = dict(self._reqkw)
        kw.update(self._authkw)

        try:
            resp = requests.request(meth, self.baseurl+'/'+relurl, headers=hdrs, data=body,
                                    params=params, **kw)
        except requests.RequestException as ex:
            raise RestServerError(relurl, cause=ex)

        if resp.status_code >= 500:
            raise RestServerError(relurl, resp.status_code, resp.reason, body=resp.text)
        elif resp.status_code == 404:
            raise RestResourceNotFound(relurl, resp.reason, body=resp.text)
        elif resp.status_code >= 400:
            raise RestClientError(relurl, resp.status_code, resp.reason, body=resp.text)
        elif resp.status_code < 200 or resp.status_code >= 300:
            raise RestServerError(relurl, resp.status_code, resp.reason,
                                  message="Unexpected response from server: {0} {1}"
                                  .format(resp.status_code, resp.reason), body=resp.text)
        return resp

    def _decode(self, resp: requests.Response, relurl: str, shape):
        ctype = resp.headers.get("Content-Type") or "application/" + self.syntax
        try:
            return codec.decode(resp.content, ctype, shape)
        except UnsupportedMediaType as ex:
            raise RestServerError(relurl, resp.status_code, resp.reason, body=resp.text,
                                  message="Unexpected content type in response: " + str(ctype),
                                  cause=ex)
        except DecodeError as ex:
            raise RestServerError(relurl, resp.status_code, resp.reason, body=resp.text,
                                  message="Unable to parse response: " + str(ex), cause=ex)

    def _get(self, relurl: str, kind: media.MediaKind, shape, params: Mapping=None):
        return self._decode(self._request("GET", relurl, kind, params=params), relurl, shape)

    def _get_optional(self, relurl: str, kind: media.MediaKind, shape):
        try:
            return self._get(relurl, kind, shape)
        except RestResourceNotFound:
            return None

    def _put(self, relurl: str, kind: media.MediaKind, value):
        self._request("PUT", relurl, kind, codec.encode(value, self._media(kind)))

    def _bundle_path(self, bundle: Union[int, str]) -> str:
        if isinstance(bundle, int) or _numeric_re.match(str(bundle)):
            return self.BUNDLE_EP.format(int(bundle))
        return str(bundle).strip('/')

    def _service_path(self, service: Union[int, str]) -> str:
        if isinstance(service, int) or _numeric_re.match(str(service)):
            return self.SERVICE_EP.format(int(service))
        return str(service).strip('/')

    def _location_or_stream(self, location: str=None, stream=None):
        # return the body, content type, and extra headers for an install or update
        if stream is not None:
            hdrs = { "Content-Location": location } if location else {}
            return (stream, "application/octet-stream", hdrs)
        if location:
            return (location.encode('utf-8'), "text/plain", {})
        return (None, None, {})

    def get_framework_startlevel(self) -> FrameworkStartLevelDTO:
        return self._get(self.STARTLEVEL_EP, media.FRAMEWORK_STARTLEVEL, FrameworkStartLevelDTO)

    def set_framework_startlevel(self, startlevel: FrameworkStartLevelDTO):
        self._put(self.STARTLEVEL_EP, media.FRAMEWORK_STARTLEVEL, startlevel)

    def get_bundle_paths(self) -> List[str]:
        """
        return the paths to the installed bundles' resources
        """
        return self._get(self.BUNDLES_EP, media.BUNDLES, ListOf(STR))

    def get_bundles(self) -> List[BundleDTO]:
        """
        return descriptions of all installed bundles, or None if the service does not support
        the listing of bundle representations
        """
        return self._get_optional(self.BUNDLE_REPS_EP, media.BUNDLES_REPRESENTATIONS, ListOf(BundleDTO))

    def get_bundle(self, bundle: Union[int, str]) -> BundleDTO:
        """
        return the description of a bundle, or None if the bundle does not exist
        :param bundle:  the bundle's numeric identifier or the path to its resource
        """
        return self._get_optional(self._bundle_path(bundle), media.BUNDLE, BundleDTO)

    def get_bundle_state(self, bundle: Union[int, str]) -> int:
        relurl = self._bundle_path(bundle) + "/state"
        return self._get(relurl, media.BUNDLE_STATE, BundleStateDTO).state

    def start_bundle(self, bundle: Union[int, str], options: int=0):
        self._put(self._bundle_path(bundle) + "/state", media.BUNDLE_STATE,
                  BundleStateDTO(state=ACTIVE, options=options))

    def stop_bundle(self, bundle: Union[int, str], options: int=0):
        self._put(self._bundle_path(bundle) + "/state", media.BUNDLE_STATE,
                  BundleStateDTO(state=RESOLVED, options=options))

    def get_bundle_headers(self, bundle: Union[int, str]) -> Mapping[str, str]:
        relurl = self._bundle_path(bundle) + "/header"
        return self._get(relurl, media.BUNDLE_HEADER, MapOf())

    def get_bundle_startlevel(self, bundle: Union[int, str]) -> BundleStartLevelDTO:
        relurl = self._bundle_path(bundle) + "/startlevel"
        return self._get(relurl, media.BUNDLE_STARTLEVEL, BundleStartLevelDTO)

    def set_bundle_startlevel(self, bundle: Union[int, str], startlevel: int):
        self._put(self._bundle_path(bundle) + "/startlevel", media.BUNDLE_STARTLEVEL,
                  BundleStartLevelDTO(startLevel=startlevel))

    def install_bundle(self, location: str, stream=None) -> BundleDTO:
        """
        install a bundle and return its description
        :param str location:  the bundle's location; if ``stream`` is not given, the runtime
                              retrieves the bundle from this location.
        :param stream:        the bundle's content, as bytes or a file-like object
        """
        body, ctype, hdrs = self._location_or_stream(location, stream)
        if body is None:
            raise ValueError("install_bundle(): either location or stream must be provided")
        resp = self._request("POST", self.BUNDLES_EP, media.BUNDLE, body, ctype, headers=hdrs)
        path = resp.text.strip()
        if not path:
            path = resp.headers.get("Location", "").split(self.baseurl, 1)[-1]
        if not path:
            raise RestServerError(self.BUNDLES_EP, resp.status_code, resp.reason,
                                  message="Server did not return the new bundle's location")
        return self._get(path, media.BUNDLE, BundleDTO)

    def update_bundle(self, bundle: Union[int, str], location: str=None, stream=None) -> BundleDTO:
        """
        update a bundle from a new location, from the given content, or (if neither is given)
        from its original location
        """
        relurl = self._bundle_path(bundle)
        body, ctype, hdrs = self._location_or_stream(location, stream)
        resp = self._request("PUT", relurl, media.BUNDLE, body, ctype, headers=hdrs)
        return self._decode(resp, relurl, BundleDTO)

    def uninstall_bundle(self, bundle: Union[int, str]) -> BundleDTO:
        relurl = self._bundle_path(bundle)
        return self._decode(self._request("DELETE", relurl, media.BUNDLE), relurl, BundleDTO)

    def get_service_paths(self, filter: str=None) -> List[str]:
        params = { "filter": filter } if filter else None
        return self._get(self.SERVICES_EP, media.SERVICES, ListOf(STR), params)

    def get_service_references(self, filter: str=None) -> List[ServiceReferenceDTO]:
        params = { "filter": filter } if filter else None
        return self._get(self.SERVICE_REPS_EP, media.SERVICES_REPRESENTATIONS,
                         ListOf(ServiceReferenceDTO), params)

    def get_service_reference(self, service: Union[int, str]) -> ServiceReferenceDTO:
        """
        return the description of a service, or None if the service does not exist
        """
        return self._get_optional(self._service_path(service), media.SERVICE, ServiceReferenceDTO)

    def get_extensions(self) -> List[ExtensionDTO]:
        return self._get(self.EXTENSIONS_EP, media.EXTENSIONS, ListOf(ExtensionDTO))
