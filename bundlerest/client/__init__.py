"""
A client library for the bundle runtime REST interface.  See
:py:class:`~bundlerest.client.rest.RestClient`.
"""
from bundlerest.base import BundleRestException

try:
    from .version import __version__
except ImportError:
    __version__ = "(unset)"

class RestServiceException(BundleRestException):
    """
    an exception indicating a problem using the REST service.
    """

    def __init__(self, resource=None, http_code=None, http_reason=None, message=None, cause=None,
                 body=None):
        if not message:
            if resource:
                message = f"Trouble accessing {resource} from the REST service"
            else:
                message = "Problem accessing the REST service"
            if http_code or http_reason:
                message += ":"
                if http_code:
                    message += " "+str(http_code)
                if http_reason:
                    message += " "+str(http_reason)
            elif cause:
                message += ": "+str(cause)

        super(RestServiceException, self).__init__(message, cause)
        self.resource = resource
        self.status = http_code
        self.reason = http_reason
        self.body = body

class RestServerError(RestServiceException):
    """
    an exception indicating an error occurred on the server-side while trying to access the
    REST service, or that the server's response could not be understood.

    This exception includes extra public properties, `status`, `reason`, `body`, and `resource`
    which capture the HTTP response status code, the associated HTTP response message, the
    response body, and the path of the resource requested.
    """
    pass

class RestClientError(RestServiceException):
    """
    an exception indicating that the service rejected a request as erroneous (i.e. with a 4xx
    status).

    This exception includes extra public properties, `status`, `reason`, `body`, and `resource`
    which capture the HTTP response status code, the associated HTTP response message, the
    response body, and the path of the resource requested.
    """

    def __init__(self, resource, http_code, http_reason, message=None, cause=None, body=None):
        if not message:
            message = "client-side REST error occurred"
            if resource:
                message += " while processing " + resource
            message += ": {0} {1}".format(http_code, http_reason)

        super(RestClientError, self).__init__(resource, http_code, http_reason, message, cause, body)

class RestResourceNotFound(RestClientError):
    """
    An error indicating that a requested resource is not available via the REST service.
    """
    def __init__(self, resource, http_reason=None, message=None, cause=None, body=None):
        if not message:
            message = "Requested resource not found"
            if resource:
                message += ": "+resource

        super(RestResourceNotFound, self).__init__(resource, 404, http_reason, message, cause, body)

from .rest import RestClient
