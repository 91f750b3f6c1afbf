"""
Utilities for creating web servers and clients.

This package is organized into the following modules:

``utils``
    General utilities for interpreting the ``Accept`` and ``Content-Type`` HTTP headers.
``formats``
    Classes that help a web service implementation manage its output format options
``agent``
    the representation of an (authenticated) web service client
``rest``
    a simple framework for creating strict REST services over WSGI
"""
