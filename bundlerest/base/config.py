"""
Utilities for loading configuration data and setting up logging.

Configuration data is a (nested) dictionary of parameters.  It can be read from a YAML or JSON
file (distinguished by the file's extension) or retrieved from a URL.
"""
import os, sys, json, logging
from collections.abc import Mapping
from urllib.parse import urlparse

import yaml
import requests

from . import BundleRestException, SYSTEM_ABBREV

__all__ = [ "ConfigurationException", "load_from_file", "resolve_configuration", "configure_log",
           "global_logdir", "global_logfile" ]

global_logdir = None
global_logfile = None

_log_levels_byname = {
    "CRITICAL": logging.CRITICAL,
    "ERROR":    logging.ERROR,
    "WARNING":  logging.WARNING,
    "WARN":     logging.WARNING,
    "INFO":     logging.INFO,
    "DEBUG":    logging.DEBUG,
    "NOTSET":   logging.NOTSET
}

DEF_LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s: %(message)s"
DEF_LOG_FILE = SYSTEM_ABBREV + ".log"

class ConfigurationException(BundleRestException):
    """
    a class indicating an error in the configuration of a bundlerest component
    """
    pass

def load_from_file(configfile: str) -> Mapping:
    """
    read the configuration from the given file and return it as a dictionary.  The file's
    extension determines the expected syntax: ``.json`` for JSON, ``.yml`` or ``.yaml`` for YAML.

    :raises ConfigurationException:  if the file's format is not recognized or its contents
                                     cannot be parsed
    :raises IOError:  if the file cannot be opened or read
    """
    ext = os.path.splitext(str(configfile))[1].lower()
    with open(configfile) as fd:
        try:
            if ext == ".json":
                out = json.load(fd)
            elif ext in (".yml", ".yaml"):
                out = yaml.safe_load(fd)
            else:
                raise ConfigurationException("%s: config file format not recognized from extension"
                                             % configfile)
        except (ValueError, yaml.YAMLError) as ex:
            raise ConfigurationException("%s: config file syntax error: %s" % (configfile, str(ex)),
                                         cause=ex)

    if out is None:
        out = {}
    if not isinstance(out, Mapping):
        raise ConfigurationException("%s: config data is not a dictionary" % configfile)
    return out

def resolve_configuration(location: str) -> Mapping:
    """
    return the configuration data found at a given location.  The location can either be a
    file path, a ``file:`` URL, or an ``http:`` or ``https:`` URL.  A URL is expected to return
    either JSON or YAML (JSON is a subset of YAML).

    :raises ConfigurationException:  if the data cannot be retrieved or parsed
    """
    url = urlparse(location)
    if url.scheme in ("http", "https"):
        try:
            resp = requests.get(location)
            if resp.status_code >= 300:
                raise ConfigurationException("Failed to retrieve configuration from %s: %s %s" %
                                             (location, resp.status_code, resp.reason))
            out = yaml.safe_load(resp.text)
        except requests.RequestException as ex:
            raise ConfigurationException("Failed to retrieve configuration from %s: %s" %
                                         (location, str(ex)), cause=ex)
        except yaml.YAMLError as ex:
            raise ConfigurationException("%s: config syntax error: %s" % (location, str(ex)), cause=ex)

        if not isinstance(out, Mapping):
            raise ConfigurationException("%s: config data is not a dictionary" % location)
        return out

    if url.scheme == "file":
        location = url.path
    elif url.scheme and len(url.scheme) > 1:
        raise ConfigurationException("Unsupported configuration location: " + location)

    try:
        return load_from_file(location)
    except OSError as ex:
        raise ConfigurationException("Unable to read configuration file, %s: %s" % (location, str(ex)),
                                     cause=ex)

def configure_log(logfile: str=None, level=None, format: str=None, config: Mapping=None,
                  addstderr: bool=False):
    """
    configure the root logger to send messages to a file.

    :param str logfile:   the path of the log file to write to; if relative, it is taken to be
                          relative to the ``logdir`` configuration parameter (or the current
                          directory if that is not set).  If not given, the ``logfile``
                          configuration parameter is used (defaulting to "bundlerest.log").
    :param level:         the minimum level of messages to record, either as an int or a level
                          name; if not given, the ``loglevel`` configuration parameter is used
                          (defaulting to DEBUG).
    :param str format:    the message format; if not given, the ``logformat`` parameter is used.
    :param dict config:   the configuration containing the default logging parameters
    :param bool addstderr:  if True, messages will also be sent to standard error
    """
    global global_logdir
    global global_logfile
    if not config:
        config = {}
    if not logfile:
        logfile = config.get('logfile', DEF_LOG_FILE)

    if not os.path.isabs(logfile):
        logdir = config.get('logdir', os.getcwd())
        logfile = os.path.join(logdir, logfile)
    global_logdir = os.path.dirname(logfile)
    global_logfile = logfile
    if global_logdir and not os.path.exists(global_logdir):
        os.makedirs(global_logdir)

    if level is None:
        level = config.get('loglevel', logging.DEBUG)
    if not isinstance(level, int):
        if str(level).upper() not in _log_levels_byname:
            raise ConfigurationException("Unrecognized log level: " + str(level))
        level = _log_levels_byname[str(level).upper()]
    if not format:
        format = config.get('logformat', DEF_LOG_FORMAT)

    frmtr = logging.Formatter(format)
    rootlog = logging.getLogger()
    hdlr = logging.FileHandler(logfile)
    hdlr.setFormatter(frmtr)
    hdlr.setLevel(level)
    rootlog.addHandler(hdlr)
    rootlog.setLevel(min(level, rootlog.level) if rootlog.level else level)

    if addstderr:
        hdlr = logging.StreamHandler(sys.stderr)
        hdlr.setFormatter(frmtr)
        hdlr.setLevel(level)
        rootlog.addHandler(hdlr)

    rootlog.info("FYI: Writing log messages to %s", logfile)
