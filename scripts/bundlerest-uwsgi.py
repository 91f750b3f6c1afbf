"""
the uWSGI script for launching the bundle runtime REST service.

This script launches the web service using uwsgi.  For example, one can
launch the service with the following command:

  uwsgi --plugin python3 --http-socket :9090 --wsgi-file bundlerest-uwsgi.py \
        --set-ph bundlerest_config_file=bundlerest_conf.yml --set-ph bundlerest_log_dir=_test

The configuration can be given as a file path or as a URL (see
bundlerest.base.config.resolve_configuration).  See the documentation for bundlerest.service for
the configuration parameters supported by this service.

This script also pays attention to the following environment variables:

   BUNDLEREST_PYTHONPATH   The directory containing the bundlerest python package
   BUNDLEREST_CONFIG_FILE  The configuration file (or URL) to use if the bundlerest_config_file
                              uwsgi variable is not set
"""
import os, sys, logging

try:
    import bundlerest.service
except ImportError:
    brpath = os.environ.get('BUNDLEREST_PYTHONPATH')
    if brpath:
        sys.path.insert(0, brpath)
    import bundlerest.service

from bundlerest.base import config
from bundlerest.service import wsgi

import uwsgi

def _dec(obj):
    # decode an object if it is not None
    return obj.decode() if isinstance(obj, (bytes, bytearray)) else obj

# determine where the configuration is coming from
confsrc = _dec(uwsgi.opt.get("bundlerest_config_file")) or os.environ.get('BUNDLEREST_CONFIG_FILE')
if not confsrc:
    raise config.ConfigurationException("bundlerest: configuration not provided")
cfg = config.resolve_configuration(confsrc)

logdir = _dec(uwsgi.opt.get("bundlerest_log_dir"))
if logdir:
    cfg['logdir'] = logdir

config.configure_log(config=cfg)

application = wsgi.app(cfg)
logging.info("bundlerest service ready")
