import os, sys, pdb, logging, tempfile
import unittest as test
from unittest.mock import patch, Mock

from bundlerest.base.config import ConfigurationException
from bundlerest.service.router import Router, RoutingError
from bundlerest.service import extensions as exts
from bundlerest.service.extensions import (Extension, ExtensionBridge, ExtensionRegistry,
                                           ExtensionListener, ExtensionRegistrationError)

tmpdir = tempfile.TemporaryDirectory(prefix="_test_extensions.")
loghdlr = None
rootlog = None
def setUpModule():
    global loghdlr
    global rootlog
    rootlog = logging.getLogger()
    rootlog.setLevel(logging.DEBUG)
    loghdlr = logging.FileHandler(os.path.join(tmpdir.name,"test_extensions.log"))
    loghdlr.setLevel(logging.DEBUG)
    loghdlr.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    rootlog.addHandler(loghdlr)

def tearDownModule():
    global loghdlr
    if loghdlr:
        if rootlog:
            rootlog.removeHandler(loghdlr)
            loghdlr.flush()
            loghdlr.close()
        loghdlr = None
    tmpdir.cleanup()

def hello_handler(app, path, env, start_resp, pathvars=None, who=None):
    return "hello"

def bye_handler(app, path, env, start_resp, pathvars=None, who=None):
    return "bye"

class HelloHandler(object):
    extension_path = "/hello"
    extension_name = "Hello World"

class RecordingListener(ExtensionListener):

    def __init__(self):
        self.events = []

    def extension_available(self, ext):
        self.events.append(("available", ext.id))

    def extension_unavailable(self, ext):
        self.events.append(("unavailable", ext.id))

    def extension_updated(self, ext):
        self.events.append(("updated", ext.id))

class FailingListener(RecordingListener):

    def extension_available(self, ext):
        raise RuntimeError("listener is broken")

class TestExtensionBridge(test.TestCase):

    def setUp(self):
        self.router = Router(rootlog.getChild("router"))
        self.router.attach("/framework/bundles", "bundles")
        self.bridge = ExtensionBridge(self.router, "/extensions", rootlog.getChild("extensions"))

    def test_template_for(self):
        self.assertEqual(str(self.bridge.template_for(Extension("a", "/hello", hello_handler))),
                         "/extensions/hello")
        self.assertEqual(str(self.bridge.template_for(Extension("a", "/extensions/hello/{name}",
                                                                hello_handler))),
                         "/extensions/hello/{name}")

        # a path without a leading slash is taken as relative to the mount point
        self.assertEqual(str(self.bridge.template_for(Extension("a", "hello", hello_handler))),
                         "/extensions/hello")
        self.assertEqual(str(self.bridge.template_for(Extension("a", "hello/{name}",
                                                                hello_handler))),
                         "/extensions/hello/{name}")
        self.assertEqual(str(self.bridge.template_for(Extension("a", "/framework/bundles",
                                                                hello_handler))),
                         "/extensions/framework/bundles")

        for bad in ["", "/", "/extensions", "/extensions/", "/hello//x", "/hello/{x", None]:
            with self.assertRaises(ExtensionRegistrationError, msg="accepted: "+str(bad)):
                self.bridge.template_for(Extension("a", bad, hello_handler))

    def test_attach_detach(self):
        self.bridge.attach(Extension("hello", "/hello/{name}", hello_handler, "Hello"))
        m = self.router.route("GET", "/extensions/hello/bob")
        self.assertIs(m.handler, hello_handler)
        self.assertEqual(m.bindings, {"name": "bob"})
        self.assertEqual(m.entry.owner, "hello")
        self.assertEqual([e.id for e in self.bridge.extensions()], ["hello"])

        self.assertEqual(self.bridge.detach("hello"), 1)
        with self.assertRaises(RoutingError):
            self.router.route("GET", "/extensions/hello/bob")
        self.assertEqual(self.bridge.extensions(), [])
        self.assertEqual(self.bridge.detach("hello"), 0)
        self.assertEqual(self.router.route("GET", "/framework/bundles").handler, "bundles")

    def test_attach_errors(self):
        with self.assertRaises(ExtensionRegistrationError):
            self.bridge.attach(Extension("hello", "/hello", "not callable"))
        with self.assertRaises(ExtensionRegistrationError):
            self.bridge.attach(Extension("", "/hello", hello_handler))

        self.bridge.attach(Extension("hello", "/hello/{name}", hello_handler))
        with self.assertRaises(ExtensionRegistrationError) as cm:
            self.bridge.attach(Extension("bye", "/hello/{who}", bye_handler))
        self.assertEqual(cm.exception.extension_id, "bye")
        self.assertIs(self.router.route("GET", "/extensions/hello/x").handler, hello_handler)

    def test_listener_isolation(self):
        # a failing extension is skipped without affecting the others
        self.bridge.extension_available(Extension("hello", "/hello", hello_handler))
        self.bridge.extension_available(Extension("dup", "/hello", bye_handler))
        self.bridge.extension_available(Extension("bad", "/", bye_handler))
        self.assertEqual([e.id for e in self.bridge.extensions()], ["hello"])
        self.assertIs(self.router.route("GET", "/extensions/hello").handler, hello_handler)

        self.bridge.extension_updated(Extension("hello", "/hi", bye_handler))
        with self.assertRaises(RoutingError):
            self.router.route("GET", "/extensions/hello")
        self.assertIs(self.router.route("GET", "/extensions/hi").handler, bye_handler)

        self.bridge.extension_unavailable(Extension("hello", "/hi", bye_handler))
        self.assertEqual(len(self.router.entries()), 1)

class TestExtensionRegistry(test.TestCase):

    def setUp(self):
        self.reg = ExtensionRegistry(rootlog.getChild("extensions"))
        self.listener = RecordingListener()

    def test_register(self):
        self.reg.add_listener(self.listener)
        hello = Extension("hello", "/hello", hello_handler)
        self.reg.register(hello)
        self.assertEqual(self.reg.extensions(), [hello])
        self.assertEqual(self.listener.events, [("available", "hello")])

        self.reg.register(Extension("hello", "/hi", hello_handler))
        self.assertEqual(self.listener.events[-1], ("updated", "hello"))
        self.assertEqual(self.reg.extensions()[0].path, "/hi")

        self.reg.update(Extension("hello", "/hello", hello_handler))
        self.assertEqual(self.listener.events[-1], ("updated", "hello"))
        with self.assertRaises(KeyError):
            self.reg.update(Extension("bye", "/bye", bye_handler))

        out = self.reg.unregister("hello")
        self.assertEqual(out.id, "hello")
        self.assertEqual(self.listener.events[-1], ("unavailable", "hello"))
        self.assertIsNone(self.reg.unregister("hello"))
        self.assertEqual(len(self.listener.events), 4)

    def test_unregister_by_extension(self):
        bye = Extension("bye", "/bye", bye_handler)
        self.reg.register(bye)
        self.assertIs(self.reg.unregister(bye), bye)
        self.assertEqual(self.reg.extensions(), [])

    def test_replay(self):
        self.reg.register(Extension("hello", "/hello", hello_handler))
        self.reg.register(Extension("bye", "/bye", bye_handler))
        self.reg.add_listener(self.listener)
        self.assertEqual(self.listener.events, [("available", "hello"), ("available", "bye")])

        self.reg.remove_listener(self.listener)
        self.reg.unregister("bye")
        self.assertEqual(len(self.listener.events), 2)
        self.reg.remove_listener(self.listener)

    def test_failing_listener(self):
        self.reg.add_listener(FailingListener())
        self.reg.add_listener(self.listener)
        self.reg.register(Extension("hello", "/hello", hello_handler))
        self.assertEqual(self.listener.events, [("available", "hello")])

    def test_bridge_as_listener(self):
        router = Router()
        bridge = ExtensionBridge(router)
        self.reg.add_listener(bridge)
        self.reg.register(Extension("hello", "/hello", hello_handler))
        self.assertIs(router.route("GET", "/extensions/hello").handler, hello_handler)
        self.reg.unregister("hello")
        with self.assertRaises(RoutingError):
            router.route("GET", "/extensions/hello")

class TestLoaders(test.TestCase):

    def setUp(self):
        self.reg = ExtensionRegistry(rootlog.getChild("extensions"))

    def test_load_configured(self):
        config = { "extensions": [
            { "id": "dict", "path": "/dict/{key}", "handler": "collections:OrderedDict",
              "name": "Dictionary" },
            { "id": "join", "handler": "os.path:join" },
            { "id": "nomod", "handler": "goober.gurn:Handler" },
            { "id": "noattr", "handler": "collections:Goober" },
            { "id": "nocolon", "handler": "collections.OrderedDict" },
            { "path": "/noid", "handler": "collections:OrderedDict" },
            "not a dictionary"
        ]}
        out = exts.load_configured_extensions(self.reg, config, rootlog)
        self.assertEqual([e.id for e in out], ["dict", "join"])
        self.assertEqual([e.id for e in self.reg.extensions()], ["dict", "join"])
        self.assertEqual(out[0].name, "Dictionary")
        self.assertEqual(out[1].path, "/join")
        self.assertIs(out[1].handler, os.path.join)

        self.assertEqual(exts.load_configured_extensions(self.reg, {}, rootlog), [])
        with self.assertRaises(ConfigurationException):
            exts.load_configured_extensions(self.reg, {"extensions": {"id": "dict"}}, rootlog)

    def test_load_entry_points(self):
        ext = Extension("bye", "/bye", bye_handler)
        eps = [Mock(), Mock(), Mock(), Mock()]
        eps[0].name = "hello"
        eps[0].load.return_value = HelloHandler
        eps[1].name = "bye"
        eps[1].load.return_value = ext
        eps[2].name = "broken"
        eps[2].load.side_effect = ImportError("no such module")
        eps[3].name = "other"
        eps[3].load.return_value = object()

        with patch.object(exts.metadata, "entry_points", return_value=eps) as mock_eps:
            out = exts.load_entry_point_extensions(self.reg, log=rootlog)
        mock_eps.assert_called_once_with(group="bundlerest.extensions")

        self.assertEqual([e.id for e in out], ["hello", "bye"])
        self.assertEqual(out[0].path, "/hello")
        self.assertEqual(out[0].name, "Hello World")
        self.assertIs(out[0].handler, HelloHandler)
        self.assertIs(out[1], ext)
        self.assertEqual(len(self.reg.extensions()), 2)


if __name__ == '__main__':
    test.main()
