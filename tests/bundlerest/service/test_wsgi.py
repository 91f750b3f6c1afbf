import os, sys, pdb, io, json, logging, tempfile
import unittest as test
from collections import OrderedDict

from bundlerest.base.config import ConfigurationException
from bundlerest.service import wsgi
from bundlerest.service.handlers import ResourceHandler
from bundlerest.service.extensions import Extension, ExtensionRegistry
from bundlerest.framework.inmem import InMemoryFramework

tmpdir = tempfile.TemporaryDirectory(prefix="_test_wsgi.")
loghdlr = None
rootlog = None
def setUpModule():
    global loghdlr
    global rootlog
    rootlog = logging.getLogger()
    rootlog.setLevel(logging.DEBUG)
    loghdlr = logging.FileHandler(os.path.join(tmpdir.name,"test_wsgi.log"))
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

class HelloHandler(ResourceHandler):

    def do_GET(self, path, ashead=False):
        data = {"hello": self.pathvars.get("name"), "bundles": len(self.manager.bundle_ids())}
        return self.send_ok(json.dumps(data), "application/json", ashead=ashead)

class PlainHandler(ResourceHandler):

    def do_GET(self, path, ashead=False):
        return self.send_ok("plain", "text/plain", ashead=ashead)

def plain_handler(app, path, env, start_resp, pathvars=None, who=None):
    return PlainHandler(app, path, env, start_resp, pathvars, who)

class BrokenHandler(ResourceHandler):

    def __init__(self, app, path, wsgienv, start_resp, pathvars=None, who=None):
        super(BrokenHandler, self).__init__(app, path, wsgienv, start_resp, pathvars, who)
        self.ratio = 1 / 0

class TestBundleRestApp(test.TestCase):

    def start(self, status, headers=None, extup=None):
        self.resp.append(status)
        for head in headers:
            self.resp.append("{0}: {1}".format(head[0], head[1]))

    def body2data(self, body):
        return json.loads("\n".join(self.tostr(body)), object_pairs_hook=OrderedDict)

    def tostr(self, resplist):
        return [e.decode() for e in resplist]

    def setUp(self):
        self.resp = []
        self.config = {
            "framework": {
                "start_level": 2,
                "bundles": [
                    { "location": "file:/bundles/org.example.hello-1.0.0.jar", "start": True }
                ]
            }
        }

    def request(self, app, meth, path, body=None, ctype=None, **headers):
        req = { 'REQUEST_METHOD': meth, 'PATH_INFO': path,
                'SERVER_NAME': 'localhost', 'SERVER_PORT': '80' }
        if body is not None:
            body = body.encode('utf-8')
            req['wsgi.input'] = io.BytesIO(body)
            req['CONTENT_LENGTH'] = str(len(body))
        if ctype:
            req['CONTENT_TYPE'] = ctype
        for name, val in headers.items():
            req['HTTP_'+name.upper()] = val
        self.resp = []
        return app(req, self.start)

    def test_ctor(self):
        app = wsgi.app(self.config, log=rootlog.getChild("wsgi"))
        self.assertTrue(isinstance(app.manager, InMemoryFramework))
        self.assertEqual(app.manager.get_framework_startlevel().startLevel, 2)
        self.assertEqual(app.manager.bundle_ids(), [0, 1])
        self.assertIsNone(app.base_ep)
        self.assertEqual(len(app.router.entries()), 11)
        self.assertEqual(app.registry.extensions(), [])

        fw = InMemoryFramework()
        app = wsgi.BundleRestApp({}, fw, "/osgi/", rootlog.getChild("wsgi"))
        self.assertIs(app.manager, fw)
        self.assertEqual(app.base_ep, "/osgi/")

        self.config['base_ep'] = "/rest"
        app = wsgi.app(self.config, log=rootlog.getChild("wsgi"))
        self.assertEqual(app.base_ep, "/rest/")

    def test_bad_config(self):
        with self.assertRaises(ConfigurationException):
            wsgi.app({"framework": ["org.example.hello"]}, log=rootlog.getChild("wsgi"))
        with self.assertRaises(ConfigurationException):
            wsgi.app({"authentication": {"type": "kerberos"}}, log=rootlog.getChild("wsgi"))
        with self.assertRaises(ConfigurationException):
            wsgi.app({"extensions": "hello"}, log=rootlog.getChild("wsgi"))

    def test_base_ep(self):
        app = wsgi.app(self.config, base_ep="/osgi", log=rootlog.getChild("wsgi"))
        body = self.request(app, "GET", "/osgi/framework/bundle/1")
        self.assertIn("200 ", self.resp[0])
        self.assertEqual(self.body2data(body)['symbolicName'], "org.example.hello")

        self.request(app, "GET", "/framework/bundle/1")
        self.assertIn("404 ", self.resp[0])

        body = self.request(app, "POST", "/osgi/framework/bundles",
                            "file:/bundles/org.example.greeter-1.2.jar", "text/plain")
        self.assertIn("201 ", self.resp[0])
        self.assertEqual(self.tostr(body), ["framework/bundle/2"])
        self.assertIn("Location: http://localhost/osgi/framework/bundle/2", self.resp)

        self.request(app, "POST", "/osgi/framework/bundles",
                     "file:/bundles/org.example.other-1.2.jar", "text/plain",
                     HOST="osgi.example.com:8443")
        self.assertIn("Location: http://osgi.example.com:8443/osgi/framework/bundle/3", self.resp)

    def test_configured_extensions(self):
        self.config['extensions'] = [
            { "id": "hello", "path": "/hello/{name}", "name": "Hello",
              "handler": "tests_wsgi_support:HelloHandler" },
            { "id": "plain", "path": "/plain", "handler": __name__+":plain_handler" }
        ]
        app = wsgi.app(self.config, log=rootlog.getChild("wsgi"))
        self.assertEqual([e.id for e in app.registry.extensions()], ["plain"])

        body = self.request(app, "GET", "/extensions/plain")
        self.assertIn("200 ", self.resp[0])
        self.assertEqual(self.tostr(body), ["plain"])

        body = self.request(app, "GET", "/extensions")
        self.assertIn("200 ", self.resp[0])
        self.assertIn("Content-Type: application/org.osgi.extensions+json", self.resp)
        self.assertEqual(self.body2data(body), [{"name": "plain", "path": "extensions/plain"}])

    def test_live_extensions(self):
        app = wsgi.app(self.config, log=rootlog.getChild("wsgi"))
        self.request(app, "GET", "/extensions/hello/bob")
        self.assertIn("404 ", self.resp[0])
        self.assertEqual(self.body2data(self.request(app, "GET", "/extensions")), [])

        app.registry.register(Extension("hello", "/hello/{name}", HelloHandler, "Hello"))
        body = self.request(app, "GET", "/extensions/hello/bob")
        self.assertIn("200 ", self.resp[0])
        self.assertEqual(self.body2data(body), {"hello": "bob", "bundles": 2})

        body = self.request(app, "GET", "/extensions")
        self.assertEqual(self.body2data(body), [{"name": "Hello", "path": "extensions/hello/{name}"}])

        # a conflicting extension is refused without disturbing the attached one
        app.registry.register(Extension("hello2", "/hello/{who}", plain_handler))
        body = self.request(app, "GET", "/extensions/hello/alice")
        self.assertEqual(self.body2data(body)['hello'], "alice")

        app.registry.unregister("hello")
        self.request(app, "GET", "/extensions/hello/bob")
        self.assertIn("404 ", self.resp[0])
        self.request(app, "GET", "/framework/bundles")
        self.assertIn("200 ", self.resp[0])

    def test_relative_extension_path(self):
        app = wsgi.app(self.config, log=rootlog.getChild("wsgi"))
        app.registry.register(Extension("hello", "hello", HelloHandler))
        body = self.request(app, "GET", "/extensions/hello")
        self.assertIn("200 ", self.resp[0])
        self.assertEqual(self.body2data(body)['bundles'], 2)

        body = self.request(app, "GET", "/extensions")
        self.assertEqual(self.body2data(body), [{"name": "hello", "path": "extensions/hello"}])

    def test_failing_extension_handler(self):
        app = wsgi.app(self.config, log=rootlog.getChild("wsgi"))
        app.registry.register(Extension("broken", "/broken", BrokenHandler))

        body = self.request(app, "GET", "/extensions/broken")
        self.assertIn("500 ", self.resp[0])
        self.assertIn("Content-Type: application/json", self.resp)
        data = self.body2data(body)
        self.assertEqual(data['http:status'], 500)
        self.assertIn("/broken", data['oar:message'])

        body = self.request(app, "HEAD", "/extensions/broken")
        self.assertIn("500 ", self.resp[0])
        self.assertEqual(body, [])

        # the rest of the interface is unaffected
        self.request(app, "GET", "/framework/bundle/1")
        self.assertIn("200 ", self.resp[0])

    def test_shared_registry(self):
        registry = ExtensionRegistry(rootlog.getChild("extensions"))
        registry.register(Extension("plain", "/plain", plain_handler))
        app = wsgi.app(self.config, log=rootlog.getChild("wsgi"), registry=registry)
        self.assertIs(app.registry, registry)
        body = self.request(app, "GET", "/extensions/plain")
        self.assertEqual(self.tostr(body), ["plain"])

    def test_updates_require_authentication(self):
        self.config['require_authenticated_updates'] = True
        self.config['authentication'] = {
            "type": "authkey",
            "authorized": [ { "auth_key": "s3cret", "user": "deployer" } ]
        }
        app = wsgi.app(self.config, log=rootlog.getChild("wsgi"))

        self.request(app, "GET", "/framework/bundle/1")
        self.assertIn("200 ", self.resp[0])

        self.request(app, "PUT", "/framework/bundle/1/state", '{"state": 4}', "application/json")
        self.assertIn("401 ", self.resp[0])
        self.assertEqual(app.manager.get_bundle_state(1), 32)

        self.request(app, "PUT", "/framework/bundle/1/state", '{"state": 4}', "application/json",
                     AUTHORIZATION="Bearer goober")
        self.assertIn("401 ", self.resp[0])

        self.request(app, "PUT", "/framework/bundle/1/state", '{"state": 4}', "application/json",
                     AUTHORIZATION="Bearer s3cret")
        self.assertIn("204 ", self.resp[0])
        self.assertEqual(app.manager.get_bundle_state(1), 4)

    def test_updates_without_auth_warn(self):
        self.config['require_authenticated_updates'] = True
        with self.assertLogs(rootlog.getChild("wsgi"), logging.WARNING) as cm:
            app = wsgi.app(self.config, log=rootlog.getChild("wsgi"))
        self.assertIn("no authentication is configured", cm.output[0])

        self.request(app, "DELETE", "/framework/bundle/1")
        self.assertIn("401 ", self.resp[0])
        self.assertEqual(app.manager.bundle_ids(), [0, 1])


if __name__ == '__main__':
    test.main()
