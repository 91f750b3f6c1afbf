import os, sys, pdb, logging, threading
import unittest as test

from bundlerest.service.router import (PathTemplate, Router, RoutingError, RouteConflict,
                                       RouteEntry)

class TestPathTemplate(test.TestCase):

    def test_parse(self):
        tmpl = PathTemplate.parse("/framework/bundle/{bundleId}/state")
        self.assertEqual(tmpl.segments[:2], ("framework", "bundle"))
        self.assertEqual(tmpl.segments[2], PathTemplate.Var("bundleId"))
        self.assertEqual(tmpl.variables, ["bundleId"])
        self.assertEqual(tmpl.signature, ("framework", "bundle", None, "state"))
        self.assertEqual(tmpl.precedence, (0, 0, 1, 0))
        self.assertEqual(str(tmpl), "/framework/bundle/{bundleId}/state")

        self.assertEqual(PathTemplate.parse("framework/bundles"),
                         PathTemplate.parse("/framework/bundles"))
        self.assertIs(PathTemplate.parse(tmpl), tmpl)
        self.assertEqual(PathTemplate.parse("/").segments, ())
        self.assertEqual(PathTemplate.parse("/a%20b").segments, ("a b",))

    def test_bad_templates(self):
        for bad in ["/a//b", "/a/", "/a/{b", "/a/b}", "/a/{1b}", "/a/{b}{c}", "/a/x{b}",
                    "/{id}/{id}", "/a/../b", "/./a", "/a b", "/a/<b>", "/a?b"]:
            with self.assertRaises(ValueError, msg="accepted: "+bad):
                PathTemplate.parse(bad)
        with self.assertRaises(ValueError):
            PathTemplate.parse(None)

    def test_match(self):
        tmpl = PathTemplate.parse("/framework/bundle/{bundleId}")
        self.assertEqual(tmpl.match(["framework", "bundle", "3"]), {"bundleId": "3"})
        self.assertIsNone(tmpl.match(["framework", "bundle"]))
        self.assertIsNone(tmpl.match(["framework", "bundles", "3"]))
        self.assertIsNone(tmpl.match(["framework", "bundle", "3", "state"]))

class TestRouter(test.TestCase):

    def setUp(self):
        self.router = Router()

    def test_route(self):
        self.router.attach("/framework/bundles", "bundles")
        self.router.attach("/framework/bundle/{bundleId}", "bundle")
        self.router.attach("/framework/bundle/{bundleId}/state", "state")

        m = self.router.route("GET", "/framework/bundle/3/state")
        self.assertEqual(m.handler, "state")
        self.assertEqual(m.bindings, {"bundleId": "3"})
        self.assertEqual(m.method, "GET")
        self.assertEqual(str(m.template), "/framework/bundle/{bundleId}/state")

        m = self.router.route("GET", "framework/bundles")
        self.assertEqual(m.handler, "bundles")
        self.assertEqual(m.bindings, {})

        m = self.router.route("GET", "/framework/bundle/org%2Fexample")
        self.assertEqual(m.bindings, {"bundleId": "org/example"})

        for path in ["/framework", "/framework/bundle", "/framework/bundle//state",
                     "/framework/bundles/3", "/goober", ""]:
            with self.assertRaises(RoutingError, msg="routed: "+path) as cm:
                self.router.route("GET", path)
            self.assertEqual(cm.exception.status, 404)

    def test_literal_precedence(self):
        self.router.attach("/framework/bundle/{bundleId}", "bundle")
        self.router.attach("/framework/bundle/system", "system")
        self.assertEqual(self.router.route("GET", "/framework/bundle/system").handler, "system")
        self.assertEqual(self.router.route("GET", "/framework/bundle/0").handler, "bundle")

        self.router.attach("/a/{x}/c", "first-var")
        self.router.attach("/a/b/{y}", "second-var")
        m = self.router.route("GET", "/a/b/c")
        self.assertEqual(m.handler, "second-var")
        self.assertEqual(m.bindings, {"y": "c"})
        self.assertEqual(self.router.route("GET", "/a/z/c").handler, "first-var")

    def test_conflict(self):
        self.router.attach("/extensions/{name}", "hello", "ext1")
        with self.assertRaises(RouteConflict):
            self.router.attach("/extensions/{other}", "goodbye", "ext2")
        with self.assertRaises(ValueError):
            self.router.attach("/extensions//x", "bad")
        self.assertEqual(self.router.route("GET", "/extensions/x").handler, "hello")

    def test_detach(self):
        self.router.attach("/framework/bundles", "bundles")
        self.router.attach("/extensions/hello", "hello", "ext1")
        self.router.attach("/extensions/hello/{name}", "hello-name", "ext1")
        self.router.attach("/extensions/bye", "bye", "ext2")
        self.assertEqual(len(self.router.entries()), 4)

        removed = self.router.detach(owner="ext1")
        self.assertEqual(sorted(str(e.template) for e in removed),
                         ["/extensions/hello", "/extensions/hello/{name}"])
        with self.assertRaises(RoutingError):
            self.router.route("GET", "/extensions/hello")
        self.assertEqual(self.router.route("GET", "/extensions/bye").handler, "bye")
        self.assertEqual(self.router.route("GET", "/framework/bundles").handler, "bundles")

        removed = self.router.detach("/extensions/{x}")
        self.assertEqual(removed, [])
        removed = self.router.detach("/extensions/bye", owner="ext1")
        self.assertEqual(removed, [])
        removed = self.router.detach("/extensions/bye")
        self.assertEqual(removed, [RouteEntry(PathTemplate.parse("/extensions/bye"), "bye", "ext2")])

        # the path can be reused after detaching
        self.router.attach("/extensions/hello", "hello2", "ext3")
        self.assertEqual(self.router.route("GET", "/extensions/hello").handler, "hello2")

        with self.assertRaises(ValueError):
            self.router.detach()

    def test_entries_order(self):
        self.router.attach("/framework/bundle/{bundleId}", "bundle")
        self.router.attach("/framework/bundle/system", "system")
        self.assertEqual([e.handler for e in self.router.entries()], ["system", "bundle"])

    def test_concurrent_attach_detach(self):
        self.router.attach("/framework/bundles", "bundles")
        errors = []
        done = threading.Event()

        def churn(n):
            try:
                for i in range(200):
                    self.router.attach("/extensions/ext%d/{x}" % n, "ext%d" % n, "ext%d" % n)
                    self.router.detach(owner="ext%d" % n)
            except Exception as ex:
                errors.append(ex)

        def lookup():
            try:
                while not done.is_set():
                    self.assertEqual(self.router.route("GET", "/framework/bundles").handler,
                                     "bundles")
                    try:
                        m = self.router.route("GET", "/extensions/ext0/a")
                        self.assertEqual(m.handler, "ext0")
                    except RoutingError:
                        pass
            except Exception as ex:
                errors.append(ex)

        readers = [threading.Thread(target=lookup) for i in range(3)]
        writers = [threading.Thread(target=churn, args=(n,)) for n in range(3)]
        for t in readers + writers:
            t.start()
        for t in writers:
            t.join()
        done.set()
        for t in readers:
            t.join()

        self.assertEqual(errors, [])
        self.assertEqual(len(self.router.entries()), 1)


if __name__ == '__main__':
    test.main()
