import os, sys, pdb, json, logging, re
import unittest as test

from bundlerest.web import formats as fmts

BUNDLE_JSON = "application/org.osgi.bundle+json"
BUNDLE_XML = "application/org.osgi.bundle+xml"

class TestFormat(test.TestCase):

    def test_Format(self):
        fmt = fmts.Format("json", BUNDLE_JSON)
        self.assertEqual(fmt.name, "json")
        self.assertEqual(fmt.ctype, BUNDLE_JSON)
        self.assertEqual(fmt, fmts.Format("json", BUNDLE_JSON))


class TestFormatSupport(test.TestCase):

    def setUp(self):
        self.sprtd = fmts.FormatSupport()
        self.sprtd.support(fmts.Format("json", BUNDLE_JSON), [BUNDLE_JSON, "application/json"], True)
        self.sprtd.support(fmts.Format("xml", BUNDLE_XML), [BUNDLE_XML, "application/xml", "text/xml"])

    def test_support(self):
        goob = fmts.Format("goob", "goob/gurn")
        self.sprtd.support(goob)
        self.assertEqual(self.sprtd.match("goob"), goob)
        self.assertEqual(self.sprtd.match("goob/gurn"), goob)

        with self.assertRaises(ValueError):
            self.sprtd.support(fmts.Format("yaml", "text/yaml"), ["application/xml"])

        self.sprtd.support(goob, ["goober/gurn"])
        self.assertEqual(self.sprtd.match("goober/gurn"), goob)
        self.assertEqual(self.sprtd.content_types("goob"), ["goob/gurn", "goober/gurn"])

    def test_match(self):
        json_ = fmts.Format("json", BUNDLE_JSON)
        xml = fmts.Format("xml", BUNDLE_XML)
        self.assertEqual(self.sprtd.match("json"), json_)
        self.assertEqual(self.sprtd.match("application/json"), json_)
        self.assertEqual(self.sprtd.match(BUNDLE_JSON), json_)
        self.assertEqual(self.sprtd.match("xml"), xml)
        self.assertEqual(self.sprtd.match("text/xml"), xml)
        self.assertEqual(self.sprtd.match("application/xml"), xml)
        self.assertIsNone(self.sprtd.match("text/html"))

        self.assertEqual(self.sprtd.match("*/*"), json_)
        self.assertEqual(self.sprtd.match("application/*"), json_)
        self.assertEqual(self.sprtd.match("text/*"), xml)

    def test_default_format(self):
        self.assertEqual(self.sprtd.default_format(), fmts.Format("json", BUNDLE_JSON))
        self.sprtd.support(fmts.Format("text", "text/plain"), ["text/plain"], True)
        self.assertEqual(self.sprtd.default_format(), fmts.Format("text", "text/plain"))

    def test_select_format(self):
        json_ = fmts.Format("json", BUNDLE_JSON)
        xml = fmts.Format("xml", BUNDLE_XML)

        # content negotiation only
        self.assertEqual(self.sprtd.select_format([], [BUNDLE_XML, BUNDLE_JSON]), xml)
        self.assertEqual(self.sprtd.select_format([], ["text/html", "application/json"]), json_)
        self.assertEqual(self.sprtd.select_format([], ["text/html", "*/*"]), json_)
        with self.assertRaises(fmts.Unacceptable):
            self.sprtd.select_format([], ["text/html", "application/pdf"])

        # format request only
        self.assertEqual(self.sprtd.select_format(["xml"], []), xml)
        self.assertEqual(self.sprtd.select_format(["yaml", "json"], []), json_)
        with self.assertRaises(fmts.UnsupportedFormat):
            self.sprtd.select_format(["yaml"], [])

        # both
        self.assertEqual(self.sprtd.select_format(["xml"], ["application/xml"]), xml)
        self.assertEqual(self.sprtd.select_format(["xml"], ["*/*"]), xml)
        with self.assertRaises(fmts.Unacceptable):
            self.sprtd.select_format(["xml"], ["application/json"])

        self.assertIsNone(self.sprtd.select_format(None, []))


if __name__ == '__main__':
    test.main()
