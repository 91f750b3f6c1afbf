import os, sys, pdb, json
import unittest as test

from bundlerest.dto import media, UnsupportedMediaType

class TestMediaKind(test.TestCase):

    def test_types(self):
        self.assertEqual(media.BUNDLE.json_type, "application/org.osgi.bundle+json")
        self.assertEqual(media.BUNDLE.xml_type, "application/org.osgi.bundle+xml")
        self.assertEqual(media.FRAMEWORK_STARTLEVEL.json_type,
                         "application/org.osgi.framework.startlevel+json")
        self.assertEqual(media.SERVICES_REPRESENTATIONS.xml_type,
                         "application/org.osgi.services.representations+xml")
        self.assertEqual(str(media.BUNDLE_STATE), "bundle.state")

    def test_for_syntax(self):
        self.assertEqual(media.BUNDLE_HEADER.for_syntax("json"),
                         "application/org.osgi.bundle.header+json")
        self.assertEqual(media.BUNDLE_HEADER.for_syntax(media.XML),
                         "application/org.osgi.bundle.header+xml")
        with self.assertRaises(ValueError):
            media.BUNDLE_HEADER.for_syntax("yaml")

    def test_kinds(self):
        self.assertEqual(len(media.kinds), 11)
        for kind in media.kinds.values():
            self.assertTrue(kind.json_type.endswith("+json"))
            self.assertEqual(kind.json_type[:-len("json")], kind.xml_type[:-len("xml")])

class TestFunctions(test.TestCase):

    def test_syntax_of(self):
        self.assertEqual(media.syntax_of("application/org.osgi.bundle+json"), "json")
        self.assertEqual(media.syntax_of("application/org.osgi.bundle+xml"), "xml")
        self.assertEqual(media.syntax_of("application/org.osgi.bundle+XML; charset=UTF-8"), "xml")
        self.assertEqual(media.syntax_of("application/json"), "json")
        self.assertEqual(media.syntax_of("text/xml"), "xml")

        for bad in ["text/plain", "application/org.osgi.bundle+yaml", "", None, "jsonish"]:
            with self.assertRaises(UnsupportedMediaType):
                media.syntax_of(bad)


if __name__ == '__main__':
    test.main()
