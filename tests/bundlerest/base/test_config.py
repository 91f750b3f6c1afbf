import os, sys, pdb, json, logging, tempfile
import unittest as test
from unittest.mock import patch, Mock

import requests

from bundlerest.base import config

class TestLoadConfig(test.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory(prefix="_test_config.")
        self.dir = self.tmpdir.name

    def tearDown(self):
        self.tmpdir.cleanup()

    def write(self, name, content):
        path = os.path.join(self.dir, name)
        with open(path, 'w') as fd:
            fd.write(content)
        return path

    def test_load_json(self):
        path = self.write("svc.json", '{"base_ep": "/osgi", "framework": {"start_level": 3}}')
        cfg = config.load_from_file(path)
        self.assertEqual(cfg['base_ep'], "/osgi")
        self.assertEqual(cfg['framework']['start_level'], 3)

    def test_load_yaml(self):
        path = self.write("svc.yml", "base_ep: /osgi\nframework:\n  start_level: 3\n"
                                     "extensions:\n  - id: hello\n    handler: a.b:C\n")
        cfg = config.load_from_file(path)
        self.assertEqual(cfg['framework'], {"start_level": 3})
        self.assertEqual(cfg['extensions'][0]['id'], "hello")

        path = self.write("empty.yaml", "")
        self.assertEqual(config.load_from_file(path), {})

    def test_load_bad(self):
        path = self.write("svc.ini", "[svc]\n")
        with self.assertRaises(config.ConfigurationException):
            config.load_from_file(path)

        path = self.write("svc.json", '{"base_ep": ')
        with self.assertRaises(config.ConfigurationException):
            config.load_from_file(path)

        path = self.write("list.yml", "- a\n- b\n")
        with self.assertRaises(config.ConfigurationException):
            config.load_from_file(path)

    def test_resolve_configuration(self):
        path = self.write("svc.yml", "base_ep: /osgi\n")
        self.assertEqual(config.resolve_configuration(path), {"base_ep": "/osgi"})
        self.assertEqual(config.resolve_configuration("file://"+path), {"base_ep": "/osgi"})

        with self.assertRaises(config.ConfigurationException):
            config.resolve_configuration(os.path.join(self.dir, "missing.yml"))
        with self.assertRaises(config.ConfigurationException):
            config.resolve_configuration("ftp://example.com/svc.yml")

    @patch('requests.get')
    def test_resolve_remote(self, mock_get):
        mock_get.return_value = Mock(status_code=200, reason="OK", text='{"base_ep": "/osgi"}')
        self.assertEqual(config.resolve_configuration("https://config.example.com/svc"),
                         {"base_ep": "/osgi"})
        mock_get.assert_called_once_with("https://config.example.com/svc")

        mock_get.return_value = Mock(status_code=404, reason="Not Found", text="")
        with self.assertRaises(config.ConfigurationException):
            config.resolve_configuration("https://config.example.com/svc")

        mock_get.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(config.ConfigurationException) as cm:
            config.resolve_configuration("https://config.example.com/svc")
        self.assertIsInstance(cm.exception.cause, requests.ConnectionError)


class TestConfigureLog(test.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory(prefix="_test_config.")
        self.rootlog = logging.getLogger()
        self.handlers = list(self.rootlog.handlers)
        self.level = self.rootlog.level

    def tearDown(self):
        for hdlr in list(self.rootlog.handlers):
            if hdlr not in self.handlers:
                self.rootlog.removeHandler(hdlr)
                hdlr.close()
        self.rootlog.setLevel(self.level)
        self.tmpdir.cleanup()

    def test_configure_log(self):
        logdir = os.path.join(self.tmpdir.name, "logs")
        config.configure_log(config={"logdir": logdir, "logfile": "svc.log", "loglevel": "INFO"})
        self.assertEqual(config.global_logdir, logdir)
        self.assertEqual(config.global_logfile, os.path.join(logdir, "svc.log"))
        self.assertTrue(os.path.isfile(config.global_logfile))

        logging.getLogger("bundlerest.test").info("Hello from the test")
        with open(config.global_logfile) as fd:
            self.assertIn("Hello from the test", fd.read())

    def test_bad_level(self):
        with self.assertRaises(config.ConfigurationException):
            config.configure_log(os.path.join(self.tmpdir.name, "svc.log"), level="LOUD")


if __name__ == '__main__':
    test.main()
