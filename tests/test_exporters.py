"""
Unit tests for the shipping backends
"""

import gzip
import json
import socket
import unittest
from datetime import datetime, timezone
from unittest.mock import Mock, patch

import requests

from errors import BackendConnectionError, FieldSerializationError, ShipmentError
from exporters.base import ShippingBackend
from exporters.factory import BackendFactory
from exporters.graylog import GraylogBackend, sanitize_field_name, convert_value
from log_entry import LogEntry, Status, ExportField


def make_response(status_code):
    response = Mock()
    response.status_code = status_code
    return response


def make_entry() -> LogEntry:
    return LogEntry(Status.PROCESSED, {ExportField.METHOD: 'GET'})


class NullBackend(ShippingBackend):
    def initialize_connection(self):
        pass

    def ship_batch(self, entries):
        pass

    def get_name(self):
        return 'null'


class TestBackendFactory(unittest.TestCase):
    """Test backend factory"""

    def test_create_graylog_backend(self):
        """Test creating a GrayLog backend"""
        backend = BackendFactory.create('graylog', {'address': 'graylog'})
        self.assertIsInstance(backend, GraylogBackend)
        self.assertEqual(backend.get_name(), 'graylog')

    def test_create_is_case_insensitive(self):
        self.assertIsInstance(BackendFactory.create('GrayLog', {}), GraylogBackend)

    def test_create_unknown_backend(self):
        """Test creating an unknown backend returns None"""
        self.assertIsNone(BackendFactory.create('unknown', {}))

    def test_list_backends(self):
        self.assertIn('graylog', BackendFactory.list_backends())

    def test_register_rejects_non_backend(self):
        with self.assertRaises(ValueError):
            BackendFactory.register('bogus', dict)

    def test_register_backend(self):
        BackendFactory.register(' Null ', NullBackend)
        self.addCleanup(BackendFactory._backends.pop, 'null')
        self.assertIsInstance(BackendFactory.create('null', {}), NullBackend)
        self.assertEqual(BackendFactory.list_backends(), ['graylog', 'null'])

    def test_register_existing_type_requires_replace(self):
        with self.assertRaises(ValueError):
            BackendFactory.register('graylog', NullBackend)

        self.addCleanup(BackendFactory._backends.__setitem__, 'graylog', GraylogBackend)
        BackendFactory.register('graylog', NullBackend, replace=True)
        self.assertIsInstance(BackendFactory.create('graylog', {}), NullBackend)

    def test_register_blank_type(self):
        with self.assertRaises(ValueError):
            BackendFactory.register('  ', NullBackend)

    def test_rejected_configuration_returns_none(self):
        with self.assertLogs('Shipper.BackendFactory', level='ERROR'):
            self.assertIsNone(BackendFactory.create('graylog', {'port': 'not-a-port'}))


class TestFieldConversion(unittest.TestCase):
    """Test GELF field naming and value conversion"""

    def test_sanitize_field_name(self):
        self.assertEqual(sanitize_field_name('Request.Header-1'), 'request_header_1')
        self.assertEqual(sanitize_field_name('Response.Status'), 'response_status')
        self.assertEqual(sanitize_field_name('a b/c'), 'a_b_c')

    def test_numbers_and_booleans_pass_through(self):
        self.assertEqual(convert_value(200, ExportField.STATUS), 200)
        self.assertEqual(convert_value(1234, ExportField.RESPONSE_LENGTH), 1234)
        self.assertIs(convert_value(True, ExportField.HAS_PARAMS), True)

    def test_date_becomes_epoch_seconds(self):
        moment = datetime(2024, 1, 2, 3, 4, 5, 500000, tzinfo=timezone.utc)
        converted = convert_value(moment, ExportField.REQUEST_TIME)
        self.assertIsInstance(converted, float)
        self.assertAlmostEqual(converted, moment.timestamp())

    def test_naive_date_is_utc(self):
        naive = datetime(2024, 3, 1, 10, 0, 0)
        self.assertEqual(convert_value(naive, ExportField.REQUEST_TIME), 1709287200.0)
        self.assertEqual(convert_value(naive.date(), ExportField.REQUEST_TIME), 1709251200.0)

    def test_other_types_become_strings(self):
        self.assertEqual(convert_value(['a', 'b'], ExportField.TAGS), "['a', 'b']")
        self.assertEqual(convert_value(42, ExportField.URL), '42')

    def test_bad_date_raises(self):
        with self.assertRaises(FieldSerializationError) as ctx:
            convert_value('yesterday', ExportField.REQUEST_TIME)
        self.assertEqual(ctx.exception.field_label, 'Request.Time')


class TestGelfMessage(unittest.TestCase):
    """Test GELF message construction"""

    def setUp(self):
        self.backend = GraylogBackend({
            'hostname': 'capture-host',
            'fields': [
                ExportField.METHOD,
                ExportField.URL,
                ExportField.STATUS,
                ExportField.REQUEST_TIME,
                ExportField.HAS_PARAMS,
                ExportField.COMMENT,
            ]
        })

    @patch('exporters.graylog.time.time', return_value=1700000000.25)
    def test_fixed_fields(self, mock_time):
        message = self.backend.create_gelf_message(LogEntry(Status.PROCESSED, {
            ExportField.METHOD: 'GET',
            ExportField.URL: 'http://example.com',
            ExportField.STATUS: 200,
        }))

        self.assertEqual(message['version'], '1.1')
        self.assertEqual(message['host'], 'capture-host')
        self.assertEqual(message['short_message'], 'GET http://example.com - Status: 200')
        self.assertEqual(message['timestamp'], 1700000000.25)
        self.assertEqual(message['level'], 6)

    def test_custom_fields(self):
        moment = datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc)
        entry = LogEntry(Status.PROCESSED, {
            ExportField.METHOD: 'POST',
            ExportField.URL: 'http://example.com/login',
            ExportField.STATUS: 302,
            ExportField.REQUEST_TIME: moment,
            ExportField.HAS_PARAMS: True,
            ExportField.MIME_TYPE: 'HTML',
        })

        message = self.backend.create_gelf_message(entry)

        self.assertEqual(message['_request_method'], 'POST')
        self.assertEqual(message['_request_url'], 'http://example.com/login')
        self.assertEqual(message['_response_status'], 302)
        self.assertEqual(message['_request_time'], moment.timestamp())
        self.assertIs(message['_request_hasparams'], True)
        # Not selected
        self.assertNotIn('_response_mimetype', message)
        # Selected but absent
        self.assertNotIn('_entry_comment', message)

    def test_bad_field_is_skipped(self):
        entry = LogEntry(Status.PROCESSED, {
            ExportField.METHOD: 'GET',
            ExportField.REQUEST_TIME: 'not a date',
        })

        with self.assertLogs('Shipper.GraylogBackend', level='WARNING') as logs:
            message = self.backend.create_gelf_message(entry)

        self.assertNotIn('_request_time', message)
        self.assertEqual(message['_request_method'], 'GET')
        self.assertIn('Request.Time', logs.output[0])

    def test_short_message_missing_status(self):
        entry = LogEntry(Status.PROCESSED, {
            ExportField.METHOD: 'GET',
            ExportField.URL: 'http://example.com',
        })
        self.assertEqual(
            GraylogBackend.build_short_message(entry),
            'GET http://example.com - Status: N/A'
        )

    def test_short_message_missing_everything(self):
        self.assertEqual(
            GraylogBackend.build_short_message(LogEntry(Status.PROCESSED)),
            'UNKNOWN unknown - Status: N/A'
        )

    def test_short_message_unreadable_entry(self):
        entry = Mock()
        entry.value_by_key.side_effect = RuntimeError("entry disposed")
        self.assertEqual(GraylogBackend.build_short_message(entry), 'Traffic Log Entry')

    @patch('exporters.graylog.socket.gethostname', side_effect=OSError('no hostname'))
    def test_unknown_hostname(self, mock_gethostname):
        backend = GraylogBackend({})
        self.assertEqual(backend.hostname, 'unknown')


class TestGraylogTransport(unittest.TestCase):
    """Test serialization and HTTP delivery"""

    def setUp(self):
        self.message = {'version': '1.1', 'short_message': 'hello', 'level': 6}

    def make_backend(self, **config):
        config.setdefault('address', 'graylog.local')
        backend = GraylogBackend(config)
        backend.graylog_url = 'http://graylog.local:12201/gelf'
        backend.session = Mock()
        backend.session.post.return_value = make_response(202)
        return backend

    def test_uncompressed_payload(self):
        backend = self.make_backend(compression_enabled=False)
        headers, body = backend.build_request(self.message)

        self.assertEqual(body, json.dumps(self.message).encode('utf-8'))
        self.assertEqual(headers['Content-Type'], 'application/json')
        self.assertNotIn('Content-Encoding', headers)

    def test_compressed_payload(self):
        backend = self.make_backend(compression_enabled=True)
        headers, body = backend.build_request(self.message)

        self.assertEqual(headers['Content-Encoding'], 'gzip')
        self.assertEqual(json.loads(gzip.decompress(body)), self.message)

    def test_bearer_token(self):
        headers, _ = self.make_backend(api_token='s3cret').build_request(self.message)
        self.assertEqual(headers['Authorization'], 'Bearer s3cret')

    def test_blank_token_not_sent(self):
        headers, _ = self.make_backend(api_token='   ').build_request(self.message)
        self.assertNotIn('Authorization', headers)

    def test_send_success_statuses(self):
        backend = self.make_backend(timeout=3)
        for status in (200, 202):
            backend.session.post.return_value = make_response(status)
            backend.send_gelf_message(self.message)

        args, kwargs = backend.session.post.call_args
        self.assertEqual(args[0], 'http://graylog.local:12201/gelf')
        self.assertEqual(kwargs['timeout'], 3)
        self.assertEqual(json.loads(kwargs['data']), self.message)

    def test_send_error_status(self):
        backend = self.make_backend()
        backend.session.post.return_value = make_response(500)

        with self.assertRaises(ShipmentError) as ctx:
            backend.send_gelf_message(self.message)
        self.assertEqual(ctx.exception.status_code, 500)

    def test_send_network_error(self):
        backend = self.make_backend()
        backend.session.post.side_effect = requests.exceptions.ConnectionError('refused')

        with self.assertRaises(ShipmentError) as ctx:
            backend.send_gelf_message(self.message)
        self.assertIsNone(ctx.exception.status_code)

    def test_send_without_connection(self):
        backend = GraylogBackend({})
        with self.assertRaises(ShipmentError):
            backend.send_gelf_message(self.message)

    def test_ship_batch_one_request_per_entry(self):
        backend = self.make_backend(fields=[ExportField.METHOD])
        entries = [make_entry(), make_entry(), make_entry()]
        backend.ship_batch(entries)
        self.assertEqual(backend.session.post.call_count, 3)

    def test_ship_batch_aborts_on_first_failure(self):
        backend = self.make_backend(fields=[ExportField.METHOD])
        backend.session.post.side_effect = [make_response(202), make_response(503), make_response(202)]

        with self.assertLogs('Shipper.GraylogBackend', level='ERROR'):
            with self.assertRaises(ShipmentError):
                backend.ship_batch([make_entry(), make_entry(), make_entry()])

        self.assertEqual(backend.session.post.call_count, 2)

    def test_close_releases_session(self):
        backend = self.make_backend()
        session = backend.session
        backend.close()
        session.close.assert_called_once()
        self.assertIsNone(backend.session)
        backend.close()


class TestGraylogConnection(unittest.TestCase):
    """Test connection setup and the connection test message"""

    def setUp(self):
        self.config = {
            'address': 'graylog.local',
            'port': 12202,
            'protocol': 'HTTPS',
            'hostname': 'capture-host',
        }

    @patch('exporters.graylog.requests.Session')
    @patch('exporters.graylog.socket.gethostbyname', return_value='10.0.0.5')
    def test_initialize_connection(self, mock_resolve, mock_session_class):
        session = mock_session_class.return_value
        session.post.return_value = make_response(202)

        backend = GraylogBackend(self.config)
        backend.initialize_connection()

        mock_resolve.assert_called_once_with('graylog.local')
        self.assertEqual(backend.graylog_url, 'https://graylog.local:12202/gelf')
        session.post.assert_called_once()
        probe = json.loads(session.post.call_args[1]['data'])
        self.assertIs(probe['_test'], True)
        self.assertEqual(probe['host'], 'capture-host')
        self.assertEqual(probe['short_message'], 'Traffic Log Shipper Connection Test')

    @patch('exporters.graylog.socket.gethostbyname', side_effect=socket.gaierror('Name or service not known'))
    def test_unresolvable_address(self, mock_resolve):
        backend = GraylogBackend(self.config)
        with self.assertRaises(BackendConnectionError):
            backend.initialize_connection()

    @patch('exporters.graylog.requests.Session')
    @patch('exporters.graylog.socket.gethostbyname', return_value='10.0.0.5')
    def test_rejected_connection_test(self, mock_resolve, mock_session_class):
        mock_session_class.return_value.post.return_value = make_response(401)

        backend = GraylogBackend(self.config)
        with self.assertLogs('Shipper.GraylogBackend', level='ERROR'):
            with self.assertRaises(BackendConnectionError) as ctx:
                backend.initialize_connection()
        self.assertIsInstance(ctx.exception, ConnectionError)


if __name__ == '__main__':
    unittest.main()
