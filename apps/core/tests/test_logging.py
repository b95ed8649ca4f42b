"""
Tests for structured logging, PII masking and security events.
"""
import json
import logging
from django.test import TestCase
from apps.core.logging import PIIMasker, JSONFormatter, SecurityLogger
from apps.core.middleware import LoggingFilter, clear_request_context, set_request_context


class PIIMaskerTestCase(TestCase):
    """Test PII masking functionality."""

    def test_mask_phone_numbers(self):
        """Test phone number masking."""
        masked = PIIMasker.mask_phone("Call me at +1234567890 or +447700900123")

        self.assertIn("+12*", masked)
        self.assertNotIn("+1234567890", masked)
        self.assertNotIn("+447700900123", masked)

    def test_mask_email_addresses(self):
        """Test email address masking."""
        masked = PIIMasker.mask_email("Contact user@example.com or admin@test.org")

        self.assertIn("u***@example.com", masked)
        self.assertIn("a****@test.org", masked)
        self.assertNotIn("user@example.com", masked)

    def test_mask_secrets(self):
        masked = PIIMasker.mask_secrets('password="hunter2" token=abc.def')

        self.assertNotIn("hunter2", masked)
        self.assertNotIn("abc.def", masked)

    def test_mask_dict_sensitive_fields(self):
        """Test masking sensitive fields in dictionaries."""
        masked = PIIMasker.mask_dict({
            'email': 'site@example.com',
            'password_hash': 'md5$abc',
            'role': 'Contractor',
            'nested': {'phone': '+1234567890', 'note': 'mail ops@example.com'},
        })

        self.assertEqual(masked['email'], '********')
        self.assertEqual(masked['password_hash'], '********')
        self.assertEqual(masked['role'], 'Contractor')
        self.assertEqual(masked['nested']['phone'], '********')
        self.assertIn('o**@example.com', masked['nested']['note'])

    def test_non_strings_pass_through(self):
        self.assertEqual(PIIMasker.mask_text(42), 42)
        self.assertEqual(PIIMasker.mask_dict(['a']), ['a'])


class JSONFormatterTestCase(TestCase):
    """Test JSON log formatting."""

    def setUp(self):
        self.formatter = JSONFormatter()

    def make_record(self, msg, **extra):
        record = logging.LogRecord(
            name='apps.rbac.stores', level=logging.INFO, pathname=__file__, lineno=1,
            msg=msg, args=(), exc_info=None
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_basic_log_format(self):
        data = json.loads(self.formatter.format(self.make_record("Template stored")))

        self.assertEqual(data['level'], 'INFO')
        self.assertEqual(data['logger'], 'apps.rbac.stores')
        self.assertEqual(data['message'], 'Template stored')
        self.assertIn('timestamp', data)

    def test_request_context_fields(self):
        data = json.loads(self.formatter.format(
            self.make_record("x", request_id='req-1', project_id='p-1', user_id='u-1')
        ))

        self.assertEqual(data['request_id'], 'req-1')
        self.assertEqual(data['project_id'], 'p-1')
        self.assertEqual(data['user_id'], 'u-1')

    def test_extra_fields_are_masked(self):
        data = json.loads(self.formatter.format(
            self.make_record("Login failed for eng@example.com", email='eng@example.com', role='PMC')
        ))

        self.assertNotIn('eng@example.com', data['message'])
        self.assertEqual(data['email'], 'e**@example.com')
        self.assertEqual(data['role'], 'PMC')

    def test_unserializable_extra(self):
        data = json.loads(self.formatter.format(self.make_record("x", when=object())))

        self.assertIn('object', data['when'])


class LoggingFilterTestCase(TestCase):

    def tearDown(self):
        clear_request_context()

    def test_copies_request_context(self):
        set_request_context(request_id='req-9', project_id='p-9')
        record = logging.LogRecord('x', logging.INFO, __file__, 1, 'm', (), None)

        self.assertTrue(LoggingFilter().filter(record))
        self.assertEqual(record.request_id, 'req-9')
        self.assertEqual(record.project_id, 'p-9')
        self.assertFalse(hasattr(record, 'user_id'))

    def test_cleared_context(self):
        set_request_context(project_id='p-9')
        clear_request_context()
        record = logging.LogRecord('x', logging.INFO, __file__, 1, 'm', (), None)

        LoggingFilter().filter(record)
        self.assertFalse(hasattr(record, 'project_id'))


class SecurityLoggerTestCase(TestCase):

    def test_permission_denied_event(self):
        with self.assertLogs('security', level='WARNING') as logs:
            SecurityLogger.log_permission_denied(None, 'p-1', 'WIR', 'approve', ip_address='10.0.0.1')

        record = logs.records[0]
        self.assertEqual(record.event_type, 'permission_denied')
        self.assertEqual(record.permission_module, 'WIR')
        self.assertEqual(record.action, 'approve')

    def test_failed_login_masks_email(self):
        with self.assertLogs('security', level='WARNING') as logs:
            SecurityLogger.log_failed_login('eng@example.com', '10.0.0.1', reason='invalid_password')

        self.assertEqual(logs.records[0].email, '********')
        self.assertEqual(logs.records[0].reason, 'invalid_password')

    def test_permission_change_event(self):
        with self.assertLogs('security', level='INFO') as logs:
            SecurityLogger.log_permission_change(None, 'PermissionTemplate', 'abc')

        self.assertEqual(logs.records[0].event_type, 'permission_change')
        self.assertEqual(logs.records[0].target_type, 'PermissionTemplate')
