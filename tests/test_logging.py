"""
Tests for structured logging system.
"""
import unittest
import json
import logging
import tempfile
import shutil
import uuid
from pathlib import Path
from tradeguard.utils.logging import get_logger, SensitiveDataFilter, TradeLogger


class TestLogging(unittest.TestCase):
    def setUp(self):
        """Create temporary log directory"""
        self.log_dir = tempfile.mkdtemp()

    def tearDown(self):
        """Clean up temporary logs"""
        shutil.rmtree(self.log_dir, ignore_errors=True)

    def _logger(self):
        # handlers are cached per name, so each test needs its own logger
        return get_logger(f"{__name__}.{uuid.uuid4().hex[:8]}", log_dir=self.log_dir)

    def _records(self, name='tradeguard.log'):
        with open(Path(self.log_dir) / name, 'r', encoding='utf-8') as f:
            return [json.loads(line) for line in f if line.strip()]

    def test_json_logging(self):
        """Test that logs are written in JSON format"""
        logger = self._logger()
        logger.info("Test message", extra={'asset': 'BTC', 'price': 50000.0})

        log_data = self._records()[0]
        self.assertIn('timestamp', log_data)
        self.assertEqual(log_data['level'], 'INFO')
        self.assertEqual(log_data['message'], 'Test message')
        self.assertEqual(log_data['asset'], 'BTC')
        self.assertEqual(log_data['price'], 50000.0)

    def test_daily_file(self):
        """Each record also lands in the dated log file"""
        logger = self._logger()
        logger.warning("rolled")
        daily = [p.name for p in Path(self.log_dir).glob('tradeguard_*.log')]
        self.assertEqual(len(daily), 1)
        self.assertEqual(self._records(daily[0])[0]['message'], 'rolled')

    def test_handlers_not_duplicated(self):
        name = f"{__name__}.dup"
        first = get_logger(name, log_dir=self.log_dir)
        count = len(first.handlers)
        second = get_logger(name, log_dir=self.log_dir)
        self.assertIs(first, second)
        self.assertEqual(len(second.handlers), count)
        for handler in list(first.handlers):
            handler.close()
            first.removeHandler(handler)

    def test_sensitive_data_redaction(self):
        """Test that sensitive data is redacted"""
        filter_obj = SensitiveDataFilter()
        record = logging.LogRecord(
            name='test', level=logging.INFO, pathname='', lineno=0,
            msg="Connecting with api_key=secret123 and password='mypass'",
            args=(), exc_info=None
        )
        filter_obj.filter(record)

        self.assertIn('***REDACTED***', record.msg)
        self.assertNotIn('secret123', record.msg)
        self.assertNotIn('mypass', record.msg)

    def test_trade_logger(self):
        """Test TradeLogger context manager"""
        logger = self._logger()
        with TradeLogger(logger, 'ETH', 'momentum') as tl:
            tl.log_decision('OPEN', 'LONG', 10.0, 3000.0, 'momentum BUY')
            tl.log_execution('abc123', 'LONG', 10.0, 3000.5)

        events = [r.get('event_type') for r in self._records()]
        self.assertEqual(events, ['decision', 'execution'])
        self.assertEqual(self._records()[1]['position_id'], 'abc123')

    def test_trade_logger_logs_and_reraises(self):
        logger = self._logger()
        with self.assertRaises(RuntimeError):
            with TradeLogger(logger, 'ETH', 'swing'):
                raise RuntimeError("boom")
        record = self._records()[-1]
        self.assertEqual(record['event_type'], 'strategy_error')
        self.assertIn('exception', record)


if __name__ == "__main__":
    unittest.main()
