"""
Unit tests for configuration management.

Tests cover defaults, dot-notation access, JSON file merging, environment
overrides and the typed accessors used to build the engine.
"""

import json
import os
import shutil
import tempfile
import unittest
from datetime import timedelta, timezone
from decimal import ROUND_HALF_UP
from pathlib import Path
import sys
from unittest.mock import patch

# Add the parent directory to the path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

import config.settings as settings_module
from config.settings import Settings, configure_system, get_settings


class TestSettingsDefaults(unittest.TestCase):
    """Test default configuration values."""

    @patch.dict(os.environ, {}, clear=True)
    def test_defaults(self):
        settings = Settings()
        self.assertEqual(settings.get('decimal.precision'), 28)
        self.assertEqual(settings.get('xirr.max_iterations'), 100)
        self.assertEqual(settings.get_data_directory(), 'ledger_data')
        self.assertEqual(settings.get('missing.key', 'fallback'), 'fallback')
        self.assertFalse(settings.is_development_mode())
        self.assertEqual(settings.get_display_config()['top_holdings'], 5)

    @patch.dict(os.environ, {}, clear=True)
    def test_decimal_config(self):
        config = Settings().get_decimal_config()
        self.assertEqual(config.precision, 28)
        self.assertEqual(config.rounding, ROUND_HALF_UP)

    @patch.dict(os.environ, {}, clear=True)
    def test_xirr_config(self):
        xirr = Settings().get_xirr_config()
        self.assertEqual(xirr, {
            'guess': 0.1,
            'max_iterations': 100,
            'tolerance': 1e-6,
            'min_rate': -0.99,
            'max_rate': 10.0,
        })

    @patch.dict(os.environ, {}, clear=True)
    def test_set_with_dot_notation(self):
        settings = Settings()
        settings.set('xirr.guess', 0.2)
        settings.set('custom.nested.value', 5)
        self.assertEqual(settings.get_xirr_config()['guess'], 0.2)
        self.assertEqual(settings.get('custom.nested.value'), 5)

    @patch.dict(os.environ, {}, clear=True)
    def test_low_precision_rejected(self):
        settings = Settings()
        settings.set('decimal.precision', 12)
        with self.assertRaises(ValueError):
            settings.get_decimal_config()


class TestSettingsSources(unittest.TestCase):
    """Test JSON files and environment overrides."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    @patch.dict(os.environ, {}, clear=True)
    def test_load_from_file_merges(self):
        config_file = self.temp_dir / 'config.json'
        config_file.write_text(json.dumps({'xirr': {'max_iterations': 250}, 'ledger': {'utc_offset_hours': -5}}))

        settings = Settings(str(config_file))
        self.assertEqual(settings.get('xirr.max_iterations'), 250)
        self.assertEqual(settings.get('xirr.guess'), 0.1)
        self.assertEqual(settings.get_ledger_timezone(), timezone(timedelta(hours=-5)))

    @patch.dict(os.environ, {}, clear=True)
    def test_missing_and_invalid_files_keep_defaults(self):
        broken = self.temp_dir / 'broken.json'
        broken.write_text('{not json')

        with self.assertLogs('config.settings', level='WARNING'):
            settings = Settings(str(self.temp_dir / 'absent.json'))
        self.assertEqual(settings.get('decimal.precision'), 28)

        with self.assertLogs('config.settings', level='ERROR'):
            settings = Settings(str(broken))
        self.assertEqual(settings.get('decimal.precision'), 28)

    @patch.dict(os.environ, {}, clear=True)
    def test_save_to_file(self):
        settings = Settings()
        settings.set('ledger.data_directory', '/srv/ledger')
        target = self.temp_dir / 'nested' / 'saved.json'
        settings.save_to_file(str(target))

        self.assertEqual(Settings(str(target)).get_data_directory(), '/srv/ledger')

    @patch.dict(os.environ, {
        'FINTU_DATA_DIR': '/data/fintu',
        'FINTU_DECIMAL_PRECISION': '34',
        'FINTU_XIRR_MAX_ITERATIONS': '200',
        'FINTU_LEDGER_UTC_OFFSET': '-5',
        'FINTU_LOG_LEVEL': 'warning',
    }, clear=True)
    def test_environment_overrides(self):
        settings = Settings()
        self.assertEqual(settings.get_data_directory(), '/data/fintu')
        self.assertEqual(settings.get_decimal_config().precision, 34)
        self.assertEqual(settings.get_xirr_config()['max_iterations'], 200)
        self.assertEqual(settings.get_ledger_timezone().utcoffset(None), timedelta(hours=-5))
        self.assertEqual(settings.get_logging_config()['level'], 'WARNING')

    @patch.dict(os.environ, {'FINTU_DEV': 'true'}, clear=True)
    def test_development_mode(self):
        settings = Settings()
        self.assertTrue(settings.is_development_mode())
        self.assertEqual(settings.get_logging_config()['level'], 'DEBUG')

    @patch.dict(os.environ, {}, clear=True)
    def test_configure_system_loads_env_file(self):
        env_file = self.temp_dir / '.env'
        env_file.write_text('FINTU_DATA_DIR=/from/dotenv\n')
        original = settings_module._settings
        try:
            settings = configure_system(env_file=str(env_file))
            self.assertEqual(settings.get_data_directory(), '/from/dotenv')
            self.assertIs(get_settings(), settings)
        finally:
            settings_module._settings = original


if __name__ == '__main__':
    unittest.main()
