"""
Unit Tests for logging setup
"""
import json
import logging
from logging.handlers import RotatingFileHandler

import pytest

from app.core.config import settings
from app.core.logging_config import JSONFormatter, setup_logging


@pytest.fixture
def production_logging(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, 'ENVIRONMENT', 'production')
    monkeypatch.setattr(settings, 'LOG_DIR', str(tmp_path))
    yield setup_logging()
    monkeypatch.undo()
    setup_logging()


class TestSetupLogging:

    def test_production_file_rotation(self, production_logging, tmp_path):
        [file_handler] = [h for h in production_logging.handlers if isinstance(h, RotatingFileHandler)]

        assert file_handler.maxBytes == 10 * 1024 * 1024
        assert file_handler.backupCount == 5
        assert file_handler.baseFilename == str(tmp_path / 'digidiploma.log')
        assert isinstance(file_handler.formatter, JSONFormatter)

    def test_db_query_fields(self, production_logging):
        records = []
        capture = logging.Handler(level=logging.DEBUG)
        capture.emit = records.append
        production_logging.addHandler(capture)
        production_logging.setLevel(logging.DEBUG)

        production_logging.log_db_query('DELETE', 'subjects', 4.2, rows_affected=7)

        payload = json.loads(JSONFormatter().format(records[0]))
        assert payload['event_type'] == 'db_query'
        assert payload['db_table'] == 'subjects'
        assert payload['rows_affected'] == 7
