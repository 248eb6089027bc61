"""Tests for logging setup and credential masking."""

import io
import logging

from common.logging_config import SensitiveDataFilter, get_logger, setup_logging


def make_record(msg, args=()):
    return logging.LogRecord('uploader.test', logging.INFO, __file__, 1, msg, args, None)


def test_filter_masks_api_key():
    record = make_record('config loaded api_key=up_secret123 store=http://x')

    SensitiveDataFilter().filter(record)

    assert 'up_secret123' not in record.msg
    assert 'api_key=***MASKED***' in record.msg
    assert 'store=http://x' in record.msg


def test_filter_masks_bearer_header():
    record = make_record("headers: {'Authorization': 'Bearer abc.def.ghi'}")

    SensitiveDataFilter().filter(record)

    assert 'abc.def.ghi' not in record.msg


def test_filter_masks_arguments():
    record = make_record('sending %s', ('token=xyz789',))

    SensitiveDataFilter().filter(record)

    assert record.getMessage() == 'sending token=***MASKED***'


def test_filter_leaves_plain_messages():
    record = make_record('Uploaded chunk 3/7 of 5d41402abc4b2a76b9719d911017c592')

    SensitiveDataFilter().filter(record)

    assert record.msg == 'Uploaded chunk 3/7 of 5d41402abc4b2a76b9719d911017c592'


def test_setup_logging_configures_component(monkeypatch):
    monkeypatch.delenv('LOG_LEVEL', raising=False)
    logger = setup_logging('test-component-a')

    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert logger.propagate is False
    assert any(isinstance(f, SensitiveDataFilter) for f in logger.handlers[0].filters)


def test_setup_logging_is_idempotent():
    first = setup_logging('test-component-b', log_level='WARNING')
    second = setup_logging('test-component-b', log_level='debug')

    assert first is second
    assert len(second.handlers) == 1
    assert second.level == logging.DEBUG
    assert second.handlers[0].level == logging.DEBUG


def test_setup_logging_reads_env(monkeypatch):
    monkeypatch.setenv('LOG_LEVEL', 'ERROR')

    assert setup_logging('test-component-c').level == logging.ERROR


def test_unknown_level_falls_back_to_info():
    assert setup_logging('test-component-d', log_level='CHATTY').level == logging.INFO


def test_module_loggers_use_component_handler():
    component = setup_logging('test-component-e', log_level='INFO')
    stream = io.StringIO()
    component.handlers[0].setStream(stream)

    get_logger('test-component-e.scheduler').info('store api_key=abc123 reachable')

    output = stream.getvalue()
    assert 'test-component-e.scheduler - INFO - ' in output
    assert 'abc123' not in output
