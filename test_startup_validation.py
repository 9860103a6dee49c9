#!/usr/bin/env python3
"""
Tests for startup validation and the logging/error layer
"""
import logging

import pytest

import image_encoder
from captcha_config import CaptchaConfig
from error_handling import (
    CaptchaLogger,
    DisposedError,
    EncodingError,
    GenerationFailed,
    InvalidArgument,
    log_errors,
)
from startup_validation import SystemValidator


def test_all_checks_pass(tmp_path):
    validator = SystemValidator(CaptchaConfig(log_dir=str(tmp_path / 'logs')))
    assert validator.run_all_checks() is True
    report = validator.get_report()
    assert report['status'] == 'ok'
    assert report['passed_checks'] == report['total_checks']
    assert (tmp_path / 'logs').is_dir()


def test_missing_encoder_fails(monkeypatch):
    monkeypatch.setattr(image_encoder.cv2, 'haveImageWriter', lambda filename: False)
    validator = SystemValidator(CaptchaConfig(log_dir=None))
    assert validator.run_all_checks() is False
    assert any('encoder' in error for error in validator.get_report()['errors'])


def test_disabled_file_logging_is_a_warning():
    validator = SystemValidator(CaptchaConfig(log_dir=None))
    assert validator.check_log_directory() is True
    assert validator.warnings == ["File logging disabled"]


def test_logger_writes_rotating_files(tmp_path):
    captcha_logger = CaptchaLogger('DEBUG', str(tmp_path))
    captcha_logger.log_error(EncodingError("no png writer"), {'format': '.png'})
    for handler in captcha_logger.logger.handlers:
        handler.flush()

    assert (tmp_path / 'captcha.log').exists()
    assert 'no png writer' in (tmp_path / 'errors.log').read_text()
    summary = captcha_logger.get_error_summary()
    assert summary['error_types'] == {'EncodingError': 1}
    assert summary['critical_errors'] == 1


def test_log_errors_reraises(caplog):
    @log_errors(logging.getLogger('arrow_captcha.test'))
    def explode():
        raise RuntimeError("boom")

    with caplog.at_level(logging.ERROR, logger='arrow_captcha.test'):
        with pytest.raises(RuntimeError):
            explode()
    assert 'boom' in caplog.text


def test_error_taxonomy():
    assert issubclass(InvalidArgument, ValueError)
    for error in (InvalidArgument, DisposedError, EncodingError, GenerationFailed):
        assert issubclass(error, Exception)
