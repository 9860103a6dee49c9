#!/usr/bin/env python3
"""
Tests for environment driven configuration
"""
import pytest

from captcha_config import CaptchaConfig
from error_handling import InvalidArgument


def test_defaults():
    config = CaptchaConfig.from_env({})
    assert config.max_failures == 10
    assert config.image_format == '.png'
    assert config.image_quality == pytest.approx(0.8)
    assert config.worker_threads == 4
    assert config.log_dir == 'logs'


def test_env_overrides():
    config = CaptchaConfig.from_env({
        'ARROW_CAPTCHA_MAX_FAILURES': '3',
        'ARROW_CAPTCHA_IMAGE_FORMAT': 'JPG',
        'ARROW_CAPTCHA_IMAGE_QUALITY': '0.5',
        'ARROW_CAPTCHA_WORKER_THREADS': '8',
        'ARROW_CAPTCHA_LOG_DIR': '',
        'ARROW_CAPTCHA_PORT': '9090',
    })
    assert config.max_failures == 3
    assert config.image_format == '.jpg'
    assert config.image_quality == pytest.approx(0.5)
    assert config.worker_threads == 8
    assert config.log_dir is None
    assert config.port == 9090


@pytest.mark.parametrize("name,value", [
    ('ARROW_CAPTCHA_MAX_FAILURES', 'ten'),
    ('ARROW_CAPTCHA_MAX_FAILURES', '0'),
    ('ARROW_CAPTCHA_WORKER_THREADS', '-2'),
    ('ARROW_CAPTCHA_IMAGE_QUALITY', '1.5'),
    ('ARROW_CAPTCHA_IMAGE_FORMAT', '.gif'),
])
def test_invalid_env_values(name, value):
    with pytest.raises(InvalidArgument):
        CaptchaConfig.from_env({name: value})


def test_to_dict():
    assert CaptchaConfig(port=1234).to_dict()['port'] == 1234
