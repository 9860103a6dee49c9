"""
Shared pytest fixtures for the Arrow CAPTCHA test suite
"""
import itertools
import random

import pytest

from captcha_config import CaptchaConfig
from captcha_manager import CaptchaManager


@pytest.fixture
def config():
    return CaptchaConfig(worker_threads=2, log_dir=None)


@pytest.fixture
def manager(config):
    """Manager with a seeded random source per synthesis call"""
    seeds = itertools.count(1)
    captcha_manager = CaptchaManager(config, rng_factory=lambda: random.Random(next(seeds)))
    yield captcha_manager
    captcha_manager.shutdown()


def wrong_symbol_for(sequence):
    """A symbol whose constant run never matches the given sequence"""
    for symbol in (0, 1, 2):
        if tuple(sequence) != (symbol,) * len(sequence):
            return symbol
    raise AssertionError("unreachable")
