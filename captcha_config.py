#!/usr/bin/env python3
"""
Runtime configuration for the Arrow CAPTCHA service
Defaults can be overridden through ARROW_CAPTCHA_* environment variables
"""

import os
from dataclasses import dataclass, asdict
from typing import Any, Dict, Mapping, Optional

from error_handling import InvalidArgument

ENV_PREFIX = 'ARROW_CAPTCHA_'
SUPPORTED_FORMATS = ('.png', '.jpg', '.jpeg')


@dataclass
class CaptchaConfig:
    """Tunable settings shared by the manager, logger and demo server"""
    max_failures: int = 10
    image_format: str = '.png'
    image_quality: float = 0.8
    worker_threads: int = 4
    log_level: str = 'INFO'
    log_dir: Optional[str] = 'logs'
    host: str = '127.0.0.1'
    port: int = 8080

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'CaptchaConfig':
        """Build a config from the process environment (or a given mapping)"""
        env = os.environ if environ is None else environ
        config = cls()

        converters = {
            'max_failures': int,
            'image_format': str,
            'image_quality': float,
            'worker_threads': int,
            'log_level': str,
            'log_dir': str,
            'host': str,
            'port': int,
        }

        for field_name, convert in converters.items():
            raw = env.get(ENV_PREFIX + field_name.upper())
            if raw is None:
                continue
            if field_name == 'log_dir' and raw.strip() == '':
                config.log_dir = None
                continue
            try:
                setattr(config, field_name, convert(raw))
            except ValueError:
                raise InvalidArgument(
                    f"{ENV_PREFIX}{field_name.upper()} has invalid value {raw!r}"
                )

        config.image_format = config.image_format.lower()
        if not config.image_format.startswith('.'):
            config.image_format = '.' + config.image_format

        config.validate()
        return config

    def validate(self) -> 'CaptchaConfig':
        if self.max_failures < 1:
            raise InvalidArgument(f"max_failures must be positive, got {self.max_failures}")
        if self.worker_threads < 1:
            raise InvalidArgument(f"worker_threads must be positive, got {self.worker_threads}")
        if not 0 < self.image_quality <= 1:
            raise InvalidArgument(f"image_quality must be in (0, 1], got {self.image_quality}")
        if self.image_format not in SUPPORTED_FORMATS:
            raise InvalidArgument(
                f"image_format must be one of {SUPPORTED_FORMATS}, got {self.image_format!r}"
            )
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
