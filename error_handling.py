#!/usr/bin/env python3
"""
Structured Error Handling and Logging System for the Arrow CAPTCHA
Error taxonomy, logger setup and Flask error handlers
"""

import traceback
import logging
import logging.handlers
import json
import datetime
import functools
import inspect
from collections import Counter
from typing import Any, Callable, Dict, Optional
from pathlib import Path
from flask import Flask, request


class CaptchaError(Exception):
    """Base class for every error raised by the captcha core"""


class InvalidArgument(CaptchaError, ValueError):
    """Zoom, symbol or configuration value outside its allowed range"""


class DisposedError(CaptchaError):
    """Resource accessor called on an already disposed challenge"""


class EncodingError(CaptchaError):
    """No usable image encoder in this runtime"""


class GenerationFailed(CaptchaError):
    """Unexpected failure inside the synthesis pipeline"""


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'

# file name, handler level, max bytes, backups
LOG_FILES = (
    ('captcha.log', logging.DEBUG, 10 * 2 ** 20, 5),
    ('errors.log', logging.ERROR, 5 * 2 ** 20, 3),
)

CRITICAL_ERRORS = (EncodingError, GenerationFailed, MemoryError)


class CaptchaLogger:
    """Console plus rotating file logging for the 'arrow_captcha' logger tree"""

    def __init__(self, log_level: str = "INFO", log_dir: Optional[str] = "logs"):
        self.log_dir = log_dir
        self.error_counts = Counter()
        self.critical_errors = []
        self.logger = logging.getLogger('arrow_captcha')
        self.setup_logging(log_level)

    def setup_logging(self, log_level: str):
        self.logger.setLevel(log_level.upper())
        formatter = logging.Formatter(LOG_FORMAT)

        # Reconfiguring replaces handlers; child loggers propagate here
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        console = logging.StreamHandler()
        console.setLevel(logging.INFO)
        handlers = [console]

        if self.log_dir:
            directory = Path(self.log_dir)
            directory.mkdir(parents=True, exist_ok=True)
            for filename, level, max_bytes, backups in LOG_FILES:
                rotating = logging.handlers.RotatingFileHandler(
                    str(directory / filename), maxBytes=max_bytes, backupCount=backups
                )
                rotating.setLevel(level)
                handlers.append(rotating)

        for handler in handlers:
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_error(self, error: Exception, context: Dict[str, Any] = None):
        """Log an error with its caller location and optional context"""
        kind = type(error).__name__
        self.error_counts[kind] += 1

        caller = inspect.currentframe().f_back
        where = f"{caller.f_code.co_name}:{caller.f_lineno}" if caller else "unknown:0"

        self.logger.error("Error in %s - %s: %s", where, kind, error)
        self.logger.debug("Full stack trace:\n%s", traceback.format_exc())
        if context:
            self.logger.info("Error context: %s", json.dumps(context, default=str))

        if isinstance(error, CRITICAL_ERRORS):
            self.critical_errors.append({
                'timestamp': datetime.datetime.now().isoformat(),
                'error_type': kind,
                'message': str(error),
                'location': where,
                'context': context,
            })

    def log_performance(self, operation: str, duration: float, details: Dict[str, Any] = None):
        self.logger.info("Performance: %s completed in %.3fs", operation, duration)
        if details:
            self.logger.debug("Performance details: %s", json.dumps(details, default=str))

    def get_error_summary(self) -> Dict[str, Any]:
        return {
            'total_errors': sum(self.error_counts.values()),
            'error_types': dict(self.error_counts),
            'critical_errors': len(self.critical_errors),
            'recent_critical': self.critical_errors[-5:],
        }


def log_errors(logger: Optional[logging.Logger] = None):
    """Decorator that logs unexpected failures with call context and re-raises.

    InvalidArgument is a caller mistake and passes through unlogged.
    """
    def decorator(func: Callable) -> Callable:
        target = logger or logging.getLogger(func.__module__)

        @functools.wraps(func)
        def logged(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except InvalidArgument:
                raise
            except Exception as e:
                context = {
                    'function': func.__qualname__,
                    'module': func.__module__,
                    'args_count': len(args),
                    'kwargs_keys': sorted(kwargs),
                }
                target.error("%s failed: %s: %s - %s", func.__name__, type(e).__name__, e,
                             json.dumps(context), exc_info=True)
                raise

        return logged
    return decorator


class FlaskErrorHandler:
    """Flask error handler with structured logging"""

    def __init__(self, app: Flask, captcha_logger: CaptchaLogger):
        self.app = app
        self.captcha_logger = captcha_logger
        self.setup_handlers()

    def _request_context(self) -> Dict[str, Any]:
        return {
            'request_method': request.method,
            'request_url': request.url,
            'user_agent': request.headers.get('User-Agent')
        }

    def setup_handlers(self):
        """Setup Flask error handlers"""

        @self.app.errorhandler(InvalidArgument)
        def invalid_argument(error):
            self.captcha_logger.logger.warning(f"Rejected request: {error}")
            return {'error': 'Invalid argument', 'message': str(error)}, 400

        @self.app.errorhandler(DisposedError)
        def disposed(error):
            return {'error': 'Not found', 'message': str(error)}, 404

        @self.app.errorhandler(EncodingError)
        def encoding_error(error):
            self.captcha_logger.log_error(error, self._request_context())
            return {'error': 'Encoder unavailable', 'message': str(error)}, 500

        @self.app.errorhandler(GenerationFailed)
        def generation_failed(error):
            self.captcha_logger.log_error(error, self._request_context())
            return {'error': 'Captcha generation failed', 'message': 'Retry the request'}, 500

        @self.app.errorhandler(404)
        def not_found(error):
            return {'error': 'Not found', 'message': str(error)}, 404

        @self.app.errorhandler(405)
        def method_not_allowed(error):
            return {'error': 'Method not allowed', 'message': str(error)}, 405

        @self.app.errorhandler(500)
        def internal_error(error):
            self.captcha_logger.log_error(error, self._request_context())
            return {'error': 'Internal server error', 'message': 'Something went wrong'}, 500
