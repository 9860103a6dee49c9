#!/usr/bin/env python3
"""
Production Monitoring for the Arrow CAPTCHA service
Operation timings, health checks and admin endpoints
"""

import json
import logging
import threading
import time
from collections import deque
from datetime import datetime, timedelta, timezone
from functools import wraps

import psutil
from flask import Flask, g, jsonify, request

from image_encoder import encoder_available

logger = logging.getLogger('arrow_captcha.monitoring')

SLOW_OPERATION_SECONDS = 1.0
RECENT_ERRORS_KEPT = 5

HEALTH_RANK = {'healthy': 0, 'unknown': 0, 'degraded': 1, 'unhealthy': 2}


class OperationStats:
    """Running timing totals for one named operation"""

    def __init__(self):
        self.calls = 0
        self.failures = 0
        self.total = 0.0
        self.fastest = None
        self.slowest = 0.0
        self.recent_errors = deque(maxlen=RECENT_ERRORS_KEPT)

    def add(self, seconds, failure=None):
        self.calls += 1
        self.total += seconds
        self.fastest = seconds if self.fastest is None else min(self.fastest, seconds)
        self.slowest = max(self.slowest, seconds)
        if failure is not None:
            self.failures += 1
            self.recent_errors.append(failure)

    @property
    def mean(self):
        return self.total / self.calls if self.calls else 0.0

    def as_dict(self):
        return {
            'count': self.calls,
            'avg_duration_ms': _ms(self.mean),
            'min_duration_ms': _ms(self.fastest or 0.0),
            'max_duration_ms': _ms(self.slowest),
            'success_rate': round((self.calls - self.failures) / self.calls * 100, 2),
            'error_count': self.failures,
            'recent_errors': list(self.recent_errors),
        }


def _ms(seconds):
    return round(seconds * 1000, 2)


class PerformanceMonitor:
    def __init__(self, slow_threshold: float = SLOW_OPERATION_SECONDS):
        self.slow_threshold = slow_threshold
        self._stats = {}
        self._lock = threading.Lock()

    def time_operation(self, operation_name):
        """Decorator recording wall time and outcome of each call"""
        def decorator(func):
            @wraps(func)
            def timed(*args, **kwargs):
                started = time.perf_counter()
                failure = None
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    failure = f"{type(e).__name__}: {e}"
                    raise
                finally:
                    self.record_metric(operation_name, time.perf_counter() - started, failure)
            return timed
        return decorator

    def record_metric(self, operation, duration, failure=None):
        with self._lock:
            stats = self._stats.setdefault(operation, OperationStats())
            stats.add(duration, failure)
            mean = stats.mean

        if duration > self.slow_threshold:
            logger.warning("PERFORMANCE: %s", json.dumps({
                'operation': operation,
                'duration_ms': _ms(duration),
                'success': failure is None,
                'avg_duration_ms': _ms(mean),
            }))

    def get_metrics(self):
        with self._lock:
            return {name: stats.as_dict() for name, stats in self._stats.items() if stats.calls}


class HealthMonitor:
    def __init__(self, manager, config):
        self.manager = manager
        self.config = config
        self.started = time.time()

    def check_encoder_health(self):
        """The configured image writer must exist in this OpenCV build"""
        fmt = self.config.image_format
        return {'status': 'healthy' if encoder_available(fmt) else 'unhealthy', 'format': fmt}

    def check_session_health(self):
        return {
            'status': 'healthy',
            'active_sessions': self.manager.active_count(),
            'stats': self.manager.get_stats(),
        }

    def check_memory_usage(self):
        try:
            proc = psutil.Process()
            mem = proc.memory_info()
            cpu = proc.cpu_percent()
        except psutil.Error as e:
            return {'status': 'unknown', 'error': str(e)}
        return {
            'status': 'healthy',
            'rss_mb': round(mem.rss / 2 ** 20, 2),
            'vms_mb': round(mem.vms / 2 ** 20, 2),
            'cpu_percent': cpu,
        }

    def get_system_health(self):
        uptime = time.time() - self.started
        components = {
            'encoder': self.check_encoder_health(),
            'sessions': self.check_session_health(),
            'memory': self.check_memory_usage(),
        }
        worst = max(components.values(), key=lambda c: HEALTH_RANK.get(c.get('status'), 0))
        overall = worst['status'] if HEALTH_RANK.get(worst['status'], 0) else 'healthy'

        return {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'uptime_seconds': round(uptime, 2),
            'uptime_formatted': str(timedelta(seconds=int(uptime))),
            **components,
            'overall_status': overall,
        }


def setup_monitoring(app: Flask, manager, config, performance_monitor: PerformanceMonitor):
    """Attach access logging plus /admin/health and /admin/metrics to an app"""
    health_monitor = HealthMonitor(manager, config)
    access_logger = logging.getLogger('arrow_captcha.access')

    @app.before_request
    def stamp_request():
        g.request_started = time.perf_counter()

    @app.after_request
    def log_access(response):
        started = getattr(g, 'request_started', None)
        if started is not None:
            access_logger.info("ACCESS: %s", json.dumps({
                'method': request.method,
                'endpoint': request.endpoint,
                'status_code': response.status_code,
                'response_time_ms': _ms(time.perf_counter() - started),
                'ip': request.headers.get('X-Forwarded-For', request.remote_addr),
            }))
        return response

    @app.route('/admin/health')
    def admin_health():
        return jsonify(health_monitor.get_system_health())

    @app.route('/admin/metrics')
    def admin_metrics():
        return jsonify({
            'operations': performance_monitor.get_metrics(),
            'captcha': manager.get_stats(),
        })

    return health_monitor
