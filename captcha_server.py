#!/usr/bin/env python3
"""
Demo HTTP host for the Arrow CAPTCHA
Exposes generate / query / image / input / remove over a small JSON API
"""

import sys
import logging

from flask import Flask, request, jsonify, current_app, make_response

from captcha_config import CaptchaConfig
from captcha_manager import CaptchaManager
from error_handling import CaptchaLogger, FlaskErrorHandler, InvalidArgument
from image_encoder import mime_type
from monitoring import PerformanceMonitor, setup_monitoring
from startup_validation import SystemValidator

logger = logging.getLogger('arrow_captcha.server')


def _manager() -> CaptchaManager:
    return current_app.extensions['arrow_captcha']


def _json_int(field: str) -> int:
    data = request.get_json(silent=True) or {}
    value = data.get(field)
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f"'{field}' must be an integer")
    return value


def create_app(manager: CaptchaManager = None, config: CaptchaConfig = None,
               captcha_logger: CaptchaLogger = None) -> Flask:
    """Build the Flask app around a manager owned by the caller (or a new one)"""
    config = config or (manager.config if manager is not None else CaptchaConfig())
    performance_monitor = manager.performance_monitor if manager is not None else PerformanceMonitor()
    manager = manager or CaptchaManager(config, performance_monitor=performance_monitor)
    captcha_logger = captcha_logger or CaptchaLogger(config.log_level, config.log_dir)

    app = Flask(__name__, static_folder=None)
    app.config['HOST'] = config.host
    app.config['PORT'] = config.port
    app.extensions['arrow_captcha'] = manager

    FlaskErrorHandler(app, captcha_logger)
    setup_monitoring(app, manager, config, performance_monitor)

    @app.route('/api/captcha/<session_id>', methods=['POST'])
    def generate_captcha(session_id):
        zoom = _json_int('zoom')
        _manager().generate(session_id, zoom)
        return jsonify({'session_id': session_id, 'zoom': zoom}), 201

    @app.route('/api/captcha/<session_id>', methods=['GET'])
    def captcha_status(session_id):
        return jsonify({'session_id': session_id, 'active': _manager().contains(session_id)})

    @app.route('/api/captcha/<session_id>/image', methods=['GET'])
    def captcha_image(session_id):
        image = _manager().get_challenge(session_id)
        if image is None:
            return jsonify({'error': 'Not found', 'message': f'No captcha for {session_id}'}), 404
        response = make_response(image)
        response.headers['Content-Type'] = mime_type(_manager().config.image_format)
        response.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate, max-age=0'
        return response

    @app.route('/api/captcha/<session_id>/input', methods=['POST'])
    def captcha_input(session_id):
        symbol = _json_int('symbol')
        outcome = _manager().submit_input(session_id, symbol)
        return jsonify({'session_id': session_id, 'outcome': outcome.value})

    @app.route('/api/captcha/<session_id>', methods=['DELETE'])
    def remove_captcha(session_id):
        _manager().remove_challenge(session_id)
        return '', 204

    return app


def main():
    config = CaptchaConfig.from_env()
    captcha_logger = CaptchaLogger(config.log_level, config.log_dir)

    validator = SystemValidator(config)
    if not validator.run_all_checks():
        logger.error(f"Startup validation failed: {validator.get_report()['errors']}")
        sys.exit(1)

    with CaptchaManager(config) as manager:
        app = create_app(manager, config, captcha_logger)
        logger.info(f"🚀 Arrow CAPTCHA available at http://{config.host}:{config.port}")
        app.run(host=config.host, port=config.port, threaded=True)


if __name__ == '__main__':
    main()
