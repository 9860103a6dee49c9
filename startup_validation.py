#!/usr/bin/env python3
"""
Arrow CAPTCHA System - Startup Validation & Health Check Script
Ensures the rendering and encoding stack works before the service starts
"""

import sys
import importlib
import logging
import datetime
import random
from pathlib import Path
from typing import Dict, List

from captcha_config import CaptchaConfig
from error_handling import CaptchaError


class SystemValidator:
    """Runs every start-up check and collects errors and warnings"""

    REQUIRED_PACKAGES = ['numpy', 'cv2', 'flask', 'psutil']

    def __init__(self, config: CaptchaConfig = None):
        self.config = config or CaptchaConfig()
        self.errors: List[str] = []
        self.warnings: List[str] = []
        self.success_count = 0
        self.total_checks = 0
        self.logger = logging.getLogger('arrow_captcha.startup')

    def check_python_dependencies(self) -> bool:
        """Verify all required Python packages are importable"""
        self.logger.info("🐍 Checking Python dependencies...")
        ok = True

        for package in self.REQUIRED_PACKAGES:
            self.total_checks += 1
            try:
                importlib.import_module(package)
                self.success_count += 1
                self.logger.info(f"✅ {package} imported successfully")
            except ImportError as e:
                ok = False
                self.errors.append(f"Missing package: {package} - {str(e)}")
                self.logger.error(f"❌ Failed to import {package}: {e}")

        return ok

    def check_image_encoder(self) -> bool:
        """The configured output format must have an OpenCV writer"""
        from image_encoder import encoder_available

        self.logger.info("🖼️  Checking image encoder...")
        self.total_checks += 1
        if encoder_available(self.config.image_format):
            self.success_count += 1
            self.logger.info(f"✅ Encoder available for {self.config.image_format}")
            return True

        self.errors.append(f"No image encoder for format {self.config.image_format}")
        self.logger.error(f"❌ No image encoder for format {self.config.image_format}")
        return False

    def check_rendering_pipeline(self) -> bool:
        """Render, post-process, encode and decode one canvas per zoom level"""
        from arrow_sequence import generate_sequence
        from captcha_renderer import MAX_ZOOM, MIN_ZOOM, canvas_size, render_captcha
        from image_effects import apply_image_effects
        from image_encoder import decode_image, encode_image

        self.logger.info("🎨 Checking rendering pipeline...")
        ok = True
        rng = random.Random(0)

        for zoom in range(MIN_ZOOM, MAX_ZOOM + 1):
            self.total_checks += 1
            try:
                canvas = apply_image_effects(render_captcha(generate_sequence(rng), zoom, rng), zoom)
                decoded = decode_image(encode_image(canvas, self.config.image_format, self.config.image_quality))
                width, height = canvas_size(zoom)
                if decoded.shape != (height, width, 3):
                    raise CaptchaError(f"expected {width}x{height}, got {decoded.shape[1]}x{decoded.shape[0]}")
                self.success_count += 1
                self.logger.info(f"✅ Zoom {zoom} renders {width}x{height}")
            except Exception as e:
                ok = False
                self.errors.append(f"Rendering failed at zoom {zoom}: {e}")
                self.logger.error(f"❌ Rendering failed at zoom {zoom}: {e}")

        return ok

    def check_log_directory(self) -> bool:
        """Log directory must be creatable and writable when file logging is on"""
        self.total_checks += 1
        if not self.config.log_dir:
            self.warnings.append("File logging disabled")
            self.success_count += 1
            return True

        try:
            log_dir = Path(self.config.log_dir)
            log_dir.mkdir(parents=True, exist_ok=True)
            probe = log_dir / '.write_test'
            probe.write_text('ok')
            probe.unlink()
            self.success_count += 1
            self.logger.info(f"✅ Log directory {log_dir} is writable")
            return True
        except OSError as e:
            self.errors.append(f"Log directory not writable: {e}")
            self.logger.error(f"❌ Log directory not writable: {e}")
            return False

    def run_all_checks(self) -> bool:
        """Run every check; True only if all of them pass"""
        self.logger.info("🚀 Starting Arrow CAPTCHA startup validation")

        results = [
            self.check_python_dependencies(),
            self.check_image_encoder(),
            self.check_rendering_pipeline(),
            self.check_log_directory(),
        ]
        passed = all(results)

        if passed:
            self.logger.info(f"🎉 All {self.total_checks} checks passed")
        else:
            self.logger.error(f"💥 {len(self.errors)} check(s) failed")
        return passed

    def get_report(self) -> Dict:
        return {
            'timestamp': datetime.datetime.now().isoformat(),
            'total_checks': self.total_checks,
            'passed_checks': self.success_count,
            'errors': list(self.errors),
            'warnings': list(self.warnings),
            'status': 'ok' if not self.errors else 'failed'
        }


def main():
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    validator = SystemValidator(CaptchaConfig.from_env())
    sys.exit(0 if validator.run_all_checks() else 1)


if __name__ == "__main__":
    main()
