"""
Configuration Manager

Handles loading and validating annotation surface configuration from
environment variables and defaults.
"""

import os
import sys
import logging
from dataclasses import dataclass
from typing import Dict, Any, Optional

from .geometry import DEFAULT_ZOOM, MIN_ZOOM, MAX_ZOOM, ZOOM_STEP, DEFAULT_BOX_MARGIN
from .hit_testing import DEFAULT_HIT_PADDING, DEFAULT_NEAREST_THRESHOLD
from .models import DEFAULT_TOTAL_LINES

logger = logging.getLogger(__name__)

DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


@dataclass
class AnnotationConfig:
    """Tunables for the annotation surface components."""
    hit_padding: float = DEFAULT_HIT_PADDING
    nearest_threshold: float = DEFAULT_NEAREST_THRESHOLD
    box_margin: float = DEFAULT_BOX_MARGIN
    settle_delay_ms: int = 100
    total_lines: int = DEFAULT_TOTAL_LINES
    default_zoom: float = DEFAULT_ZOOM
    min_zoom: float = MIN_ZOOM
    max_zoom: float = MAX_ZOOM
    zoom_step: float = ZOOM_STEP

    @property
    def settle_delay(self) -> float:
        """Settle delay in seconds."""
        return self.settle_delay_ms / 1000

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> "AnnotationConfig":
        """Build from the dict returned by ConfigurationManager.load_configuration()."""
        if not config:
            return cls()
        annotation = config.get('annotation', {})
        zoom = config.get('zoom', {})
        return cls(
            hit_padding=annotation.get('hit_padding', DEFAULT_HIT_PADDING),
            nearest_threshold=annotation.get('nearest_threshold', DEFAULT_NEAREST_THRESHOLD),
            box_margin=annotation.get('box_margin', DEFAULT_BOX_MARGIN),
            settle_delay_ms=annotation.get('settle_delay_ms', 100),
            total_lines=annotation.get('total_lines', DEFAULT_TOTAL_LINES),
            default_zoom=zoom.get('default', DEFAULT_ZOOM),
            min_zoom=zoom.get('min', MIN_ZOOM),
            max_zoom=zoom.get('max', MAX_ZOOM),
            zoom_step=zoom.get('step', ZOOM_STEP),
        )


class ConfigurationManager:
    """Manages application configuration loading and validation."""

    @staticmethod
    def load_configuration() -> Dict[str, Any]:
        """Load configuration from environment variables and defaults."""
        config = {
            'annotation': {
                'hit_padding': float(os.getenv('ANNOTATION_HIT_PADDING', str(DEFAULT_HIT_PADDING))),
                'nearest_threshold': float(os.getenv('ANNOTATION_NEAREST_THRESHOLD', str(DEFAULT_NEAREST_THRESHOLD))),
                'box_margin': float(os.getenv('ANNOTATION_BOX_MARGIN', str(DEFAULT_BOX_MARGIN))),
                'settle_delay_ms': int(os.getenv('ANNOTATION_SETTLE_DELAY_MS', '100')),
                'total_lines': int(os.getenv('ANNOTATION_TOTAL_LINES', str(DEFAULT_TOTAL_LINES))),
            },
            'zoom': {
                'default': float(os.getenv('ZOOM_DEFAULT', str(DEFAULT_ZOOM))),
                'min': float(os.getenv('ZOOM_MIN', str(MIN_ZOOM))),
                'max': float(os.getenv('ZOOM_MAX', str(MAX_ZOOM))),
                'step': float(os.getenv('ZOOM_STEP', str(ZOOM_STEP))),
            },
            'web': {
                'host': os.getenv('WEB_HOST', '0.0.0.0'),
                'port': int(os.getenv('WEB_PORT', '8000')),
            },
            'logging': {
                'level': os.getenv('LOG_LEVEL', 'INFO').upper(),
                'format': os.getenv('LOG_FORMAT', DEFAULT_LOG_FORMAT),
                'file': os.getenv('LOG_FILE') or None,
            },
            'output': {
                'render_directory': os.getenv('RENDER_DIR', 'renders'),
            }
        }

        # Validate critical configuration
        ConfigurationManager._validate_configuration(config)

        logger.info("✅ Configuration loaded successfully")
        return config

    @staticmethod
    def _validate_configuration(config: Dict[str, Any]):
        """Validate that configuration values are usable."""
        errors = []

        annotation = config['annotation']
        for key in ('hit_padding', 'nearest_threshold', 'box_margin'):
            if annotation[key] < 0:
                errors.append(f"annotation.{key} must not be negative (got {annotation[key]})")
        if annotation['settle_delay_ms'] < 0:
            errors.append("ANNOTATION_SETTLE_DELAY_MS must not be negative")
        if annotation['total_lines'] <= 0:
            errors.append("ANNOTATION_TOTAL_LINES must be positive")

        zoom = config['zoom']
        if zoom['min'] <= 0 or zoom['min'] > zoom['max']:
            errors.append(f"Invalid zoom bounds: ZOOM_MIN={zoom['min']} ZOOM_MAX={zoom['max']}")
        elif not zoom['min'] <= zoom['default'] <= zoom['max']:
            errors.append(f"ZOOM_DEFAULT={zoom['default']} is outside [{zoom['min']}, {zoom['max']}]")
        if zoom['step'] <= 0:
            errors.append("ZOOM_STEP must be positive")

        if not 0 < config['web']['port'] < 65536:
            errors.append(f"WEB_PORT out of range: {config['web']['port']}")

        if errors:
            error_msg = "Configuration validation failed:\n" + \
                "\n".join(f"  - {error}" for error in errors)
            logger.error(error_msg)
            raise ValueError(error_msg)

    @staticmethod
    def setup_logging(config: Dict[str, Any]):
        """Setup logging configuration."""
        log_level = getattr(logging, config['logging']['level'], logging.INFO)
        log_format = config['logging']['format']

        handlers = [logging.StreamHandler()]
        if config['logging'].get('file'):
            handlers.append(logging.FileHandler(config['logging']['file']))

        logging.basicConfig(
            level=log_level,
            format=log_format,
            handlers=handlers,
            force=True
        )

        # Set specific logger levels
        logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
        logging.getLogger('PIL').setLevel(logging.WARNING)

        logger.info(
            f"Logging configured at {config['logging']['level']} level")

    @staticmethod
    def get_environment_info() -> Dict[str, Any]:
        """Get information about the current environment."""
        return {
            'python_version': sys.version,
            'platform': os.name,
            'working_directory': os.getcwd(),
            'environment_variables': {
                key: '***' if 'key' in key.lower() or 'secret' in key.lower() or 'password' in key.lower()
                else value
                for key, value in os.environ.items()
                if key.startswith(('ANNOTATION_', 'ZOOM_', 'WEB_', 'LOG_', 'RENDER_'))
            }
        }

    @staticmethod
    def create_sample_env_file(filepath: str = '.env.sample'):
        """Create a sample environment file with all configuration options."""
        sample_content = f'''# Annotation Surface Configuration
ANNOTATION_HIT_PADDING={DEFAULT_HIT_PADDING}
ANNOTATION_NEAREST_THRESHOLD={DEFAULT_NEAREST_THRESHOLD}
ANNOTATION_BOX_MARGIN={DEFAULT_BOX_MARGIN}
ANNOTATION_SETTLE_DELAY_MS=100
ANNOTATION_TOTAL_LINES={DEFAULT_TOTAL_LINES}

# Zoom Configuration (percent)
ZOOM_DEFAULT={DEFAULT_ZOOM}
ZOOM_MIN={MIN_ZOOM}
ZOOM_MAX={MAX_ZOOM}
ZOOM_STEP={ZOOM_STEP}

# Web Server Configuration
WEB_HOST=0.0.0.0
WEB_PORT=8000

# Logging Configuration
LOG_LEVEL=INFO
LOG_FORMAT={DEFAULT_LOG_FORMAT}
LOG_FILE=

# Output Configuration
RENDER_DIR=renders
'''

        with open(filepath, 'w') as f:
            f.write(sample_content)

        logger.info(f"Sample environment file created: {filepath}")
