"""
Environment Settings for the Benchmarking Engine

Environment-specific defaults (Development, CI) loaded from environment
variables via python-dotenv. These settings supply the values a benchmark
session falls back to when its BenchmarkConfig leaves them unset: where
reports go, which baseline file to compare against, the regression threshold
and the resource sampling interval.

Key Components:
- python-dotenv loading of a local .env file
- BaseConfig with env-driven defaults shared by every environment
- DevelopmentConfig and CIConfig overrides
- get_config() factory keyed by environment name
"""

import os
from typing import Dict, Optional, Type

from dotenv import load_dotenv

from perfbench.monitoring.logging import get_logger
from perfbench.utils.exceptions import ConfigurationError


# Load environment variables early
load_dotenv()

logger = get_logger(__name__)


def _float_env(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"Environment variable {name} must be numeric",
            details={'variable': name, 'value': raw}
        ) from e


class BaseConfig:
    """
    Base configuration class providing settings shared by all environments.
    """

    ENVIRONMENT = 'base'

    # Output locations
    REPORT_DIR = os.getenv('PERFBENCH_REPORT_DIR', 'performance_reports')
    BASELINE_FILE = os.getenv('PERFBENCH_BASELINE_FILE', '') or None
    HISTORY_DB = os.getenv('PERFBENCH_HISTORY_DB', '') or None
    OUTPUT_FORMATS = [
        fmt.strip() for fmt in os.getenv('PERFBENCH_OUTPUT_FORMATS', 'json,text').split(',') if fmt.strip()
    ]

    # Analysis
    REGRESSION_THRESHOLD = _float_env('PERFBENCH_REGRESSION_THRESHOLD', '10.0')
    MONITOR_INTERVAL = _float_env('PERFBENCH_MONITOR_INTERVAL', '1.0')

    # Load generation
    REQUEST_TIMEOUT = _float_env('PERFBENCH_REQUEST_TIMEOUT', '10.0')
    VERIFY_TLS = os.getenv('PERFBENCH_VERIFY_TLS', 'true').lower() == 'true'

    # Quality gate
    FAIL_ON_REGRESSION = os.getenv('PERFBENCH_FAIL_ON_REGRESSION', 'false').lower() == 'true'

    @classmethod
    def as_dict(cls) -> Dict[str, object]:
        return {
            'environment': cls.ENVIRONMENT,
            'report_dir': cls.REPORT_DIR,
            'baseline_file': cls.BASELINE_FILE,
            'history_db': cls.HISTORY_DB,
            'output_formats': list(cls.OUTPUT_FORMATS),
            'regression_threshold': cls.REGRESSION_THRESHOLD,
            'monitor_interval': cls.MONITOR_INTERVAL,
            'request_timeout': cls.REQUEST_TIMEOUT,
            'verify_tls': cls.VERIFY_TLS,
            'fail_on_regression': cls.FAIL_ON_REGRESSION,
        }


class DevelopmentConfig(BaseConfig):
    """Local development: relaxed TLS, console-friendly output."""

    ENVIRONMENT = 'development'
    VERIFY_TLS = os.getenv('PERFBENCH_VERIFY_TLS', 'false').lower() == 'true'


class CIConfig(BaseConfig):
    """CI pipelines: machine-readable reports and a regression gate."""

    ENVIRONMENT = 'ci'
    OUTPUT_FORMATS = [
        fmt.strip() for fmt in os.getenv('PERFBENCH_OUTPUT_FORMATS', 'json,csv,prometheus').split(',')
        if fmt.strip()
    ]
    FAIL_ON_REGRESSION = os.getenv('PERFBENCH_FAIL_ON_REGRESSION', 'true').lower() == 'true'


config_by_name: Dict[str, Type[BaseConfig]] = {
    'development': DevelopmentConfig,
    'ci': CIConfig,
    'default': DevelopmentConfig,
}


def get_config(environment: Optional[str] = None) -> Type[BaseConfig]:
    """
    Resolve the settings class for an environment.

    Args:
        environment: Environment name, defaults to PERFBENCH_ENV

    Returns:
        Configuration class for the environment

    Raises:
        ConfigurationError: Unknown environment name
    """
    name = (environment or os.getenv('PERFBENCH_ENV', 'default')).lower()
    if name not in config_by_name:
        raise ConfigurationError(
            f"Unknown environment: {name}",
            details={'supported_environments': sorted(config_by_name)}
        )
    config_class = config_by_name[name]
    logger.debug("Resolved environment settings", environment=config_class.ENVIRONMENT)
    return config_class
