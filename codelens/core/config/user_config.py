"""
User Configuration Manager
Načítá a spravuje konfiguraci inference vrstvy s validací
"""

import yaml
import structlog
from pathlib import Path
from typing import Dict, Any, Optional

from codelens.core.exceptions import ConfigurationError

logger = structlog.get_logger()

DEFAULT_CONFIG: Dict[str, Any] = {
    'inference': {
        'provider': 'openai',
        'model': 'gpt-4-turbo-preview',
        'health_check_model': 'gpt-3.5-turbo',
        'temperature': 0.1,
        'max_tokens': 2000,
        'request_timeout': 30.0
    },
    'circuit_breaker': {
        'enabled': True,
        'failure_threshold': 5,
        'minimum_throughput': 10,
        'expected_error_rate': 0.5,
        'recovery_timeout': 60.0,
        'monitoring_period': 10.0,
        'reset_high_water_mark': 1000
    },
    'rate_limit': {
        'enabled': True,
        'tokens_per_interval': 100,
        'interval': 60.0
    },
    'batch': {
        'size': 5,
        'delay': 1.0
    }
}

VALID_PROVIDERS = ['openai', 'custom']


class UserConfig:
    """Manager pro konfiguraci s validací"""

    def __init__(self, config_path: str = "config/codelens.yaml", create_default: bool = True):
        """
        Args:
            config_path: Cesta ke konfiguračnímu souboru
            create_default: Vytvořit výchozí soubor, pokud neexistuje
        """
        self.config_path = Path(config_path)
        self.create_default = create_default
        self.config: Dict[str, Any] = {}
        self.validation_errors: list = []
        self._load_config()
        self._validate_config()

    def _load_config(self) -> None:
        """Načti konfiguraci ze souboru"""
        if not self.config_path.exists():
            logger.warning("config_not_found", path=str(self.config_path))
            if self.create_default:
                self._create_default_config()
            else:
                self.config = {}
            return

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error("config_load_error", path=str(self.config_path), error=str(e))
            raise ConfigurationError(f"Failed to load config: {e}") from e

        if not isinstance(loaded, dict):
            raise ConfigurationError(
                f"Config root must be a mapping, got {type(loaded).__name__}"
            )

        self.config = loaded
        logger.info("user_config_loaded", path=str(self.config_path))

    def _validate_config(self) -> None:
        """Validuj konfiguraci"""
        self.validation_errors = []

        self._validate_inference_config()
        self._validate_circuit_breaker_config()
        self._validate_rate_limit_config()
        self._validate_batch_config()

        if self.validation_errors:
            logger.warning("config_validation_warnings",
                           errors=self.validation_errors,
                           count=len(self.validation_errors))

    def _validate_inference_config(self) -> None:
        """Validace model konfigurace"""
        provider = self.get('inference.provider', 'openai')
        if provider not in VALID_PROVIDERS:
            self.validation_errors.append(
                f"inference.provider must be one of {VALID_PROVIDERS}, got '{provider}'"
            )

        temp = self._raw('inference.temperature')
        if temp is not None:
            if not isinstance(temp, (int, float)) or isinstance(temp, bool):
                self.validation_errors.append(
                    f"inference.temperature must be number, got {type(temp).__name__}"
                )
            elif temp < 0.0 or temp > 2.0:
                self.validation_errors.append(
                    f"inference.temperature should be between 0.0-2.0, got {temp}"
                )

        max_tokens = self._raw('inference.max_tokens')
        if max_tokens is not None:
            if not isinstance(max_tokens, int) or isinstance(max_tokens, bool):
                self.validation_errors.append(
                    f"inference.max_tokens must be integer, got {type(max_tokens).__name__}"
                )
            elif max_tokens < 10 or max_tokens > 32768:
                self.validation_errors.append(
                    f"inference.max_tokens should be between 10-32768, got {max_tokens}"
                )

        self._check_positive('inference.request_timeout')

    def _validate_circuit_breaker_config(self) -> None:
        """Validace circuit breaker konfigurace"""
        for key in ['failure_threshold', 'minimum_throughput', 'recovery_timeout', 'monitoring_period']:
            self._check_positive(f'circuit_breaker.{key}')

        rate = self._raw('circuit_breaker.expected_error_rate')
        if rate is not None:
            if not isinstance(rate, (int, float)) or isinstance(rate, bool):
                self.validation_errors.append(
                    f"circuit_breaker.expected_error_rate must be number, got {type(rate).__name__}"
                )
            elif rate < 0.0 or rate > 1.0:
                self.validation_errors.append(
                    f"circuit_breaker.expected_error_rate must be between 0.0-1.0, got {rate}"
                )

    def _validate_rate_limit_config(self) -> None:
        """Validace rate limit konfigurace"""
        self._check_positive('rate_limit.tokens_per_interval')
        self._check_positive('rate_limit.interval')

    def _validate_batch_config(self) -> None:
        """Validace batch konfigurace"""
        self._check_positive('batch.size')

        delay = self._raw('batch.delay')
        if delay is not None and (not isinstance(delay, (int, float)) or delay < 0):
            self.validation_errors.append(f"batch.delay must be a number >= 0, got {delay}")

    def _check_positive(self, key_path: str) -> None:
        value = self._raw(key_path)
        if value is None:
            return
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            self.validation_errors.append(
                f"{key_path} must be number, got {type(value).__name__}"
            )
        elif value <= 0:
            self.validation_errors.append(f"{key_path} must be > 0, got {value}")

    def _create_default_config(self) -> None:
        """Vytvoř výchozí konfigurační soubor"""
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

            with open(self.config_path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(DEFAULT_CONFIG, f, default_flow_style=False, sort_keys=False)

        except OSError as e:
            logger.error("config_create_error", error=str(e))
            raise ConfigurationError(f"Failed to create default config: {e}") from e

        self.config = yaml.safe_load(yaml.safe_dump(DEFAULT_CONFIG))
        logger.info("default_config_created", path=str(self.config_path))

    def _raw(self, key_path: str) -> Any:
        """Hodnota bez typové kontroly (None pokud chybí)"""
        value = self.config
        for key in key_path.split('.'):
            if not isinstance(value, dict):
                return None
            value = value.get(key)
        return value

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Získej hodnotu z konfigurace pomocí tečkové notace.

        Int je akceptován tam, kde default je float.

        Args:
            key_path: Cesta ke klíči (např. "inference.model")
            default: Výchozí hodnota, pokud klíč neexistuje

        Returns:
            Hodnota z konfigurace nebo default
        """
        value = self._raw(key_path)
        if value is None:
            return default

        if default is not None and type(value) != type(default):
            if isinstance(default, float) and isinstance(value, int) and not isinstance(value, bool):
                return float(value)
            logger.warning(
                "config_type_mismatch",
                key=key_path,
                expected=type(default).__name__,
                got=type(value).__name__,
                value=str(value)[:100]
            )
            return default

        return value

    def is_valid(self) -> bool:
        """Check if configuration is valid"""
        return len(self.validation_errors) == 0

    def get_validation_errors(self) -> list:
        """Get list of validation errors"""
        return self.validation_errors.copy()


def load_user_config(config_path: Optional[str] = None) -> UserConfig:
    """
    Načti UserConfig (výchozí cesta config/codelens.yaml).

    Raises:
        ConfigurationError: If config cannot be loaded
    """
    return UserConfig(config_path or "config/codelens.yaml")
