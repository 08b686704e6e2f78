# codelens/core/config/container.py

"""
Dependency Injection Container
"""

import structlog
import os
from typing import Optional
from dotenv import load_dotenv

from codelens.core.config.user_config import UserConfig, load_user_config
from codelens.core.exceptions import ContainerInitializationError
from codelens.core.ports.i_inference_client import IInferenceClient

from codelens.application.services.prompt_builder import PromptBuilder

from codelens.infrastructure.adapters.ai.models import InferenceConfig
from codelens.infrastructure.adapters.ai.functionality import (
    CircuitBreaker,
    RateLimiter,
    ResponseParser
)
from codelens.infrastructure.adapters.ai.openai_inference_client import OpenAIInferenceClient
from codelens.infrastructure.adapters.ai.inference_orchestrator import InferenceOrchestrator

logger = structlog.get_logger()


class Container:
    """
    Dependency Injection Container
    Builds one breaker + limiter pair per inference endpoint and hands
    them to the orchestrator.
    """

    def __init__(self, config_path: Optional[str] = None,
                 client: Optional[IInferenceClient] = None):
        """
        Args:
            config_path: YAML config path (default CODELENS_CONFIG or config/codelens.yaml)
            client: Pre-built inference client (tests, alternative providers)
        """
        logger.info("container_initialization_started")

        try:
            # Step 1: Environment and configuration
            self._load_environment()
            self.user_config = self._load_user_config(config_path)
            self.inference_config = self._create_inference_config()

            # Step 2: Inference client
            self.inference_client = client or self._create_inference_client()

            # Step 3: Guards (scoped to this endpoint)
            self.circuit_breaker = self._create_circuit_breaker()
            self.rate_limiter = self._create_rate_limiter()

            # Step 4: Prompt / parse services
            self.prompt_builder = PromptBuilder()
            self.response_parser = ResponseParser()

            # Step 5: Orchestrator
            self.orchestrator = self._create_orchestrator()

            logger.info("container_initialization_completed")

        except Exception as e:
            logger.error("container_initialization_failed", error=str(e), exc_info=True)
            raise ContainerInitializationError(f"Failed to initialize container: {e}") from e

    # ========================================
    # ENVIRONMENT & CONFIG
    # ========================================

    def _load_environment(self) -> None:
        """Load environment variables from .env file"""
        load_dotenv()
        api_key_present = bool(os.getenv("OPENAI_API_KEY"))

        logger.info("environment_loaded", openai_key_present=api_key_present)

        if not api_key_present:
            logger.warning(
                "no_api_keys_configured",
                message="OPENAI_API_KEY not found. Remote analysis will fail."
            )

    def _load_user_config(self, config_path: Optional[str]) -> UserConfig:
        """Load and validate user configuration"""
        path = config_path or os.getenv("CODELENS_CONFIG")
        config = load_user_config(path)
        logger.info("user_config_loaded", valid=config.is_valid())
        return config

    def _create_inference_config(self) -> InferenceConfig:
        """Map YAML sections onto InferenceConfig"""
        defaults = InferenceConfig()
        cfg = self.user_config

        return InferenceConfig(
            provider=cfg.get('inference.provider', defaults.provider),
            model=cfg.get('inference.model', defaults.model),
            health_check_model=cfg.get('inference.health_check_model', defaults.health_check_model),
            temperature=cfg.get('inference.temperature', defaults.temperature),
            max_tokens=cfg.get('inference.max_tokens', defaults.max_tokens),
            base_url=os.getenv("CODELENS_BASE_URL") or cfg.get('inference.base_url'),
            request_timeout=cfg.get('inference.request_timeout', defaults.request_timeout),
            circuit_breaker_enabled=cfg.get('circuit_breaker.enabled', defaults.circuit_breaker_enabled),
            failure_threshold=cfg.get('circuit_breaker.failure_threshold', defaults.failure_threshold),
            minimum_throughput=cfg.get('circuit_breaker.minimum_throughput', defaults.minimum_throughput),
            expected_error_rate=cfg.get('circuit_breaker.expected_error_rate', defaults.expected_error_rate),
            recovery_timeout=cfg.get('circuit_breaker.recovery_timeout', defaults.recovery_timeout),
            monitoring_period=cfg.get('circuit_breaker.monitoring_period', defaults.monitoring_period),
            reset_high_water_mark=cfg.get(
                'circuit_breaker.reset_high_water_mark', defaults.reset_high_water_mark
            ),
            half_open_max_calls=cfg.get('circuit_breaker.half_open_max_calls'),
            rate_limit_enabled=cfg.get('rate_limit.enabled', defaults.rate_limit_enabled),
            tokens_per_interval=cfg.get('rate_limit.tokens_per_interval', defaults.tokens_per_interval),
            rate_limit_interval=cfg.get('rate_limit.interval', defaults.rate_limit_interval),
            batch_size=cfg.get('batch.size', defaults.batch_size),
            batch_delay=cfg.get('batch.delay', defaults.batch_delay)
        )

    # ========================================
    # INFERENCE
    # ========================================

    def _create_inference_client(self) -> IInferenceClient:
        """Create OpenAI-compatible client"""
        client = OpenAIInferenceClient(
            api_key=os.getenv("OPENAI_API_KEY"),
            base_url=self.inference_config.base_url,
            timeout=self.inference_config.request_timeout
        )
        logger.debug("inference_client_created", provider=self.inference_config.provider)
        return client

    def _create_circuit_breaker(self) -> CircuitBreaker:
        """Create breaker for the configured endpoint"""
        cfg = self.inference_config
        return CircuitBreaker(
            name=f"inference:{cfg.base_url or cfg.provider}",
            failure_threshold=cfg.failure_threshold,
            recovery_timeout=cfg.recovery_timeout,
            monitoring_period=cfg.monitoring_period,
            expected_error_rate=cfg.expected_error_rate,
            minimum_throughput=cfg.minimum_throughput,
            reset_high_water_mark=cfg.reset_high_water_mark,
            half_open_max_calls=cfg.half_open_max_calls,
            enabled=cfg.circuit_breaker_enabled
        )

    def _create_rate_limiter(self) -> RateLimiter:
        """Create token bucket for the configured endpoint"""
        cfg = self.inference_config
        return RateLimiter(
            name=f"inference:{cfg.base_url or cfg.provider}",
            tokens_per_interval=cfg.tokens_per_interval,
            interval=cfg.rate_limit_interval,
            enabled=cfg.rate_limit_enabled
        )

    def _create_orchestrator(self) -> InferenceOrchestrator:
        """Create main inference orchestrator"""
        orchestrator = InferenceOrchestrator(
            client=self.inference_client,
            config=self.inference_config,
            circuit_breaker=self.circuit_breaker,
            rate_limiter=self.rate_limiter,
            prompt_builder=self.prompt_builder,
            response_parser=self.response_parser
        )
        logger.debug("orchestrator_created")
        return orchestrator


def setup_container(config_path: Optional[str] = None,
                    client: Optional[IInferenceClient] = None) -> Container:
    """
    Setup and initialize dependency injection container

    Returns:
        Fully initialized Container instance

    Raises:
        ContainerInitializationError: If initialization fails
    """
    return Container(config_path=config_path, client=client)
