"""
Provider Health Tracking

Per-provider counters fed by health checks and capability calls:
- Success/failure totals and consecutive failures
- Rolling average latency
- Outcome of the most recent health check

Used only for diagnostics; selection decisions come from the selector.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional

from utils.logger import logger


# Consecutive call failures after which a provider is reported unhealthy
UNHEALTHY_AFTER_FAILURES = 3


@dataclass
class ProviderHealth:
    """Health metrics for a provider"""
    provider_name: str
    # None until a health check or enough calls have said otherwise
    is_healthy: Optional[bool] = None
    consecutive_failures: int = 0
    total_failures: int = 0
    total_successes: int = 0
    last_failure_time: Optional[datetime] = None
    last_success_time: Optional[datetime] = None
    last_check_time: Optional[datetime] = None
    last_check_healthy: Optional[bool] = None
    average_latency_ms: float = 0.0
    error_messages: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider_name": self.provider_name,
            "is_healthy": self.is_healthy,
            "consecutive_failures": self.consecutive_failures,
            "total_failures": self.total_failures,
            "total_successes": self.total_successes,
            "last_failure_time": self.last_failure_time.isoformat() if self.last_failure_time else None,
            "last_success_time": self.last_success_time.isoformat() if self.last_success_time else None,
            "last_check_time": self.last_check_time.isoformat() if self.last_check_time else None,
            "last_check_healthy": self.last_check_healthy,
            "average_latency_ms": self.average_latency_ms,
            "success_rate": self._success_rate(),
            "recent_errors": list(self.error_messages),
        }

    def _success_rate(self) -> float:
        total = self.total_failures + self.total_successes
        if total == 0:
            return 1.0
        return self.total_successes / total


class ProviderHealthMonitor:
    """Collects health data for every provider the core talks to"""

    def __init__(self, max_latency_samples: int = 100, max_error_messages: int = 10):
        self._health_data: Dict[str, ProviderHealth] = {}
        self._latency_samples: Dict[str, Deque[float]] = {}
        self._max_latency_samples = max_latency_samples
        self._max_error_messages = max_error_messages

    def get_health(self, provider: str) -> ProviderHealth:
        """Get health data for a provider"""
        if provider not in self._health_data:
            self._health_data[provider] = ProviderHealth(provider_name=provider)
        return self._health_data[provider]

    def record_success(self, provider: str, latency_ms: float) -> None:
        """Record a successful capability call"""
        health = self.get_health(provider)
        if health.is_healthy is False:
            logger.info(f"Provider {provider} has recovered")
        health.is_healthy = True
        health.consecutive_failures = 0
        health.total_successes += 1
        health.last_success_time = datetime.now()

        if provider not in self._latency_samples:
            self._latency_samples[provider] = deque(maxlen=self._max_latency_samples)
        self._latency_samples[provider].append(latency_ms)

        samples = self._latency_samples[provider]
        health.average_latency_ms = sum(samples) / len(samples)

    def record_failure(self, provider: str, error: str) -> None:
        """Record a failed capability call"""
        health = self.get_health(provider)
        health.consecutive_failures += 1
        health.total_failures += 1
        health.last_failure_time = datetime.now()

        health.error_messages.append(f"{datetime.now().isoformat()}: {error}")
        health.error_messages = health.error_messages[-self._max_error_messages:]

        if health.consecutive_failures >= UNHEALTHY_AFTER_FAILURES and health.is_healthy is not False:
            health.is_healthy = False
            logger.warning(
                f"Provider {provider} marked unhealthy after "
                f"{health.consecutive_failures} failures"
            )

    def record_check(self, provider: str, healthy: bool, error: Optional[str] = None) -> None:
        """Record the outcome of a health check"""
        health = self.get_health(provider)
        health.last_check_time = datetime.now()
        health.last_check_healthy = healthy
        if healthy:
            health.is_healthy = True
            health.consecutive_failures = 0
        else:
            health.is_healthy = False
            if error:
                health.error_messages.append(f"{datetime.now().isoformat()}: {error}")
                health.error_messages = health.error_messages[-self._max_error_messages:]

    def get_all_health(self) -> Dict[str, Dict[str, Any]]:
        """Get health data for all providers"""
        return {
            provider: health.to_dict()
            for provider, health in self._health_data.items()
        }

    def reset(self) -> None:
        self._health_data.clear()
        self._latency_samples.clear()
