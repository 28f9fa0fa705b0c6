"""
SeaNotes - Service Status v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Aggregates configuration and connectivity checks for the backing
services (database, email, AI inference) into one cached health state.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Any

from .models import utcnow, to_iso

logger = logging.getLogger(__name__)


@dataclass
class ServiceStatus:
    """Configuration and connectivity of one backing service."""
    name: str
    configured: bool
    connected: Optional[bool] = None
    required: bool = False
    error: Optional[str] = None
    config_to_review: List[str] = field(default_factory=list)
    description: Optional[str] = None

    @property
    def healthy(self) -> bool:
        return bool(self.configured and self.connected)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "configured": self.configured,
            "connected": self.connected,
            "required": self.required,
        }
        if self.error:
            data["error"] = self.error
        if self.config_to_review:
            data["configToReview"] = list(self.config_to_review)
        if self.description:
            data["description"] = self.description
        return data


class ConfigurableService(ABC):
    """A service that can report its own configuration status."""

    @abstractmethod
    def check_configuration(self) -> ServiceStatus:
        pass

    def is_required(self) -> bool:
        return True


@dataclass
class HealthState:
    is_healthy: bool
    last_checked: datetime
    services: List[ServiceStatus] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isHealthy": self.is_healthy,
            "lastChecked": to_iso(self.last_checked),
            "services": [s.to_dict() for s in self.services],
        }


@dataclass
class ServiceCheck:
    """How to build a service for checking, and its required default if that fails."""
    label: str
    factory: Callable[[], ConfigurableService]
    required_default: bool = True


class StatusService:
    """
    Cached health state over a list of service checks.

    The factories are called on every pass, so a service that failed to
    construct earlier is retried on the next forced check.
    """

    def __init__(self, checks: List[ServiceCheck]):
        self.checks = checks
        self._state: Optional[HealthState] = None
        self._initialized = False
        self._lock = threading.Lock()

    def initialize(self) -> None:
        """Run the first health check. Later calls do nothing."""
        if self._initialized:
            return

        logger.info("Initializing application health checks...")
        try:
            self._perform_health_check()
            if self._state.is_healthy:
                logger.info("All services are healthy")
            else:
                logger.warning("Some services have issues")
        except Exception as e:
            logger.exception(f"Failed to initialize health checks: {e}")
            self._state = HealthState(is_healthy=False, last_checked=utcnow(), services=[])
        self._initialized = True

    @property
    def initialized(self) -> bool:
        return self._initialized

    def is_application_healthy(self) -> bool:
        if self._state is None:
            return False
        return self._state.is_healthy

    def get_health_state(self) -> Optional[HealthState]:
        return self._state

    def force_health_check(self) -> HealthState:
        self._perform_health_check()
        self._initialized = True
        return self._state

    def _perform_health_check(self) -> None:
        with self._lock:
            try:
                statuses = self.check_all_services()
                required = [s for s in statuses if s.required]
                is_healthy = all(s.configured and s.connected for s in required)
                self._state = HealthState(
                    is_healthy=is_healthy,
                    last_checked=utcnow(),
                    services=statuses,
                )
            except Exception as e:
                logger.exception("Failed to perform health check")
                self._state = HealthState(
                    is_healthy=False,
                    last_checked=utcnow(),
                    services=[ServiceStatus(
                        name="Health Check System",
                        configured=False,
                        connected=False,
                        required=True,
                        error=f"Health check failed: {e}",
                    )],
                )

    def check_service(self, check: ServiceCheck) -> ServiceStatus:
        try:
            service = check.factory()
            status = service.check_configuration()
            status.required = service.is_required()
            return status
        except Exception as e:
            logger.warning(f"{check.label} check failed: {e}")
            return ServiceStatus(
                name=check.label,
                configured=False,
                connected=False,
                required=check.required_default,
                error=f"Failed to initialize {check.label.lower()}: {e}",
            )

    def check_all_services(self) -> List[ServiceStatus]:
        return [self.check_service(check) for check in self.checks]


__all__ = [
    "ServiceStatus",
    "ConfigurableService",
    "HealthState",
    "ServiceCheck",
    "StatusService",
]
