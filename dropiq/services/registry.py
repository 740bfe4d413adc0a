import logging
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from flask import current_app

from dropiq.auth.hybrid import HybridAuthService
from dropiq.auth.two_factor import TwoFactorAuthService
from dropiq.realtime.alerts import SecurityAlertChannel
from dropiq.services.activity import ActivityPatternAnalyzer
from dropiq.services.activity_detection import ActivityDetector
from dropiq.services.automation import AutomationService, SimulatedExecutor
from dropiq.services.chain_data import ChainDataProvider
from dropiq.services.payments import PaymentGateway
from dropiq.services.preferences import PreferenceService
from dropiq.services.profiles import UserProfileService
from dropiq.services.strategies import StrategyService
from dropiq.services.threat_intel import ThreatIntelFeed
from dropiq.services.token_security import TokenSecurityClient

logger = logging.getLogger(__name__)

EXTENSION_KEY = "dropiq"


@dataclass
class ServiceRegistry:
    payments: PaymentGateway
    chain_data: ChainDataProvider
    token_security: Any
    threat_feed: ThreatIntelFeed
    alerts: SecurityAlertChannel
    two_factor: TwoFactorAuthService
    auth: HybridAuthService
    automation: AutomationService
    strategies: StrategyService
    activity: ActivityPatternAnalyzer
    profiles: UserProfileService
    preferences: PreferenceService
    activity_detection: ActivityDetector


def build_registry(config, socketio, overrides: Optional[Dict[str, Any]] = None) -> ServiceRegistry:
    """Construct every process-scoped service from app config.

    ``overrides`` replaces individual services by field name (tests inject fakes this way).
    """
    overrides = dict(overrides or {})
    unknown = set(overrides) - {f.name for f in fields(ServiceRegistry)}
    if unknown:
        raise ValueError(f"Unknown services: {sorted(unknown)}")

    timeout = config["HTTP_TIMEOUT_SECONDS"]
    two_factor = overrides.pop("two_factor", None) or TwoFactorAuthService()
    services = {
        "payments": PaymentGateway(config["STRIPE_SECRET_KEY"], config["STRIPE_WEBHOOK_SECRET"], config["APP_URL"]),
        "chain_data": ChainDataProvider(config["ALCHEMY_API_KEYS"], timeout=timeout),
        "token_security": TokenSecurityClient(config["GOPLUS_API_URL"], timeout=timeout),
        "threat_feed": ThreatIntelFeed(timeout=timeout, chainabuse_api_key=config.get("CHAINABUSE_API_KEY")),
        "two_factor": two_factor,
        "auth": HybridAuthService(two_factor),
        "automation": AutomationService(SimulatedExecutor(delay=config["AUTOMATION_EXECUTION_DELAY"])),
        "strategies": StrategyService(),
        "activity": ActivityPatternAnalyzer(),
        "profiles": UserProfileService(),
    }
    services.update(overrides)
    if "alerts" not in services:
        services["alerts"] = SecurityAlertChannel(socketio)
    # depend on services that may have been overridden above
    services.setdefault("preferences", PreferenceService(services["activity"]))
    services.setdefault("activity_detection", ActivityDetector(services["chain_data"], services["alerts"]))
    logger.info("Service registry built (overrides: %s)", sorted(overrides) or "none")
    return ServiceRegistry(**services)


def get_services() -> ServiceRegistry:
    return current_app.extensions[EXTENSION_KEY]
