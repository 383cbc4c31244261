"""Best-effort loading of optional integrations.

A capability that cannot be constructed is reported as absent, never as an
error: callers branch on `Capability.available`.
"""

import importlib
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

logger = logging.getLogger("capabilities")

NOISE_CANCELLATION_BVC = "noise_cancellation.bvc"
NOISE_CANCELLATION_BVC_TELEPHONY = "noise_cancellation.bvc_telephony"

# capability id -> (module, factory)
CAPABILITIES: Mapping[str, Tuple[str, str]] = {
    NOISE_CANCELLATION_BVC: ("livekit.plugins.noise_cancellation", "BVC"),
    NOISE_CANCELLATION_BVC_TELEPHONY: ("livekit.plugins.noise_cancellation", "BVCTelephony"),
}


@dataclass(frozen=True)
class Capability:
    capability_id: str
    instance: Any = None
    reason: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.instance is not None


def try_load(
    capability_id: str,
    registry: Mapping[str, Tuple[str, str]] = CAPABILITIES,
) -> Capability:
    """Construct an optional capability, or return it flagged absent.

    Missing modules, missing native libraries, license failures and factory
    errors all end up as an absent Capability with a single warning logged.
    """
    target = registry.get(capability_id)
    if target is None:
        reason = "unknown capability"
        logger.warning("Optional capability %s unavailable, running without it: %s", capability_id, reason)
        return Capability(capability_id, reason=reason)

    module_name, factory_name = target
    try:
        module = importlib.import_module(module_name)
        instance = getattr(module, factory_name)()
    except Exception as e:
        logger.warning("Optional capability %s unavailable, running without it: %s", capability_id, e)
        return Capability(capability_id, reason=str(e) or type(e).__name__)

    if instance is None:
        reason = f"{module_name}.{factory_name}() returned nothing"
        logger.warning("Optional capability %s unavailable, running without it: %s", capability_id, reason)
        return Capability(capability_id, reason=reason)

    logger.info("Optional capability %s loaded", capability_id)
    return Capability(capability_id, instance=instance)
