import random
from typing import Annotated

from fastapi import Depends

from loom_scheduler.core.config import Settings, get_settings
from loom_scheduler.services.routing import RoutingProvider, get_routing_provider
from loom_scheduler.services.weaver import build_audit_sampler


def get_routing(settings: Annotated[Settings, Depends(get_settings)]) -> RoutingProvider:
    return get_routing_provider(settings)


def get_audit_sampler(settings: Annotated[Settings, Depends(get_settings)]) -> random.Random:
    return build_audit_sampler(settings)
