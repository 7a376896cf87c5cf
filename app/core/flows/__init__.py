"""
Flow Definitions Module

Parses, validates and caches the declarative per-tenant conversation flows.

Usage:
    from app.core.flows import get_flow_cache

    flow = get_flow_cache().get_or_load("broker")
    menu = flow.get_state("MENU")
"""

from app.core.flows.exceptions import FlowConfigError, FlowValidationError
from app.core.flows.models import (
    INITIAL_STATE,
    FlowDefinition,
    FlowList,
    FlowRow,
    FlowSection,
    FlowState,
    InteractiveListState,
    SchedulingHook,
    TextState,
)
from app.core.flows.loader import load_flow_definition, parse_flow_definition
from app.core.flows.cache import ConfigCache, create_flow_cache, get_flow_cache

__all__ = [
    # Errors
    "FlowConfigError",
    "FlowValidationError",
    # Models
    "INITIAL_STATE",
    "FlowDefinition",
    "FlowList",
    "FlowRow",
    "FlowSection",
    "FlowState",
    "InteractiveListState",
    "SchedulingHook",
    "TextState",
    # Loading
    "load_flow_definition",
    "parse_flow_definition",
    # Cache
    "ConfigCache",
    "create_flow_cache",
    "get_flow_cache",
]
