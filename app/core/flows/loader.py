"""Loads configs/<tenant>/flow.json into a validated FlowDefinition."""

import json
import logging
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from app.core.flows.exceptions import FlowConfigError, FlowValidationError
from app.core.flows.models import INITIAL_STATE, FlowDefinition
from app.core.flows.validation import unresolved_transitions, validate_flow

logger = logging.getLogger(__name__)

FLOW_FILENAME = "flow.json"


def flow_path(config_root: Union[str, Path], tenant: str) -> Path:
    """Path of a tenant's flow file."""
    return Path(config_root) / tenant / FLOW_FILENAME


def parse_flow_definition(tenant: str, raw: dict) -> FlowDefinition:
    """Parse and validate an already-decoded flow document.

    Args:
        tenant: Tenant name (used in error messages)
        raw: Decoded flow.json content

    Returns:
        Validated FlowDefinition

    Raises:
        FlowConfigError: Structure is invalid or there are no states
        FlowValidationError: One or more presentation limits are exceeded
    """
    try:
        definition = FlowDefinition.model_validate(raw)
    except ValidationError as e:
        raise FlowConfigError(tenant, f"invalid flow structure for tenant={tenant}: {e}") from e

    if not definition.states:
        raise FlowConfigError(tenant, f"flow for tenant={tenant} has no states")

    violations = validate_flow(definition)
    if violations:
        raise FlowValidationError(tenant, violations)

    for source, target in unresolved_transitions(definition):
        logger.warning(
            f"tenant={tenant} state={source} points to missing state {target}; "
            f"it will fall back to {INITIAL_STATE}"
        )
    if not definition.has_state(INITIAL_STATE):
        logger.warning(f"tenant={tenant} flow has no {INITIAL_STATE} state")

    return definition


def load_flow_definition(tenant: str, config_root: Union[str, Path]) -> FlowDefinition:
    """Read, parse and validate a tenant's flow.json.

    Raises:
        FlowConfigError: File unreadable, invalid JSON or invalid structure
        FlowValidationError: Presentation limits exceeded
    """
    path = flow_path(config_root, tenant)

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise FlowConfigError(tenant, f"could not read {path}: {e}") from e

    try:
        raw = json.loads(content)
    except json.JSONDecodeError as e:
        raise FlowConfigError(tenant, f"invalid JSON in {path}: {e}") from e

    if not isinstance(raw, dict):
        raise FlowConfigError(tenant, f"invalid JSON in {path}: expected an object")

    definition = parse_flow_definition(tenant, raw)
    logger.info(
        f"Loaded flow for tenant={tenant} version={definition.version or '-'} "
        f"states={len(definition.states)}"
    )
    return definition
