"""
Flow validation against WhatsApp interactive list limits.

Pure functions: every violation is collected so a broken flow.json can be
fixed in one pass. Lengths are counted in code points (``len`` on ``str``),
which is what the Cloud API counts, not UTF-8 bytes.
"""

from app.core.flows.models import (
    FlowDefinition,
    InteractiveListState,
)

HEADER_MAX = 60
FOOTER_MAX = 60
BUTTON_TEXT_MAX = 20
SECTION_TITLE_MAX = 24
ROW_TITLE_MAX = 24
ROW_DESCRIPTION_MAX = 72


def _too_long(state_name: str, field: str, value: str, limit: int) -> str:
    return f"state={state_name} {field} > {limit} ({len(value)}): {value!r}"


def validate_flow(definition: FlowDefinition) -> list[str]:
    """Check every interactive list state against the channel limits.

    Args:
        definition: Parsed flow definition

    Returns:
        Human-readable violations, empty when the flow is valid
    """
    violations: list[str] = []

    for state_name, state in definition.states.items():
        hook = state.scheduling

        if hook is not None:
            if hook.action == "offer_slots":
                if not isinstance(state, InteractiveListState):
                    violations.append(
                        f"state={state_name} scheduling offer_slots requires an interactive_list state"
                    )
                if not hook.next_state:
                    violations.append(
                        f"state={state_name} scheduling offer_slots requires next_state"
                    )
                if len(hook.section_title) > SECTION_TITLE_MAX:
                    violations.append(
                        _too_long(state_name, "scheduling section_title", hook.section_title, SECTION_TITLE_MAX)
                    )

        if not isinstance(state, InteractiveListState):
            continue

        ui = state.presentation

        if len(ui.header) > HEADER_MAX:
            violations.append(_too_long(state_name, "header", ui.header, HEADER_MAX))
        if len(ui.footer) > FOOTER_MAX:
            violations.append(_too_long(state_name, "footer", ui.footer, FOOTER_MAX))
        if len(ui.button_text) > BUTTON_TEXT_MAX:
            violations.append(_too_long(state_name, "button_text", ui.button_text, BUTTON_TEXT_MAX))

        for section in ui.sections:
            if len(section.title) > SECTION_TITLE_MAX:
                violations.append(
                    _too_long(state_name, "section title", section.title, SECTION_TITLE_MAX)
                )
            for row in section.rows:
                if not row.id:
                    violations.append(f"state={state_name} row id empty (title={row.title!r})")
                if len(row.title) > ROW_TITLE_MAX:
                    violations.append(_too_long(state_name, "row title", row.title, ROW_TITLE_MAX))
                if len(row.description) > ROW_DESCRIPTION_MAX:
                    violations.append(
                        _too_long(state_name, "row description", row.description, ROW_DESCRIPTION_MAX)
                    )

    return violations


def unresolved_transitions(definition: FlowDefinition) -> list[tuple[str, str]]:
    """Transitions whose target state does not exist.

    These do not fail the load; the state machine falls back to MENU when one
    is taken.
    """
    return [
        (source, target)
        for source, target in definition.transitions()
        if not definition.has_state(target)
    ]
