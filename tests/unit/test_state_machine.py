"""Tests for the flow state machine."""

import pytest
from unittest.mock import MagicMock

from app.core.conversation import FlowStateMachine, InboundMessage, MessageKind
from app.core.flows import ConfigCache, FlowConfigError, parse_flow_definition

FLOW = {
    "version": "1",
    "states": {
        "MENU": {
            "type": "interactive_list",
            "body": "Hola {{name}}",
            "list": {
                "button_text": "Ver",
                "sections": [{"title": "Opciones", "rows": [
                    {"id": "TURNO", "title": "Turno"},
                    {"id": "INFO", "title": "Info"},
                    {"id": "ROTO", "title": "Roto"},
                ]}],
            },
            "on_select_next": {"TURNO": "AGENDA", "INFO": "INFO", "ROTO": "NO_EXISTE"},
        },
        "INFO": {"type": "text", "body": "Info", "on_text_next": "GRACIAS"},
        "GRACIAS": {"type": "text", "body": "Gracias"},
        "AGENDA": {
            "type": "interactive_list",
            "body": "Horarios",
            "list": {"button_text": "Ver", "sections": []},
            "scheduling": {"action": "offer_slots", "next_state": "CONFIRMAR"},
        },
        "CONFIRMAR": {"type": "text", "body": "¿Confirmás?"},
    },
}


@pytest.fixture
def flows():
    """Flow cache preloaded with the test flow."""
    cache = ConfigCache(MagicMock(side_effect=FlowConfigError("x", "not found")))
    cache.set("broker", parse_flow_definition("broker", FLOW))
    return cache


@pytest.fixture
def machine(flows):
    """Create state machine."""
    return FlowStateMachine(flows)


def text(body: str) -> InboundMessage:
    return InboundMessage.text_message("5491155550000", body)


def select(row_id: str) -> InboundMessage:
    return InboundMessage.selection("5491155550000", row_id)


class TestTextMessages:
    """Test free text handling."""

    @pytest.mark.parametrize("body", ["menu", "MENU", "  Menu  ", "mEnU\n"])
    def test_menu_keyword_from_any_state(self, machine, body):
        """Test 'menu' always returns to MENU, handled."""
        for state in ("MENU", "INFO", "GRACIAS", "AGENDA"):
            assert machine.decide("broker", state, text(body)) == ("MENU", True)

    def test_on_text_next(self, machine):
        """Test text follows on_text_next."""
        assert machine.decide("broker", "INFO", text("hola")) == ("GRACIAS", True)

    def test_text_without_transition(self, machine):
        """Test text in a state without on_text_next is unhandled."""
        assert machine.decide("broker", "GRACIAS", text("hola")) == ("MENU", False)

    def test_menus_is_not_menu(self, machine):
        """Test only the exact keyword matches."""
        assert machine.decide("broker", "GRACIAS", text("menus")) == ("MENU", False)


class TestSelections:
    """Test list/button replies."""

    def test_mapped_selection(self, machine):
        """Test on_select_next."""
        assert machine.decide("broker", "MENU", select("INFO")) == ("INFO", True)

    def test_unmapped_selection(self, machine):
        """Test unknown ids fall back to MENU, unhandled."""
        assert machine.decide("broker", "MENU", select("NOPE")) == ("MENU", False)

    def test_selection_in_text_state(self, machine):
        """Test text states have no selections."""
        assert machine.decide("broker", "INFO", select("INFO")) == ("MENU", False)

    def test_target_missing_from_flow(self, machine):
        """Test a transition to an undefined state falls back."""
        assert machine.decide("broker", "MENU", select("ROTO")) == ("MENU", False)

    def test_offered_slot_selection(self, machine):
        """Test picking an offered slot goes to the hook's next_state."""
        decision = machine.decide(
            "broker", "AGENDA", select("SLOT_2"), offered_slot_ids=["SLOT_1", "SLOT_2"]
        )

        assert decision == ("CONFIRMAR", True)

    def test_slot_not_offered(self, machine):
        """Test a slot id that was not offered is unhandled."""
        decision = machine.decide(
            "broker", "AGENDA", select("SLOT_9"), offered_slot_ids=["SLOT_1"]
        )

        assert decision == ("MENU", False)


class TestEdgeCases:
    """Test unknown states, kinds and tenants."""

    def test_unknown_current_state(self, machine):
        """Test a stale session state resets to MENU."""
        assert machine.decide("broker", "FOO", text("hola")) == ("MENU", False)

    def test_other_message_kind(self, machine):
        """Test images, audio, etc. are unhandled."""
        message = InboundMessage(sender="1", kind=MessageKind.OTHER)

        assert machine.decide("broker", "INFO", message) == ("MENU", False)

    def test_unloadable_tenant_raises(self, machine):
        """Test config errors propagate."""
        with pytest.raises(FlowConfigError):
            machine.decide("ghost", "MENU", text("hola"))
