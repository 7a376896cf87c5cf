"""
Flow definition models.

A tenant's flow.json is a named collection of states. Each state is a tagged
variant on ``type``: ``text`` or ``interactive_list``. Unknown tags fail at
parse time, so nothing downstream ever sees an unsupported kind coming from
configuration.

Example flow.json:

    {
      "version": "2",
      "states": {
        "MENU": {
          "type": "interactive_list",
          "body": "Hola {{name}}, ¿en qué te ayudo?",
          "list": {
            "header": "Menú",
            "button_text": "Ver opciones",
            "sections": [{"title": "Opciones", "rows": [
              {"id": "TURNO", "title": "Pedir turno"}
            ]}]
          },
          "on_select_next": {"TURNO": "AGENDA"}
        }
      }
    }
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

INITIAL_STATE = "MENU"
"""State every new, expired or reset conversation starts from."""


class FlowRow(BaseModel):
    """Selectable row inside a list section."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = ""
    title: str = ""
    description: str = ""


class FlowSection(BaseModel):
    """Titled group of rows."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    title: str = ""
    rows: list[FlowRow] = Field(default_factory=list)


class FlowList(BaseModel):
    """Presentation of an interactive list message."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    header: str = ""
    button_text: str = ""
    footer: str = ""
    sections: list[FlowSection] = Field(default_factory=list)


class SchedulingHook(BaseModel):
    """Asks the dispatcher to run the slot engine when entering a state.

    - ``offer_slots``: compute free slots and show them as an extra section;
      picking one moves the conversation to ``next_state``.
    - ``book_slot``: book the slot the user picked before rendering.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    action: Literal["offer_slots", "book_slot"]
    next_state: Optional[str] = None
    section_title: str = "Turnos disponibles"
    empty_text: str = (
        "Por ahora no hay turnos disponibles. Escribí *menu* para volver."
    )


class TextState(BaseModel):
    """Plain text prompt."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: Literal["text"]
    body: str = ""
    on_text_next: Optional[str] = None
    scheduling: Optional[SchedulingHook] = None


class InteractiveListState(BaseModel):
    """Interactive list prompt with selection transitions."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    type: Literal["interactive_list"]
    body: str = ""
    presentation: FlowList = Field(alias="list")
    on_select_next: dict[str, str] = Field(default_factory=dict)
    on_text_next: Optional[str] = None
    scheduling: Optional[SchedulingHook] = None


FlowState = Annotated[
    Union[TextState, InteractiveListState],
    Field(discriminator="type"),
]


class FlowDefinition(BaseModel):
    """Parsed flow.json for one tenant. Shared read-only once cached."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    version: str = ""
    states: dict[str, FlowState] = Field(default_factory=dict)

    def get_state(self, name: str) -> Optional[Union[TextState, InteractiveListState]]:
        """Look up a state by name."""
        return self.states.get(name)

    def has_state(self, name: str) -> bool:
        """Check whether a state exists."""
        return name in self.states

    def transitions(self) -> list[tuple[str, str]]:
        """All (source_state, target_state) pairs declared in the flow."""
        pairs: list[tuple[str, str]] = []
        for name, state in self.states.items():
            if state.on_text_next:
                pairs.append((name, state.on_text_next))
            if isinstance(state, InteractiveListState):
                for target in state.on_select_next.values():
                    if target:
                        pairs.append((name, target))
            if state.scheduling and state.scheduling.next_state:
                pairs.append((name, state.scheduling.next_state))
        return pairs
