"""Profile data model and duplex wire frames."""

import re
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

_HEX_COLOR = re.compile(r"^[0-9A-Fa-f]{6}$")


def normalize_color(value: Optional[str]) -> Optional[str]:
    """Normalize a 24-bit RGB hex string to upper case without a leading '#'"""
    if value is None:
        return None
    color = value.strip().lstrip("#")
    if not _HEX_COLOR.match(color):
        raise ValueError(f"invalid color {value!r}, expected RRGGBB hex")
    return color.upper()


# Profile Models
class ButtonState(BaseModel):
    """Display state of a button: icon reference plus overlay color"""

    image: Optional[str] = Field(None, description="Local path or URL of the icon")
    color: Optional[str] = Field(None, description="Overlay color as RRGGBB")

    @field_validator("color")
    @classmethod
    def validate_color(cls, v):
        return normalize_color(v)


class Action(BaseModel):
    """A qualified action with its options written flattened beside it

    ``{"action": "hue::toggle", "light": "Lamp"}`` has the options
    ``{"light": "Lamp"}``. A nested ``options`` object is merged in as well.
    """

    model_config = ConfigDict(extra="allow")

    action: str = Field(..., description="Qualified name <integration>::<action>")

    @model_validator(mode="after")
    def validate_options(self):
        nested = (self.model_extra or {}).get("options")
        if nested is not None and not isinstance(nested, dict):
            raise ValueError("options must be an object")
        return self

    @property
    def qualified_name(self) -> str:
        return self.action

    @property
    def options(self) -> Dict[str, Any]:
        extra = dict(self.model_extra or {})
        nested = extra.pop("options", None) or {}
        extra.update(nested)
        return extra


class ProfileButton(BaseModel):
    """A button slot in a profile"""

    states: List[ButtonState] = Field(default_factory=list)
    actions: List[Action] = Field(default_factory=list)

    @field_validator("states", "actions", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return [] if v is None else v

    @property
    def display_state(self) -> Optional[ButtonState]:
        # Only the first state is rendered
        return self.states[0] if self.states else None


class Profile(BaseModel):
    """Named, ordered set of buttons"""

    name: str
    buttons: List[ProfileButton] = Field(default_factory=list)


# Wire Frames
class ButtonUI(BaseModel):
    """Rendered button as sent to the client"""

    image: Optional[str] = Field(None, description="Base64 encoded PNG")
    color: Optional[str] = None


class ButtonPressed(BaseModel):
    """Client reports a button press"""

    type: Literal["buttonPressed"] = "buttonPressed"
    profile: Optional[str] = None
    button: int = Field(..., ge=0)


class SetButtons(BaseModel):
    """Full layout push"""

    type: Literal["setButtons"] = "setButtons"
    buttons: List[ButtonUI]


class SetButton(BaseModel):
    """Single button push"""

    type: Literal["setButton"] = "setButton"
    index: int = Field(..., ge=0)
    button: ButtonUI


class Ping(BaseModel):
    type: Literal["ping"] = "ping"


class Pong(BaseModel):
    type: Literal["pong"] = "pong"


InboundFrame = Annotated[
    Union[ButtonPressed, Ping, Pong], Field(discriminator="type")
]
OutboundFrame = Union[SetButtons, SetButton, Ping, Pong]

_inbound_adapter = TypeAdapter(InboundFrame)


def parse_inbound(text: str) -> Union[ButtonPressed, Ping, Pong]:
    """Decode an inbound text frame, raises pydantic.ValidationError"""
    return _inbound_adapter.validate_json(text)
