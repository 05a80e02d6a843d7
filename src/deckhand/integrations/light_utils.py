"""Brightness arithmetic shared by light integrations."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class LightState:
    on: bool
    brightness: Optional[float] = None


def calc_light_state(
    current_brightness: Optional[float],
    brightness: Optional[float],
    rel_brightness: Optional[float],
) -> LightState:
    """Work out the target state for a set action

    With neither option the light goes off. An explicit brightness wins over
    a relative one; a relative change is applied to the current level and
    clamped to [0, 100]. A resulting brightness of 0 turns the light off.
    """
    if brightness is None and rel_brightness is None:
        return LightState(on=False)

    if brightness is None:
        target = (current_brightness or 0.0) + (rel_brightness or 0.0)
        brightness = min(100.0, max(0.0, target))

    if brightness == 0.0:
        return LightState(on=False)
    return LightState(on=True, brightness=brightness)
