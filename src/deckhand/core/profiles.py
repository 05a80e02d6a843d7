"""Read-only table of named profiles."""

import logging
from typing import Dict, Iterable, List

from ..common.exceptions import UnknownButton, UnknownProfile, ValidationError
from .models import Action, Profile, ProfileButton

logger = logging.getLogger(__name__)


class ProfileStore:
    """Profiles keyed by name, immutable after construction

    Lookups never fall back to a default; callers decide what to do with
    UnknownProfile and UnknownButton.
    """

    def __init__(self, profiles: Iterable[Profile]):
        self._profiles: Dict[str, Profile] = {}
        for profile in profiles:
            if profile.name in self._profiles:
                raise ValidationError(f"Duplicate profile name: {profile.name}")
            self._profiles[profile.name] = profile
        logger.info(f"Loaded {len(self._profiles)} profiles")

    def __contains__(self, name: str) -> bool:
        return name in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)

    def names(self) -> List[str]:
        return list(self._profiles)

    def lookup(self, name: str) -> Profile:
        try:
            return self._profiles[name]
        except KeyError:
            raise UnknownProfile(name) from None

    def button(self, profile: Profile, index: int) -> ProfileButton:
        if not 0 <= index < len(profile.buttons):
            raise UnknownButton(profile.name, index)
        return profile.buttons[index]

    def actions_for(self, profile_name: str, index: int) -> List[Action]:
        """Resolve a (profile, button) press to a copy of its action list"""
        profile = self.lookup(profile_name)
        button = self.button(profile, index)
        return [action.model_copy(deep=True) for action in button.actions]
