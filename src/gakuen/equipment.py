from __future__ import annotations

import logging
from typing import Protocol

from .content.catalog import ContentProvider
from .state.models import CharacterState

logger = logging.getLogger(__name__)


class EquipmentBonusApplier(Protocol):
    """Applies level-based bonuses after an equipment change."""

    def apply(self, char_id: int, character: CharacterState, level: int) -> None: ...


class ContentEquipmentBonuses:
    """Bonus rules backed by the equipment level table.

    Raises ``max_hp`` to the character's base HP plus the tier's HP bonus and
    refills HP. A missing character or tier leaves the character unchanged.
    """

    def __init__(self, content: ContentProvider) -> None:
        self._content = content

    def apply(self, char_id: int, character: CharacterState, level: int) -> None:
        definition = self._content.get_character(char_id)
        tier = self._content.get_equipment_level(char_id, level)
        if definition is None or tier is None:
            logger.debug("No equipment data for character %s level %s; skipping bonuses", char_id, level)
            return
        character.max_hp = definition.base_hp + tier.hp_bonus
        character.hp = character.max_hp
        logger.info("Applied equipment bonuses to %s: max_hp=%d", character.display_name, character.max_hp)
