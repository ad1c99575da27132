from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..errors import ContentError
from .records import CharacterDefinition, DialogueLine, EndingDefinition, EquipmentLevelDefinition

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)


class ContentProvider(Protocol):
    """Read-only lookups over static game content.

    Every lookup returns the record, or None (empty list for dialogues) when
    nothing matches; callers must not assume presence.
    """

    def get_character(self, char_id: int) -> Optional[CharacterDefinition]: ...

    def get_equipment_level(self, char_id: int, level: int) -> Optional[EquipmentLevelDefinition]: ...

    def get_dialogues(self, scene_id: int, char_id: Optional[int] = None) -> List[DialogueLine]: ...

    def get_ending(self, ending_type: str) -> Optional[EndingDefinition]: ...


def _parse_rows(model: Type[R], rows: Iterable[Mapping[str, Any]], table: str) -> List[R]:
    records: List[R] = []
    for index, row in enumerate(rows):
        try:
            records.append(model.model_validate(dict(row)))
        except ValidationError as e:
            raise ContentError(f"Invalid row {index} in '{table}': {e}") from e
    return records


class ContentCatalog:
    """In-memory ContentProvider built from row dicts (e.g. produced by a CSV reader)."""

    def __init__(
        self,
        characters: Iterable[Mapping[str, Any]] = (),
        equipment_levels: Iterable[Mapping[str, Any]] = (),
        dialogues: Iterable[Mapping[str, Any]] = (),
        endings: Iterable[Mapping[str, Any]] = (),
    ) -> None:
        self._characters: Dict[int, CharacterDefinition] = {
            c.char_id: c for c in _parse_rows(CharacterDefinition, characters, "characters")
        }
        self._levels: Dict[Tuple[int, int], EquipmentLevelDefinition] = {
            (e.char_id, e.level): e for e in _parse_rows(EquipmentLevelDefinition, equipment_levels, "equipment_levels")
        }
        self._dialogues: List[DialogueLine] = sorted(
            _parse_rows(DialogueLine, dialogues, "dialogues"), key=lambda d: d.dialogue_id
        )
        self._endings: Dict[str, EndingDefinition] = {
            e.ending_type: e for e in _parse_rows(EndingDefinition, endings, "endings")
        }
        logger.debug(
            "Content catalog ready: %d characters, %d equipment levels, %d dialogue lines, %d endings",
            len(self._characters),
            len(self._levels),
            len(self._dialogues),
            len(self._endings),
        )

    def get_character(self, char_id: int) -> Optional[CharacterDefinition]:
        return self._characters.get(char_id)

    def get_equipment_level(self, char_id: int, level: int) -> Optional[EquipmentLevelDefinition]:
        return self._levels.get((char_id, level))

    def get_dialogues(self, scene_id: int, char_id: Optional[int] = None) -> List[DialogueLine]:
        return [
            d for d in self._dialogues
            if d.scene_id == scene_id and (char_id is None or d.char_id == char_id)
        ]

    def get_ending(self, ending_type: str) -> Optional[EndingDefinition]:
        return self._endings.get(str(ending_type).strip().upper())
