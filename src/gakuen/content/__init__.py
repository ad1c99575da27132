from .catalog import ContentCatalog, ContentProvider
from .records import CharacterDefinition, DialogueLine, EndingDefinition, EquipmentLevelDefinition

__all__ = [
    "CharacterDefinition",
    "ContentCatalog",
    "ContentProvider",
    "DialogueLine",
    "EndingDefinition",
    "EquipmentLevelDefinition",
]
