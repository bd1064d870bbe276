from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class PropertyConfig:
    slug: str
    name: str
    displayName: str
    city: str


PROPERTIES: Dict[str, PropertyConfig] = {
    "lamar": PropertyConfig(
        slug="lamar",
        name="Lamar Street",
        displayName="Fields of Comfort Stays • Lamar",
        city="San Antonio, TX",
    ),
    "gabriel": PropertyConfig(
        slug="gabriel",
        name="Gabriel Street",
        displayName="Fields of Comfort Stays • Gabriel",
        city="San Antonio, TX",
    ),
}


def get_property_config(slug: Optional[str]) -> Optional[PropertyConfig]:
    """Registry lookup by slug (case-insensitive); None when unknown."""
    return PROPERTIES.get((slug or "").strip().lower())
