"""
Art style templates for story illustrations
Each style carries a persona for the description/prompt calls and a style
guide appended to the final image prompt.
"""
import enum
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from talebloom.services.errors import UnknownStyleError


class ArtStyle(str, enum.Enum):
    """Illustration aesthetics offered to users"""
    GHIBLI = "ghibli"
    PIXAR = "pixar"
    DISNEY = "disney"


@dataclass(frozen=True)
class StyleTemplate:
    id: str
    name: str
    persona: str
    style_guide: str


ART_STYLES: Dict[str, Dict[str, str]] = {
    "ghibli": {
        "name": "Studio Ghibli",
        "persona": (
            "You are a Studio Ghibli concept artist. You see the world the way Hayao Miyazaki does: "
            "hand-drawn, gentle, full of wonder, with lush nature and warm, nostalgic light. "
            "Describe people and places so another illustrator could paint them in that style."
        ),
        "style_guide": (
            "studio ghibli style, hayao miyazaki, hand-drawn animation, soft watercolor backgrounds, "
            "gentle lighting, whimsical, dreamy atmosphere, warm colors, child-friendly"
        ),
    },
    "pixar": {
        "name": "Pixar 3D",
        "persona": (
            "You are a Pixar character and story artist. You think in expressive 3D characters with "
            "appealing proportions, cinematic lighting and heartfelt moments. "
            "Describe people and places so a 3D artist could model and light them."
        ),
        "style_guide": (
            "pixar style 3d animation, expressive characters, big eyes, soft subsurface lighting, "
            "cinematic composition, vibrant colors, family friendly"
        ),
    },
    "disney": {
        "name": "Classic Disney",
        "persona": (
            "You are a classic Disney animator. You draw fairy-tale worlds with clean ink lines, "
            "graceful characters and a sense of magic in every frame. "
            "Describe people and places so an animator could draw them in that tradition."
        ),
        "style_guide": (
            "classic disney animation style, hand-inked lines, fairy tale atmosphere, "
            "rich saturated colors, magical sparkles, storybook illustration"
        ),
    },
}


class StyleRegistry:
    """Read-only lookup of style templates, built once at startup."""

    def __init__(self, styles: Optional[Mapping[str, Mapping[str, str]]] = None):
        source = styles if styles is not None else ART_STYLES
        self._templates: Dict[str, StyleTemplate] = {
            style_id: StyleTemplate(
                id=style_id,
                name=data["name"],
                persona=data["persona"],
                style_guide=data["style_guide"],
            )
            for style_id, data in source.items()
        }

    def get(self, style_id: str) -> StyleTemplate:
        key = style_id.value if isinstance(style_id, ArtStyle) else style_id
        try:
            return self._templates[key]
        except KeyError:
            raise UnknownStyleError(f"Unknown art style: {key}") from None

    def __contains__(self, style_id: str) -> bool:
        return style_id in self._templates

    def list_styles(self) -> List[Dict[str, str]]:
        """Return all available art styles."""
        return [
            {"id": template.id, "name": template.name}
            for template in self._templates.values()
        ]
