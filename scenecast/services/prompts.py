"""Scene prompt builder.

Turns short scene drafts plus optional character and product analyses into fully
materialized prompts that can be submitted as a batch unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from scenecast.services.analysis import nested_value
from scenecast.utils.ids import generate_prompt_set_id

DEFAULT_LANGUAGE = "en"
DEFAULT_SCENE_DURATION = 8

# Analysis values are clipped so a full prompt stays inside the scene prompt limit.
MAX_DETAIL_CHARS = 200


@dataclass(frozen=True)
class LanguageConfig:
  code: str
  name: str
  voice_instructions: str


LANGUAGES: dict[str, LanguageConfig] = {
  config.code: config
  for config in (
    LanguageConfig("nl", "Dutch", "Nederlandse uitspraak, natuurlijke Nederlandse stem"),
    LanguageConfig("en", "English", "English pronunciation, natural English voice"),
    LanguageConfig("de", "German", "Deutsche Aussprache, natürliche deutsche Stimme"),
    LanguageConfig("es", "Spanish", "Pronunciación española, voz natural española"),
    LanguageConfig("fr", "French", "Pronunciation française, voix française naturelle"),
    LanguageConfig("it", "Italian", "Pronuncia italiana, voce italiana naturale"),
    LanguageConfig("pt", "Portuguese", "Pronúncia portuguesa, voz portuguesa natural"),
    LanguageConfig("ru", "Russian", "Русское произношение, естественный русский голос"),
    LanguageConfig("ja", "Japanese", "Japanese pronunciation, natural Japanese voice"),
    LanguageConfig("ko", "Korean", "Korean pronunciation, natural Korean voice"),
    LanguageConfig("zh", "Chinese", "Chinese pronunciation, natural Chinese voice"),
    LanguageConfig("ar", "Arabic", "Arabic pronunciation, natural Arabic voice"),
  )
}


def language_config(code: str | None) -> LanguageConfig:
  """Unknown or missing language codes fall back to English."""
  return LANGUAGES.get((code or "").lower(), LANGUAGES[DEFAULT_LANGUAGE])


@dataclass(frozen=True)
class SceneDraft:
  scene: str
  dialogue: str | None = None
  title: str | None = None


@dataclass(frozen=True)
class ScenePrompt:
  scene_number: int
  title: str
  scene: str
  dialogue: str | None
  prompt: str
  duration: int
  has_character: bool
  has_product: bool
  spoken_language: str

  def to_scene_request(self) -> dict[str, Any]:
    """Keyword arguments for a batch ``SceneRequest``."""
    return {"prompt": self.prompt, "duration_seconds": self.duration, "title": self.title, "dialogue": self.dialogue}


@dataclass
class PromptSet:
  prompt_set_id: str
  prompts: list[ScenePrompt]
  scene_duration: int
  spoken_language: str
  has_character: bool
  has_product: bool
  metadata: dict[str, Any] = field(default_factory=dict)


def _clip(value: Any) -> str:
  text = " ".join(str(value).split())
  if len(text) <= MAX_DETAIL_CHARS:
    return text
  return text[: MAX_DETAIL_CHARS - 3].rstrip() + "..."


def _detail(data: dict[str, Any], path: str) -> str:
  value = nested_value(data, path)
  return _clip(value) if value else "not specified"


def character_lines(analysis: dict[str, Any]) -> list[str]:
  refinement = "character.visualRefinement"
  hair_color = _detail(analysis, f"{refinement}.hair.preciseColor")
  hair_style = _detail(analysis, f"{refinement}.hair.exactStyleAndCut")
  return [
    "CHARACTER SPECIFICATION (MUST BE EXACT):",
    f"- Name: {_detail(analysis, 'character.name')}",
    f"- Eyes: {_detail(analysis, f'{refinement}.facialFeatures.exactEyeColorAndShape')}",
    f"- Hair: {hair_color} - {hair_style}",
    f"- Skin: {_detail(analysis, f'{refinement}.skin.skinTone')}",
    f"- Build: {_detail(analysis, f'{refinement}.buildAndPosture.exactBodyType')}",
    f"- Clothing: {_detail(analysis, f'{refinement}.clothingAndAccessories.specificGarmentTypesAndFit')}",
    f"- Demeanor: {_detail(analysis, f'{refinement}.demeanorAndExpressions.feelOfTheirPresence')}",
  ]


def product_lines(analysis: dict[str, Any]) -> list[str]:
  physical = "product.visualRefinement.physicalCharacteristics"
  return [
    "PRODUCT SPECIFICATION (MUST BE EXACT):",
    f"- Product: {_detail(analysis, 'product.name')} ({_detail(analysis, 'product.category')})",
    f"- Size/Dimensions: {_detail(analysis, f'{physical}.exactSizeAndDimensions')}",
    f"- Colors: {_detail(analysis, f'{physical}.colorScheme')}",
    f"- Materials: {_detail(analysis, f'{physical}.materialComposition')}",
    f"- Shape/Form: {_detail(analysis, f'{physical}.shapeAndForm')}",
    f"- Distinctive Features: {_detail(analysis, 'product.visualRefinement.visualDetails.distinctiveFeatures')}",
    f"- Placement: {_detail(analysis, 'product.veo3Consistency.productPlacement')}",
  ]


def build_scene_prompt(
  scene_number: int,
  draft: SceneDraft,
  *,
  duration: int,
  language: LanguageConfig,
  character: dict[str, Any] | None = None,
  product: dict[str, Any] | None = None,
) -> str:
  sections = [f"VEO3 SCENE {scene_number} ({duration}-second duration):"]
  if character:
    sections.append("\n".join(character_lines(character)))
  if product:
    sections.append("\n".join(product_lines(product)))
  sections.append(f"SCENE DESCRIPTION:\n{draft.scene.strip()}")
  if draft.dialogue and draft.dialogue.strip():
    sections.append(f'DIALOGUE ({language.voice_instructions}):\n"{draft.dialogue.strip()}"')
  sections.append(
    "\n".join(
      [
        "VEO3 TECHNICAL REQUIREMENTS:",
        f"- {duration}-second scene duration",
        "- Professional cinematography with native audio",
        "- End with medium shot for scene transitions",
      ]
    )
  )
  sections.append("CRITICAL: Maintain exact visual consistency across all scenes.")
  return "\n\n".join(sections)


def build_prompt_set(
  drafts: list[SceneDraft],
  *,
  duration: int = DEFAULT_SCENE_DURATION,
  language: str | None = DEFAULT_LANGUAGE,
  character: dict[str, Any] | None = None,
  product: dict[str, Any] | None = None,
) -> PromptSet:
  if not drafts:
    raise ValueError("at least one scene is required")
  config = language_config(language)
  prompts = [
    ScenePrompt(
      scene_number=number,
      title=(draft.title or "").strip() or f"Scene {number}",
      scene=draft.scene.strip(),
      dialogue=(draft.dialogue or "").strip() or None,
      prompt=build_scene_prompt(number, draft, duration=duration, language=config, character=character, product=product),
      duration=duration,
      has_character=character is not None,
      has_product=product is not None,
      spoken_language=config.code,
    )
    for number, draft in enumerate(drafts, start=1)
  ]
  return PromptSet(
    prompt_set_id=generate_prompt_set_id(),
    prompts=prompts,
    scene_duration=duration,
    spoken_language=config.code,
    has_character=character is not None,
    has_product=product is not None,
    metadata={
      "totalScenes": len(prompts),
      "sceneDuration": duration,
      "spokenLanguage": config.code,
      "languageName": config.name,
      "hasCharacter": character is not None,
      "hasProduct": product is not None,
    },
  )
