"""Scene prompt builder."""

from __future__ import annotations

import pytest

from scenecast.api.models import SceneRequest, SubmitBatchRequest
from scenecast.services import analysis
from scenecast.services.prompts import MAX_DETAIL_CHARS, SceneDraft, build_prompt_set, build_scene_prompt, language_config


def test_plain_scene_prompt_layout() -> None:
  prompt = build_scene_prompt(2, SceneDraft(scene="A sunrise over the harbour."), duration=8, language=language_config("en"))

  assert prompt == (
    "VEO3 SCENE 2 (8-second duration):\n\n"
    "SCENE DESCRIPTION:\nA sunrise over the harbour.\n\n"
    "VEO3 TECHNICAL REQUIREMENTS:\n"
    "- 8-second scene duration\n"
    "- Professional cinematography with native audio\n"
    "- End with medium shot for scene transitions\n\n"
    "CRITICAL: Maintain exact visual consistency across all scenes."
  )


def test_dialogue_carries_language_voice_instructions() -> None:
  prompt = build_scene_prompt(1, SceneDraft(scene="Kitchen.", dialogue="Goedemorgen!"), duration=6, language=language_config("nl"))
  assert 'DIALOGUE (Nederlandse uitspraak, natuurlijke Nederlandse stem):\n"Goedemorgen!"' in prompt
  assert "- 6-second scene duration" in prompt


def test_unknown_language_falls_back_to_english() -> None:
  assert language_config("xx").code == "en"
  assert language_config(None).voice_instructions == "English pronunciation, natural English voice"
  assert language_config("DE").code == "de"


def test_character_and_product_blocks_are_embedded() -> None:
  character = analysis.fallback_character("doctor.jpg")
  product = analysis.fallback_product("Slim laptop computer")

  prompt = build_scene_prompt(1, SceneDraft(scene="Office."), duration=8, language=language_config("en"), character=character, product=product)

  assert "CHARACTER SPECIFICATION (MUST BE EXACT):\n- Name: Dr. Maya Wellness\n- Eyes: Deep brown almond-shaped eyes" in prompt
  refinement = character["character"]["visualRefinement"]
  hair = f"- Hair: {refinement['hair']['preciseColor']} - {refinement['hair']['exactStyleAndCut']}"
  assert hair in prompt
  assert "PRODUCT SPECIFICATION (MUST BE EXACT):\n- Product: Professional Laptop (tech)" in prompt
  assert prompt.index("CHARACTER SPECIFICATION") < prompt.index("PRODUCT SPECIFICATION") < prompt.index("SCENE DESCRIPTION")


def test_missing_and_long_analysis_values() -> None:
  character = {"character": {"name": "N" * 500}}
  prompt = build_scene_prompt(1, SceneDraft(scene="Park."), duration=8, language=language_config("en"), character=character)

  name_line = next(line for line in prompt.splitlines() if line.startswith("- Name: "))
  assert len(name_line) == len("- Name: ") + MAX_DETAIL_CHARS
  assert name_line.endswith("...")
  assert "- Eyes: not specified" in prompt


def test_prompt_set_numbers_and_titles_scenes() -> None:
  prompt_set = build_prompt_set([SceneDraft(scene="Intro", title="Hello"), SceneDraft(scene="Demo", dialogue="  ")], duration=6, language="fr")

  assert prompt_set.prompt_set_id.startswith("enhanced_prompts_")
  assert [(p.scene_number, p.title, p.dialogue) for p in prompt_set.prompts] == [(1, "Hello", None), (2, "Scene 2", None)]
  assert all(p.spoken_language == "fr" and p.duration == 6 and not p.has_character for p in prompt_set.prompts)
  assert prompt_set.metadata == {"totalScenes": 2, "sceneDuration": 6, "spokenLanguage": "fr", "languageName": "French", "hasCharacter": False, "hasProduct": False}


def test_prompt_set_requires_scenes() -> None:
  with pytest.raises(ValueError):
    build_prompt_set([])


def test_prompts_submit_as_a_batch_unchanged() -> None:
  character = analysis.fallback_character(None)
  product = analysis.fallback_product("Insulated bottle")
  drafts = [SceneDraft(scene="S" * 2000, dialogue="D" * 1000, title="T" * 200) for _ in range(10)]

  prompt_set = build_prompt_set(drafts, character=character, product=product)
  request = SubmitBatchRequest(scenes=[SceneRequest(**prompt.to_scene_request()) for prompt in prompt_set.prompts])

  assert len(request.scenes) == 10
  assert request.scenes[0].duration_seconds == 8
  assert request.scenes[0].prompt == prompt_set.prompts[0].prompt
