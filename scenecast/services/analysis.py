"""Character and product analysis of reference photos.

A vision model turns the photo into a structured description that later scene prompts
reuse word for word, so a character or product looks the same in every scene. When the
model is not configured, unreachable, or answers with something that is not a complete
description, a built-in description is stored instead and the analysis is marked
``fallback``.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import uuid
from dataclasses import dataclass
from typing import Any, Literal

from scenecast.jobs.errors import CollaboratorUnavailableError
from scenecast.schema.sql import MediaAnalysis
from scenecast.services.analysis_client import VisionAnalyzer
from scenecast.utils.ids import generate_analysis_id
from scenecast.utils.json_parser import parse_json_with_fallback
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

AnalysisKind = Literal["character", "product"]

CHARACTER_REQUIRED_FIELDS = (
  "character.name",
  "character.visualRefinement.facialFeatures.exactEyeColorAndShape",
  "character.voiceProfileSelection.selectedVoice",
  "veo3Consistency.wardrobe",
)

PRODUCT_REQUIRED_FIELDS = (
  "product.name",
  "product.category",
  "product.visualRefinement.physicalCharacteristics.exactSizeAndDimensions",
  "product.veo3Consistency.productPlacement",
)

CHARACTER_PROMPT = """You are an expert cinematic video prompt writer. Analyze this image with extreme precision so the person can be reproduced identically across several video scenes.

Every field needs at least 15 words of concrete detail: exact colors, textures, proportions and shapes. Never write generic descriptions.

Return ONLY a JSON object with this structure:
{
  "character": {
    "name": "professional character name based on appearance",
    "visualRefinement": {
      "facialFeatures": {"exactEyeColorAndShape": "", "distinctNoseStructure": "", "lipFullnessAndShape": "", "subtleWrinklesOrLines": "", "cheekboneProminence": "", "jawlineDefinition": ""},
      "hair": {"preciseColor": "", "exactStyleAndCut": "", "texture": "", "flyawaysOrSpecificStrands": ""},
      "skin": {"skinTone": "", "presenceOfFrecklesMolesScars": "", "skinTexture": ""},
      "buildAndPosture": {"exactBodyType": "", "typicalPosture": ""},
      "clothingAndAccessories": {"specificGarmentTypesAndFit": "", "fabricTextures": "", "specificDetails": "", "jewelry": "", "eyeglassesStyle": ""},
      "demeanorAndExpressions": {"recurringMicroExpressions": "", "feelOfTheirPresence": ""}
    },
    "voiceProfileSelection": {
      "selectedVoice": "Healthcare/Caring | Professional/Business | Creative/Artistic | Heroic/Strong | Friendly/Approachable | Mysterious/Dramatic",
      "voiceDescription": "",
      "selectionReasoning": ""
    },
    "category": "healthcare | business | creative | personal | heroic | other"
  },
  "veo3Consistency": {"wardrobe": "", "physicalTraits": "", "mannerisms": "", "environmentSuggestions": ["", "", ""]},
  "cinematicStyle": ""
}"""

PRODUCT_PROMPT = """You are an expert product photographer and video prompt specialist. Analyze this product image and create product specifications detailed enough that the product looks identical in every video scene.

Every field needs at least 15 words of concrete detail: exact colors, materials, dimensions and distinguishing marks. Never write generic descriptions.

PRODUCT DESCRIPTION FROM THE USER: "{description}"

Return ONLY a JSON object with this structure:
{{
  "product": {{
    "name": "professional product name",
    "category": "tech | fashion | food | health | home | automotive | beauty | sports | other",
    "visualRefinement": {{
      "physicalCharacteristics": {{"exactSizeAndDimensions": "", "colorScheme": "", "materialComposition": "", "shapeAndForm": "", "brandingElements": ""}},
      "visualDetails": {{"surfaceFinish": "", "distinctiveFeatures": "", "packagingElements": "", "lightingInteraction": ""}},
      "contextualInformation": {{"useCase": "", "targetAudience": "", "keySellingPoints": ""}}
    }},
    "veo3Consistency": {{"productPlacement": "", "lightingRequirements": "", "cameraAngles": "", "interactionGuidelines": ""}}
  }},
  "sceneOptimization": {{"bestPresentationAngles": ["", "", ""], "recommendedEnvironments": ["", "", ""], "demonstrationSuggestions": ["", "", ""]}}
}}"""

DEFAULT_PRODUCT_DESCRIPTION = "Professional product with premium design and high-quality construction"

# First keyword found in the cleaned filename wins.
_PRODUCT_DESCRIPTIONS: dict[str, str] = {
  "cup": "Ceramic coffee cup with handle and smooth finish",
  "mug": "Coffee mug with ergonomic handle and durable ceramic construction",
  "coffee": "Coffee-related product with premium design and functionality",
  "tea": "Tea cup or mug with elegant design and heat-resistant properties",
  "headphone": "Professional wireless headphones with premium design and audio quality",
  "earphone": "High-quality earphones with superior sound and comfortable fit",
  "speaker": "Premium wireless speaker with excellent sound quality and modern design",
  "laptop": "High-performance laptop computer with modern design and professional features",
  "phone": "Smartphone with advanced features and sleek premium design",
  "tablet": "Tablet device with high-resolution display and responsive touch interface",
  "computer": "Computer device with professional-grade performance and reliability",
  "watch": "Smart watch with premium materials and elegant design features",
  "camera": "Professional camera with advanced imaging capabilities and ergonomic design",
  "bottle": "Premium bottle with durable construction and functional design",
  "glass": "Drinking glass with clear finish and ergonomic design",
  "bowl": "Serving bowl with smooth finish and practical design",
  "plate": "Dinner plate with durable construction and elegant appearance",
  "shoe": "Footwear with comfortable design and durable construction",
  "shirt": "Clothing item with premium fabric and professional styling",
  "jacket": "Outer garment with quality materials and functional design",
  "book": "Book or publication with professional binding and clear typography",
  "notebook": "Notebook with premium paper and durable binding",
  "pen": "Writing instrument with smooth operation and ergonomic design",
  "chair": "Seating furniture with ergonomic design and quality construction",
  "table": "Table furniture with durable surface and stable construction",
  "lamp": "Lighting fixture with modern design and efficient illumination",
}

_PRODUCT_NAMES: dict[str, str] = {
  "laptop": "Professional Laptop",
  "phone": "Smartphone",
  "tablet": "Tablet Device",
  "watch": "Smart Watch",
  "headphones": "Premium Headphones",
  "camera": "Professional Camera",
  "book": "Professional Guide",
  "software": "Software Solution",
  "app": "Mobile Application",
  "course": "Professional Course",
  "supplement": "Health Supplement",
  "cosmetic": "Beauty Product",
  "clothing": "Fashion Item",
  "jewelry": "Premium Jewelry",
  "tool": "Professional Tool",
}

_PRODUCT_CATEGORIES: tuple[tuple[str, tuple[str, ...]], ...] = (
  ("tech", ("laptop", "computer", "software", "app")),
  ("health", ("health", "supplement", "medical")),
  ("beauty", ("beauty", "cosmetic", "skincare")),
  ("fashion", ("clothing", "fashion", "apparel")),
  ("home", ("home", "furniture", "decor")),
  ("automotive", ("car", "automotive", "vehicle")),
  ("sports", ("sport", "fitness", "exercise")),
  ("food", ("food", "nutrition", "cooking")),
)


@dataclass(frozen=True)
class _Persona:
  keywords: tuple[str, ...]
  category: str
  name: str
  voice: str
  voice_description: str
  reasoning: str


_DEFAULT_PERSONA = _Persona(
  (),
  "business",
  "Alex Professional",
  "Professional/Business",
  "Confident, articulate, professional business tone with natural authority and competence",
  "Professional context and business setting suggests confident, articulate professional voice",
)

_PERSONAS: tuple[_Persona, ...] = (
  _Persona(
    ("beauty", "health", "medical", "doctor", "nurse", "wellness"),
    "healthcare",
    "Dr. Maya Wellness",
    "Healthcare/Caring",
    "Warm, confident, caring tone with professional expertise, a trusted expert who combines technical knowledge with genuine concern for client wellbeing",
    "Healthcare or beauty context suggests a caring expert voice with warmth and trustworthiness",
  ),
  _Persona(
    ("creative", "art", "design", "artist", "studio"),
    "creative",
    "Jordan Creative",
    "Creative/Artistic",
    "Expressive, passionate, creative energy with artistic flair and innovative thinking that inspires others",
    "Creative context suggests an expressive, passionate voice with artistic sensibility",
  ),
  _Persona(
    ("hero", "super", "strong", "leader", "champion"),
    "heroic",
    "Alex Hero",
    "Heroic/Strong",
    "Bold, determined, inspirational tone with unwavering confidence and natural leadership that motivates others",
    "Leadership context suggests a bold, inspirational voice with strength and natural authority",
  ),
  _Persona(
    ("friendly", "warm", "customer", "service", "welcome"),
    "personal",
    "Sam Friendly",
    "Friendly/Approachable",
    "Warm, conversational, engaging tone that makes people feel comfortable, valued, and genuinely welcomed",
    "Service context suggests a warm, approachable voice with natural charm",
  ),
  _Persona(
    ("mystery", "dark", "dramatic", "intense", "shadow"),
    "personal",
    "Morgan Mystery",
    "Mysterious/Dramatic",
    "Deep, intriguing, dramatic tone with captivating presence and subtle intensity that draws people in",
    "Dramatic context suggests an intriguing voice with captivating depth",
  ),
)

_FALLBACK_CHARACTER_BODY: dict[str, Any] = {
  "visualRefinement": {
    "facialFeatures": {
      "exactEyeColorAndShape": "Deep brown almond-shaped eyes with subtle amber flecks that reflect intelligence and natural confidence, well-defined eyelids with naturally arched eyebrows",
      "distinctNoseStructure": "Straight nose with gently rounded tip and proportioned nostrils, creating harmonious facial balance and a refined appearance",
      "lipFullnessAndShape": "Medium-full lips with natural rose undertone and well-defined cupid's bow, corners that naturally curve into a warm smile",
      "subtleWrinklesOrLines": "Subtle laugh lines around the eyes showing warmth and experience, no visible forehead lines",
      "cheekboneProminence": "Naturally defined cheekbones with gentle contour, not overly sharp but balanced with the rest of the face",
      "jawlineDefinition": "Strong yet refined jawline with balanced proportions and confident definition, natural authority without harshness",
    },
    "hair": {
      "preciseColor": "Rich dark brown with natural golden highlights visible in studio lighting, healthy natural color variation with depth",
      "exactStyleAndCut": "Contemporary professional styling with a precise cut, well-groomed and polished presentation",
      "texture": "Natural medium texture with healthy shine and professional maintenance",
      "flyawaysOrSpecificStrands": "Neatly styled with intentional placement and no distracting flyaways",
    },
    "skin": {
      "skinTone": "Even medium complexion with warm undertones and a healthy natural glow",
      "presenceOfFrecklesMolesScars": "Clear complexion with no visible blemishes or distracting features",
      "skinTexture": "Smooth, well-maintained skin with natural radiance and a soft satin finish",
    },
    "buildAndPosture": {
      "exactBodyType": "Medium athletic build with confident presence and a well-proportioned physique",
      "typicalPosture": "Erect and confident posture with relaxed shoulders and engaged, approachable body language",
    },
    "clothingAndAccessories": {
      "specificGarmentTypesAndFit": "Tailored professional attire in navy blue with crisp white accents, fitted and contemporary",
      "fabricTextures": "High-quality cotton blend fabric with a professional finish and clean drape",
      "specificDetails": "Precise stitching, quality buttons and neat collar lines that read as credible and polished",
      "jewelry": "Subtle silver accessories including small stud earrings and a slim professional watch",
      "eyeglassesStyle": "None visible",
    },
    "demeanorAndExpressions": {
      "recurringMicroExpressions": "Confident focus with genuine warmth, attentive eyes and a ready half smile",
      "feelOfTheirPresence": "Approachable expertise that combines professional competence with genuine warmth and natural human connection",
    },
  },
}

_FALLBACK_CHARACTER_CONSISTENCY: dict[str, Any] = {
  "wardrobe": "Tailored professional attire in navy blue with crisp white accents, styled identically in every scene",
  "physicalTraits": "Deep brown almond eyes with amber flecks, rich dark brown hair with golden highlights, even warm-toned complexion, defined cheekbones, refined jawline",
  "mannerisms": "Confident professional gestures with genuine warmth and approachable authority in body language and expression",
  "environmentSuggestions": ["modern professional office with contemporary design", "sleek meeting room", "upscale consultation space with premium finishes"],
}

_FALLBACK_PRODUCT_BODY: dict[str, Any] = {
  "visualRefinement": {
    "physicalCharacteristics": {
      "exactSizeAndDimensions": "Medium-sized consumer product with balanced proportions and an ergonomic design suited to everyday use and close-up presentation",
      "colorScheme": "Modern palette of neutral primary tones with professional accent colors that photograph well under varied lighting",
      "materialComposition": "High-quality materials with a premium finish and professional-grade construction that stays consistent across scenes",
      "shapeAndForm": "Contemporary design with clean lines and an ergonomic form factor that is recognizable from every camera angle",
      "brandingElements": "Clear logo placement and a consistent visual identity that stays visible across presentations",
    },
    "visualDetails": {
      "surfaceFinish": "Smooth professional finish with consistent reflective properties under studio lighting",
      "distinctiveFeatures": "Distinct design elements that make the product instantly recognizable across every scene",
      "packagingElements": "Product only, no packaging",
      "lightingInteraction": "Soft highlights and gentle shadows that keep the surface readable under professional video lighting",
    },
    "contextualInformation": {
      "useCase": "Everyday professional use with broad appeal, suited to demonstration in business and consumer settings",
      "targetAudience": "Professionals and discerning consumers who value quality and reliability",
      "keySellingPoints": "Premium construction, thoughtful features and dependable performance that deliver lasting value",
    },
  },
  "veo3Consistency": {
    "productPlacement": "Position the product prominently in frame with key features and branding visible, same placement and orientation in every scene",
    "lightingRequirements": "Soft key light with subtle fill to highlight product features while keeping its appearance consistent",
    "cameraAngles": "Three-quarter view, front-facing view and detail shots of the key features",
    "interactionGuidelines": "Handle the product confidently and demonstrate its key features naturally",
  },
}

_FALLBACK_SCENE_OPTIMIZATION: dict[str, Any] = {
  "bestPresentationAngles": ["Three-quarter front view showing main features and branding", "Direct front view for feature demonstration", "Close-up detail shots of key selling points"],
  "recommendedEnvironments": ["Professional office with a clean modern background", "Contemporary workspace with neutral lighting", "Clean studio set for product photography"],
  "demonstrationSuggestions": ["Character confidently presenting the key features", "Hands-on demonstration of the product in use", "Short explanation of the main benefits"],
}


def nested_value(data: Any, path: str) -> Any:
  """Walk a dotted path through nested dicts; ``None`` when any step is missing."""
  current = data
  for key in path.split("."):
    if not isinstance(current, dict):
      return None
    current = current.get(key)
  return current


def missing_fields(data: Any, required: tuple[str, ...]) -> list[str]:
  return [path for path in required if not nested_value(data, path)]


def fallback_character(filename: str | None) -> dict[str, Any]:
  """Built-in character description; persona and voice follow keywords in the filename."""
  stem = os.path.splitext(os.path.basename(filename or ""))[0].lower()
  persona = next((persona for persona in _PERSONAS if any(keyword in stem for keyword in persona.keywords)), _DEFAULT_PERSONA)
  character = {"name": persona.name, **copy.deepcopy(_FALLBACK_CHARACTER_BODY)}
  character["voiceProfileSelection"] = {"selectedVoice": persona.voice, "voiceDescription": persona.voice_description, "selectionReasoning": persona.reasoning}
  character["category"] = persona.category
  return {
    "character": character,
    "veo3Consistency": copy.deepcopy(_FALLBACK_CHARACTER_CONSISTENCY),
    "cinematicStyle": "Professional cinematography with confident lighting that emphasizes competence and trustworthiness while keeping human warmth",
  }


def description_from_filename(filename: str | None) -> str:
  stem = os.path.splitext(os.path.basename(filename or ""))[0].lower()
  cleaned = "".join(" " if char in "-_" else char for char in stem if not char.isdigit()).strip()
  for keyword, description in _PRODUCT_DESCRIPTIONS.items():
    if keyword in cleaned:
      return description
  return DEFAULT_PRODUCT_DESCRIPTION


def guess_product_name(description: str) -> str:
  words = description.lower().split()
  for keyword, name in _PRODUCT_NAMES.items():
    if any(keyword in word for word in words):
      return name
  return "Professional Product"


def guess_product_category(description: str) -> str:
  text = description.lower()
  for category, keywords in _PRODUCT_CATEGORIES:
    if any(keyword in text for keyword in keywords):
      return category
  return "other"


def fallback_product(description: str) -> dict[str, Any]:
  product = {"name": guess_product_name(description), "category": guess_product_category(description), **copy.deepcopy(_FALLBACK_PRODUCT_BODY)}
  return {"product": product, "sceneOptimization": copy.deepcopy(_FALLBACK_SCENE_OPTIMIZATION)}


async def _ask_model(analyzer: VisionAnalyzer | None, prompt: str, image: bytes, mime_type: str, required: tuple[str, ...], kind: AnalysisKind) -> dict[str, Any] | None:
  """Return the model's validated analysis, or ``None`` when the built-in one must be used."""
  if analyzer is None:
    logger.info("No analysis model configured; using the built-in %s description", kind)
    return None
  try:
    reply = await analyzer.describe(prompt, image, mime_type)
  except CollaboratorUnavailableError as exc:
    logger.warning("%s analysis unavailable, using fallback: %s", kind.capitalize(), exc)
    return None

  try:
    data = parse_json_with_fallback(reply)
  except json.JSONDecodeError:
    logger.warning("%s analysis reply was not JSON, using fallback", kind.capitalize())
    return None
  missing = missing_fields(data, required)
  if missing:
    logger.warning("%s analysis missing required fields %s, using fallback", kind.capitalize(), missing)
    return None
  return data


async def analyze_character(session: AsyncSession, *, user_id: uuid.UUID, image: bytes, mime_type: str, filename: str | None, analyzer: VisionAnalyzer | None) -> MediaAnalysis:
  data = await _ask_model(analyzer, CHARACTER_PROMPT, image, mime_type, CHARACTER_REQUIRED_FIELDS, "character")
  method = "openai" if data is not None else "fallback"
  if data is None:
    data = fallback_character(filename)
  character = data["character"]
  return await _store(session, user_id=user_id, kind="character", name=str(character["name"]), category=character.get("category"), method=method, analysis=data, filename=filename, description=None)


async def analyze_product(session: AsyncSession, *, user_id: uuid.UUID, image: bytes, mime_type: str, filename: str | None, description: str | None, analyzer: VisionAnalyzer | None) -> MediaAnalysis:
  description = (description or "").strip() or description_from_filename(filename)
  data = await _ask_model(analyzer, PRODUCT_PROMPT.format(description=description), image, mime_type, PRODUCT_REQUIRED_FIELDS, "product")
  method = "openai" if data is not None else "fallback"
  if data is None:
    data = fallback_product(description)
  product = data["product"]
  return await _store(session, user_id=user_id, kind="product", name=str(product["name"]), category=product.get("category"), method=method, analysis=data, filename=filename, description=description)


async def _store(session: AsyncSession, *, user_id: uuid.UUID, kind: AnalysisKind, name: str, category: Any, method: str, analysis: dict[str, Any], filename: str | None, description: str | None) -> MediaAnalysis:
  record = MediaAnalysis(
    analysis_id=generate_analysis_id(name),
    user_id=user_id,
    kind=kind,
    name=name,
    category=str(category) if category else None,
    method=method,
    analysis=analysis,
    source_filename=filename,
    description=description,
  )
  session.add(record)
  await session.commit()
  logger.info("Stored %s analysis %s for user %s method=%s", kind, record.analysis_id, user_id, method)
  return record


async def get_analysis(session: AsyncSession, user_id: uuid.UUID, analysis_id: str, *, kind: AnalysisKind | None = None) -> MediaAnalysis | None:
  """Load one of the caller's analyses; other users' analyses are invisible."""
  stmt = select(MediaAnalysis).where(MediaAnalysis.analysis_id == analysis_id, MediaAnalysis.user_id == user_id)
  if kind is not None:
    stmt = stmt.where(MediaAnalysis.kind == kind)
  return (await session.execute(stmt)).scalar_one_or_none()


async def list_analyses(session: AsyncSession, user_id: uuid.UUID, *, kind: AnalysisKind | None = None, limit: int = 50) -> list[MediaAnalysis]:
  stmt = select(MediaAnalysis).where(MediaAnalysis.user_id == user_id)
  if kind is not None:
    stmt = stmt.where(MediaAnalysis.kind == kind)
  stmt = stmt.order_by(MediaAnalysis.created_at.desc()).limit(max(1, min(limit, 100)))
  return list((await session.execute(stmt)).scalars().all())
