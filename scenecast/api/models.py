from __future__ import annotations

import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator
from pydantic.alias_generators import to_camel

from scenecast.jobs.models import BatchStatus, OperationStatus, QuotaStatus

MAX_SCENES_PER_BATCH = 10


class CamelModel(BaseModel):
  """Accepts snake_case or camelCase; serializes camelCase."""

  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SceneRequest(CamelModel):
  """One scene prompt to generate."""

  prompt: StrictStr = Field(min_length=1, max_length=8000, description="Fully materialized scene prompt.")
  duration_seconds: int | None = Field(default=None, description="Requested duration; clamped to the vendor window.")
  aspect_ratio: Literal["16:9", "9:16"] = "16:9"
  audio: bool = True
  title: StrictStr | None = Field(default=None, max_length=200)
  dialogue: StrictStr | None = Field(default=None, max_length=2000)
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

  @field_validator("prompt")
  @classmethod
  def _strip_prompt(cls, value: str) -> str:
    stripped = value.strip()
    if not stripped:
      raise ValueError("prompt must not be blank")
    return stripped


class SubmitBatchRequest(CamelModel):
  scenes: list[SceneRequest] = Field(min_length=1, max_length=MAX_SCENES_PER_BATCH)
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class SubmitBatchResponse(CamelModel):
  batch_id: str
  status: BatchStatus
  quota_status: QuotaStatus
  operation_handles: list[str | None]
  estimated_cost: float
  remaining_after_completion: int


class ArtifactModel(CamelModel):
  artifact_id: str
  batch_id: str
  operation_index: int
  title: str
  url: str
  size_bytes: int
  duration_seconds: float
  aspect_ratio: str
  provenance: dict[str, Any] = Field(default_factory=dict)


class OperationModel(CamelModel):
  index: int
  operation_handle: str | None
  status: OperationStatus
  progress: int
  error: str | None = None
  artifact: ArtifactModel | None = None


class BatchCounts(CamelModel):
  total: int
  pending: int
  completed: int
  failed: int
  expired: int
  settled: int


class BatchStatusResponse(CamelModel):
  batch_id: str
  status: BatchStatus
  quota_status: QuotaStatus
  counts: BatchCounts
  operations: list[OperationModel]
  artifacts: list[ArtifactModel]
  estimated_cost: float
  created_at: datetime.datetime
  last_polled_at: datetime.datetime | None = None
  completed_at: datetime.datetime | None = None


class LibraryItem(CamelModel):
  artifact_id: str
  batch_id: str
  operation_index: int
  title: str
  url: str
  size_bytes: int
  duration_seconds: float
  prompt: str
  dialogue: str | None = None
  aspect_ratio: str
  provenance: dict[str, Any] = Field(default_factory=dict)
  created_at: datetime.datetime


class LibraryStatsModel(CamelModel):
  total_videos: int
  total_size_bytes: int
  batch_count: int
  this_month: int


class LibraryResponse(CamelModel):
  items: list[LibraryItem]
  batches: dict[str, list[str]]
  stats: LibraryStatsModel
  page: int
  limit: int
  total: int
  pages: int


class UsageSummaryResponse(CamelModel):
  user_id: str
  email: str
  tier: str
  billing_status: str
  allowance: int
  used: int
  remaining: int
  period_start: datetime.datetime
  credits_available: int
  library: LibraryStatsModel


class CreditBalanceResponse(CamelModel):
  available: int
  used: int
  purchased: int


class CreditPackageModel(CamelModel):
  package_id: str
  name: str
  credits: int
  price: float
  price_in_cents: int
  currency: str
  popular: bool


class ImageCreateRequest(CamelModel):
  prompt: StrictStr = Field(min_length=1, max_length=4000)
  mode: Literal["generate", "edit"] = "generate"
  quality: Literal["low", "medium", "high", "auto"] = "medium"
  size: Literal["1024x1024", "1024x1536", "1536x1024", "auto"] = "1024x1024"
  source_image_urls: list[StrictStr] = Field(default_factory=list, max_length=10)
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class ImageModel(CamelModel):
  image_id: str
  prompt: str
  url: str
  size_bytes: int
  credits_used: int
  source_image_urls: list[str] = Field(default_factory=list)
  created_at: datetime.datetime


class ImageCreateResponse(CamelModel):
  image: ImageModel
  credits_remaining: int


class ImageListResponse(CamelModel):
  items: list[ImageModel]
  page: int
  limit: int
  total: int


class RenderCreateRequest(CamelModel):
  template_id: StrictStr = Field(min_length=1)
  batch_id: StrictStr | None = None
  video_urls: list[StrictStr] = Field(default_factory=list, max_length=MAX_SCENES_PER_BATCH)
  element_names: list[StrictStr] | None = None
  modifications: dict[str, Any] | None = None
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class RenderResponse(CamelModel):
  render_id: str
  status: str
  url: str | None = None
  error: str | None = None
  video_count: int | None = None
  duration_seconds: float | None = None
  file_size: int | None = None


class RenderEditModel(CamelModel):
  render_id: str
  template_id: str
  batch_id: str | None = None
  status: str
  url: str | None = None
  error: str | None = None
  video_count: int
  modifications: dict[str, Any]
  duration_seconds: float | None = None
  file_size: int | None = None
  created_at: datetime.datetime


class RenderEditListResponse(CamelModel):
  items: list[RenderEditModel]
  page: int
  limit: int
  total: int


class AnalysisModel(CamelModel):
  analysis_id: str
  kind: Literal["character", "product"]
  name: str
  category: str | None = None
  method: Literal["openai", "fallback"]
  description: str | None = None
  source_filename: str | None = None
  analysis: dict[str, Any]
  created_at: datetime.datetime


class AnalysisListResponse(CamelModel):
  items: list[AnalysisModel]


class SceneDraftModel(CamelModel):
  scene: StrictStr = Field(min_length=1, max_length=2000)
  dialogue: StrictStr | None = Field(default=None, max_length=1000)
  title: StrictStr | None = Field(default=None, max_length=200)
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class PromptSetRequest(CamelModel):
  scenes: list[SceneDraftModel] = Field(max_length=MAX_SCENES_PER_BATCH)
  character_analysis_id: StrictStr | None = None
  product_analysis_id: StrictStr | None = None
  spoken_language: StrictStr = "en"
  scene_duration: int = Field(default=8, ge=1, le=60)
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class ScenePromptModel(CamelModel):
  scene_number: int
  title: str
  scene: str
  dialogue: str | None = None
  prompt: str
  duration: int
  has_character: bool
  has_product: bool
  spoken_language: str


class PromptSetResponse(CamelModel):
  """Generated prompts plus a batch request that can be submitted unchanged."""

  prompt_set_id: str
  prompts: list[ScenePromptModel]
  batch_request: SubmitBatchRequest
  metadata: dict[str, Any]


class TemplateFieldModel(CamelModel):
  name: StrictStr
  label: StrictStr | None = None
  type: StrictStr = "text"
  default: Any = None
  required: bool = False
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class TemplateCreateRequest(CamelModel):
  template_id: StrictStr = Field(min_length=1, max_length=120, pattern=r"^[A-Za-z0-9_.-]+$")
  name: StrictStr = Field(min_length=1, max_length=200)
  description: StrictStr | None = None
  template_type: StrictStr = "creatomate"
  creatomate_template_id: StrictStr | None = None
  base_template_id: StrictStr | None = None
  preview_video_url: StrictStr = Field(min_length=1)
  thumbnail_url: StrictStr | None = None
  scenes: int = Field(ge=1, le=MAX_SCENES_PER_BATCH)
  duration: int = Field(default=30, ge=1)
  aspect_ratio: Literal["16:9", "9:16", "1:1"] = "9:16"
  fields: list[TemplateFieldModel] = Field(default_factory=list)
  media_slots: list[dict[str, Any]] = Field(default_factory=list)
  creatomate_config: dict[str, Any] | None = None
  category: StrictStr = "other"
  tags: list[StrictStr] = Field(default_factory=list)
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class TemplateUpdateRequest(CamelModel):
  """Partial update; omitted fields keep their stored values."""

  name: StrictStr | None = Field(default=None, min_length=1, max_length=200)
  description: StrictStr | None = None
  creatomate_template_id: StrictStr | None = None
  base_template_id: StrictStr | None = None
  preview_video_url: StrictStr | None = Field(default=None, min_length=1)
  thumbnail_url: StrictStr | None = None
  scenes: int | None = Field(default=None, ge=1, le=MAX_SCENES_PER_BATCH)
  duration: int | None = Field(default=None, ge=1)
  aspect_ratio: Literal["16:9", "9:16", "1:1"] | None = None
  fields: list[TemplateFieldModel] | None = None
  media_slots: list[dict[str, Any]] | None = None
  creatomate_config: dict[str, Any] | None = None
  category: StrictStr | None = None
  tags: list[StrictStr] | None = None
  is_active: bool | None = None
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class TemplateModel(CamelModel):
  template_id: str
  name: str
  description: str | None = None
  template_type: str
  creatomate_template_id: str | None = None
  base_template_id: str | None = None
  preview_video_url: str
  thumbnail_url: str | None = None
  scenes: int
  duration: int
  aspect_ratio: str
  fields: list[dict[str, Any]]
  media_slots: list[dict[str, Any]]
  category: str
  tags: list[str]
  is_active: bool
  usage_count: int
  created_at: datetime.datetime


class TemplateListResponse(CamelModel):
  items: list[TemplateModel]
  total: int
