from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from scenecast.api.routes import analysis, batches, credits, images, internal, prompts, renders, templates, users, videos
from scenecast.config import get_settings
from scenecast.core.exceptions import collaborator_exception_handler, global_exception_handler, http_exception_handler, pipeline_exception_handler, request_validation_exception_handler
from scenecast.core.json import ScenecastJSONResponse
from scenecast.core.lifespan import lifespan
from scenecast.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from scenecast.jobs.errors import CollaboratorUnavailableError, PipelineError

settings = get_settings()

app = FastAPI(default_response_class=ScenecastJSONResponse, lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

app.add_middleware(CORSMiddleware, allow_origins=settings.allowed_origins, allow_credentials=True, allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"], allow_headers=["content-type", "authorization"], expose_headers=["content-length", "x-request-id"])


# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(PipelineError, pipeline_exception_handler)
app.add_exception_handler(CollaboratorUnavailableError, collaborator_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": "0.1.0"}


app.include_router(batches.router, prefix="/v1/batches", tags=["batches"])
app.include_router(videos.router, prefix="/v1/videos", tags=["videos"])
app.include_router(users.router, prefix="/v1/users", tags=["users"])
app.include_router(credits.router, prefix="/v1/credits", tags=["credits"])
app.include_router(images.router, prefix="/v1/images", tags=["images"])
app.include_router(renders.router, prefix="/v1/renders", tags=["renders"])
app.include_router(templates.router, prefix="/v1/templates", tags=["templates"])
app.include_router(analysis.router, prefix="/v1/analysis", tags=["analysis"])
app.include_router(prompts.router, prefix="/v1/prompts", tags=["prompts"])
app.include_router(internal.router, prefix="/internal", tags=["tasks"])
