from . import analysis, batches, credits, images, internal, prompts, renders, templates, users, videos

__all__ = ["analysis", "batches", "credits", "images", "internal", "prompts", "renders", "templates", "users", "videos"]
