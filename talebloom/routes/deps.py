"""
Shared route dependencies backed by objects built in the app lifespan
"""
from fastapi import Request

from talebloom.services.cloudinary_service import CloudinaryService
from talebloom.services.story_generator import StoryGenerator
from talebloom.services.style_templates import StyleRegistry


def get_story_generator(request: Request) -> StoryGenerator:
    return request.app.state.story_generator


def get_cloudinary_service(request: Request) -> CloudinaryService:
    return request.app.state.story_generator.pipeline.cloudinary


def get_style_registry(request: Request) -> StyleRegistry:
    return request.app.state.story_generator.pipeline.styles
