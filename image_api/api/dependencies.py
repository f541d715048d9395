from fastapi import Request

from image_api.config.settings import Settings
from image_api.container import Container
from image_api.ingestion.service import ImageService


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_image_service(request: Request) -> ImageService:
    return get_container(request).image_service


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
