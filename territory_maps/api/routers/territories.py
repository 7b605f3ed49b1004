"""Territory image generation endpoints."""

import asyncio
import logging
from typing import Callable, Optional, TypeVar

from fastapi import APIRouter, HTTPException, Request

from ...config import get_config
from ...exceptions import DecodeFailure, EncodeFailure, NetworkFailure
from ...models.territory import CustomBboxRequest
from ...services.throttle_service import RequestThrottler
from ...services.territory_image_service import TerritoryImageService
from ..schemas import (
    CropImageResponse,
    GenerateImageRequest,
    GenerateImageResponse,
    ImageType,
    ThumbnailRequest,
    ThumbnailResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

T = TypeVar("T")


def get_service(request: Request) -> TerritoryImageService:
    """Build a service bound to the application's shared request throttler."""
    throttler: Optional[RequestThrottler] = getattr(request.app.state, "throttler", None)
    return TerritoryImageService(
        config=get_config().to_generation_config(),
        throttler=throttler,
    )


async def run_generation(service: TerritoryImageService, func: Callable[..., T], *args) -> T:
    """Run a blocking generation step off the event loop and map failures to HTTP errors."""
    try:
        return await asyncio.to_thread(func, *args)
    except NetworkFailure as e:
        logger.error("Map provider unreachable: %s", e)
        raise HTTPException(status_code=502, detail=f"Map provider unreachable: {e}")
    except (DecodeFailure, EncodeFailure) as e:
        logger.error("Image processing failed: %s", e)
        raise HTTPException(status_code=500, detail=f"Image processing failed: {e}")
    finally:
        service.close()


@router.post("/generate-image", response_model=GenerateImageResponse)
async def generate_image(body: GenerateImageRequest, request: Request):
    """Generate the standard (rotated, cropped) or large (north-up) image of a territory."""
    service = get_service(request)
    territory = body.territory

    if body.image_type == ImageType.LARGE:
        result = await run_generation(service, service.generate_large, territory, body.options)
        return GenerateImageResponse(
            num=territory.num,
            image_type=ImageType.LARGE,
            image=result.image,
            bbox=result.bbox,
            width=result.width,
            height=result.height,
        )

    result = await run_generation(service, service.generate_standard, territory, body.options)
    return GenerateImageResponse(
        num=territory.num,
        image_type=ImageType.STANDARD,
        image=result.image,
        miniature=result.miniature,
        rotation=result.discovered_rotation,
        width=service.dimensions.final_width,
        height=service.dimensions.final_height,
    )


@router.post("/generate-image-with-crop", response_model=CropImageResponse)
async def generate_image_with_crop(body: CustomBboxRequest, request: Request):
    """Re-generate a large image restricted to a user selected bbox."""
    service = get_service(request)
    result = await run_generation(
        service,
        service.generate_large_with_custom_bbox,
        body.territory,
        body.custom_bbox,
        body.options,
        body.crop_data,
    )
    return CropImageResponse(
        num=body.territory.num,
        image=result.image,
        width=result.width,
        height=result.height,
        bbox=body.custom_bbox,
    )


@router.post("/thumbnail", response_model=ThumbnailResponse)
async def create_thumbnail(body: ThumbnailRequest, request: Request):
    """Build a miniature from an existing standard image."""
    service = get_service(request)
    width, height = service.thumbnail_size
    miniature = await run_generation(service, service.generate_thumbnail_from_image, body.image)
    return ThumbnailResponse(miniature=miniature, width=width, height=height)
