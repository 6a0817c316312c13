"""
Video endpoints.

Video creation from uploaded images, music library listing and image
prefix discovery.
"""

from pathlib import Path
from typing import List, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import FileResponse, JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.background import BackgroundTask
from shared.config import settings
from shared.errors import CompositionError, InputError
from shared.logging import get_logger
from shared.models.composition import CompositionOptions, PerformanceProfile
from modules.slideshow.config import DEFAULT_DURATION_PER_IMAGE, DEFAULT_FPS
from modules.slideshow.lifecycle import ProcessLifecycleManager
from modules.slideshow.music import list_music_files, resolve_music_path
from modules.slideshow.natural_order import list_image_prefixes
from modules.slideshow.process import compose, job_workspace
from modules.slideshow.utils import remove_paths
from api_gateway.dependencies import get_lifecycle
from api_gateway.services.staging import stage_uploads

logger = get_logger(__name__)

router = APIRouter()


def _optional_int(value: Optional[str], field: str) -> Optional[int]:
    """Form fields arrive as strings; blank means unset."""
    if value is None or not str(value).strip():
        return None
    try:
        return int(str(value).strip())
    except ValueError as e:
        raise InputError(f"{field} must be an integer") from e


def build_options(
    duration_per_image: str,
    fps: str,
    width: Optional[str],
    height: Optional[str],
    performance_mode: str
) -> CompositionOptions:
    """
    Validate raw form values into CompositionOptions.

    Raises:
        InputError: If any value is invalid
    """
    try:
        profile = PerformanceProfile((performance_mode or "normal").strip().lower())
    except ValueError as e:
        raise InputError(f"performanceMode must be 'normal' or 'low', got {performance_mode!r}") from e

    try:
        return CompositionOptions(
            duration_per_image=float(duration_per_image),
            fps=int(fps),
            width=_optional_int(width, "width"),
            height=_optional_int(height, "height"),
            performance_profile=profile
        )
    except (ValueError, PydanticValidationError) as e:
        raise InputError(f"Invalid video parameters: {e}") from e


def _error_response(error: CompositionError) -> JSONResponse:
    status_code = (
        status.HTTP_400_BAD_REQUEST if isinstance(error, InputError)
        else status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "message": "Error creating video",
            "error": error.to_dict()
        }
    )


@router.post("/create-video")
async def create_video(
    images: Optional[List[UploadFile]] = File(None),
    duration_per_image: str = Form(str(DEFAULT_DURATION_PER_IMAGE), alias="durationPerImage"),
    fps: str = Form(str(DEFAULT_FPS)),
    width: Optional[str] = Form(None),
    height: Optional[str] = Form(None),
    selected_music: Optional[str] = Form(None, alias="selectedMusic"),
    performance_mode: str = Form("normal", alias="performanceMode"),
    lifecycle: ProcessLifecycleManager = Depends(get_lifecycle)
):
    """
    Create a video from uploaded images.

    Args:
        images: Image files; original filenames decide the order
        duration_per_image: Seconds each image is shown (default: 5)
        fps: Output frame rate (default: 30)
        width: Output width (default: first image's width)
        height: Output height (default: first image's height)
        selected_music: Music library filename (optional)
        performance_mode: "normal" or "low"
        lifecycle: Process registry of the running app

    Returns:
        The final MP4 file, or a structured error
    """
    job_id = uuid4()

    try:
        if images and len(images) > settings.max_upload_images:
            raise InputError(f"Too many images: at most {settings.max_upload_images} per request")
        options = build_options(duration_per_image, fps, width, height, performance_mode)
        music_path = resolve_music_path(Path(settings.music_dir), selected_music)
        if music_path is not None:
            options = options.model_copy(update={"music_track": music_path})

        async with job_workspace(job_id) as work_dir:
            assets = await stage_uploads(images or [], work_dir)
            result = await compose(
                assets,
                options,
                lifecycle=lifecycle,
                job_id=job_id,
                work_dir=work_dir
            )
    except CompositionError as e:
        logger.error(
            f"Error creating video: {e.message}",
            extra={"job_id": str(job_id), "kind": e.kind}
        )
        return _error_response(e)

    # Served outputs (and the silent intermediate when music was added) are
    # removed once the response body has been sent
    served = {result.output_path, result.silent_video_path}
    return FileResponse(
        result.output_path,
        media_type="video/mp4",
        filename=result.output_path.name,
        background=BackgroundTask(remove_paths, sorted(served), job_id=result.job_id)
    )


@router.get("/music-files")
async def get_music_files():
    """
    List available background music.

    Returns:
        {"success": true, "musicFiles": [...]}
    """
    try:
        music_files = list_music_files(Path(settings.music_dir))
    except OSError as e:
        logger.error(f"Error getting music files: {e}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "message": "Error getting music files", "error": str(e)}
        )
    return {"success": True, "musicFiles": music_files}


@router.get("/image-prefixes")
async def get_image_prefixes(image_folder: str = Query(..., alias="imageFolder")):
    """
    List distinct image base labels in a folder.

    Returns:
        {"success": true, "prefixes": [...]}, 400 if the folder does not exist
    """
    folder = Path(image_folder)
    if not folder.is_dir():
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "message": "Image folder does not exist"}
        )
    try:
        prefixes = list_image_prefixes(folder)
    except OSError as e:
        logger.error(f"Error getting image prefixes: {e}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "message": "Error getting image prefixes", "error": str(e)}
        )
    return {"success": True, "prefixes": prefixes}
