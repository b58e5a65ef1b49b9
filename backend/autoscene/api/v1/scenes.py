"""Scene endpoints: run the caption pipeline, edit, finalize, browse, delete."""

from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from autoscene.core.config import get_settings
from autoscene.core.dependencies import get_db
from autoscene.core.image_processing import EncodeError, ImageRef, decode_payload
from autoscene.schemas.scene import (
    FinalizeResponse,
    SceneCreateRequest,
    SceneListResponse,
    SceneRecord,
    SceneResponse,
    SceneStatus,
    SceneUpdateRequest,
    status_for_key,
    temp_key,
)
from autoscene.services.scene_editing import delete_scene, list_scenes, update_scene
from autoscene.services.scene_pipeline import ScenePipeline
from autoscene.services.scene_store import NotFoundError, SceneStore

router = APIRouter()


def _scene_response(key: str, record: SceneRecord) -> SceneResponse:
    return SceneResponse(key=key, status=status_for_key(key), scene=record.to_document())


def _resolve_image_path(image_ref: str) -> Path:
    """Resolve *image_ref* under IMAGE_ROOT; refuses anything outside it."""
    settings = get_settings()
    if not settings.image_root:
        raise HTTPException(422, "Image paths are disabled; send the image bytes instead")
    root = Path(settings.image_root).resolve()
    path = (root / image_ref).resolve()
    if path != root and root not in path.parents:
        raise HTTPException(422, "Image path is outside the image root")
    return path


@router.post("/scenes", response_model=SceneResponse, status_code=201, summary="Caption an image and stage it")
async def create_scene(body: SceneCreateRequest, db: Session = Depends(get_db)):
    image_uri = body.image_ref or ""
    try:
        image: ImageRef = decode_payload(body.image) if body.image else _resolve_image_path(body.image_ref)
        record = await ScenePipeline(db).run(image, body.length, image_uri=image_uri)
    except EncodeError as exc:
        raise HTTPException(422, str(exc)) from exc
    return _scene_response(temp_key(record.id), record)


@router.get("/scenes", response_model=SceneListResponse)
def get_scenes(status: SceneStatus = SceneStatus.FINAL, db: Session = Depends(get_db)):
    items = [_scene_response(key, record) for key, record in list_scenes(db, status)]
    return SceneListResponse(items=items)


@router.get("/scenes/{key}", response_model=SceneResponse)
def get_scene(key: str, db: Session = Depends(get_db)):
    try:
        record = SceneStore(db).require(key)
    except NotFoundError as exc:
        raise HTTPException(404, "Scene not found") from exc
    return _scene_response(key, record)


@router.patch("/scenes/{key}", response_model=SceneResponse)
def patch_scene(key: str, body: SceneUpdateRequest, db: Session = Depends(get_db)):
    try:
        record = update_scene(db, key, caption=body.caption, tags=body.tags)
    except NotFoundError as exc:
        raise HTTPException(404, "Scene not found") from exc
    except ValueError as exc:
        raise HTTPException(422, str(exc)) from exc
    return _scene_response(key, record)


@router.post("/scenes/{key}/finalize", response_model=FinalizeResponse, summary="Save a staged scene")
def finalize_scene(key: str, db: Session = Depends(get_db)):
    try:
        permanent_key = ScenePipeline(db).finalize(key)
    except NotFoundError as exc:
        raise HTTPException(404, "Staged scene not found") from exc
    return FinalizeResponse(scene_key=permanent_key)


@router.delete("/scenes/{key}", status_code=204)
def remove_scene(key: str, db: Session = Depends(get_db)):
    try:
        delete_scene(db, key)
    except NotFoundError as exc:
        raise HTTPException(404, "Scene not found") from exc
    return Response(status_code=204)
