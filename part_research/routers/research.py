import base64
from typing import Any, Literal

from fastapi import APIRouter, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from part_research.schemas.research import ResearchRequest
from part_research.viewmodels.research_vm import ResearchViewModel

router = APIRouter(prefix="/api/research")


class ResearchBody(BaseModel):
    description: str | None = None
    mode: Literal["research", "quick", "parse"] = "research"
    image_url: str | None = None
    context: dict[str, Any] = {}


@router.post("")
async def research_part(body: ResearchBody, request: Request):
    """Research a component from a description and/or image URL."""
    if body.mode == "parse":
        if not (body.description or "").strip():
            return JSONResponse({"error": "Description is required"}, status_code=400)
        vm = await ResearchViewModel.parse_intent(request.app.state.intent_parser, body.description)
        return vm.to_response()

    try:
        research_request = ResearchRequest(
            description=body.description,
            image_ref=body.image_url,
            mode=body.mode,
            context=body.context,
        )
    except ValidationError:
        return JSONResponse({"error": "Description is required"}, status_code=400)

    vm = await ResearchViewModel.research_part(request.app.state.engine, research_request)
    return vm.to_response()


@router.post("/image")
async def research_image(request: Request, file: UploadFile):
    """Identify a component from an uploaded photo."""
    form = await request.form()
    mode = form.get("mode", "research")
    if mode not in ("research", "quick"):
        return JSONResponse({"error": "Invalid mode. Use: research or quick"}, status_code=400)

    data = await file.read()
    if not data:
        return JSONResponse({"error": "No file uploaded"}, status_code=400)
    media_type = file.content_type if (file.content_type or "").startswith("image/") else "image/jpeg"
    image_ref = f"data:{media_type};base64,{base64.b64encode(data).decode('utf-8')}"

    research_request = ResearchRequest(
        description=form.get("description") or None,
        image_ref=image_ref,
        mode=mode,
    )
    vm = await ResearchViewModel.research_part(request.app.state.engine, research_request)
    return vm.to_response()


@router.get("/images")
async def find_images(request: Request, name: str, manufacturer: str | None = None):
    urls = await request.app.state.engine.find_part_images(name, manufacturer)
    return {"image_urls": urls}
