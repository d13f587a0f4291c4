"""
Annotation Web Interface

JSON API over the annotation surface:
- Review sessions created from extraction backend responses
- Viewport measurement, zoom and page navigation
- Field arming, token clicks and overlay boxes
- Rendered overlay previews and the submission payload
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from ..core.config_manager import AnnotationConfig
from ..core.extraction_result import ExtractionParseError, parse_extraction_result
from ..core.models import INVOICE_FIELDS, get_field_definition
from ..hitl.overlay_renderer import OverlayRenderer
from ..hitl.review_session import ReviewSession

logger = logging.getLogger(__name__)


class CreateSessionRequest(BaseModel):
    extraction: Any
    filename: Optional[str] = None


class MeasureRequest(BaseModel):
    layout_width: float = Field(..., gt=0)
    layout_height: float = Field(..., gt=0)
    offset_left: float = 0.0
    offset_top: float = 0.0
    natural_width: Optional[float] = None
    natural_height: Optional[float] = None


class ZoomRequest(BaseModel):
    zoom: Optional[float] = None
    direction: Optional[str] = None  # "in" or "out"


class ClickRequest(BaseModel):
    x: float
    y: float
    # with container_left/top set, x and y are device client coordinates
    container_left: Optional[float] = None
    container_top: Optional[float] = None
    scroll_left: float = 0.0
    scroll_top: float = 0.0


class HoverRequest(BaseModel):
    token_index: Optional[int] = None


class FieldValueRequest(BaseModel):
    value: str


def create_app(config: Optional[AnnotationConfig] = None) -> FastAPI:
    """Build the FastAPI app with its own in-memory session registry."""
    annotation_config = config or AnnotationConfig()
    app = FastAPI(title="Invoice Annotation Surface", version="1.0.0")
    sessions: Dict[str, ReviewSession] = {}
    app.state.sessions = sessions

    def get_session(session_id: str) -> ReviewSession:
        session = sessions.get(session_id)
        if not session:
            raise HTTPException(status_code=404, detail="Session not found")
        return session

    def require_field(field_key: str):
        if get_field_definition(field_key) is None:
            raise HTTPException(status_code=404, detail=f"Unknown field: {field_key}")

    @app.get("/api/fields")
    async def list_fields() -> List[Dict[str, Any]]:
        """Correctable invoice fields in display order."""
        return [{"key": f.key, "label": f.label, "required": f.required} for f in INVOICE_FIELDS]

    @app.post("/api/sessions")
    async def create_session(request: CreateSessionRequest):
        try:
            extraction = parse_extraction_result(request.extraction)
        except ExtractionParseError as e:
            raise HTTPException(status_code=400, detail=str(e))

        session = ReviewSession(extraction, config=annotation_config, filename=request.filename)
        sessions[session.session_id] = session
        return session.snapshot()

    @app.get("/api/sessions/{session_id}")
    async def get_session_state(session_id: str):
        return get_session(session_id).snapshot()

    @app.delete("/api/sessions/{session_id}")
    async def close_session(session_id: str):
        session = get_session(session_id)
        session.viewer.dispose()
        del sessions[session_id]
        logger.info(f"Closed review session {session_id}")
        return {"success": True}

    @app.post("/api/sessions/{session_id}/measure")
    async def measure(session_id: str, request: MeasureRequest):
        session = get_session(session_id)
        session.viewer.measure(
            request.layout_width, request.layout_height,
            request.offset_left, request.offset_top,
            request.natural_width, request.natural_height,
        )
        return session.snapshot()

    @app.post("/api/sessions/{session_id}/zoom")
    async def zoom(session_id: str, request: ZoomRequest):
        session = get_session(session_id)
        if request.direction == "in":
            session.zoom_in()
        elif request.direction == "out":
            session.zoom_out()
        elif request.zoom is not None:
            session.set_zoom(request.zoom)
        else:
            raise HTTPException(status_code=400, detail="Provide zoom or direction ('in'/'out')")
        return session.snapshot()

    @app.post("/api/sessions/{session_id}/fields/{field_key}/focus")
    async def focus_field(session_id: str, field_key: str):
        session = get_session(session_id)
        require_field(field_key)
        session.focus_field(field_key)
        return session.snapshot()

    @app.delete("/api/sessions/{session_id}/fields/selection")
    async def clear_field_selection(session_id: str):
        session = get_session(session_id)
        session.focus_field(None)
        return session.snapshot()

    @app.put("/api/sessions/{session_id}/fields/{field_key}")
    async def update_field(session_id: str, field_key: str, request: FieldValueRequest):
        session = get_session(session_id)
        require_field(field_key)
        session.update_field(field_key, request.value)
        return session.snapshot()

    @app.post("/api/sessions/{session_id}/click")
    async def click(session_id: str, request: ClickRequest):
        session = get_session(session_id)
        if request.container_left is not None and request.container_top is not None:
            outcome = session.viewer.click_at_client(
                request.x, request.y,
                request.container_left, request.container_top,
                request.scroll_left, request.scroll_top,
            )
        else:
            outcome = session.viewer.click_at(request.x, request.y)
        return {"outcome": outcome.value, "session": session.snapshot()}

    @app.post("/api/sessions/{session_id}/fields/{field_key}/box-click")
    async def click_field_box(session_id: str, field_key: str):
        session = get_session(session_id)
        require_field(field_key)
        outcome = session.viewer.click_field_box(field_key)
        return {"outcome": outcome.value, "session": session.snapshot()}

    @app.post("/api/sessions/{session_id}/tokens/{token_index}/toggle")
    async def toggle_token(session_id: str, token_index: int):
        session = get_session(session_id)
        outcome = session.viewer.click_token(token_index)
        return {"outcome": outcome.value, "session": session.snapshot()}

    @app.post("/api/sessions/{session_id}/hover")
    async def hover(session_id: str, request: HoverRequest):
        session = get_session(session_id)
        session.viewer.hover(request.token_index)
        return {"highlighted": session.viewer.highlighted}

    @app.get("/api/sessions/{session_id}/overlays")
    async def overlays(session_id: str):
        session = get_session(session_id)
        viewer = session.viewer
        field_box = viewer.field_highlight_box()
        return {
            "ready": viewer.is_ready,
            "box_update_key": viewer.box_update_key,
            "boxes": [o.to_dict() for o in viewer.overlay_boxes()],
            "field_box": field_box.to_style() if field_box else None,
        }

    @app.post("/api/sessions/{session_id}/pages/{page_index}")
    async def go_to_page(session_id: str, page_index: int):
        session = get_session(session_id)
        if not session.go_to_page(page_index):
            raise HTTPException(status_code=404, detail="Page not found")
        return session.snapshot()

    @app.get("/api/sessions/{session_id}/preview")
    async def preview(session_id: str):
        """Current page with token and field overlays drawn in."""
        session = get_session(session_id)
        page = session.viewer.page
        field_key = session.selected_field
        image = OverlayRenderer.render_page(
            page,
            selected=session.viewer.state.selected_indices,
            field_position=session.field_positions.get(field_key) if field_key else None,
        )
        return {
            "page_image": image,
            "mime": "image/png",
            "page_number": page.page_index,
            "total_pages": len(session.extraction.pages),
        }

    @app.get("/api/sessions/{session_id}/submission")
    async def submission(session_id: str, filename: Optional[str] = None):
        return get_session(session_id).build_submission(filename)

    @app.post("/api/sessions/{session_id}/reset")
    async def reset(session_id: str):
        session = get_session(session_id)
        session.reset()
        return session.snapshot()

    return app


app = create_app()
