"""
DiagramFlow Backend - FastAPI Application

This is the HTTP face of the diagram document engine.
It provides:
- File operations (new/open/save) and undo/redo for the active document
- A single mutation endpoint taking ordered operation batches
- Auto-layout, spatial sort and drag (node/group move) requests
- Validation and summary read-outs
"""
from typing import Any, Literal, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from diagramflow import (
    NodeMove,
    NotFoundError,
    generate_agent_context,
    resolve_group_geometry,
    validate_diagram,
)
from diagramflow.validation import validation_summary

from .config import CORS_ORIGINS, HOST, PORT
from .diagram_manager import diagram_manager


# --- FastAPI App ---

app = FastAPI(
    title="DiagramFlow API",
    description="Semantic editing, validation and layout of diagram documents",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _require_open():
    if diagram_manager.document is None:
        raise HTTPException(status_code=400, detail="No diagram open")
    return diagram_manager.document


# --- Health Check ---

@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


# --- Diagram State ---

@app.get("/api/diagram")
async def get_diagram():
    """Get the current diagram state."""
    return diagram_manager.get_state()


# --- File Operations ---

@app.post("/api/diagram/new")
async def new_diagram(title: str = Query(default="Untitled Diagram")):
    """Create a new empty diagram."""
    doc = diagram_manager.new_diagram(title=title)
    return {"success": True, "diagram": doc.to_json_dict()}


class OpenDiagramRequest(BaseModel):
    file_path: str


@app.post("/api/diagram/open")
async def open_diagram(request: OpenDiagramRequest):
    """Open a diagram from a `.diagram` JSON file or an exported SVG."""
    try:
        doc = diagram_manager.open_diagram(request.file_path)
        return {
            "success": True,
            "diagram": doc.to_json_dict(),
            "file_path": str(diagram_manager.file_path),
        }
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Failed to open diagram: {e}")


class SaveDiagramRequest(BaseModel):
    file_path: Optional[str] = None


@app.post("/api/diagram/save")
async def save_diagram(request: SaveDiagramRequest):
    """Save the diagram."""
    try:
        path = diagram_manager.save_diagram(request.file_path)
        return {"success": True, "file_path": str(path)}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Failed to save: {e}")


# --- Undo/Redo ---

@app.post("/api/undo")
async def undo():
    """Undo the last write."""
    _require_open()
    doc = diagram_manager.undo()
    if doc:
        return {"success": True, "diagram": doc.to_json_dict()}
    return {"success": False, "message": "Nothing to undo"}


@app.post("/api/redo")
async def redo():
    """Redo the last undone write."""
    _require_open()
    doc = diagram_manager.redo()
    if doc:
        return {"success": True, "diagram": doc.to_json_dict()}
    return {"success": False, "message": "Nothing to redo"}


# --- Operations ---

class OpsRequest(BaseModel):
    ops: list[dict[str, Any]]


@app.post("/api/diagram/ops")
async def apply_operations(request: OpsRequest):
    """
    Apply an ordered batch of semantic operations.

    The batch applies completely or not at all; on failure the error of
    the first failing operation (or of the final validation) is returned.
    """
    _require_open()
    result = diagram_manager.apply_ops(request.ops)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)
    return {"success": True, "diagram": result.document.to_json_dict()}


# --- Layout & Sort ---

class LayoutRequest(BaseModel):
    direction: Optional[Literal["TB", "BT", "LR", "RL"]] = None
    force: bool = False


@app.post("/api/diagram/layout")
async def layout_diagram(request: LayoutRequest):
    """Auto-layout all unpinned nodes (or every node, with force)."""
    _require_open()
    doc = diagram_manager.auto_layout(direction=request.direction, force=request.force)
    return {"success": True, "diagram": doc.to_json_dict()}


class SortRequest(BaseModel):
    group_id: Optional[str] = None


@app.post("/api/diagram/sort")
async def sort_diagram(request: SortRequest):
    """Sort nodes into reading order in the document's layout direction."""
    _require_open()
    result = diagram_manager.sort_nodes(group_id=request.group_id)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)
    return {"success": True, "diagram": result.document.to_json_dict()}


# --- Drag ---

class NodePosition(BaseModel):
    id: str
    x: float
    y: float


class MoveNodesRequest(BaseModel):
    moves: list[NodePosition]


@app.post("/api/nodes/move")
async def move_nodes(request: MoveNodesRequest):
    """Move nodes to explicit positions; moved nodes become pinned."""
    _require_open()
    moves = [NodeMove(node_id=m.id, x=m.x, y=m.y) for m in request.moves]
    doc = diagram_manager.move_nodes(moves)
    return {"success": True, "diagram": doc.to_json_dict()}


class MoveGroupRequest(BaseModel):
    x: float
    y: float


@app.post("/api/groups/{group_id}/move")
async def move_group(group_id: str, request: MoveGroupRequest):
    """Move a group origin to (x, y), carrying its members along."""
    _require_open()
    try:
        doc = diagram_manager.move_group(group_id, request.x, request.y)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "diagram": doc.to_json_dict()}


@app.get("/api/groups/{group_id}/geometry")
async def group_geometry(group_id: str):
    """Rendered origin and size of a group."""
    doc = _require_open()
    group = doc.get_group(group_id)
    if group is None:
        raise HTTPException(status_code=404, detail="Group not found")
    return {"success": True, "geometry": resolve_group_geometry(group, doc.nodes).to_dict()}


# --- Analysis & Validation ---

@app.get("/api/diagram/validate")
async def validate_current_diagram():
    """
    Validate the current diagram for structural and referential issues.

    Returns every error found and a summary.
    """
    doc = _require_open()
    result = validate_diagram(doc)
    return {
        "success": True,
        "errors": result.errors,
        "summary": validation_summary(result),
    }


@app.get("/api/diagram/summary")
async def summarize_current_diagram():
    """Get the agent-readable summary of the current diagram."""
    doc = _require_open()
    return {"success": True, "summary": doc.agent_context or generate_agent_context(doc)}


# --- Run with uvicorn ---

if __name__ == "__main__":
    import uvicorn

    from .logging_config import setup_logging

    setup_logging()
    uvicorn.run(app, host=HOST, port=PORT, log_config=None)
