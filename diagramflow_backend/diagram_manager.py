"""
Diagram Manager - Active document state, history and persistence.

This module implements:
- Single active document (one diagram open at a time)
- The write pipeline: engine call -> validation -> history -> new state
- Bounded undo/redo via diagramflow.history
- JSON file persistence, plus reading documents embedded in SVG metadata

All diagram logic lives in the `diagramflow` package; this class only
decides which document is current.
"""

import json
from pathlib import Path
from typing import Any, Callable, Optional

from loguru import logger

from diagramflow import (
    DiagramDocument,
    HistoryManager,
    LayoutConfig,
    NodeMove,
    OpResult,
    apply_ops,
    apply_partial_layout,
    auto_layout,
    create_empty_document,
    embed_diagram_in_svg,
    extract_diagram_from_svg,
    generate_agent_context,
    generate_id,
    move_group,
    move_nodes,
    parse_diagram_json,
    parse_op,
)
from diagramflow.models import utc_timestamp
from diagramflow.operations import SortNodesOp

from .config import HISTORY_MAX


class DiagramManager:
    """
    Manages the active document, its history and persistence.

    Every mutation follows the same path:
    - the engine computes a new document from the current one
    - the pre-write snapshot is recorded for undo
    - the new document becomes current and change callbacks fire

    A failed operation batch leaves both the document and the history as
    they were.
    """

    def __init__(
        self,
        max_history: int = HISTORY_MAX,
        id_generator: Callable[[], str] = generate_id,
        layout_config: Optional[LayoutConfig] = None,
    ):
        self._document: Optional[DiagramDocument] = None
        self._file_path: Optional[Path] = None
        self._history = HistoryManager(max_history=max_history)
        self._id_generator = id_generator
        self._layout_config = layout_config
        self._dirty = False  # True if unsaved changes exist
        self._on_change_callbacks: list[Callable] = []

    # --- Properties ---

    @property
    def document(self) -> Optional[DiagramDocument]:
        """Get the current document."""
        return self._document

    @property
    def file_path(self) -> Optional[Path]:
        """Get the current file path."""
        return self._file_path

    @property
    def is_dirty(self) -> bool:
        """Check if there are unsaved changes."""
        return self._dirty

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    # --- Change Callbacks ---

    def on_change(self, callback: Callable):
        """Register a callback for document changes."""
        self._on_change_callbacks.append(callback)

    def _notify_change(self):
        for callback in self._on_change_callbacks:
            callback()

    # --- Internal write path ---

    def _require_document(self) -> DiagramDocument:
        if self._document is None:
            raise ValueError("No diagram open")
        return self._document

    def _stamp(self, doc: DiagramDocument) -> DiagramDocument:
        """Refresh the modified time and agent summary of a new document."""
        doc.meta.modified = utc_timestamp()
        doc.agent_context = generate_agent_context(doc)
        return doc

    def _commit(self, previous: DiagramDocument, new: DiagramDocument) -> DiagramDocument:
        self._history.record(previous)
        self._document = new
        self._dirty = True
        self._notify_change()
        return new

    def _activate(self, doc: DiagramDocument, path: Optional[Path]) -> DiagramDocument:
        # Switching documents invalidates history
        self._document = doc
        self._file_path = path
        self._history.reset()
        self._dirty = False
        self._notify_change()
        return doc

    # --- File Operations ---

    def new_diagram(self, title: str = "Untitled Diagram") -> DiagramDocument:
        """Create a new empty document."""
        return self._activate(create_empty_document(title), None)

    def load_document(self, doc: DiagramDocument, file_path: Optional[str | Path] = None) -> DiagramDocument:
        """Make an in-memory document the active one."""
        return self._activate(doc.clone(), Path(file_path) if file_path else None)

    def open_diagram(self, file_path: str | Path) -> DiagramDocument:
        """
        Open a document from a `.diagram` JSON file or an exported SVG.

        Raises:
            FileNotFoundError: if the file does not exist
            ValueError: if the file holds no valid document
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Diagram file not found: {path}")

        text = path.read_text(encoding="utf-8")
        if path.suffix.lower() == ".svg":
            extracted = extract_diagram_from_svg(text)
            if extracted is None:
                raise ValueError(f"No diagram metadata found in {path}")
            text = extracted

        parsed = parse_diagram_json(text)
        if parsed.doc is None:
            raise ValueError(f"Invalid diagram: {'; '.join(parsed.errors)}")

        logger.info("Opened {} ({} nodes, {} edges)", path, len(parsed.doc.nodes), len(parsed.doc.edges))
        return self._activate(parsed.doc, path)

    def save_diagram(self, file_path: Optional[str | Path] = None) -> Path:
        """
        Save the document.

        If file_path is provided, save to that path (Save As).
        Otherwise, save to the current file_path. Saving to an existing SVG
        rewrites only its embedded metadata.
        """
        doc = self._require_document()

        if file_path:
            path = Path(file_path)
        elif self._file_path:
            path = self._file_path
        else:
            raise ValueError("No file path specified and no current file path")

        if path.suffix.lower() == ".svg":
            if not path.exists():
                raise ValueError(f"Cannot create SVG {path}: export it first, then save into it")
            text = embed_diagram_in_svg(path.read_text(encoding="utf-8"), doc)
        else:
            text = json.dumps(doc.to_json_dict(), indent=2)

        # Ensure parent directory exists
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")

        self._file_path = path
        self._dirty = False
        logger.info("Saved {}", path)
        return path

    # --- Undo/Redo ---

    def undo(self) -> Optional[DiagramDocument]:
        """Undo the last write."""
        current = self._require_document()
        previous = self._history.undo(current)
        if previous is None:
            return None

        self._document = previous
        self._dirty = True
        self._notify_change()
        return previous

    def redo(self) -> Optional[DiagramDocument]:
        """Redo the last undone write."""
        current = self._require_document()
        following = self._history.redo(current)
        if following is None:
            return None

        self._document = following
        self._dirty = True
        self._notify_change()
        return following

    # --- Operations ---

    def apply_ops(self, ops: list[Any]) -> OpResult:
        """
        Apply an operation batch to the active document.

        Freshly added nodes (unpinned, at the origin) are placed by the
        partial layout afterwards, unless the batch sorted the document,
        which already positioned everything explicitly.
        """
        current = self._require_document()
        result = apply_ops(current, ops, self._id_generator)
        if not result.success:
            return result

        modified = result.document
        has_sort = any(parse_op(op).op == "sort_nodes" for op in ops)
        if not has_sort:
            modified = apply_partial_layout(modified, self._layout_config)

        self._commit(current, modified)
        return OpResult(success=True, document=modified)

    def sort_nodes(self, group_id: Optional[str] = None) -> OpResult:
        """Sort in the document's layout direction (TB when it has none)."""
        current = self._require_document()
        direction = current.meta.layout_direction or "TB"
        return self.apply_ops([SortNodesOp(direction=direction, group_id=group_id)])

    # --- Layout ---

    def auto_layout(self, direction: Optional[str] = None, force: bool = False) -> DiagramDocument:
        """
        Lay out the whole document.

        With force, pinned nodes are moved too and lose their pin.
        """
        current = self._require_document()
        modified = auto_layout(current, direction=direction, config=self._layout_config, force=force)
        return self._commit(current, self._stamp(modified))

    def move_nodes(self, moves: list[NodeMove]) -> DiagramDocument:
        """Drag nodes to explicit positions (pins them)."""
        current = self._require_document()
        return self._commit(current, self._stamp(move_nodes(current, moves)))

    def move_group(self, group_id: str, x: float, y: float) -> DiagramDocument:
        """Drag a group and its members so the group origin lands on (x, y)."""
        current = self._require_document()
        return self._commit(current, self._stamp(move_group(current, group_id, x, y)))

    # --- State ---

    def get_state(self) -> dict:
        """Get the full current state for API responses."""
        if self._document is None:
            return {
                "diagram": None,
                "file_path": None,
                "is_dirty": False,
                "can_undo": False,
                "can_redo": False,
            }

        return {
            "diagram": self._document.to_json_dict(),
            "file_path": str(self._file_path) if self._file_path else None,
            "is_dirty": self._dirty,
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
        }


# Global instance for the application
diagram_manager = DiagramManager()
