"""
Exceptions raised by the diagram engine.

Operation handlers raise these; `apply_ops` turns them into a failed
`OpResult` so a batch either applies completely or not at all.
"""


class DiagramError(Exception):
    """Base class for diagram engine errors."""


class OperationError(DiagramError):
    """A single semantic operation could not be applied."""


class NotFoundError(OperationError):
    """An operation referenced an entity that does not exist."""

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f'{kind} "{entity_id}" not found')


class SourceNotFoundError(NotFoundError):
    """An edge source does not name an existing node."""

    def __init__(self, node_id: str):
        super().__init__("Source node", node_id)


class TargetNotFoundError(NotFoundError):
    """An edge target does not name an existing node."""

    def __init__(self, node_id: str):
        super().__init__("Target node", node_id)
