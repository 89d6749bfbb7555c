"""DiagramFlow HTTP backend."""
