"""Application layer: the orchestration engine and its components."""
