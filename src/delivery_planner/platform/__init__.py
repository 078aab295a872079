"""Request scoping, bounded fan-out and timing helpers."""
