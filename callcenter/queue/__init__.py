"""Queue runtime objects: the member attempt."""

__all__ = ["attempt"]