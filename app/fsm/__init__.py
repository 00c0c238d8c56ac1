"""State enums for the generation pipeline."""

from app.fsm.states import RequestStatus, ReadingKind, SunSign, Element

__all__ = ["RequestStatus", "ReadingKind", "SunSign", "Element"]
