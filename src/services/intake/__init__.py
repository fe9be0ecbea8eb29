from src.services.intake.engine import IntakeEngine, IntakeReply
from src.services.intake.machine import (
    TRANSITIONS,
    Effect,
    InputClass,
    IntakeMachine,
    Transition,
    classify_input,
)
from src.services.intake.registry import SessionRegistry

__all__ = [
    "TRANSITIONS",
    "Effect",
    "InputClass",
    "IntakeEngine",
    "IntakeMachine",
    "IntakeReply",
    "SessionRegistry",
    "Transition",
    "classify_input",
]
