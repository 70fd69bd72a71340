"""
Turn outcomes returned by the dialogue engine.

EngineReply: the engine answered deterministically.
Deferred:    the engine recognised input it must not guess at and hands it
             to the LLM agent. This is a first-class result, never None.
"""

from dataclasses import dataclass, field
from typing import Union


@dataclass
class Button:
    """Quick-reply button. The token is sent back as the next message text."""
    label: str
    callback: str


@dataclass
class EngineReply:
    text: str
    buttons: list[Button] = field(default_factory=list)
    context_summary: dict | None = None


@dataclass
class Deferred:
    reason: str
    message: str
    context_summary: dict | None = None


TurnOutcome = Union[EngineReply, Deferred]
