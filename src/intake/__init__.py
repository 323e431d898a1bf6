"""Intake reply pipeline — context, contract, safety override, and turn service."""

from src.intake.context import AssembledContext, ContextAssembler
from src.intake.contract import FALLBACK_REPLY, StructuredReply, parse_contract, render_reply
from src.intake.engine import ContractResult, ReplyContractEngine
from src.intake.safety import SafetyLexicon, apply_safety_override
from src.intake.service import IntakeService, TurnResult

__all__ = [
    "FALLBACK_REPLY",
    "AssembledContext",
    "ContextAssembler",
    "ContractResult",
    "IntakeService",
    "ReplyContractEngine",
    "SafetyLexicon",
    "StructuredReply",
    "TurnResult",
    "apply_safety_override",
    "parse_contract",
    "render_reply",
]
