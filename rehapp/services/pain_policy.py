"""
Pain escalation policy for pain-gated walking (intermittent claudication).

Hard, deterministic thresholds on the patient's EVA score. Never replace these
with a model-driven decision.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

HALT_THRESHOLD = 8
CAUTION_THRESHOLD = 5


class PainAction(str, Enum):
    HALT_NOW = "HALT_NOW"
    CAUTION = "CAUTION"
    CONTINUE = "CONTINUE"

    @property
    def wire_name(self) -> str:
        return _WIRE_NAMES[self]


_WIRE_NAMES = {
    PainAction.HALT_NOW: "ALTO_INMEDIATO",
    PainAction.CAUTION: "PRECAUCION",
    PainAction.CONTINUE: "CONTINUAR",
}

MESSAGES = {
    PainAction.HALT_NOW: (
        "🛑 DESCANSA AHORA. El dolor es demasiado alto. "
        "No continúes hasta que el dolor desaparezca completamente."
    ),
    PainAction.CAUTION: "⚠️ Reduce la velocidad ahora. Respira profundo. Si el dolor aumenta, detente.",
    PainAction.CONTINUE: "👍 Vas muy bien. Mantén el ritmo suave.",
}


@dataclass(frozen=True)
class PainResponse:
    action: PainAction
    blocks_session: bool
    message: str


def classify(eva_score: int) -> PainResponse:
    # Input is validated to 0..10 by the caller.
    if eva_score >= HALT_THRESHOLD:
        action = PainAction.HALT_NOW
    elif eva_score >= CAUTION_THRESHOLD:
        action = PainAction.CAUTION
    else:
        action = PainAction.CONTINUE
    return PainResponse(action=action, blocks_session=action is PainAction.HALT_NOW, message=MESSAGES[action])
