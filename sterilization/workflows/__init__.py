# sterilization/workflows/__init__.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from sterilization.exceptions import ValidationRequired


# ===============================================================
# Canonical sterilization cycle
# ===============================================================

RECEPTION = "reception"
PRE_DISINFECTION = "pre_disinfection"
CLEANING = "cleaning"
CONDITIONING = "conditioning"
STERILIZATION = "sterilization"
CONTROL = "control"
STORAGE = "storage"
DISTRIBUTION = "distribution"

STEP_ORDER: Tuple[str, ...] = (
    RECEPTION,
    PRE_DISINFECTION,
    CLEANING,
    CONDITIONING,
    STERILIZATION,
    CONTROL,
    STORAGE,
    DISTRIBUTION,
)

STEP_LABELS: Dict[str, str] = {
    RECEPTION: "Réception",
    PRE_DISINFECTION: "Pré-désinfection",
    CLEANING: "Nettoyage",
    CONDITIONING: "Conditionnement",
    STERILIZATION: "Stérilisation",
    CONTROL: "Contrôle",
    STORAGE: "Stockage",
    DISTRIBUTION: "Distribution",
}

DIRTY = "dirty"
STATUS_CLEANING = "cleaning"
READY_FOR_STERILIZATION = "ready_for_sterilization"
STERILIZING = "sterilizing"
STERILE = "sterile"
IN_USE = "in_use"

STATUSES: Tuple[str, ...] = (
    DIRTY,
    STATUS_CLEANING,
    READY_FOR_STERILIZATION,
    STERILIZING,
    STERILE,
    IN_USE,
)

STATUS_LABELS: Dict[str, str] = {
    DIRTY: "Sale",
    STATUS_CLEANING: "Nettoyage",
    READY_FOR_STERILIZATION: "Prêt",
    STERILIZING: "En stérilisation",
    STERILE: "Stérile",
    IN_USE: "En utilisation",
}

# Step -> displayed status. Must stay exactly in sync with the cycle above.
STEP_STATUS: Dict[str, str] = {
    RECEPTION: DIRTY,
    PRE_DISINFECTION: STATUS_CLEANING,
    CLEANING: STATUS_CLEANING,
    CONDITIONING: READY_FOR_STERILIZATION,
    STERILIZATION: STERILIZING,
    CONTROL: STERILE,
    STORAGE: STERILE,
    DISTRIBUTION: IN_USE,
}

STERILIZATION_TYPES: Dict[str, str] = {
    "vapeur": "Vapeur d'eau",
    "plasma": "Plasma H2O2",
    "oxyde_ethylene": "Oxyde d'éthylène",
    "radiation": "Rayonnement",
}

PASSED = "passed"
FAILED = "failed"
VALIDATION_RESULTS: Tuple[str, ...] = (PASSED, FAILED)

FAILED_CONTROL_NOTE = "Contrôle non conforme : redémarrage du cycle à la réception"


# ===============================================================
# Normalization
# ===============================================================

def normalize_step(value: Optional[str]) -> Optional[str]:
    """
    Returns the canonical step name, or None for "not started".
    Raises ValueError for anything outside the cycle.
    """
    raw = str(value or "").strip().lower()
    if not raw:
        return None
    if raw not in STEP_STATUS:
        raise ValueError(f"Unknown sterilization step: {value}")
    return raw


def normalize_status(value: str) -> str:
    raw = str(value or "").strip().lower()
    if raw not in STATUSES:
        raise ValueError(f"Unknown sterilization status: {value}")
    return raw


def normalize_box_code(value: str) -> str:
    """Scanned codes are matched case-insensitively by upper-casing them."""
    return str(value or "").strip().upper()


# ===============================================================
# Pure step rules
# ===============================================================

def next_step(current: Optional[str]) -> str:
    """
    Successor of `current` in the cycle.

    A box that never started goes to reception; distribution wraps back to
    reception for a new cycle.
    """
    cur = normalize_step(current)
    if cur is None:
        return RECEPTION
    idx = STEP_ORDER.index(cur)
    if idx >= len(STEP_ORDER) - 1:
        return RECEPTION
    return STEP_ORDER[idx + 1]


def status_for_step(step: Optional[str]) -> str:
    cur = normalize_step(step)
    if cur is None:
        return DIRTY
    return STEP_STATUS[cur]


def steps_for_status(status: str) -> List[str]:
    """Inverse of the derivation table, in cycle order."""
    st = normalize_status(status)
    return [step for step in STEP_ORDER if STEP_STATUS[step] == st]


def requires_validation(step: Optional[str]) -> bool:
    """Only leaving the sterilization step needs a control result."""
    return normalize_step(step) == STERILIZATION


def step_progress(step: Optional[str]) -> Tuple[int, int]:
    """(1-based position of `step`, total steps); (0, total) when not started."""
    cur = normalize_step(step)
    position = STEP_ORDER.index(cur) + 1 if cur else 0
    return position, len(STEP_ORDER)


@dataclass(frozen=True)
class TransitionPlan:
    from_step: Optional[str]
    to_step: str
    status: str
    validation_result: Optional[str] = None
    clears_assignment: bool = False
    sets_sterilized_at: bool = False
    restart_reason: str = ""

    @property
    def is_restart(self) -> bool:
        return bool(self.restart_reason)


def plan_transition(current: Optional[str], validation_result: Optional[str] = None) -> TransitionPlan:
    """
    Decide where a box at `current` goes next.

    Leaving sterilization requires `validation_result`; a failed control
    sends the box back to reception and drops its assignment instead of
    moving on to control. The result is ignored for every other step.
    """
    cur = normalize_step(current)

    if not requires_validation(cur):
        target = next_step(cur)
        return TransitionPlan(
            from_step=cur,
            to_step=target,
            status=status_for_step(target),
            clears_assignment=target == RECEPTION,
            sets_sterilized_at=target == STORAGE,
        )

    result = str(validation_result or "").strip().lower()
    if not result:
        raise ValidationRequired()
    if result not in VALIDATION_RESULTS:
        raise ValidationRequired(
            f"Invalid control result '{validation_result}'. Use 'passed' or 'failed'."
        )

    if result == FAILED:
        return TransitionPlan(
            from_step=cur,
            to_step=RECEPTION,
            status=status_for_step(RECEPTION),
            validation_result=FAILED,
            clears_assignment=True,
            restart_reason=FAILED_CONTROL_NOTE,
        )

    target = next_step(cur)
    return TransitionPlan(
        from_step=cur,
        to_step=target,
        status=status_for_step(target),
        validation_result=PASSED,
    )


def workflow_definition() -> Dict[str, Any]:
    """
    Stable JSON-serializable definition for UI.
    """
    return {
        "steps": [
            {
                "code": step,
                "label": STEP_LABELS[step],
                "order": idx + 1,
                "status": STEP_STATUS[step],
                "requires_validation": requires_validation(step),
            }
            for idx, step in enumerate(STEP_ORDER)
        ],
        "statuses": [{"code": s, "label": STATUS_LABELS[s]} for s in STATUSES],
        "sterilization_types": [
            {"code": code, "label": label} for code, label in STERILIZATION_TYPES.items()
        ],
        "validation_results": list(VALIDATION_RESULTS),
    }


__all__ = [
    "STEP_ORDER",
    "STEP_LABELS",
    "STEP_STATUS",
    "STATUSES",
    "STATUS_LABELS",
    "STERILIZATION_TYPES",
    "VALIDATION_RESULTS",
    "TransitionPlan",
    "normalize_step",
    "normalize_status",
    "normalize_box_code",
    "next_step",
    "status_for_step",
    "steps_for_status",
    "requires_validation",
    "step_progress",
    "plan_transition",
    "workflow_definition",
]
