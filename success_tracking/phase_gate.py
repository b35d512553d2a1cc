"""
Success Tracking - Phase Gate Validation.

A phase gate passes only when every criterion that is not
completed has reached the gate threshold (80%) of its
target. Each criterion below the threshold is a blocker,
whatever its weight.
"""

from typing import List, Sequence

from core.formatting import format_number

from .config import ScoringConfig
from .scoring import calculate_category_score, criterion_progress
from .types import (
    CriterionStatus,
    PhaseGate,
    PhaseGateValidation,
    PhaseStatus,
    SuccessCriterion,
)


def format_blocker(criterion: SuccessCriterion) -> str:
    return (
        f"{criterion.name}: {criterion_progress(criterion):.1f}% complete "
        f"(target: {format_number(criterion.target_value)}{criterion.unit})"
    )


def find_blockers(criteria: Sequence[SuccessCriterion], config: ScoringConfig) -> List[str]:
    return [
        format_blocker(criterion)
        for criterion in criteria
        if criterion.status != CriterionStatus.COMPLETED
        and criterion_progress(criterion) < config.gate_pass_progress_pct
    ]


def validate_phase_gate(gate: PhaseGate, config: ScoringConfig) -> PhaseGateValidation:
    blockers = find_blockers(gate.criteria, config)
    return PhaseGateValidation(
        phase=gate.phase,
        passed=not blockers,
        blockers=tuple(blockers),
    )


def derive_phase_status(gate: PhaseGate) -> PhaseStatus:
    statuses = [c.status for c in gate.criteria]
    if statuses and all(s == CriterionStatus.COMPLETED for s in statuses):
        return PhaseStatus.COMPLETED
    if any(s == CriterionStatus.FAILED for s in statuses):
        return PhaseStatus.BLOCKED
    if any(s in (CriterionStatus.IN_PROGRESS, CriterionStatus.COMPLETED) for s in statuses):
        return PhaseStatus.IN_PROGRESS
    return PhaseStatus.NOT_STARTED


def refresh_phase_gate(gate: PhaseGate, config: ScoringConfig) -> None:
    """Recompute the derived fields of ``gate`` in place."""
    gate.completion_percentage = calculate_category_score(gate.criteria)
    gate.blocking_issues = find_blockers(gate.criteria, config)
    gate.status = derive_phase_status(gate)


def find_critical_blockers(
    criteria: Sequence[SuccessCriterion],
    config: ScoringConfig,
) -> List[str]:
    """Failed criteria, and heavy criteria below half their target."""
    blockers = []
    for criterion in criteria:
        progress = criterion_progress(criterion)
        if criterion.status == CriterionStatus.FAILED or (
            progress < config.critical_blocker_progress_pct
            and criterion.weight > config.critical_blocker_min_weight
        ):
            blockers.append(f"{criterion.name}: {progress:.1f}% of target")
    return blockers


def list_achievements(criteria: Sequence[SuccessCriterion]) -> List[str]:
    return [
        f"✅ {c.name}: {format_number(c.current_value)}{c.unit} achieved"
        for c in criteria
        if c.status == CriterionStatus.COMPLETED
    ]
