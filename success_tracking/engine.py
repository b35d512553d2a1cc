"""
Success Tracking - Tracker.

============================================================
PURPOSE
============================================================
Owns the phase gates and their success criteria, and turns
them into:

- the Project Success Score (PSS)
- phase gate validations
- the combined progress report

============================================================
DERIVED STATE
============================================================
Criterion status and every phase field (status,
completion_percentage, blocking_issues) are derived. They
are recomputed on construction and after each update so
readers always see a consistent view.

============================================================
"""

import logging
from typing import Dict, List, Optional

from core.clock import ClockProtocol, SystemClock
from telemetry.collector import TelemetryCollector

from .config import ScoringConfig, get_default_config, get_default_phase_gates
from .phase_gate import (
    find_critical_blockers,
    list_achievements,
    refresh_phase_gate,
    validate_phase_gate,
)
from .scoring import (
    calculate_category_scores,
    calculate_overall_score,
    classify_success_level,
    derive_status,
    generate_next_actions,
    generate_recommendations,
)
from .types import (
    CriterionNotFoundError,
    CriterionStatus,
    InvalidCriterionError,
    PhaseGate,
    PhaseGateValidation,
    PhaseNotFoundError,
    ProgressReport,
    ProjectSuccessScore,
    ScoreCategory,
    SuccessCriterion,
    validate_criterion_values,
)


logger = logging.getLogger(__name__)


class SuccessTracker:
    """
    Success criteria and phase-gate service.

    Usage:
        tracker = SuccessTracker(telemetry=collector)
        tracker.update_criterion("format_support", current_value=80)
        score = tracker.calculate_project_success_score()
    """

    def __init__(
        self,
        phase_gates: Optional[List[PhaseGate]] = None,
        config: Optional[ScoringConfig] = None,
        telemetry: Optional[TelemetryCollector] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self._config = config or get_default_config()
        self._telemetry = telemetry
        self._clock = clock or SystemClock()

        gates = get_default_phase_gates() if phase_gates is None else phase_gates
        self._phases: Dict[str, PhaseGate] = {}
        self._criteria: Dict[str, SuccessCriterion] = {}
        self._criterion_phase: Dict[str, str] = {}

        for gate in gates:
            if gate.phase in self._phases:
                raise InvalidCriterionError(f"Duplicate phase '{gate.phase}'")
            self._phases[gate.phase] = gate
            for criterion in gate.criteria:
                if criterion.id in self._criteria:
                    raise InvalidCriterionError(
                        f"Duplicate criterion '{criterion.id}'",
                        criterion_id=criterion.id,
                    )
                self._criteria[criterion.id] = criterion
                self._criterion_phase[criterion.id] = gate.phase
                criterion.status = derive_status(criterion)
            refresh_phase_gate(gate, self._config)

        logger.info(
            f"SuccessTracker initialized with {len(self._phases)} phase(s), "
            f"{len(self._criteria)} criteria"
        )

    @property
    def config(self) -> ScoringConfig:
        return self._config

    # --------------------------------------------------------
    # LOOKUPS
    # --------------------------------------------------------

    def get_phase_gates(self) -> List[PhaseGate]:
        return list(self._phases.values())

    def get_phase_gate(self, phase: str) -> PhaseGate:
        gate = self._phases.get(phase)
        if gate is None:
            raise PhaseNotFoundError(f"Unknown phase '{phase}'")
        return gate

    def get_phase_criteria(self, phase: str) -> List[SuccessCriterion]:
        return list(self.get_phase_gate(phase).criteria)

    def get_criterion(self, criterion_id: str) -> SuccessCriterion:
        criterion = self._criteria.get(criterion_id)
        if criterion is None:
            raise CriterionNotFoundError(
                f"Unknown criterion '{criterion_id}'",
                criterion_id=criterion_id,
            )
        return criterion

    def all_criteria(self) -> List[SuccessCriterion]:
        """Every criterion across all phases, in phase then list order."""
        return [c for gate in self._phases.values() for c in gate.criteria]

    # --------------------------------------------------------
    # UPDATES
    # --------------------------------------------------------

    def update_criterion(
        self,
        criterion_id: str,
        *,
        current_value: Optional[float] = None,
        target_value: Optional[float] = None,
        weight: Optional[float] = None,
        add_evidence: Optional[str] = None,
        validation_method: Optional[str] = None,
    ) -> SuccessCriterion:
        """
        Change a criterion and re-derive its status and phase.

        Raises:
            CriterionNotFoundError: unknown criterion id
            InvalidCriterionError: non-finite values or weight outside 0..1
        """
        criterion = self.get_criterion(criterion_id)

        new_current = criterion.current_value if current_value is None else float(current_value)
        new_target = criterion.target_value if target_value is None else float(target_value)
        new_weight = criterion.weight if weight is None else float(weight)
        validate_criterion_values(criterion_id, new_target, new_current, new_weight)

        criterion.current_value = new_current
        criterion.target_value = new_target
        criterion.weight = new_weight
        if add_evidence:
            criterion.evidence.append(add_evidence)
        if validation_method is not None:
            criterion.validation_method = validation_method
        criterion.last_updated = self._clock.now()

        previous_status = criterion.status
        criterion.status = derive_status(criterion)
        self._refresh_owner(criterion_id)

        if criterion.status != previous_status:
            logger.info(
                f"Criterion {criterion_id} status {previous_status.value} -> {criterion.status.value}"
            )

        if self._telemetry is not None:
            self._telemetry.track_business_metric(
                "success_criterion_updated",
                criterion.current_value,
                {
                    "criterion_id": criterion_id,
                    "category": criterion.category.value,
                    "target_value": criterion.target_value,
                    "status": criterion.status.value,
                },
            )
        return criterion

    def mark_failed(self, criterion_id: str, reason: Optional[str] = None) -> SuccessCriterion:
        """
        Force a criterion to failed. It stays failed until its
        target is met by a later update.
        """
        criterion = self.get_criterion(criterion_id)
        criterion.status = CriterionStatus.FAILED
        if reason:
            criterion.evidence.append(reason)
        criterion.last_updated = self._clock.now()
        self._refresh_owner(criterion_id)
        logger.warning(f"Criterion {criterion_id} marked failed")
        return criterion

    def _refresh_owner(self, criterion_id: str) -> None:
        gate = self._phases[self._criterion_phase[criterion_id]]
        refresh_phase_gate(gate, self._config)

    # --------------------------------------------------------
    # SCORING
    # --------------------------------------------------------

    def calculate_project_success_score(self) -> ProjectSuccessScore:
        criteria = self.all_criteria()
        category_scores = calculate_category_scores(criteria)
        overall = calculate_overall_score(category_scores, self._config)
        level = classify_success_level(overall, self._config)

        score = ProjectSuccessScore(
            overall_score=overall,
            business_score=category_scores[ScoreCategory.BUSINESS],
            technical_score=category_scores[ScoreCategory.TECHNICAL],
            user_experience_score=category_scores[ScoreCategory.USER_EXPERIENCE],
            sustainability_score=category_scores[ScoreCategory.SUSTAINABILITY],
            success_level=level,
            recommendations=tuple(
                generate_recommendations(category_scores, criteria, self._config)
            ),
            calculated_at=self._clock.now(),
        )

        logger.debug(f"Project success score {overall:.2f} ({level.value})")
        if self._telemetry is not None:
            self._telemetry.track_business_metric(
                "project_success_score",
                round(overall, 2),
                {
                    "success_level": level.value,
                    **{k.value: round(v, 2) for k, v in category_scores.items()},
                },
            )
        return score

    def validate_phase_gate(self, phase: str) -> PhaseGateValidation:
        """
        Raises:
            PhaseNotFoundError: unknown phase id
        """
        return validate_phase_gate(self.get_phase_gate(phase), self._config)

    def generate_progress_report(self) -> ProgressReport:
        score = self.calculate_project_success_score()
        criteria = self.all_criteria()

        return ProgressReport(
            overall_progress=score.overall_score,
            success_level=score.success_level,
            phase_progress={
                gate.phase: gate.completion_percentage for gate in self._phases.values()
            },
            critical_blockers=tuple(find_critical_blockers(criteria, self._config)),
            achievements=tuple(list_achievements(criteria)),
            next_actions=tuple(generate_next_actions(criteria, score.success_level)),
            generated_at=self._clock.now(),
        )
