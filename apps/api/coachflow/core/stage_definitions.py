"""Default workflow stage definitions and ordering per service type."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable, Mapping

from coachflow.db.enums import ServiceType, StageAction, WorkflowStage


@dataclass(frozen=True)
class StageDefinition:
    """
    One position in a service type's workflow.

    action is the work that completes this stage (None for the final stage);
    delay is how long after entering the stage that action becomes due.
    """

    key: WorkflowStage
    label: str
    action: StageAction | None = None
    delay: timedelta | None = None


class StageTable:
    """
    Ordered stage lists keyed by service type.

    Passed into the workflow state store and the stage dispatcher so tests can
    run against synthetic tables.
    """

    def __init__(self, stages: Mapping[ServiceType, Iterable[StageDefinition]]) -> None:
        self._stages: dict[ServiceType, tuple[StageDefinition, ...]] = {}
        for service_type, defs in stages.items():
            ordered = tuple(defs)
            if not ordered:
                raise ValueError(f"Stage list for {service_type.value} is empty")
            keys = [d.key for d in ordered]
            if len(set(keys)) != len(keys):
                raise ValueError(f"Duplicate stage in {service_type.value} stage list")
            if ordered[-1].action is not None:
                raise ValueError(f"Final {service_type.value} stage must not have an action")
            for d in ordered[:-1]:
                if d.action is None:
                    raise ValueError(f"Stage {d.key.value} needs an action to advance")
            self._stages[ServiceType(service_type)] = ordered

    @property
    def service_types(self) -> list[ServiceType]:
        return list(self._stages)

    def stages_for(self, service_type: ServiceType | str) -> tuple[StageDefinition, ...]:
        try:
            return self._stages[ServiceType(service_type)]
        except (KeyError, ValueError):
            raise KeyError(f"No stage list for service type '{service_type}'") from None

    def first(self, service_type: ServiceType | str) -> StageDefinition:
        return self.stages_for(service_type)[0]

    def index_of(self, service_type: ServiceType | str, stage: WorkflowStage | str) -> int:
        """Position of stage in the service type's order; -1 when not part of it."""
        for index, definition in enumerate(self.stages_for(service_type)):
            if definition.key.value == str(getattr(stage, "value", stage)):
                return index
        return -1

    def get(self, service_type: ServiceType | str, stage: WorkflowStage | str) -> StageDefinition | None:
        index = self.index_of(service_type, stage)
        if index < 0:
            return None
        return self.stages_for(service_type)[index]

    def next_stage(
        self, service_type: ServiceType | str, stage: WorkflowStage | str
    ) -> StageDefinition | None:
        """Stage following `stage`, or None at the end of the list."""
        index = self.index_of(service_type, stage)
        stages = self.stages_for(service_type)
        if index < 0 or index + 1 >= len(stages):
            return None
        return stages[index + 1]

    def is_final(self, service_type: ServiceType | str, stage: WorkflowStage | str) -> bool:
        return self.index_of(service_type, stage) == len(self.stages_for(service_type)) - 1

    def actions(self) -> set[StageAction]:
        return {
            d.action
            for defs in self._stages.values()
            for d in defs
            if d.action is not None
        }


CONSULTATION_STAGES = [
    StageDefinition(
        WorkflowStage.CONSULTATION_SCHEDULED,
        "Consultation Scheduled",
        StageAction.SEND_HEALTH_ASSESSMENT,
        timedelta(minutes=30),
    ),
    StageDefinition(
        WorkflowStage.HEALTH_ASSESSMENT_SENT,
        "Health Assessment Sent",
        StageAction.PREPARE_ACTION_PLAN,
        timedelta(days=1),
    ),
    StageDefinition(
        WorkflowStage.ACTION_PLAN_GENERATED,
        "Action Plan Generated",
        StageAction.PREPARE_DIET_PLAN,
        timedelta(days=1),
    ),
    StageDefinition(
        WorkflowStage.DIET_PLAN_GENERATED,
        "Diet Plan Generated",
        StageAction.COMPLETE_CONSULTATION,
        timedelta(days=1),
    ),
    StageDefinition(
        WorkflowStage.CONSULTATION_COMPLETE,
        "Consultation Complete",
        StageAction.START_RETARGETING,
        timedelta(days=7),
    ),
    StageDefinition(WorkflowStage.SOFT_RETARGETING_ACTIVE, "Soft Retargeting Active"),
]

HUNDRED_DAY_STAGES = [
    StageDefinition(
        WorkflowStage.CONSULTATION_SCHEDULED,
        "Consultation Scheduled",
        StageAction.SEND_HEALTH_ASSESSMENT,
        timedelta(minutes=30),
    ),
    StageDefinition(
        WorkflowStage.HEALTH_ASSESSMENT_SENT,
        "Health Assessment Sent (30 mins)",
        StageAction.SEND_STRESS_CARD,
        timedelta(hours=2, minutes=30),
    ),
    StageDefinition(
        WorkflowStage.STRESS_CARD_SENT,
        "Stress Card Sent (2-3 hrs)",
        StageAction.SEND_SLEEP_CARD,
        timedelta(hours=3, minutes=30),
    ),
    StageDefinition(
        WorkflowStage.SLEEP_CARD_SENT,
        "Sleep Card Sent (6 hrs)",
        StageAction.PREPARE_ACTION_PLAN,
        timedelta(days=2),
    ),
    StageDefinition(
        WorkflowStage.ACTION_PLAN_SENT,
        "Action Plan Sent (2-3 days)",
        StageAction.PREPARE_DIET_PLAN,
        timedelta(days=2),
    ),
    StageDefinition(
        WorkflowStage.DIET_PLAN_SENT,
        "Diet Plan Sent (2-3 days)",
        StageAction.SEND_GROCERY_LIST,
        timedelta(days=1),
    ),
    StageDefinition(
        WorkflowStage.GROCERY_LIST_SENT,
        "Grocery List Sent",
        StageAction.ACTIVATE_PROGRAM,
        timedelta(0),
    ),
    StageDefinition(WorkflowStage.PROGRAM_ACTIVE, "Program Active"),
]


def get_default_stage_table() -> StageTable:
    """Build the production stage table."""
    return StageTable(
        {
            ServiceType.CONSULTATION: CONSULTATION_STAGES,
            ServiceType.HUNDRED_DAYS: HUNDRED_DAY_STAGES,
        }
    )
