"""컨테이너 무게 시스템 Core: 순수 Python, DB 무관"""

from .admission import (
    CAPACITY_EPSILON,
    check_capacity,
    evaluate_create,
    evaluate_update,
    is_allowed,
)
from .currency import effective_currency_weight
from .encumbrance import project_encumbrance, total_carried
from .index import ContainerIndex, build_container_index
from .load import compute_container_load
from .messages import format_exceed_message
from .models import (
    Actor,
    AdmissionDecision,
    AdmissionOutcome,
    AdmissionResult,
    EnforceMode,
    Encumbrance,
    Item,
    ItemKind,
    LoadResult,
    MutationContext,
    MutationKind,
    TraceEntry,
    Weight,
)
from .report import ContainerReport, build_actor_reports, build_container_report
from .units import to_canonical

__all__ = [
    "CAPACITY_EPSILON",
    "Actor",
    "AdmissionDecision",
    "AdmissionOutcome",
    "AdmissionResult",
    "ContainerIndex",
    "ContainerReport",
    "EnforceMode",
    "Encumbrance",
    "Item",
    "ItemKind",
    "LoadResult",
    "MutationContext",
    "MutationKind",
    "TraceEntry",
    "Weight",
    "build_actor_reports",
    "build_container_index",
    "build_container_report",
    "check_capacity",
    "compute_container_load",
    "effective_currency_weight",
    "evaluate_create",
    "evaluate_update",
    "format_exceed_message",
    "is_allowed",
    "project_encumbrance",
    "to_canonical",
    "total_carried",
]
