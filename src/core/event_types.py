"""이벤트 유형 상수"""


class EventTypes:
    """이벤트 유형 문자열 상수"""

    # item lifecycle (after-persist)
    ITEM_CREATED = "item_created"
    ITEM_UPDATED = "item_updated"
    ITEM_DELETED = "item_deleted"

    # actor lifecycle (after-persist)
    ACTOR_UPDATED = "actor_updated"
    ENCUMBRANCE_CHANGED = "encumbrance_changed"

    # container settings / enforcement
    REDUCTION_CHANGED = "reduction_changed"
    CAPACITY_EXCEEDED = "capacity_exceeded"

    # relay broadcast
    NOTICE = "notice"
