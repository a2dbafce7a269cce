"""Container Index: 컨테이너 ID → 직속 아이템 목록"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from .models import Item


@dataclass
class ContainerIndex:
    """한 번의 계산 동안만 쓰는 읽기 전용 뷰. 저장하지 않는다.

    children 목록 순서는 입력 순서. 진단용일 뿐 정합성에 쓰지 않는다.
    """

    children: dict[str, list[Item]] = field(default_factory=dict)
    by_id: dict[str, Item] = field(default_factory=dict)

    def get(self, container_id: str) -> list[Item]:
        return self.children.get(container_id, [])

    def item(self, item_id: Optional[str]) -> Optional[Item]:
        if not item_id:
            return None
        return self.by_id.get(item_id)

    def parent_of(self, item: Item) -> Optional[Item]:
        """유효한 부모 컨테이너. 끊어진 참조나 비컨테이너 참조는 None."""
        parent = self.item(item.container_id)
        if parent is None or not parent.is_container:
            return None
        return parent

    def is_top_level(self, item: Item) -> bool:
        return self.parent_of(item) is None

    def is_within(self, item_id: Optional[str], ancestor_id: str) -> bool:
        """item_id 가 ancestor_id 자신이거나 그 안에 (직간접으로) 들어 있는가.

        이미 저장된 순환이 있어도 각 노드를 한 번만 방문한다.
        """
        node = self.item(item_id)
        seen: set[str] = set()
        while node is not None and node.item_id not in seen:
            if node.item_id == ancestor_id:
                return True
            seen.add(node.item_id)
            node = self.parent_of(node)
        return False


def build_container_index(items: Iterable[Item]) -> ContainerIndex:
    """O(n). 존재하지 않거나 컨테이너가 아닌 대상을 가리키는 참조는 최상위로 취급."""
    index = ContainerIndex()
    items = list(items)
    for item in items:
        index.by_id[item.item_id] = item

    for item in items:
        if index.parent_of(item) is None:
            continue
        index.children.setdefault(item.container_id, []).append(item)
    return index
