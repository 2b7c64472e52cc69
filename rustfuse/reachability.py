"""
rustfuse/reachability.py
========================
Reachability Analyzer: 진입점으로부터의 전이적 폐포

규칙:
- 모호하지 않은 엣지만 따라간다
- 모호한 엣지의 후보는 Pending (이미 terminal이면 유지)
- Required 노드는 다시 방문하지 않음 → 각 엣지는 최대 한 번 처리
- extend()로 새 루트를 추가해도 기존 방문 상태 유지
- 구조적 도달(Required)은 설정 exclude보다 우선
- use 선언은 폐포 이후 settle_uses()에서 결정
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set

from .catalog import ItemCatalog
from .graph import DependencyGraph
from .models import AmbiguousEdge, ItemKind, ResolutionState


logger = logging.getLogger(__name__)


class ReachabilityAnalyzer:
    """
    해석 상태 맵을 소유하는 점진적 폐포 계산기

    사용 예:
        reach = ReachabilityAnalyzer(catalog, graph)
        reach.extend([catalog.find_entry().id])
        reach.pending_ids()
    """

    def __init__(self, catalog: ItemCatalog, graph: DependencyGraph):
        self.catalog = catalog
        self.graph = graph
        self._states: Dict[str, ResolutionState] = {}
        self._pending_via: Dict[str, List[AmbiguousEdge]] = defaultdict(list)
        self._overridden: List[str] = []
        self._edges_followed = 0

    # =========================================================================
    # 상태 조회
    # =========================================================================

    @property
    def states(self) -> Dict[str, ResolutionState]:
        return dict(self._states)

    @property
    def edges_followed(self) -> int:
        return self._edges_followed

    @property
    def overridden(self) -> List[str]:
        """Excluded였다가 구조적으로 Required가 된 Item"""
        return list(self._overridden)

    def state(self, item_id: str) -> Optional[ResolutionState]:
        return self._states.get(item_id)

    def is_required(self, item_id: str) -> bool:
        return self._states.get(item_id) == ResolutionState.REQUIRED

    def required_ids(self) -> List[str]:
        """카탈로그 순서"""
        return [item.id for item in self.catalog if self.is_required(item.id)]

    def pending_ids(self) -> List[str]:
        """카탈로그 순서"""
        return [item.id for item in self.catalog
                if self._states.get(item.id) == ResolutionState.PENDING]

    def pending_via(self, item_id: str) -> List[AmbiguousEdge]:
        """Item을 Pending으로 만든 모호한 엣지들"""
        return list(self._pending_via.get(item_id, []))

    # =========================================================================
    # 폐포 계산
    # =========================================================================

    def extend(self, roots: Iterable[str]) -> List[str]:
        """
        새 루트로부터 폐포 확장

        Returns:
            새로 Required가 된 Item (방문 순서)
        """
        newly: List[str] = []
        stack = [r for r in reversed(list(roots)) if not self.is_required(r)]

        while stack:
            current = stack.pop()
            if self.is_required(current):
                continue
            if self._states.get(current) == ResolutionState.EXCLUDED:
                self._overridden.append(current)
            self._states[current] = ResolutionState.REQUIRED
            newly.append(current)

            for dep in reversed(self.graph.get_dependencies(current)):
                self._edges_followed += 1
                if not self.is_required(dep):
                    stack.append(dep)

            for ambiguous in self.graph.get_ambiguous_from(current):
                for candidate in ambiguous.candidates:
                    self._pending_via[candidate].append(ambiguous)
                    if candidate not in self._states:
                        self._states[candidate] = ResolutionState.PENDING

        if newly:
            logger.debug("closure extended by %d items", len(newly))
        return newly

    def mark_excluded(self, item_ids: Iterable[str]) -> List[str]:
        """Required가 아닌 Item을 Excluded로 (이미 Required면 무시)"""
        marked: List[str] = []
        for item_id in item_ids:
            if not self.is_required(item_id):
                self._states[item_id] = ResolutionState.EXCLUDED
                marked.append(item_id)
        return marked

    def mark_pending(self, item_ids: Iterable[str]) -> None:
        """상태가 없는 Item을 Pending으로 (설정으로 지정된 trait 없는 블록의 item)"""
        for item_id in item_ids:
            if item_id not in self._states:
                self._states[item_id] = ResolutionState.PENDING

    def release_resolved(self) -> List[str]:
        """
        해소된 모호성으로만 Pending이 된 Item → Excluded

        모호한 엣지의 후보 중 하나가 Required면 그 엣지는 해소된 것으로 본다.
        trait 없는 블록의 item은 self type이 Required가 아닐 때만 놓아준다
        설정으로 Pending이 된 Item(엣지 없음)은 그대로 둔다.
        """
        live_types = {item.name for item in self.catalog
                      if item.kind.is_type_like and self.is_required(item.id)}
        released: List[str] = []
        for item_id in self.pending_ids():
            edges = self._pending_via.get(item_id, [])
            if not edges or not all(any(self.is_required(c) for c in edge.candidates)
                                    for edge in edges):
                continue
            item = self.catalog[item_id]
            if (item.block_name is not None and not item.implements_trait
                    and item.block_name.self_type_name in live_types):
                continue
            self._states[item_id] = ResolutionState.EXCLUDED
            released.append(item_id)
        if released:
            logger.debug("released %d pending items", len(released))
        return released

    # =========================================================================
    # use 선언 / 마무리
    # =========================================================================

    def settle_uses(self) -> List[str]:
        """
        use 선언 결정

        모듈에 Required Item이 있고, glob이거나 카탈로그 밖 이름을
        가져오거나 Required Item 이름을 가져오면 Required.
        """
        live_modules: Set[tuple] = set()
        required_names: Set[str] = set()
        for item in self.catalog:
            if not self.is_required(item.id):
                continue
            required_names.add(item.name)
            if item.kind != ItemKind.USE and item.owner is None:
                live_modules.add((item.crate, item.module_path))

        settled: List[str] = []
        for item in self.catalog:
            if item.kind != ItemKind.USE:
                continue
            needed = (item.crate, item.module_path) in live_modules and (
                item.use_glob
                or any(not self._in_catalog(name) or name in required_names
                       for name in item.use_names)
            )
            if needed:
                self._states[item.id] = ResolutionState.REQUIRED
                settled.append(item.id)
            else:
                self._states[item.id] = ResolutionState.EXCLUDED
        return settled

    def finalize(self) -> Dict[str, ResolutionState]:
        """상태가 없는 Item은 Excluded (Pending은 남아 있으면 안 됨)"""
        for item in self.catalog:
            if item.id not in self._states:
                self._states[item.id] = ResolutionState.EXCLUDED
        return self.states

    def _in_catalog(self, name: str) -> bool:
        return bool(self.catalog.named(name) or self.catalog.impl_items_named(name))


__all__ = [
    'ReachabilityAnalyzer',
]
