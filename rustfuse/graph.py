"""
rustfuse/graph.py
=================
Item 의존성 그래프 자료구조 및 구축

기능:
- 인접 리스트 기반 방향 그래프 (A→B: A가 B를 참조)
- 모호한 엣지(둘 이상의 impl 블록 후보)는 별도 보관
- 구조적 엣지: item → 모듈, impl item → 블록, trait impl 블록 → item
- O(V + E) 순환 탐지 (DFS 색상 기반)
- Mermaid/DOT 시각화
"""

import logging
from collections import defaultdict
from typing import Dict, List, Set, Optional, Tuple
from enum import Enum

from .catalog import ItemCatalog
from .models import (
    Item, ItemKind, Reference, ReferenceKind, EdgeKind,
    DependencyEdge, AmbiguousEdge
)


logger = logging.getLogger(__name__)


class _VisitState(Enum):
    """노드 방문 상태 (순환 탐지용)"""
    WHITE = 0  # 미방문
    GRAY = 1   # 방문 중 (현재 DFS 경로에 있음)
    BLACK = 2  # 방문 완료


class DependencyGraph:
    """
    Item 의존성 그래프 (방향 그래프)

    내부 구조:
    - _nodes: 노드 정보 맵 {identity: Item} (카탈로그 순서)
    - _adjacency: 인접 리스트 (정방향: A→B는 A가 B를 참조)
    - _reverse: 역방향 인접 리스트
    - _edges: 엣지 정보 맵
    - _ambiguous: 모호한 엣지 (해석 전까지 따라가지 않음)

    구축 후에는 읽기 전용으로 사용한다.
    """

    def __init__(self):
        self._nodes: Dict[str, Item] = {}
        self._adjacency: Dict[str, List[str]] = defaultdict(list)
        self._reverse: Dict[str, List[str]] = defaultdict(list)
        self._edges: Dict[Tuple[str, str], DependencyEdge] = {}
        self._ambiguous: List[AmbiguousEdge] = []
        self._ambiguous_by_source: Dict[str, List[AmbiguousEdge]] = defaultdict(list)

    # =========================================================================
    # 노드/엣지 추가
    # =========================================================================

    def add_node(self, item: Item):
        """노드 추가"""
        if item.id not in self._nodes:
            self._nodes[item.id] = item

    def add_edge(self, edge: DependencyEdge):
        """엣지 추가 (자기 참조와 중복은 무시)"""
        source, target = edge.source, edge.target
        key = (source, target)
        if source == target or key in self._edges:
            return
        self._edges[key] = edge
        self._adjacency[source].append(target)
        self._reverse[target].append(source)

    def add_ambiguous(self, edge: AmbiguousEdge):
        """모호한 엣지 추가 (같은 후보 집합은 한 번만)"""
        for existing in self._ambiguous_by_source.get(edge.source, []):
            if existing.candidates == edge.candidates:
                return
        self._ambiguous.append(edge)
        self._ambiguous_by_source[edge.source].append(edge)

    # =========================================================================
    # 조회 메서드
    # =========================================================================

    def has_edge(self, source: str, target: str) -> bool:
        return (source, target) in self._edges

    def get_edge(self, source: str, target: str) -> Optional[DependencyEdge]:
        return self._edges.get((source, target))

    def get_dependencies(self, item_id: str) -> List[str]:
        """노드가 참조하는 Item (정방향)"""
        return list(self._adjacency.get(item_id, []))

    def get_dependents(self, item_id: str) -> List[str]:
        """노드를 참조하는 Item (역방향)"""
        return list(self._reverse.get(item_id, []))

    def get_ambiguous_from(self, item_id: str) -> List[AmbiguousEdge]:
        return list(self._ambiguous_by_source.get(item_id, []))

    def get_ambiguous_edges(self) -> List[AmbiguousEdge]:
        return list(self._ambiguous)

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    @property
    def ambiguous_count(self) -> int:
        return len(self._ambiguous)

    # =========================================================================
    # 순환 탐지 (Cycle Detection)
    # =========================================================================

    def find_cycles(self) -> List[List[str]]:
        """
        모든 순환 참조 찾기 (상호 재귀 함수, 재귀 타입 등)

        알고리즘: 명시적 스택 DFS + 색상 기반 방문 추적
        GRAY 노드를 다시 만나면 순환 발견

        Returns:
            순환 경로 목록 (마지막 원소 = 첫 원소)
        """
        cycles: List[List[str]] = []
        state = {n: _VisitState.WHITE for n in self._nodes}
        path: List[str] = []

        for root in self._nodes:
            if state[root] != _VisitState.WHITE:
                continue
            state[root] = _VisitState.GRAY
            path.append(root)
            stack = [(root, iter(self._adjacency.get(root, [])))]

            while stack:
                node, neighbors = stack[-1]
                for neighbor in neighbors:
                    if state.get(neighbor) == _VisitState.GRAY:
                        cycle_start = path.index(neighbor)
                        cycles.append(path[cycle_start:] + [neighbor])
                    elif state.get(neighbor) == _VisitState.WHITE:
                        state[neighbor] = _VisitState.GRAY
                        path.append(neighbor)
                        stack.append((neighbor, iter(self._adjacency.get(neighbor, []))))
                        break
                else:
                    stack.pop()
                    path.pop()
                    state[node] = _VisitState.BLACK

        return self._deduplicate_cycles(cycles)

    def _deduplicate_cycles(self, cycles: List[List[str]]) -> List[List[str]]:
        """중복 순환 제거 (순환 회전 고려)"""
        seen: Set[frozenset] = set()
        unique: List[List[str]] = []

        for cycle in cycles:
            nodes = frozenset(cycle[:-1])
            if nodes not in seen:
                seen.add(nodes)
                unique.append(cycle)

        return unique

    # =========================================================================
    # 전이적 의존성
    # =========================================================================

    def get_transitive_dependencies(self, item_id: str) -> Set[str]:
        """노드의 모든 전이적 의존성 (모호한 엣지 제외)"""
        if item_id not in self._nodes:
            return set()

        visited: Set[str] = set()
        stack = [item_id]

        while stack:
            current = stack.pop()
            for dep in self._adjacency.get(current, []):
                if dep not in visited:
                    visited.add(dep)
                    stack.append(dep)

        return visited

    # =========================================================================
    # Mermaid 시각화
    # =========================================================================

    def to_mermaid(self, max_nodes: int = 100) -> str:
        """
        Mermaid 형식 그래프 문자열 생성

        모호한 엣지는 점선(-.->)으로 표시
        """
        lines = ["graph TD"]
        nodes_to_show = list(self._nodes.keys())[:max_nodes]
        shown = set(nodes_to_show)

        for source in nodes_to_show:
            source_label = self._mermaid_label(self._nodes[source])
            src_id = self._mermaid_id(source)

            for target in self._adjacency.get(source, []):
                if target not in shown:
                    continue
                target_label = self._mermaid_label(self._nodes[target])
                tgt_id = self._mermaid_id(target)
                edge = self.get_edge(source, target)

                if edge and edge.kind != EdgeKind.REFERENCE:
                    lines.append(f"    {src_id}[\"{source_label}\"] -->|{edge.kind.value}| {tgt_id}[\"{target_label}\"]")
                else:
                    lines.append(f"    {src_id}[\"{source_label}\"] --> {tgt_id}[\"{target_label}\"]")

            for ambiguous in self._ambiguous_by_source.get(source, []):
                for target in ambiguous.candidates:
                    if target in shown:
                        lines.append(f"    {src_id} -.->|{ambiguous.reference}| {self._mermaid_id(target)}")

        if len(self._nodes) > max_nodes:
            lines.append(f"    %% ... and {len(self._nodes) - max_nodes} more nodes")

        return "\n".join(lines)

    def _mermaid_id(self, name: str) -> str:
        """Mermaid 노드 ID (특수문자 제거)"""
        return "n" + "".join(c if c.isalnum() else "_" for c in name)

    def _mermaid_label(self, item: Item) -> str:
        """Mermaid 노드 라벨"""
        return item.display_name.replace('"', "'")

    # =========================================================================
    # DOT (Graphviz) 시각화
    # =========================================================================

    def to_dot(self, max_nodes: int = 100) -> str:
        """DOT (Graphviz) 형식 그래프 문자열 생성"""
        lines = [
            "digraph DependencyGraph {",
            "    rankdir=TB;",
            '    node [shape=box, style=rounded];',
        ]

        nodes_to_show = list(self._nodes.keys())[:max_nodes]
        shown = set(nodes_to_show)

        for name in nodes_to_show:
            label = self._nodes[name].display_name.replace('"', '\\"')
            lines.append(f'    {self._dot_id(name)} [label="{label}"];')

        for source in nodes_to_show:
            for target in self._adjacency.get(source, []):
                if target not in shown:
                    continue
                edge = self.get_edge(source, target)
                if edge and edge.kind != EdgeKind.REFERENCE:
                    lines.append(f'    {self._dot_id(source)} -> {self._dot_id(target)} [label="{edge.kind.value}"];')
                else:
                    lines.append(f'    {self._dot_id(source)} -> {self._dot_id(target)};')
            for ambiguous in self._ambiguous_by_source.get(source, []):
                for target in ambiguous.candidates:
                    if target in shown:
                        lines.append(f'    {self._dot_id(source)} -> {self._dot_id(target)} [style=dashed];')

        lines.append("}")
        return "\n".join(lines)

    def _dot_id(self, name: str) -> str:
        """DOT 노드 ID"""
        escaped = name.replace('"', '\\"')
        return f'"{escaped}"'

    # =========================================================================
    # 유틸리티
    # =========================================================================

    def get_roots(self) -> List[str]:
        """루트 노드들 (아무도 참조하지 않는 노드)"""
        return [n for n in self._nodes if not self._reverse.get(n)]

    def get_leaves(self) -> List[str]:
        """리프 노드들 (다른 것을 참조하지 않는 노드)"""
        return [n for n in self._nodes if not self._adjacency.get(n)]

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._nodes

    def __repr__(self) -> str:
        return (f"DependencyGraph(nodes={self.node_count}, edges={self.edge_count}, "
                f"ambiguous={self.ambiguous_count})")


# =============================================================================
# 그래프 구축
# =============================================================================

class GraphBuilder:
    """
    카탈로그 + 참조 목록 → DependencyGraph

    참조 해석 규칙:
    - METHOD: 같은 이름의 impl fn, 그 메서드를 선언한 trait
      (impl 안의 self.x() 호출은 같은 self type 블록을 우선)
    - 한정자 있음: self type/trait 이름이 한정자와 같은 블록의 impl item,
      한정자가 모듈/crate 이름인 top-level item
    - 한정자 없음: 같은 이름의 top-level item (MACRO는 매크로만)
    - impl 후보가 둘 이상의 블록에 걸치면 모호한 엣지
    """

    def __init__(self, catalog: ItemCatalog, references: Dict[str, List[Reference]]):
        self.catalog = catalog
        self.references = references
        self._trait_methods: Dict[str, List[str]] = self._index_trait_methods()

    def build(self) -> DependencyGraph:
        graph = DependencyGraph()
        for item in self.catalog:
            graph.add_node(item)

        for item in self.catalog:
            self._add_structural_edges(graph, item)
            for ref in self.references.get(item.id, []):
                self._resolve(graph, item, ref)

        logger.info("graph: %d nodes, %d edges, %d ambiguous",
                    graph.node_count, graph.edge_count, graph.ambiguous_count)
        return graph

    # -------------------------------------------------------------------------
    # 구조적 엣지
    # -------------------------------------------------------------------------

    def _add_structural_edges(self, graph: DependencyGraph, item: Item) -> None:
        if item.owner is not None:
            graph.add_edge(DependencyEdge(item.id, item.owner, EdgeKind.OWNER))
        elif item.parent is not None:
            graph.add_edge(DependencyEdge(item.id, item.parent, EdgeKind.OWNER))
        for member in item.trait_members:
            graph.add_edge(DependencyEdge(item.id, member, EdgeKind.MEMBER))

    # -------------------------------------------------------------------------
    # 참조 해석
    # -------------------------------------------------------------------------

    def _resolve(self, graph: DependencyGraph, item: Item, ref: Reference) -> None:
        if ref.kind == ReferenceKind.MACRO:
            targets = [m for m in self.catalog.named(ref.name) if m.kind == ItemKind.MACRO]
            self._link(graph, item, ref, targets)
            return

        if ref.kind == ReferenceKind.METHOD:
            candidates = [c for c in self.catalog.impl_items_named(ref.name)
                          if c.kind == ItemKind.IMPL_FN]
            on_self = ref.qualifier == "self"
            if on_self:
                candidates = self._prefer_own_type(item, candidates)
            traits = [self.catalog[t] for t in self._trait_methods.get(ref.name, [])]
            self._link(graph, item, ref, traits)
            self._link_impl_candidates(graph, item, ref, candidates, keep_caller=not on_self)
            return

        if ref.qualifier is not None:
            qualifier = self._expand_self(item, ref.qualifier)
            candidates = [
                c for c in self.catalog.impl_items_named(ref.name)
                if c.block_name is not None and qualifier in (
                    c.block_name.self_type_name, c.block_name.trait_name)
            ]
            self._link_impl_candidates(graph, item, ref, candidates)
            targets = [t for t in self.catalog.named(ref.name)
                       if t.kind != ItemKind.MACRO and self._in_scope(t, ref.qualifier)]
            self._link(graph, item, ref, targets)
            return

        targets = [t for t in self.catalog.named(ref.name) if t.kind != ItemKind.MACRO]
        self._link(graph, item, ref, targets)

    def _link(self, graph: DependencyGraph, item: Item, ref: Reference, targets: List[Item]) -> None:
        for target in targets:
            graph.add_edge(DependencyEdge(item.id, target.id, EdgeKind.REFERENCE, ref))

    def _link_impl_candidates(
        self,
        graph: DependencyGraph,
        item: Item,
        ref: Reference,
        candidates: List[Item],
        keep_caller: bool = False,
    ) -> None:
        if not keep_caller:
            candidates = [c for c in candidates if c.id != item.id]
        if not candidates:
            return
        blocks = {c.owner for c in candidates}
        if len(blocks) == 1:
            self._link(graph, item, ref, candidates)
            return
        logger.debug("ambiguous reference %s from %s (%d blocks)", ref, item.id, len(blocks))
        graph.add_ambiguous(AmbiguousEdge(item.id, ref, tuple(c.id for c in candidates)))

    def _prefer_own_type(self, item: Item, candidates: List[Item]) -> List[Item]:
        """impl 안의 self.x() 호출은 같은 self type의 블록을 우선"""
        if item.block_name is None:
            return candidates
        own_type = item.block_name.self_type_name
        preferred = [c for c in candidates
                     if c.block_name is not None and c.block_name.self_type_name == own_type]
        return preferred or candidates

    def _expand_self(self, item: Item, qualifier: str) -> str:
        if qualifier == "Self" and item.block_name is not None:
            return item.block_name.self_type_name
        return qualifier

    @staticmethod
    def _in_scope(target: Item, qualifier: str) -> bool:
        if target.module_path:
            return target.module_path[-1] == qualifier or qualifier in ("self", "super")
        return qualifier in (target.crate, "crate", "self", "super")

    def _index_trait_methods(self) -> Dict[str, List[str]]:
        """trait 정의의 메서드 이름 → trait identity"""
        index: Dict[str, List[str]] = defaultdict(list)
        for item in self.catalog:
            if item.kind != ItemKind.TRAIT or item.node is None:
                continue
            body = item.node.child_by_field_name("body")
            if body is None:
                continue
            for child in body.named_children:
                if child.type in ("function_signature_item", "function_item"):
                    name = child.child_by_field_name("name")
                    if name is not None:
                        index[name.text.decode("utf-8")].append(item.id)
        return index


def build_graph(catalog: ItemCatalog, references: Dict[str, List[Reference]]) -> DependencyGraph:
    """편의 함수"""
    return GraphBuilder(catalog, references).build()


__all__ = [
    'DependencyGraph',
    'GraphBuilder',
    'build_graph',
]
