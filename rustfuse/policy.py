"""
rustfuse/policy.py
==================
Impl Resolution & Conflict Policy Engine

처리 흐름:
1. 설정 패턴 → identity (ImplConfigResolver)
2. 우선순위 적용: include > exclude > 기본값
3. 진입점 + include 대상으로 폐포 계산
4. 후보 하나가 Required인 모호한 엣지는 해소 (self type이 Required인
   trait 없는 블록의 item은 남김, 놓아준 item은 진단), 나머지 trait 없는 블록의
   Pending item → ResolutionProvider (include 후마다 폐포 재계산)
5. trait 블록의 Pending item → Excluded + UnresolvedTraitImpl 경고
6. use 선언 결정, 남은 Item은 Excluded

모든 Item이 terminal 상태가 되거나, 배치 모드에서
AmbiguousImplItemReference로 실패한다.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from .catalog import ItemCatalog
from .errors import AmbiguousImplItemReference, UnresolvedTraitImpl
from .graph import DependencyGraph
from .impl_config import ImplConfig, ImplConfigResolver, ResolvedRules
from .models import (
    Diagnostic, DiagnosticKind, Item, ResolutionState, Severity
)
from .reachability import ReachabilityAnalyzer


logger = logging.getLogger(__name__)


# =============================================================================
# 결정 대기 집합
# =============================================================================

@dataclass
class PendingBlock:
    """Pending item을 가진 trait 없는 impl 블록"""
    block: Item
    items: List[Item] = field(default_factory=list)


class PendingSession:
    """
    ResolutionProvider에 전달되는 현재 결정 대기 상태

    blocks는 카탈로그 순서. 제공자는 한 번에 한 블록의 item에 대해서만
    결정을 돌려준다.
    """

    def __init__(self, catalog: ItemCatalog, graph: DependencyGraph,
                 reach: ReachabilityAnalyzer, blocks: List[PendingBlock]):
        self.catalog = catalog
        self.graph = graph
        self.reach = reach
        self.blocks = blocks

    def block(self, block_id: str) -> Optional[PendingBlock]:
        for pending in self.blocks:
            if pending.block.id == block_id:
                return pending
        return None

    def usages(self, item_id: str) -> List[Item]:
        """Item을 참조하는 Required Item (모호한 엣지 포함, 카탈로그 순서)"""
        sources: Set[str] = {edge.source for edge in self.reach.pending_via(item_id)}
        sources.update(s for s in self.graph.get_dependents(item_id) if self.reach.is_required(s))
        return sorted((self.catalog[s] for s in sources), key=lambda i: i.order)


# =============================================================================
# ResolutionProvider
# =============================================================================

class ResolutionProvider(ABC):
    """
    Pending item 결정 제공자

    decide()는 첫 번째(또는 제공자가 고른) 블록의 item에 대해
    {item id: include 여부}를 하나 이상 돌려준다.
    """

    interactive = False

    @abstractmethod
    def decide(self, session: PendingSession) -> Dict[str, bool]:
        ...

    def choose_block(self, pattern: str, blocks: List[Item]) -> Optional[str]:
        """모호한 설정 패턴의 블록 선택 (비대화형은 선택하지 않음)"""
        return None

    def confirm_save(self, patterns: Dict[str, bool]) -> bool:
        """결정을 설정 파일에 저장할지"""
        return False


class BatchResolutionProvider(ResolutionProvider):
    """배치 모드: 남은 Pending item 전부를 나열하며 실패"""

    def decide(self, session: PendingSession) -> Dict[str, bool]:
        candidates: Dict[str, List[str]] = {}
        for pending in session.blocks:
            for item in pending.items:
                blocks = candidates.setdefault(item.name, [])
                if pending.block.name not in blocks:
                    blocks.append(pending.block.name)
        raise AmbiguousImplItemReference(candidates)


class FixedResolutionProvider(ResolutionProvider):
    """모든 Pending item을 include 또는 exclude (--all-impl-items)"""

    def __init__(self, include: bool):
        self.include = include

    def decide(self, session: PendingSession) -> Dict[str, bool]:
        return {item.id: self.include for pending in session.blocks for item in pending.items}


# =============================================================================
# 정책 엔진
# =============================================================================

class ConflictPolicyEngine:
    """
    설정 + 자동 분석 + 결정 제공자 → 모든 Item의 terminal 상태

    사용 예:
        engine = ConflictPolicyEngine(catalog, graph, config, BatchResolutionProvider())
        states = engine.resolve(["challenge::fn::main"])
    """

    def __init__(
        self,
        catalog: ItemCatalog,
        graph: DependencyGraph,
        config: Optional[ImplConfig] = None,
        provider: Optional[ResolutionProvider] = None,
    ):
        self.catalog = catalog
        self.graph = graph
        self.config = config or ImplConfig()
        self.provider = provider or BatchResolutionProvider()
        self.reach = ReachabilityAnalyzer(catalog, graph)
        self.diagnostics: List[Diagnostic] = []
        self.decisions: Dict[str, bool] = {}
        self.rules = ResolvedRules()
        self._config_excluded: Set[str] = set()
        self._stats = {
            "config_included": 0,
            "config_excluded": 0,
            "provider_rounds": 0,
            "unresolved_trait_impls": 0,
        }

    @property
    def stats(self) -> Dict[str, int]:
        """적용 통계"""
        return self._stats.copy()

    def resolve(self, entry_points: List[str]) -> Dict[str, ResolutionState]:
        resolver = ImplConfigResolver(self.catalog)
        chooser = self.provider.choose_block if self.provider.interactive else None
        self.rules = resolver.resolve(self.config, chooser)
        for pattern in self.rules.unmatched:
            self._diagnose(
                DiagnosticKind.CONFIG_TARGET_NOT_FOUND, Severity.MEDIUM,
                f"Config pattern matches nothing: {pattern}",
                suggestion="Check the impl block name with 'rustfuse items'",
            )

        roots, pending_blocks = self._apply_rules()
        self.reach.extend(entry_points)
        self._note_forced(roots, self.reach.extend(roots))
        for block_id in pending_blocks:
            undecided = [c.id for c in self.catalog.children_of(block_id)
                         if self.reach.state(c.id) is None]
            self.reach.mark_pending(undecided)

        self._run_provider()
        self._exclude_unresolved_trait_impls()
        self._report_overrides()
        self._hint_unreferenced_trait_impls()

        self.reach.settle_uses()
        states = self.reach.finalize()
        logger.info("resolved %d items (%d required, %d edges followed)", len(states),
                    sum(1 for s in states.values() if s == ResolutionState.REQUIRED),
                    self.reach.edges_followed)
        logger.debug("policy stats: %s", self.stats)
        return states

    # -------------------------------------------------------------------------
    # 설정 적용
    # -------------------------------------------------------------------------

    def _apply_rules(self):
        """
        include > exclude 우선순위로 루트/제외 집합 계산

        Returns:
            (루트 identity 목록, item을 결정해야 하는 trait 없는 블록 목록)
        """
        rules = self.rules
        include_items: Set[str] = set(rules.include_items)
        pending_blocks: List[str] = []
        roots: List[str] = []

        for block in self.catalog.impl_blocks():
            if block.id not in rules.include_blocks:
                continue
            roots.append(block.id)
            if block.implements_trait:
                include_items.update(block.children)
            else:
                pending_blocks.append(block.id)

        exclude: Set[str] = set(rules.exclude_items)
        for block_id in rules.exclude_blocks:
            block = self.catalog[block_id]
            kept_children = [c for c in block.children if c in include_items]
            exclude.update(block.children)
            if block_id not in rules.include_blocks and not kept_children:
                exclude.add(block_id)
        exclude -= include_items
        exclude -= rules.include_blocks

        for block in self.catalog.impl_blocks():
            if block.implements_trait and include_items.intersection(block.children):
                exclude.difference_update(block.children)
                exclude.discard(block.id)

        ordered_includes = [i.id for i in self.catalog if i.id in include_items]
        ordered_excludes = [i.id for i in self.catalog if i.id in exclude]
        self._config_excluded = set(self.reach.mark_excluded(ordered_excludes))
        self._stats["config_included"] = len(ordered_includes) + len(rules.include_blocks)
        self._stats["config_excluded"] = len(ordered_excludes)
        return ordered_includes + roots, pending_blocks

    # -------------------------------------------------------------------------
    # 결정 루프
    # -------------------------------------------------------------------------

    def _run_provider(self) -> None:
        while True:
            self._report_released(self.reach.release_resolved())
            blocks = self._pending_trait_free_blocks()
            if not blocks:
                return
            session = PendingSession(self.catalog, self.graph, self.reach, blocks)
            decisions = self.provider.decide(session)
            self._stats["provider_rounds"] += 1
            pending = {item.id for b in blocks for item in b.items}
            decisions = {k: v for k, v in decisions.items() if k in pending}
            if not decisions:
                raise AmbiguousImplItemReference(
                    {item.name: [b.block.name] for b in blocks for item in b.items})
            self.apply_decisions(decisions)

    def _report_released(self, released: List[str]) -> None:
        for item_id in released:
            item = self.catalog[item_id]
            if item.block_name is None or item.implements_trait:
                continue
            self._diagnose(
                DiagnosticKind.AMBIGUITY_RELEASED, Severity.LOW,
                f"Excluded after its ambiguous reference was resolved: {item.display_name}",
                items=[item_id], locations=[item.location],
                suggestion=(f'Add "{item.name}@{self.catalog[item.owner].name}" '
                            "to [impl_items] include if it is still called"),
            )

    def apply_decisions(self, decisions: Dict[str, bool]) -> None:
        """결정을 설정 include/exclude와 같은 방식으로 적용"""
        includes = [i for i, include in decisions.items() if include]
        excludes = [i for i, include in decisions.items() if not include]
        self.reach.mark_excluded(excludes)
        for item_id in includes:
            self.reach.extend([item_id])
        self.decisions.update(decisions)
        logger.debug("applied %d decisions", len(decisions))

    def _pending_trait_free_blocks(self) -> List[PendingBlock]:
        by_block: Dict[str, PendingBlock] = {}
        for item_id in self.reach.pending_ids():
            item = self.catalog[item_id]
            if item.owner is None:
                continue
            block = self.catalog[item.owner]
            if block.implements_trait:
                continue
            by_block.setdefault(block.id, PendingBlock(block)).items.append(item)
        return sorted(by_block.values(), key=lambda p: p.block.order)

    # -------------------------------------------------------------------------
    # 기본값 / 진단
    # -------------------------------------------------------------------------

    def _exclude_unresolved_trait_impls(self) -> None:
        by_block: Dict[str, List[Item]] = {}
        for item_id in self.reach.pending_ids():
            item = self.catalog[item_id]
            if item.owner is not None and self.catalog[item.owner].implements_trait:
                by_block.setdefault(item.owner, []).append(item)

        for block_id, items in by_block.items():
            block = self.catalog[block_id]
            self.reach.mark_excluded([i.id for i in items])
            self.reach.mark_excluded([block_id])
            warning = UnresolvedTraitImpl(block.name, [i.name for i in items])
            self._diagnose(
                DiagnosticKind.UNRESOLVED_TRAIT_IMPL, Severity.HIGH, str(warning),
                items=[block_id] + [i.id for i in items],
                locations=[block.location],
                suggestion=f'Add "{block.name}" to [impl_blocks] include or exclude',
            )
            self._stats["unresolved_trait_impls"] += 1

    def _note_forced(self, roots: List[str], newly_required: List[str]) -> None:
        """진입점에서 도달하지 않고 설정으로만 포함된 Item 안내"""
        forced = set(newly_required)
        for item_id in roots:
            if item_id not in forced:
                continue
            item = self.catalog[item_id]
            self._diagnose(
                DiagnosticKind.FORCED_INCLUSION, Severity.LOW,
                f"Included by config without a visible reference: {item.display_name}",
                items=[item_id], locations=[item.location],
            )

    def _report_overrides(self) -> None:
        for item_id in self.reach.overridden:
            if item_id not in self._config_excluded:
                continue
            item = self.catalog[item_id]
            self._diagnose(
                DiagnosticKind.EXCLUDE_OVERRIDDEN, Severity.MEDIUM,
                f"Excluded by config but required by other items: {item.display_name}",
                items=[item_id], locations=[item.location],
                suggestion=f"Remove '{self.rules.origins.get(item_id, item.name)}' from exclude",
            )

    def _hint_unreferenced_trait_impls(self) -> None:
        required_types = {
            item.name for item in self.catalog
            if item.kind.is_type_like and self.reach.is_required(item.id)
        }
        for block in self.catalog.impl_blocks():
            if not block.implements_trait or self.reach.state(block.id) is not None:
                continue
            if block.block_name.self_type_name in required_types:
                self._diagnose(
                    DiagnosticKind.UNREFERENCED_TRAIT_IMPL, Severity.LOW,
                    f"Trait impl without visible references: {block.name}",
                    items=[block.id], locations=[block.location],
                    suggestion="Include it via [impl_blocks] if it is used through a macro "
                               "such as println!",
                )

    def _diagnose(self, kind: DiagnosticKind, severity: Severity, message: str,
                  items: Optional[List[str]] = None, locations=None, suggestion: str = "") -> None:
        self.diagnostics.append(Diagnostic(
            kind=kind, severity=severity, message=message,
            items=items or [], locations=locations or [], suggestion=suggestion,
        ))
        log = logger.warning if severity in (Severity.HIGH, Severity.CRITICAL) else logger.info
        log(message)


__all__ = [
    'PendingBlock',
    'PendingSession',
    'ResolutionProvider',
    'BatchResolutionProvider',
    'FixedResolutionProvider',
    'ConflictPolicyEngine',
]
