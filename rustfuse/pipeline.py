"""
rustfuse/pipeline.py
====================
퓨전 파이프라인 (오케스트레이터)

흐름:
Catalog → Reference Extractor → Graph Builder → Reachability
→ Conflict Policy Engine (설정 참조) → (필요 시) Interactive Disambiguation
→ Fusion Assembler → Emitter

모든 단계는 단일 스레드로 이전 단계의 완성된 출력만 소비한다.
취소(OperatorCancelled) 시 출력 파일과 설정 파일 모두 쓰지 않는다.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

from .assembler import FusionAssembler, RustEmitter, default_output_path
from .catalog import ItemCatalog
from .errors import EntryPointNotFound
from .graph import DependencyGraph, build_graph
from .impl_config import ImplConfig, decision_patterns
from .models import FusionResult, ResolutionState, Summary, Diagnostic
from .policy import BatchResolutionProvider, ConflictPolicyEngine, ResolutionProvider
from .references import extract_references
from .sources import CrateLoader, CrateSyntax


logger = logging.getLogger(__name__)


class FusionPipeline:
    """
    crate 디렉토리(또는 미리 파싱한 CrateSyntax 목록) → 단일 Rust 파일

    Args:
        crate_dir: challenge crate 경로 (Cargo.toml 위치)
        config: impl 설정 (없으면 crate 기본 위치에서 로드)
        provider: Pending item 결정 제공자 (기본: 배치)
        entry_points: main 외 추가 진입점 이름
        extra_libs: 추가 라이브러리 {crate 이름: lib.rs 경로}
        crates: 파싱된 crate 목록 (주어지면 crate_dir에서 읽지 않음)
        save_config: 대화형 결정을 확인 없이 저장
    """

    def __init__(
        self,
        crate_dir: Optional[Path] = None,
        config: Optional[ImplConfig] = None,
        provider: Optional[ResolutionProvider] = None,
        entry_points: Optional[List[str]] = None,
        extra_libs: Optional[Dict[str, Path]] = None,
        crates: Optional[List[CrateSyntax]] = None,
        save_config: bool = False,
    ):
        self.crate_dir = Path(crate_dir) if crate_dir is not None else None
        self.provider = provider or BatchResolutionProvider()
        self.entry_points = list(entry_points or [])
        self.extra_libs = dict(extra_libs or {})
        self.save_config = save_config
        self._crates = crates
        self._package: Optional[str] = None
        self._catalog: Optional[ItemCatalog] = None
        self._graph: Optional[DependencyGraph] = None

        if config is None:
            config = ImplConfig.for_crate(self.crate_dir) if self.crate_dir else ImplConfig()
        self.config = config

    # =========================================================================
    # 단계
    # =========================================================================

    def load(self) -> ItemCatalog:
        """crate 로딩 + 카탈로그"""
        if self._catalog is None:
            if self._crates is None:
                if self.crate_dir is None:
                    raise ValueError("crate_dir or crates is required")
                manifest, self._crates = CrateLoader().load(self.crate_dir, self.extra_libs)
                self._package = manifest.package_name.replace("-", "_")
            self._catalog = ItemCatalog.build(self._crates)
        return self._catalog

    def challenge_name(self) -> str:
        """패키지 이름 (crate 목록만 주어지면 바이너리 crate 이름)"""
        catalog = self.load()
        return self._package or catalog.binary_crate or ""

    def graph(self) -> DependencyGraph:
        """참조 추출 + 그래프 구축"""
        if self._graph is None:
            catalog = self.load()
            self._graph = build_graph(catalog, extract_references(catalog))
        return self._graph

    def entry_ids(self) -> List[str]:
        catalog = self.load()
        ids = [catalog.find_entry("main").id]
        for name in self.entry_points:
            matches = [item.id for item in catalog.named(name)]
            if not matches:
                raise EntryPointNotFound(name)
            ids.extend(m for m in matches if m not in ids)
        return ids

    # =========================================================================
    # 실행
    # =========================================================================

    def run(self, output_path: Optional[Path] = None) -> FusionResult:
        """
        전체 퓨전 실행

        Args:
            output_path: 출력 파일 경로 (None이면 파일을 쓰지 않음)
        """
        catalog = self.load()
        graph = self.graph()

        engine = ConflictPolicyEngine(catalog, graph, self.config, self.provider)
        states = engine.resolve(self.entry_ids())

        items = FusionAssembler(catalog, states).assemble()
        text = RustEmitter(catalog).emit(items)

        if engine.decisions:
            self._persist_decisions(catalog, engine.decisions)

        written: Optional[Path] = None
        if output_path is not None:
            written = Path(output_path)
            written.parent.mkdir(parents=True, exist_ok=True)
            written.write_text(text, encoding="utf-8")
            logger.info("wrote %s", written)

        return FusionResult(
            challenge=self.challenge_name(),
            items=items,
            states=states,
            diagnostics=engine.diagnostics,
            summary=self._create_summary(catalog, states, engine.diagnostics),
            output=text,
            output_path=str(written) if written else None,
            decisions=dict(engine.decisions),
        )

    def default_output(self) -> Optional[Path]:
        if self.crate_dir is None:
            return None
        return default_output_path(self.crate_dir, self.challenge_name() or "challenge")

    def _persist_decisions(self, catalog: ItemCatalog, decisions: Dict[str, bool]) -> None:
        patterns = decision_patterns(catalog, decisions)
        if not (self.save_config or self.provider.confirm_save(patterns)):
            return
        self.config.merge_decisions(catalog, decisions)
        if self.config.overlay is not None:
            self.config.overlay.save()
        else:
            self.config.save(self._config_target())

    def _config_target(self) -> Path:
        source = self.config.source_path
        if source is not None and source.suffix != ".toml":
            return source
        if self.crate_dir is not None:
            return ImplConfig.default_path(self.crate_dir)
        return ImplConfig.default_path(Path.cwd())

    def _create_summary(self, catalog: ItemCatalog, states: Dict[str, ResolutionState],
                        diagnostics: List[Diagnostic]) -> Summary:
        """요약 생성"""
        by_severity: Dict[str, int] = {}
        for diagnostic in diagnostics:
            sev = diagnostic.severity.value
            by_severity[sev] = by_severity.get(sev, 0) + 1

        return Summary(
            total_items=len(catalog),
            required_items=sum(1 for s in states.values() if s == ResolutionState.REQUIRED),
            excluded_items=sum(1 for s in states.values() if s == ResolutionState.EXCLUDED),
            crates=catalog.crates,
            diagnostics_by_severity=by_severity,
        )


def fuse(
    crate_dir: str,
    output: Optional[str] = None,
    config_path: Optional[str] = None,
    provider: Optional[ResolutionProvider] = None,
    entry_points: Optional[List[str]] = None,
) -> FusionResult:
    """
    crate 퓨전 편의 함수

    Args:
        crate_dir: challenge crate 경로
        output: 출력 경로 (None이면 src/bin/fusion_of_<crate>.rs)
        config_path: impl 설정 파일 (None이면 .rustfuse/impl_config.yaml)
        provider: 결정 제공자 (None이면 배치)
        entry_points: 추가 진입점

    Returns:
        FusionResult
    """
    config = ImplConfig.load(Path(config_path)) if config_path else None
    pipeline = FusionPipeline(
        crate_dir=Path(crate_dir),
        config=config,
        provider=provider,
        entry_points=entry_points,
    )
    target = Path(output) if output else pipeline.default_output()
    return pipeline.run(target)


__all__ = [
    'FusionPipeline',
    'fuse',
]
