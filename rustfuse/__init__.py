"""
rustfuse - Rust 다중 crate 소스 퓨전 도구
==========================================

기능:
1. 카탈로그: 바이너리 + 라이브러리 crate의 top-level Item 수집 (tree-sitter)
2. 의존성 그래프: 구문상 참조, 구조적 엣지, 모호한 impl item 참조
3. 도달성 분석: main으로부터의 전이적 폐포
4. impl 충돌 정책: 설정(include > exclude > 기본) + 대화형 선택
5. 퓨전: Required Item만 담은 단일 .rs 파일

사용법:
    # CLI
    python -m rustfuse fuse ./my-challenge
    python -m rustfuse fuse . --batch --config impl_config.yaml
    python -m rustfuse items . --impl-only
    python -m rustfuse graph . --mermaid

    # Python API
    from rustfuse import fuse

    result = fuse("./my-challenge")
    for diag in result.diagnostics:
        print(f"[{diag.severity.value}] {diag.message}")

    print(result.output)
"""

__version__ = "0.1.0"

# 모델
from .models import (
    # Enums
    ItemKind, ResolutionState, ReferenceKind, EdgeKind,
    Severity, DiagnosticKind,

    # Data classes
    SourceLocation, Reference, Item, Diagnostic,
    DependencyEdge, AmbiguousEdge, Summary, FusionResult,
)

# 에러
from .errors import (
    FusionError, UnsupportedItemKind, DuplicateItemIdentity,
    CrateLoadError, SourceParseError, EntryPointNotFound,
    ImplConfigError, InvalidImplPattern,
    AmbiguousImplItemReference, UnresolvedTraitImpl, OperatorCancelled,
)

# 이름 / 소스
from .qualified_name import ImplBlockName, ImplItemPattern
from .sources import RustSourceParser, CrateSyntax, CargoManifest, CrateLoader

# 코어
from .catalog import ItemCatalog
from .references import ReferenceExtractor, extract_references
from .graph import DependencyGraph, GraphBuilder, build_graph
from .reachability import ReachabilityAnalyzer

# impl 설정 / 정책
from .impl_config import ImplConfig, ImplConfigResolver
from .policy import (
    ResolutionProvider, BatchResolutionProvider, FixedResolutionProvider,
    ConflictPolicyEngine,
)
from .dialog import ConsoleResolutionProvider

# 조립 / 파이프라인
from .assembler import FusionAssembler, RustEmitter
from .pipeline import FusionPipeline, fuse

# 리포터
from .reporters import (
    ConsoleReporter, MarkdownReporter, JsonReporter,
)

# CLI
from .cli import main as cli_main

__all__ = [
    # Version
    '__version__',

    # Enums
    'ItemKind', 'ResolutionState', 'ReferenceKind', 'EdgeKind',
    'Severity', 'DiagnosticKind',

    # Models
    'SourceLocation', 'Reference', 'Item', 'Diagnostic',
    'DependencyEdge', 'AmbiguousEdge', 'Summary', 'FusionResult',

    # Errors
    'FusionError', 'UnsupportedItemKind', 'DuplicateItemIdentity',
    'CrateLoadError', 'SourceParseError', 'EntryPointNotFound',
    'ImplConfigError', 'InvalidImplPattern',
    'AmbiguousImplItemReference', 'UnresolvedTraitImpl', 'OperatorCancelled',

    # Names / Sources
    'ImplBlockName', 'ImplItemPattern',
    'RustSourceParser', 'CrateSyntax', 'CargoManifest', 'CrateLoader',

    # Core
    'ItemCatalog', 'ReferenceExtractor', 'extract_references',
    'DependencyGraph', 'GraphBuilder', 'build_graph',
    'ReachabilityAnalyzer',

    # Impl config / policy
    'ImplConfig', 'ImplConfigResolver',
    'ResolutionProvider', 'BatchResolutionProvider', 'FixedResolutionProvider',
    'ConflictPolicyEngine', 'ConsoleResolutionProvider',

    # Assembly / pipeline
    'FusionAssembler', 'RustEmitter',
    'FusionPipeline', 'fuse',

    # Reporters
    'ConsoleReporter', 'MarkdownReporter', 'JsonReporter',

    # CLI
    'cli_main',
]
