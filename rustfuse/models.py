"""
rustfuse/models.py
==================
공통 타입 정의

설계 원칙:
- 외부 의존성 없음 (순수 Python 표준 라이브러리만)
- 순환 import 방지 (qualified_name 외에는 다른 모듈을 import하지 않음)
- Item은 카탈로그가 생성한 뒤 변경하지 않음 (해석 상태는 별도 맵에 보관)
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any, Tuple
import uuid

from .qualified_name import ImplBlockName


# =============================================================================
# 열거형 (Enums)
# =============================================================================

class ItemKind(Enum):
    """카탈로그 Item 종류"""
    FUNCTION = "fn"
    CONST = "const"
    STATIC = "static"
    TYPE_ALIAS = "type"
    STRUCT = "struct"
    ENUM = "enum"
    UNION = "union"
    TRAIT = "trait"
    MODULE = "mod"
    IMPL = "impl"
    USE = "use"
    MACRO = "macro_rules"
    EXTERN_CRATE = "extern_crate"
    # impl 블록 내부 항목
    IMPL_FN = "impl_fn"
    IMPL_CONST = "impl_const"
    IMPL_TYPE = "impl_type"

    @property
    def is_impl_member(self) -> bool:
        return self in (ItemKind.IMPL_FN, ItemKind.IMPL_CONST, ItemKind.IMPL_TYPE)

    @property
    def is_type_like(self) -> bool:
        return self in (
            ItemKind.STRUCT, ItemKind.ENUM, ItemKind.UNION,
            ItemKind.TYPE_ALIAS, ItemKind.TRAIT,
        )


class ResolutionState(Enum):
    """Item 해석 상태"""
    REQUIRED = "required"
    EXCLUDED = "excluded"
    PENDING = "pending"

    @property
    def is_terminal(self) -> bool:
        return self != ResolutionState.PENDING


class ReferenceKind(Enum):
    """구문상 참조 유형"""
    PATH = "path"          # 식 경로, 함수 호출
    TYPE = "type"          # 타입 표기, trait bound
    METHOD = "method"      # x.name(..)
    MACRO = "macro"        # name!(..)


class EdgeKind(Enum):
    """그래프 엣지 종류"""
    REFERENCE = "reference"  # 본문/시그니처 참조
    OWNER = "owner"          # impl item → impl 블록, item → 모듈
    MEMBER = "member"        # trait impl 블록 → 하위 item (원자성)


class Severity(Enum):
    """진단 심각도"""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DiagnosticKind(Enum):
    """진단 종류"""
    UNRESOLVED_TRAIT_IMPL = "unresolved_trait_impl"
    UNREFERENCED_TRAIT_IMPL = "unreferenced_trait_impl"
    CONFIG_TARGET_NOT_FOUND = "config_target_not_found"
    EXCLUDE_OVERRIDDEN = "exclude_overridden"
    FORCED_INCLUSION = "forced_inclusion"
    AMBIGUITY_RELEASED = "ambiguity_released"


# =============================================================================
# 기본 데이터 클래스
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """소스 위치 (1부터 시작하는 line/column)"""
    file: str
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if self.line:
            return f"{self.file}:{self.line}:{self.column}"
        return self.file


@dataclass(frozen=True)
class Reference:
    """
    Item이 만드는 구문상 참조 하나

    name은 항상 plain name. qualifier는 `Type::name` 형태일 때
    바로 앞 경로 세그먼트(제네릭 제거), `self.name(..)` 메서드 호출이면
    "self"이며, 나머지는 None.
    """
    name: str
    kind: ReferenceKind
    qualifier: Optional[str] = None
    line: int = 0

    def __str__(self) -> str:
        if self.kind == ReferenceKind.METHOD:
            return f"{self.qualifier or ''}.{self.name}()"
        if self.qualifier:
            return f"{self.qualifier}::{self.name}"
        if self.kind == ReferenceKind.MACRO:
            return f"{self.name}!"
        return self.name


@dataclass
class Item:
    """
    카탈로그의 Item 하나 (top-level 선언 또는 impl item)

    - id: 안정적인 식별자 (crate::module::kind::name)
    - owner: impl item이면 소유 impl 블록 id
    - parent: 감싸는 모듈 Item id (crate 루트면 None)
    - header/footer: impl/mod 블록을 다시 조립할 때 쓰는 여는/닫는 텍스트
    """
    id: str
    kind: ItemKind
    name: str
    crate: str
    module_path: Tuple[str, ...]
    location: SourceLocation
    source: str
    order: int
    node: Any = field(default=None, repr=False, compare=False)
    parent: Optional[str] = None
    owner: Optional[str] = None
    header: str = ""
    footer: str = ""
    is_binary: bool = False
    block_name: Optional[ImplBlockName] = None
    children: List[str] = field(default_factory=list)
    trait_members: List[str] = field(default_factory=list)
    use_names: List[str] = field(default_factory=list)
    use_glob: bool = False

    @property
    def is_impl_block(self) -> bool:
        return self.kind == ItemKind.IMPL

    @property
    def implements_trait(self) -> bool:
        return self.block_name is not None and self.block_name.trait_path is not None

    @property
    def display_name(self) -> str:
        """사람이 읽는 이름 (진단/다이얼로그용)"""
        if self.kind == ItemKind.IMPL:
            return str(self.block_name)
        if self.kind == ItemKind.USE:
            return self.name
        return f"{self.name} ({self.kind.value})"

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "id": self.id,
            "kind": self.kind.value,
            "name": self.name,
            "crate": self.crate,
            "module": "::".join(self.module_path),
            "location": str(self.location),
        }
        if self.owner:
            result["owner"] = self.owner
        if self.block_name is not None:
            result["trait"] = self.block_name.trait_path
        return result


@dataclass
class Diagnostic:
    """리포터로 전달되는 진단"""
    kind: DiagnosticKind
    severity: Severity
    message: str
    items: List[str] = field(default_factory=list)
    locations: List[SourceLocation] = field(default_factory=list)
    suggestion: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "severity": self.severity.value,
            "message": self.message,
            "items": list(self.items),
            "locations": [str(loc) for loc in self.locations],
            "suggestion": self.suggestion,
        }


# =============================================================================
# 그래프 관련 데이터 클래스
# =============================================================================

@dataclass(frozen=True)
class DependencyEdge:
    """의존성 엣지 (A → B: A가 B를 참조)"""
    source: str
    target: str
    kind: EdgeKind = EdgeKind.REFERENCE
    reference: Optional[Reference] = None


@dataclass(frozen=True)
class AmbiguousEdge:
    """
    둘 이상의 impl 블록에 같은 plain name이 있어 확정할 수 없는 참조

    candidates: 후보 impl item id (카탈로그 순서)
    """
    source: str
    reference: Reference
    candidates: Tuple[str, ...]


# =============================================================================
# 결과 데이터 클래스
# =============================================================================

@dataclass
class Summary:
    """퓨전 요약"""
    total_items: int = 0
    required_items: int = 0
    excluded_items: int = 0
    crates: List[str] = field(default_factory=list)
    diagnostics_by_severity: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_items": self.total_items,
            "required_items": self.required_items,
            "excluded_items": self.excluded_items,
            "crates": list(self.crates),
            "diagnostics_by_severity": dict(self.diagnostics_by_severity),
        }


@dataclass
class FusionResult:
    """퓨전 결과"""
    challenge: str
    items: List[Item] = field(default_factory=list)
    states: Dict[str, ResolutionState] = field(default_factory=dict)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    summary: Summary = field(default_factory=Summary)
    output: str = ""
    output_path: Optional[str] = None
    decisions: Dict[str, bool] = field(default_factory=dict)

    @property
    def required_ids(self) -> List[str]:
        return [item.id for item in self.items]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "challenge": self.challenge,
            "items": [i.to_dict() for i in self.items],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "summary": self.summary.to_dict(),
            "output_path": self.output_path,
            "decisions": dict(self.decisions),
        }


__all__ = [
    'ItemKind', 'ResolutionState', 'ReferenceKind', 'EdgeKind',
    'Severity', 'DiagnosticKind',
    'SourceLocation', 'Reference', 'Item', 'Diagnostic',
    'DependencyEdge', 'AmbiguousEdge', 'Summary', 'FusionResult',
]
