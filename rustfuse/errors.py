"""
rustfuse/errors.py
==================
퓨전 예외 계층

모든 예외는 FusionError에서 파생되며 CLI가 한 곳에서 처리한다.
UnresolvedTraitImpl만 비치명적이며, 정책 엔진이 경고 진단으로 기록한다.
"""

from typing import Dict, List, Optional, Sequence


class FusionError(Exception):
    """rustfuse 예외 기반 클래스"""


# =============================================================================
# 카탈로그 / 입력
# =============================================================================

class UnsupportedItemKind(FusionError):
    """카탈로그가 처리할 수 없는 구문 노드"""

    def __init__(self, node_kind: str, location: str = "", context: str = ""):
        self.node_kind = node_kind
        self.location = location
        self.context = context
        where = f" at {location}" if location else ""
        detail = f" ({context})" if context else ""
        super().__init__(f"Unsupported item kind '{node_kind}'{where}{detail}")


class DuplicateItemIdentity(FusionError):
    """같은 identity를 가진 Item이 두 번 등록됨"""

    def __init__(self, identity: str, first: str = "", second: str = ""):
        self.identity = identity
        self.first = first
        self.second = second
        locations = ", ".join(loc for loc in (first, second) if loc)
        suffix = f" ({locations})" if locations else ""
        super().__init__(f"Duplicate item identity '{identity}'{suffix}")


class CrateLoadError(FusionError):
    """Cargo.toml, 소스 파일 또는 모듈 파일을 찾을 수 없음"""


class SourceParseError(FusionError):
    """파서가 구문 오류를 보고함"""

    def __init__(self, file: str, line: int = 0):
        self.file = file
        self.line = line
        where = f"{file}:{line}" if line else file
        super().__init__(f"Syntax error in {where}")


class EntryPointNotFound(FusionError):
    """진입점 함수가 카탈로그에 없음"""

    def __init__(self, name: str, crate: str = ""):
        self.name = name
        self.crate = crate
        scope = f" in crate '{crate}'" if crate else ""
        super().__init__(f"Entry point '{name}' not found{scope}")


# =============================================================================
# 설정 / 정책
# =============================================================================

class ImplConfigError(FusionError):
    """설정 파일을 읽을 수 없음"""


class InvalidImplPattern(FusionError):
    """잘못된 impl item / impl block 패턴"""

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid impl pattern '{pattern}': {reason}")


class AmbiguousImplItemReference(FusionError):
    """
    plain name이 둘 이상의 impl 블록에 존재하여 대상을 확정할 수 없음

    candidates: {plain name (또는 pending item id): [후보 impl 블록 이름]}
    """

    def __init__(self, candidates: Dict[str, List[str]], pattern: Optional[str] = None):
        self.candidates = candidates
        self.pattern = pattern
        lines = []
        for name, blocks in candidates.items():
            lines.append(f"  {name}:")
            lines.extend(f"    - {block}" for block in blocks)
        if pattern is not None:
            head = f"Impl item pattern '{pattern}' matches items of several impl blocks"
        else:
            head = "Unresolved impl items remain; qualify them with name@impl_block"
        super().__init__(head + "\n" + "\n".join(lines))


class UnresolvedTraitImpl(FusionError):
    """
    trait impl 블록이 모호한 참조로만 도달 가능함 (비치명적)

    정책 엔진이 Excluded로 처리하고 경고 진단으로 변환한다.
    """

    def __init__(self, block_name: str, items: Sequence[str] = ()):
        self.block_name = block_name
        self.items = list(items)
        super().__init__(
            f"Trait impl '{block_name}' is only reachable through ambiguous references"
        )


class OperatorCancelled(FusionError):
    """대화형 해석 중 사용자가 종료를 선택함"""

    def __init__(self, message: str = "Fusion canceled by user"):
        super().__init__(message)


__all__ = [
    'FusionError',
    'UnsupportedItemKind',
    'DuplicateItemIdentity',
    'CrateLoadError',
    'SourceParseError',
    'EntryPointNotFound',
    'ImplConfigError',
    'InvalidImplPattern',
    'AmbiguousImplItemReference',
    'UnresolvedTraitImpl',
    'OperatorCancelled',
]
