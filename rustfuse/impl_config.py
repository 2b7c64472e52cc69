"""
rustfuse/impl_config.py
=======================
Impl 설정 계층: 사용자 의도를 자동 분석과 분리하여 적용

설정 구조:
    impl_items:
      include: ["name", "name@impl ...", "*@impl ..."]
      exclude: [...]
    impl_blocks:
      include: ["impl fmt::Display for Value"]
      exclude: [...]

설계 원칙:
1. 핵심 분석(graph, reachability)은 설정을 모름
2. 설정 파일만 수정하여 동작 조정 (YAML 읽기/쓰기, TOML 읽기)
   TOML 설정의 대화형 결정은 옆의 <stem>.decisions.yaml 에 저장되고
   TOML을 로드할 때 함께 적용된다
3. 우선순위: include > exclude > 기본값
4. 대화형 결정은 같은 형식의 패턴으로 저장 (기본 .rustfuse/impl_config.yaml)
"""

import logging
import tomllib
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Any

import yaml

from .catalog import ItemCatalog
from .errors import AmbiguousImplItemReference, ImplConfigError, InvalidImplPattern
from .models import Item
from .qualified_name import ImplBlockName, ImplItemPattern, looks_like_block_pattern


logger = logging.getLogger(__name__)

CONFIG_DIR = ".rustfuse"
CONFIG_FILE = "impl_config.yaml"
SECTIONS = ("impl_items", "impl_blocks")


@dataclass
class RuleSet:
    """include / exclude 패턴 목록 (순서 유지, 중복 없음)"""
    include: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)

    def add(self, pattern: str, include: bool) -> None:
        target = self.include if include else self.exclude
        if pattern not in target:
            target.append(pattern)

    def is_empty(self) -> bool:
        return not (self.include or self.exclude)

    def to_dict(self) -> Dict[str, List[str]]:
        return {"include": list(self.include), "exclude": list(self.exclude)}


@dataclass
class ImplConfig:
    """
    impl 설정 전체

    구조:
    - impl_items: impl item 패턴 (plain name / name@block / *@block)
    - impl_blocks: impl 블록 정규화 이름
    """
    impl_items: RuleSet = field(default_factory=RuleSet)
    impl_blocks: RuleSet = field(default_factory=RuleSet)
    source_path: Optional[Path] = None
    # TOML 설정의 결정 파일 (YAML)
    overlay: Optional["ImplConfig"] = field(default=None, repr=False)

    # 메타데이터
    version: str = "1.0"
    last_updated: Optional[str] = None
    last_updated_by: Optional[str] = None

    @staticmethod
    def default_path(crate_dir: Path) -> Path:
        return Path(crate_dir) / CONFIG_DIR / CONFIG_FILE

    @staticmethod
    def decisions_path(toml_path: Path) -> Path:
        """TOML 설정 옆의 결정 파일: impl.toml → impl.decisions.yaml"""
        return Path(toml_path).with_suffix(".decisions.yaml")

    @classmethod
    def load(cls, path: Path) -> "ImplConfig":
        """
        설정 파일 로드

        - .toml → tomllib, 이어서 결정 파일(<stem>.decisions.yaml)을 겹쳐 적용
        - 그 외 → yaml.safe_load
        - 파일이 없으면 빈 설정
        """
        path = Path(path)
        config = cls._load_file(path)
        if path.suffix == ".toml":
            config.overlay = cls._load_file(cls.decisions_path(path))
            config.absorb(config.overlay)
        return config

    @classmethod
    def _load_file(cls, path: Path) -> "ImplConfig":
        config = cls(source_path=path)
        if not path.exists():
            logger.debug("no impl config at %s", path)
            return config

        try:
            if path.suffix == ".toml":
                with open(path, "rb") as f:
                    data = tomllib.load(f)
            else:
                with open(path, encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
        except (yaml.YAMLError, tomllib.TOMLDecodeError, OSError) as e:
            raise ImplConfigError(f"Cannot read impl config {path}: {e}") from e

        if not isinstance(data, dict):
            raise ImplConfigError(f"Impl config {path} must be a mapping")

        config.version = str(data.get("version", "1.0"))
        config.last_updated = data.get("last_updated")
        config.last_updated_by = data.get("last_updated_by")
        for section in SECTIONS:
            rules = getattr(config, section)
            raw = data.get(section) or {}
            if not isinstance(raw, dict):
                raise ImplConfigError(f"[{section}] in {path} must be a table")
            for key, include in (("include", True), ("exclude", False)):
                entries = raw.get(key) or []
                if not isinstance(entries, list) or not all(isinstance(e, str) for e in entries):
                    raise ImplConfigError(f"{section}.{key} in {path} must be a list of strings")
                for entry in entries:
                    rules.add(entry.strip(), include)

        logger.info("loaded impl config %s", path)
        return config

    @classmethod
    def for_crate(cls, crate_dir: Path) -> "ImplConfig":
        """crate의 기본 위치 설정 (없으면 빈 설정)"""
        return cls.load(cls.default_path(crate_dir))

    def save(self, path: Optional[Path] = None) -> Path:
        """설정을 YAML로 저장 (TOML 원본은 건드리지 않음)"""
        path = Path(path) if path is not None else self.source_path
        if path is None or path.suffix == ".toml":
            raise ImplConfigError("Impl config can only be saved to a YAML file")
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "version": self.version,
            "last_updated": datetime.now().isoformat(),
            "last_updated_by": self.last_updated_by or "rustfuse",
            "impl_items": self.impl_items.to_dict(),
            "impl_blocks": self.impl_blocks.to_dict(),
        }
        with open(path, 'w', encoding='utf-8') as f:
            yaml.dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)
        logger.info("saved impl config %s", path)
        return path

    def has_any_rules(self) -> bool:
        """규칙이 하나라도 있는지 확인"""
        return not (self.impl_items.is_empty() and self.impl_blocks.is_empty())

    def add_rules(
        self,
        include_items: Optional[List[str]] = None,
        exclude_items: Optional[List[str]] = None,
        include_blocks: Optional[List[str]] = None,
        exclude_blocks: Optional[List[str]] = None,
    ) -> "ImplConfig":
        """명령행 규칙 추가"""
        for pattern in include_items or []:
            self.impl_items.add(pattern, True)
        for pattern in exclude_items or []:
            self.impl_items.add(pattern, False)
        for pattern in include_blocks or []:
            self.impl_blocks.add(pattern, True)
        for pattern in exclude_blocks or []:
            self.impl_blocks.add(pattern, False)
        return self

    def absorb(self, other: "ImplConfig") -> None:
        """다른 설정의 규칙을 이 설정에 추가"""
        for section in SECTIONS:
            mine: RuleSet = getattr(self, section)
            theirs: RuleSet = getattr(other, section)
            for pattern in theirs.include:
                mine.add(pattern, True)
            for pattern in theirs.exclude:
                mine.add(pattern, False)
        if other.has_any_rules():
            logger.info("applied impl decisions from %s", other.source_path)

    def merge_decisions(self, catalog: ItemCatalog, decisions: Dict[str, bool]) -> Dict[str, bool]:
        """
        대화형 결정 → impl_items 패턴으로 병합

        이름이 유일하면 plain name, 아니면 name@block. 반대 목록의 같은
        패턴은 제거하며, 두 목록은 정렬된다.

        Returns:
            {패턴: include 여부}
        """
        patterns = decision_patterns(catalog, decisions)
        for pattern, include in patterns.items():
            opposite = self.impl_items.exclude if include else self.impl_items.include
            if pattern in opposite:
                opposite.remove(pattern)
            self.impl_items.add(pattern, include)
        self.impl_items.include.sort()
        self.impl_items.exclude.sort()
        self.last_updated_by = "rustfuse-dialog"
        if self.overlay is not None:
            self.overlay.merge_decisions(catalog, decisions)
        return patterns

    def to_dict(self) -> Dict[str, Any]:
        return {section: getattr(self, section).to_dict() for section in SECTIONS}


def decision_patterns(catalog: ItemCatalog, decisions: Dict[str, bool]) -> Dict[str, bool]:
    """Item identity → 설정 패턴 (정렬)"""
    patterns: Dict[str, bool] = {}
    for item_id, include in decisions.items():
        item = catalog[item_id]
        blocks = {c.owner for c in catalog.impl_items_named(item.name)}
        if len(blocks) == 1:
            pattern = item.name
        else:
            pattern = f"{item.name}@{item.block_name}"
        patterns[pattern] = include
    return dict(sorted(patterns.items()))


# =============================================================================
# 패턴 → identity 해석
# =============================================================================

@dataclass
class ResolvedRules:
    """설정을 카탈로그에 적용한 결과 (identity 집합)"""
    include_items: Set[str] = field(default_factory=set)
    exclude_items: Set[str] = field(default_factory=set)
    include_blocks: Set[str] = field(default_factory=set)
    exclude_blocks: Set[str] = field(default_factory=set)
    unmatched: List[str] = field(default_factory=list)
    origins: Dict[str, str] = field(default_factory=dict)


# 모호한 plain name에 대해 블록을 고르는 콜백 (pattern, 후보 블록) → 블록 id
BlockChooser = Callable[[str, List[Item]], Optional[str]]


class ImplConfigResolver:
    """
    설정 패턴을 카탈로그 identity로 해석

    - plain name이 둘 이상의 블록에 있으면 AmbiguousImplItemReference
      (chooser가 있으면 chooser가 블록을 고름)
    - 한정자 없는 "*" → InvalidImplPattern
    - impl_items 목록의 블록 이름(공백 포함, '@' 없음)은 블록 패턴으로 취급
    - 아무것도 매칭하지 않는 패턴은 unmatched에 기록
    """

    def __init__(self, catalog: ItemCatalog):
        self.catalog = catalog
        self._blocks_by_name: Dict[ImplBlockName, List[Item]] = {}
        for block in catalog.impl_blocks():
            self._blocks_by_name.setdefault(block.block_name, []).append(block)

    def resolve(self, config: ImplConfig, chooser: Optional[BlockChooser] = None) -> ResolvedRules:
        rules = ResolvedRules()
        for include in (True, False):
            item_patterns = config.impl_items.include if include else config.impl_items.exclude
            block_patterns = config.impl_blocks.include if include else config.impl_blocks.exclude
            item_target = rules.include_items if include else rules.exclude_items
            block_target = rules.include_blocks if include else rules.exclude_blocks

            for pattern in item_patterns:
                if looks_like_block_pattern(pattern):
                    matched = self.match_blocks(pattern)
                    target = block_target
                else:
                    matched = self.match_items(pattern, chooser)
                    target = item_target
                self._record(rules, pattern, matched, target)

            for pattern in block_patterns:
                self._record(rules, pattern, self.match_blocks(pattern), block_target)
        return rules

    def match_blocks(self, pattern: str) -> List[Item]:
        """정규화 이름 일치 블록 (같은 이름 블록 모두)"""
        name = ImplBlockName.parse(pattern)
        return list(self._blocks_by_name.get(name, []))

    def match_items(self, pattern: str, chooser: Optional[BlockChooser] = None) -> List[Item]:
        parsed = ImplItemPattern.parse(pattern)
        if parsed.block is not None:
            matched: List[Item] = []
            for block in self._blocks_by_name.get(parsed.block, []):
                matched.extend(
                    child for child in self.catalog.children_of(block.id)
                    if parsed.is_wildcard or child.name == parsed.name
                )
            return matched

        candidates = self.catalog.impl_items_named(parsed.name)
        block_ids: List[str] = []
        for candidate in candidates:
            if candidate.owner not in block_ids:
                block_ids.append(candidate.owner)
        if len(block_ids) <= 1:
            return candidates

        blocks = [self.catalog[b] for b in block_ids]
        chosen = chooser(pattern, blocks) if chooser is not None else None
        if chosen is None:
            raise AmbiguousImplItemReference({parsed.name: [b.name for b in blocks]}, pattern)
        return [c for c in candidates if c.owner == chosen]

    def check(self, config: ImplConfig) -> List[str]:
        """
        설정 검증 (check-config)

        Returns:
            문제 설명 목록 (비어 있으면 정상)
        """
        problems: List[str] = []
        for section in SECTIONS:
            rules: RuleSet = getattr(config, section)
            for key in ("include", "exclude"):
                for pattern in getattr(rules, key):
                    try:
                        if section == "impl_blocks" or looks_like_block_pattern(pattern):
                            matched = self.match_blocks(pattern)
                        else:
                            matched = self.match_items(pattern)
                    except (InvalidImplPattern, AmbiguousImplItemReference) as e:
                        problems.append(f"{section}.{key}: {e}")
                        continue
                    if not matched:
                        problems.append(f"{section}.{key}: '{pattern}' matches nothing")
            both = set(rules.include) & set(rules.exclude)
            for pattern in sorted(both):
                problems.append(f"{section}: '{pattern}' is both included and excluded (include wins)")
        return problems

    @staticmethod
    def _record(rules: ResolvedRules, pattern: str, matched: List[Item], target: Set[str]) -> None:
        if not matched:
            rules.unmatched.append(pattern)
            return
        for item in matched:
            target.add(item.id)
            rules.origins.setdefault(item.id, pattern)


__all__ = [
    'CONFIG_DIR',
    'CONFIG_FILE',
    'RuleSet',
    'ImplConfig',
    'ResolvedRules',
    'ImplConfigResolver',
    'decision_patterns',
]
