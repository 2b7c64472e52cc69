"""
rustfuse/assembler.py
=====================
Fusion Assembler + Rust emitter

- FusionAssembler: Required Item을 카탈로그 순서로, identity당 한 번
- RustEmitter: 단일 파일 텍스트 생성
    * 바이너리 crate 항목은 최상위에 선언 순서대로
    * 라이브러리 crate는 `pub mod <crate> { ... }` 로 감쌈
    * 모듈은 `mod` 블록으로 중첩, trait 없는 impl 블록은 Required item만
    * 경로 재작성: lib 내부 `crate::` → `crate::<lib>::`,
      다른 lib 참조 `<lib>::` → `crate::<lib>::`
"""

import logging
import re
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Set, Tuple

from .catalog import ItemCatalog
from .models import Item, ItemKind, ResolutionState


logger = logging.getLogger(__name__)


def default_output_path(crate_dir: Path, crate_name: str) -> Path:
    return Path(crate_dir) / "src" / "bin" / f"fusion_of_{crate_name}.rs"


class FusionAssembler:
    """해석 상태 → 출력할 Item 순서열"""

    def __init__(self, catalog: ItemCatalog, states: Dict[str, ResolutionState]):
        self.catalog = catalog
        self.states = states

    def assemble(self) -> List[Item]:
        seen: Set[str] = set()
        ordered: List[Item] = []
        for item in self.catalog:
            if self.states.get(item.id) != ResolutionState.REQUIRED or item.id in seen:
                continue
            seen.add(item.id)
            ordered.append(item)
        return ordered


class RustEmitter:
    """
    조립된 Item 순서열 → 단일 Rust 소스

    출력은 입력 순서에만 의존한다 (결정적).
    """

    def __init__(self, catalog: ItemCatalog):
        self.catalog = catalog
        self.libraries = [c for c in catalog.crates if c != catalog.binary_crate]

    def emit(self, items: List[Item]) -> str:
        required = {item.id for item in items}
        by_module: Dict[Tuple[str, Tuple[str, ...]], List[Item]] = defaultdict(list)
        for item in items:
            if item.owner is not None:
                continue
            if item.kind == ItemKind.EXTERN_CRATE and item.name in self.libraries:
                continue
            by_module[(item.crate, item.module_path)].append(item)

        sections: List[str] = []
        for crate in self.catalog.crates:
            body = self._render_entries(crate, (), by_module, required)
            if crate == self.catalog.binary_crate:
                if body:
                    sections.append(self._rewrite(body, None))
            elif body:
                sections.append(f"pub mod {crate} {{\n{self._rewrite(body, crate)}\n}}")

        text = "\n\n".join(sections) + "\n"
        logger.info("emitted %d items (%d bytes)", len(items), len(text))
        return text

    # -------------------------------------------------------------------------
    # 렌더링
    # -------------------------------------------------------------------------

    def _render_entries(self, crate: str, module_path: Tuple[str, ...],
                        by_module, required: Set[str]) -> str:
        parts = [self._render(item, by_module, required)
                 for item in by_module.get((crate, module_path), [])]
        return "\n\n".join(parts)

    def _render(self, item: Item, by_module, required: Set[str]) -> str:
        if item.kind == ItemKind.MODULE:
            inner = self._render_entries(
                item.crate, item.module_path + (item.name,), by_module, required)
            if inner:
                return f"{item.header}\n{inner}\n{item.footer}"
            return f"{item.header}\n{item.footer}"

        if item.kind == ItemKind.IMPL:
            children = [self.catalog[c] for c in item.children]
            kept = [c for c in children if c.id in required]
            if len(kept) == len(children):
                return item.source
            body = "\n\n".join(c.source for c in kept)
            if body:
                return f"{item.header}\n{body}\n{item.footer}"
            return f"{item.header}\n{item.footer}"

        return item.source

    def _rewrite(self, text: str, crate) -> str:
        if crate is not None:
            text = re.sub(r"(?<![\w:$])crate::", f"crate::{crate}::", text)
        for lib in self.libraries:
            text = re.sub(rf"(?<![\w:$]){re.escape(lib)}::", f"crate::{lib}::", text)
        return text


__all__ = [
    'FusionAssembler',
    'RustEmitter',
    'default_output_path',
]
