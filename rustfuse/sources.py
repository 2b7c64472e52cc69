"""
rustfuse/sources.py
===================
Rust 소스 입력 계층: tree-sitter 파싱 + Cargo crate 로딩

핵심 기능:
1. tree-sitter-rust로 파일 파싱 → SyntaxItem 목록 (모듈 경로 포함)
2. `mod foo;` 선언을 foo.rs / foo/mod.rs로 확장
3. #[cfg(test)] 항목 제외, 앞선 attribute/doc comment를 항목 범위에 포함
4. Cargo.toml(tomllib) 기반 crate 탐색: 바이너리, 패키지 lib, path 의존성

cargo metadata를 대신하는 얇은 계층. 레지스트리 의존성은 퓨전하지 않는다.
"""

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import tree_sitter_rust as ts_rust
from tree_sitter import Language, Node, Parser

from .errors import CrateLoadError, SourceParseError


logger = logging.getLogger(__name__)

RUST_LANGUAGE = Language(ts_rust.language())

# 항목에 붙는 선행 노드
_LEADING_NODES = {"attribute_item", "line_comment", "block_comment"}
# 모듈 루트 파일 (하위 모듈이 같은 디렉토리에 위치)
_MOD_ROOT_FILES = {"main.rs", "lib.rs", "mod.rs"}


# =============================================================================
# 구문 항목
# =============================================================================

@dataclass
class SyntaxItem:
    """
    파싱된 top-level 구문 항목 하나

    - node: tree-sitter 노드 (항목 본체)
    - start_byte: 선행 attribute/doc comment를 포함한 시작 위치
    - module_path: crate 루트 기준 모듈 경로 (항목이 속한 모듈)
    """
    node: Node
    source: bytes
    file: Path
    module_path: Tuple[str, ...]
    start_byte: int
    attributes: List[str] = field(default_factory=list)

    @property
    def kind(self) -> str:
        return self.node.type

    @property
    def text(self) -> str:
        return self.source[self.start_byte:self.node.end_byte].decode("utf-8")

    @property
    def line(self) -> int:
        return self.node.start_point[0] + 1

    @property
    def column(self) -> int:
        return self.node.start_point[1] + 1


@dataclass
class CrateSyntax:
    """카탈로그 입력: crate 하나의 구문 항목 (선언 순서)"""
    name: str
    is_binary: bool
    items: List[SyntaxItem] = field(default_factory=list)
    root_file: Optional[Path] = None


def node_text(node: Node, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode("utf-8")


def _is_doc_comment(text: str) -> bool:
    return text.startswith(("///", "//!", "/**", "/*!"))


def _is_cfg_test(attribute: str) -> bool:
    compact = "".join(attribute.split())
    return compact.startswith("#[cfg(") and "test" in compact[6:].split(")")[0].split(",")


# =============================================================================
# 파서
# =============================================================================

class RustSourceParser:
    """
    Rust 파일 → SyntaxItem 목록

    `mod foo;` 선언은 모듈 파일을 찾아 재귀적으로 펼친다.
    모듈 항목 자체도 SyntaxItem으로 남으며, 내부 항목들은 그 뒤에 온다.
    """

    def __init__(self):
        self._parser = Parser(RUST_LANGUAGE)

    def parse_file(self, path: Path, module_path: Tuple[str, ...] = ()) -> List[SyntaxItem]:
        """파일 하나와 그 하위 모듈 파일 파싱"""
        path = Path(path)
        if not path.exists():
            raise CrateLoadError(f"Source file not found: {path}")
        source = path.read_bytes()
        return self.parse_bytes(source, path, module_path)

    def parse_text(
        self,
        text: str,
        file: str = "<memory>.rs",
        module_path: Tuple[str, ...] = (),
    ) -> List[SyntaxItem]:
        """문자열 소스 파싱 (테스트, stdin 입력용)"""
        return self.parse_bytes(text.encode("utf-8"), Path(file), module_path)

    def parse_bytes(
        self,
        source: bytes,
        path: Path,
        module_path: Tuple[str, ...] = (),
    ) -> List[SyntaxItem]:
        tree = self._parser.parse(source)
        root = tree.root_node
        if root.has_error:
            raise SourceParseError(str(path), self._first_error_line(root))
        logger.debug("parsed %s (%d bytes)", path, len(source))

        if path.name in _MOD_ROOT_FILES:
            module_dir = path.parent
        else:
            module_dir = path.parent / path.stem
        items: List[SyntaxItem] = []
        self._collect(root.children, source, path, module_path, module_dir, items)
        return items

    def _collect(
        self,
        nodes: List[Node],
        source: bytes,
        path: Path,
        module_path: Tuple[str, ...],
        module_dir: Path,
        items: List[SyntaxItem],
    ) -> None:
        leading: List[Node] = []
        for node in nodes:
            if node.type in _LEADING_NODES:
                text = node_text(node, source)
                if node.type == "attribute_item" or _is_doc_comment(text):
                    leading.append(node)
                else:
                    leading = []
                continue
            if node.type in ("{", "}", ";"):
                continue

            attributes = [node_text(n, source) for n in leading if n.type == "attribute_item"]
            start_byte = leading[0].start_byte if leading else node.start_byte
            leading = []

            if any(_is_cfg_test(attr) for attr in attributes):
                logger.debug("skip #[cfg(test)] item at %s:%d", path, node.start_point[0] + 1)
                continue

            item = SyntaxItem(node, source, path, module_path, start_byte, attributes)
            items.append(item)

            if node.type == "mod_item":
                self._expand_module(item, module_dir, items)

    def _expand_module(self, item: SyntaxItem, module_dir: Path, items: List[SyntaxItem]) -> None:
        name_node = item.node.child_by_field_name("name")
        name = node_text(name_node, item.source)
        inner_path = item.module_path + (name,)
        body = item.node.child_by_field_name("body")

        if body is not None:
            self._collect(body.children, item.source, item.file, inner_path,
                          module_dir / name, items)
            return

        for candidate in (module_dir / f"{name}.rs", module_dir / name / "mod.rs"):
            if candidate.exists():
                logger.debug("module %s → %s", "::".join(inner_path), candidate)
                items.extend(self.parse_file(candidate, inner_path))
                return
        raise CrateLoadError(
            f"Module file for 'mod {name};' not found "
            f"(looked for {module_dir / (name + '.rs')} and {module_dir / name / 'mod.rs'})"
        )

    @staticmethod
    def _first_error_line(root: Node) -> int:
        stack = [root]
        while stack:
            node = stack.pop()
            if node.type == "ERROR" or node.is_missing:
                return node.start_point[0] + 1
            stack.extend(reversed(node.children))
        return 0


# =============================================================================
# Cargo manifest
# =============================================================================

@dataclass
class CargoManifest:
    """Cargo.toml 요약 (tomllib)"""
    directory: Path
    package_name: str
    lib_name: Optional[str] = None
    lib_path: Optional[Path] = None
    bin_path: Optional[Path] = None
    path_dependencies: Dict[str, Path] = field(default_factory=dict)
    registry_dependencies: List[str] = field(default_factory=list)

    @classmethod
    def load(cls, directory: Path) -> "CargoManifest":
        directory = Path(directory)
        manifest_file = directory / "Cargo.toml"
        if not manifest_file.exists():
            raise CrateLoadError(f"Cargo.toml not found in {directory}")
        try:
            with open(manifest_file, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise CrateLoadError(f"Invalid {manifest_file}: {e}") from e

        package = data.get("package", {})
        name = package.get("name")
        if not name:
            raise CrateLoadError(f"{manifest_file} has no [package] name")
        manifest = cls(directory=directory, package_name=name)

        lib = data.get("lib", {})
        lib_path = directory / lib.get("path", "src/lib.rs")
        if lib_path.exists():
            manifest.lib_path = lib_path
            manifest.lib_name = lib.get("name", name).replace("-", "_")

        bins = data.get("bin", [])
        bin_path = directory / "src" / "main.rs"
        if bins and bins[0].get("path"):
            bin_path = directory / bins[0]["path"]
        if bin_path.exists():
            manifest.bin_path = bin_path

        for dep_name, dep in data.get("dependencies", {}).items():
            if isinstance(dep, dict) and "path" in dep:
                crate_name = dep.get("package", dep_name)
                manifest.path_dependencies[crate_name] = (directory / dep["path"]).resolve()
            else:
                manifest.registry_dependencies.append(dep_name)
        return manifest


class CrateLoader:
    """
    challenge crate와 로컬 라이브러리 crate 로딩

    순서: 바이너리 → 패키지 자체 lib → path 의존성 (발견 순, 재귀)
    """

    def __init__(self, parser: Optional[RustSourceParser] = None):
        self.parser = parser or RustSourceParser()
        self._seen: Dict[str, Path] = {}

    def load(
        self,
        crate_dir: Path,
        extra_libs: Optional[Dict[str, Path]] = None,
    ) -> Tuple[CargoManifest, List[CrateSyntax]]:
        manifest = CargoManifest.load(crate_dir)
        if manifest.bin_path is None:
            raise CrateLoadError(f"No binary target (src/main.rs) in {crate_dir}")

        crates: List[CrateSyntax] = []
        binary = self._load_crate(
            manifest.package_name.replace("-", "_"), manifest.bin_path, is_binary=True)
        crates.append(binary)

        if manifest.lib_path is not None and manifest.lib_name:
            self._add_library(manifest.lib_name, manifest.lib_path, crates)
        self._add_dependencies(manifest, crates)

        for name, lib_file in (extra_libs or {}).items():
            self._add_library(name, Path(lib_file), crates)
        self._rename_binary(binary, crates)
        return manifest, crates

    @staticmethod
    def _rename_binary(binary: CrateSyntax, crates: List[CrateSyntax]) -> None:
        """라이브러리와 이름이 같은 바이너리 crate는 _bin 접미사"""
        libraries = {c.name for c in crates if not c.is_binary}
        name = binary.name
        while name in libraries:
            name += "_bin"
        if name != binary.name:
            logger.info("binary crate %s renamed to %s (library of the same name)", binary.name, name)
            binary.name = name

    def _add_dependencies(self, manifest: CargoManifest, crates: List[CrateSyntax]) -> None:
        for dep in manifest.registry_dependencies:
            logger.info("registry dependency '%s' is not fused", dep)
        for dep_name, dep_dir in manifest.path_dependencies.items():
            dep_manifest = CargoManifest.load(dep_dir)
            if dep_manifest.lib_path is None:
                raise CrateLoadError(f"Path dependency '{dep_name}' has no library target")
            lib_name = dep_manifest.lib_name or dep_name.replace("-", "_")
            if self._add_library(lib_name, dep_manifest.lib_path, crates):
                self._add_dependencies(dep_manifest, crates)

    def _add_library(self, name: str, lib_file: Path, crates: List[CrateSyntax]) -> bool:
        if name in self._seen:
            logger.debug("crate %s already loaded from %s", name, self._seen[name])
            return False
        self._seen[name] = lib_file
        crates.append(self._load_crate(name, lib_file, is_binary=False))
        return True

    def _load_crate(self, name: str, root_file: Path, is_binary: bool) -> CrateSyntax:
        items = self.parser.parse_file(root_file)
        logger.info("loaded crate %s from %s (%d items)", name, root_file, len(items))
        return CrateSyntax(name=name, is_binary=is_binary, items=items, root_file=root_file)


__all__ = [
    'RUST_LANGUAGE',
    'SyntaxItem',
    'CrateSyntax',
    'RustSourceParser',
    'CargoManifest',
    'CrateLoader',
    'node_text',
]
