"""
rustfuse/catalog.py
===================
Item Catalog: crate 구문 → 안정적인 identity를 가진 평면 Item 목록

규칙:
- identity = crate + 모듈 경로 + 종류 + 이름
- 같은 모듈의 같은 이름 impl 블록은 "#2", "#3" 접미사
- impl item identity = 블록 identity + "::" + 이름
- 삽입 순서 유지 (crate 순서 → 선언 순서)
- 중복 identity → DuplicateItemIdentity, 지원하지 않는 노드 → UnsupportedItemKind
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Tuple, Iterator

from tree_sitter import Node

from .errors import UnsupportedItemKind, DuplicateItemIdentity, EntryPointNotFound
from .models import Item, ItemKind, SourceLocation
from .qualified_name import ImplBlockName
from .sources import CrateSyntax, SyntaxItem, node_text


logger = logging.getLogger(__name__)


# tree-sitter 노드 → ItemKind
NODE_KINDS: Dict[str, ItemKind] = {
    "function_item": ItemKind.FUNCTION,
    "const_item": ItemKind.CONST,
    "static_item": ItemKind.STATIC,
    "type_item": ItemKind.TYPE_ALIAS,
    "struct_item": ItemKind.STRUCT,
    "enum_item": ItemKind.ENUM,
    "union_item": ItemKind.UNION,
    "trait_item": ItemKind.TRAIT,
    "mod_item": ItemKind.MODULE,
    "impl_item": ItemKind.IMPL,
    "use_declaration": ItemKind.USE,
    "macro_definition": ItemKind.MACRO,
    "extern_crate_declaration": ItemKind.EXTERN_CRATE,
}

IMPL_MEMBER_KINDS: Dict[str, ItemKind] = {
    "function_item": ItemKind.IMPL_FN,
    "const_item": ItemKind.IMPL_CONST,
    "type_item": ItemKind.IMPL_TYPE,
}

SKIPPED_NODES = {
    "attribute_item", "inner_attribute_item",
    "line_comment", "block_comment", "empty_statement",
}


def make_identity(crate: str, module_path: Tuple[str, ...], kind: ItemKind, name: str) -> str:
    return "::".join((crate,) + tuple(module_path) + (kind.value, name))


def _line_start(source: bytes, start: int) -> int:
    """start 앞이 공백뿐이면 그 줄의 시작 위치"""
    begin = source.rfind(b"\n", 0, start) + 1
    if source[begin:start].strip():
        return start
    return begin


def _text(source: bytes, start: int, end: int) -> str:
    return source[start:end].decode("utf-8")


# =============================================================================
# use 선언 분석
# =============================================================================

def _use_names(node: Optional[Node], source: bytes) -> Tuple[List[str], bool]:
    """
    use 선언이 도입하는 이름들과 glob 여부

    `use a::{b, c as d, e::*};` → (["b", "d"], True)
    """
    names: List[str] = []
    glob = False
    stack = [node] if node is not None else []
    while stack:
        current = stack.pop()
        kind = current.type
        if kind == "use_wildcard":
            glob = True
        elif kind == "use_as_clause":
            alias = current.child_by_field_name("alias")
            if alias is not None:
                names.append(node_text(alias, source))
        elif kind == "scoped_use_list":
            list_node = current.child_by_field_name("list")
            if list_node is not None:
                stack.append(list_node)
        elif kind == "use_list":
            stack.extend(reversed(current.named_children))
        elif kind == "scoped_identifier":
            name = current.child_by_field_name("name")
            if name is not None:
                names.append(node_text(name, source))
        elif kind in ("identifier", "crate", "super", "self"):
            names.append(node_text(current, source))
    return names, glob


# =============================================================================
# Catalog
# =============================================================================

class ItemCatalog:
    """
    평면 Item 컬렉션

    사용 예:
        catalog = ItemCatalog.build(crates)
        for item in catalog:
            ...
    """

    def __init__(self):
        self._items: Dict[str, Item] = {}
        self._by_name: Dict[str, List[str]] = defaultdict(list)
        self._impl_items_by_name: Dict[str, List[str]] = defaultdict(list)
        self._modules: Dict[Tuple[str, Tuple[str, ...]], str] = {}
        self._impl_occurrences: Dict[str, int] = defaultdict(int)
        self._crates: List[str] = []
        self._binary_crate: Optional[str] = None

    @classmethod
    def build(cls, crates: List[CrateSyntax]) -> "ItemCatalog":
        catalog = cls()
        for crate in crates:
            catalog.add_crate(crate)
        logger.info("catalog: %d items from %d crates", len(catalog), len(crates))
        return catalog

    # -------------------------------------------------------------------------
    # 조회
    # -------------------------------------------------------------------------

    def __iter__(self) -> Iterator[Item]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._items

    def __getitem__(self, item_id: str) -> Item:
        return self._items[item_id]

    def get(self, item_id: str) -> Optional[Item]:
        return self._items.get(item_id)

    @property
    def items(self) -> List[Item]:
        return list(self._items.values())

    @property
    def crates(self) -> List[str]:
        return list(self._crates)

    @property
    def binary_crate(self) -> Optional[str]:
        return self._binary_crate

    def named(self, name: str) -> List[Item]:
        """impl item을 제외한 이름 일치 Item (카탈로그 순서)"""
        return [self._items[i] for i in self._by_name.get(name, [])]

    def impl_items_named(self, name: str) -> List[Item]:
        return [self._items[i] for i in self._impl_items_by_name.get(name, [])]

    def impl_blocks(self) -> List[Item]:
        return [item for item in self._items.values() if item.is_impl_block]

    def children_of(self, block_id: str) -> List[Item]:
        return [self._items[i] for i in self._items[block_id].children]

    def module_id(self, crate: str, module_path: Tuple[str, ...]) -> Optional[str]:
        return self._modules.get((crate, tuple(module_path)))

    def find_entry(self, name: str = "main") -> Item:
        """바이너리 crate 루트 모듈의 함수"""
        crate = self._binary_crate
        if crate is not None:
            item_id = make_identity(crate, (), ItemKind.FUNCTION, name)
            if item_id in self._items:
                return self._items[item_id]
        raise EntryPointNotFound(name, crate or "")

    # -------------------------------------------------------------------------
    # 구축
    # -------------------------------------------------------------------------

    def add_crate(self, crate: CrateSyntax) -> None:
        if crate.is_binary and self._binary_crate is None:
            self._binary_crate = crate.name
        if crate.name not in self._crates:
            self._crates.append(crate.name)
        for syntax in crate.items:
            self._add_syntax(crate, syntax)

    def _add_syntax(self, crate: CrateSyntax, syntax: SyntaxItem) -> None:
        node_type = syntax.kind
        if node_type in SKIPPED_NODES:
            return
        kind = NODE_KINDS.get(node_type)
        location = SourceLocation(str(syntax.file), syntax.line, syntax.column)
        if kind is None:
            raise UnsupportedItemKind(node_type, str(location), self._excerpt(syntax.text))

        source = syntax.source
        node = syntax.node
        start = _line_start(source, syntax.start_byte)
        item = Item(
            id="",
            kind=kind,
            name="",
            crate=crate.name,
            module_path=syntax.module_path,
            location=location,
            source=_text(source, start, node.end_byte),
            order=len(self._items),
            node=node,
            parent=self.module_id(crate.name, syntax.module_path),
            is_binary=crate.is_binary,
        )

        if kind == ItemKind.IMPL:
            self._fill_impl_block(item, syntax, start)
        elif kind == ItemKind.USE:
            argument = node.child_by_field_name("argument")
            item.name = "".join(node_text(argument, source).split()) if argument else ""
            item.use_names, item.use_glob = _use_names(argument, source)
        else:
            name_node = node.child_by_field_name("name")
            if name_node is None:
                raise UnsupportedItemKind(node_type, str(location), "item without a name")
            item.name = node_text(name_node, source)
            if kind == ItemKind.MODULE:
                item.header = _text(source, start, name_node.end_byte) + " {"
                item.footer = " " * (syntax.column - 1) + "}"

        item.id = make_identity(crate.name, syntax.module_path, kind, item.name)
        if kind == ItemKind.IMPL:
            self._impl_occurrences[item.id] += 1
            occurrence = self._impl_occurrences[item.id]
            if occurrence > 1:
                item.id = f"{item.id}#{occurrence}"
        self._register(item)

        if kind == ItemKind.MODULE:
            self._modules[(crate.name, syntax.module_path + (item.name,))] = item.id
        elif kind == ItemKind.IMPL:
            self._add_impl_children(item, syntax)

    def _fill_impl_block(self, item: Item, syntax: SyntaxItem, start: int) -> None:
        node = syntax.node
        body = node.child_by_field_name("body")
        if body is None:
            raise UnsupportedItemKind("impl_item", str(item.location), "impl without body")
        header = _text(syntax.source, node.start_byte, body.start_byte)
        item.block_name = ImplBlockName.parse(header)
        item.name = str(item.block_name)
        item.header = _text(syntax.source, start, body.start_byte + 1)
        closing = body.end_byte - 1
        item.footer = _text(syntax.source, _line_start(syntax.source, closing), body.end_byte)

    def _add_impl_children(self, block: Item, syntax: SyntaxItem) -> None:
        source = syntax.source
        body = syntax.node.child_by_field_name("body")
        leading: List[Node] = []
        for child in body.named_children:
            if child.type in ("attribute_item", "line_comment", "block_comment"):
                if child.type == "attribute_item" or node_text(child, source).startswith(("///", "/**")):
                    leading.append(child)
                else:
                    leading = []
                continue
            kind = IMPL_MEMBER_KINDS.get(child.type)
            location = SourceLocation(
                str(syntax.file), child.start_point[0] + 1, child.start_point[1] + 1)
            if kind is None:
                raise UnsupportedItemKind(
                    child.type, str(location), f"inside {block.name}")
            name_node = child.child_by_field_name("name")
            if name_node is None:
                raise UnsupportedItemKind(child.type, str(location), "impl item without a name")

            start = _line_start(source, leading[0].start_byte if leading else child.start_byte)
            leading = []
            name = node_text(name_node, source)
            member = Item(
                id=f"{block.id}::{name}",
                kind=kind,
                name=name,
                crate=block.crate,
                module_path=block.module_path,
                location=location,
                source=_text(source, start, child.end_byte),
                order=len(self._items),
                node=child,
                parent=block.parent,
                owner=block.id,
                is_binary=block.is_binary,
                block_name=block.block_name,
            )
            self._register(member)
            block.children.append(member.id)
            if block.implements_trait:
                block.trait_members.append(member.id)

    def _register(self, item: Item) -> None:
        existing = self._items.get(item.id)
        if existing is not None:
            raise DuplicateItemIdentity(item.id, str(existing.location), str(item.location))
        self._items[item.id] = item
        if item.kind.is_impl_member:
            self._impl_items_by_name[item.name].append(item.id)
        elif item.kind not in (ItemKind.IMPL, ItemKind.USE):
            self._by_name[item.name].append(item.id)
        logger.debug("catalog item %s", item.id)

    @staticmethod
    def _excerpt(text: str, limit: int = 40) -> str:
        first = text.strip().splitlines()[0] if text.strip() else ""
        return first if len(first) <= limit else first[:limit] + "..."


__all__ = [
    'ItemCatalog',
    'make_identity',
    'NODE_KINDS',
    'IMPL_MEMBER_KINDS',
]
