"""
rustfuse/references.py
======================
Reference Extractor: Item 하나가 만드는 구문상 참조 목록

수집 대상:
- 함수 호출, 식 경로, 타입 표기, trait bound
- `Type::item` / `Self::item` / `Trait::item` (한정자 = 바로 앞 세그먼트)
- 메서드 호출 `x.item(..)`
- 매크로 호출 `name!(..)` 과 매크로 token tree 안의 식별자

이름은 plain name으로만 기록한다. 어느 impl 블록의 item인지는
그래프 구축/충돌 해석 단계에서 정해진다.

알려진 한계: println! 등 표준 매크로가 암묵적으로 호출하는 trait
메서드(Display::fmt 등)는 보이지 않는다.
"""

import re
from typing import Dict, List, Optional, Set, Tuple

from tree_sitter import Node

from .catalog import ItemCatalog
from .models import Item, ItemKind, Reference, ReferenceKind


_GENERIC_ARGS = re.compile(r"<[^<>]*>")

# 하위 노드를 보지 않는 노드
_OPAQUE_NODES = {
    "line_comment", "block_comment", "string_literal", "raw_string_literal",
    "char_literal", "lifetime", "label", "attribute_item", "inner_attribute_item",
    "token_tree_pattern", "field_identifier", "primitive_type",
}


def qualifier_of(path_text: str) -> Optional[str]:
    """
    경로의 마지막 세그먼트 (제네릭 제거)

    "Vec::<u8>" → "Vec", "map::TwoDim<X, Y>" → "TwoDim",
    "<T as Trait>" → "Trait"
    """
    text = path_text.strip()
    if text.startswith("<") and " as " in text:
        text = text[text.index(" as ") + 4:].rstrip(">").strip()
    previous = None
    while previous != text:
        previous = text
        text = _GENERIC_ARGS.sub("", text)
    segment = text.rstrip(":").split("::")[-1].strip()
    return segment or None


class ReferenceExtractor:
    """
    tree-sitter 노드 순회 기반 참조 추출기

    사용 예:
        extractor = ReferenceExtractor()
        refs = extractor.extract(item)
    """

    def __init__(self):
        self._refs: List[Reference] = []
        self._seen: Set[Tuple[str, ReferenceKind, Optional[str]]] = set()

    def extract_all(self, catalog: ItemCatalog) -> Dict[str, List[Reference]]:
        """카탈로그 전체 (카탈로그 순서)"""
        return {item.id: self.extract(item) for item in catalog}

    def extract(self, item: Item) -> List[Reference]:
        self._refs = []
        self._seen = set()
        node = item.node
        if node is None or item.kind in (ItemKind.MODULE, ItemKind.USE, ItemKind.EXTERN_CRATE):
            return []

        if item.kind == ItemKind.IMPL:
            for child in node.children:
                if child.type != "declaration_list":
                    self._walk(child)
        else:
            name_node = node.child_by_field_name("name")
            for child in node.children:
                if name_node is not None and self._same(child, name_node):
                    continue
                self._walk(child)
        return list(self._refs)

    # -------------------------------------------------------------------------
    # 순회
    # -------------------------------------------------------------------------

    def _walk(self, node: Node) -> None:
        kind = node.type
        if kind in _OPAQUE_NODES:
            return
        if kind == "identifier":
            self._add(self._text(node), ReferenceKind.PATH, None, node)
        elif kind == "type_identifier":
            self._add(self._text(node), ReferenceKind.TYPE, None, node)
        elif kind in ("scoped_identifier", "scoped_type_identifier"):
            self._walk_scoped(node)
        elif kind == "call_expression":
            self._walk_call(node)
        elif kind == "macro_invocation":
            self._walk_macro(node)
        elif kind == "token_tree":
            self._scan_tokens(node)
        elif kind in ("let_declaration", "parameter"):
            pattern = node.child_by_field_name("pattern")
            for child in node.children:
                if pattern is not None and self._same(child, pattern) \
                        and pattern.type == "identifier":
                    continue
                self._walk(child)
        elif kind == "enum_variant":
            name_node = node.child_by_field_name("name")
            for child in node.children:
                if name_node is None or not self._same(child, name_node):
                    self._walk(child)
        else:
            for child in node.children:
                self._walk(child)

    def _walk_scoped(self, node: Node) -> None:
        name = node.child_by_field_name("name")
        path = node.child_by_field_name("path")
        if name is None:
            return
        ref_kind = ReferenceKind.TYPE if node.type == "scoped_type_identifier" else ReferenceKind.PATH
        qualifier = qualifier_of(self._text(path)) if path is not None else None
        self._add(self._text(name), ref_kind, qualifier, name)
        if path is not None:
            self._walk(path)

    def _walk_call(self, node: Node) -> None:
        function = node.child_by_field_name("function")
        target = function
        if target is not None and target.type == "generic_function":
            target = target.child_by_field_name("function")
        if target is not None and target.type == "field_expression":
            field_node = target.child_by_field_name("field")
            value = target.child_by_field_name("value")
            if field_node is not None:
                receiver = "self" if value is not None and value.type == "self" else None
                self._add(self._text(field_node), ReferenceKind.METHOD, receiver, field_node)
            if value is not None:
                self._walk(value)
            if function is not target:
                type_args = function.child_by_field_name("type_arguments")
                if type_args is not None:
                    self._walk(type_args)
            for child in node.children:
                if not self._same(child, function):
                    self._walk(child)
            return
        for child in node.children:
            self._walk(child)

    def _walk_macro(self, node: Node) -> None:
        macro = node.child_by_field_name("macro")
        if macro is not None:
            if macro.type == "scoped_identifier":
                name = macro.child_by_field_name("name")
                path = macro.child_by_field_name("path")
                qualifier = qualifier_of(self._text(path)) if path is not None else None
                if name is not None:
                    self._add(self._text(name), ReferenceKind.MACRO, qualifier, name)
            else:
                self._add(self._text(macro), ReferenceKind.MACRO, None, macro)
        for child in node.children:
            if child.type == "token_tree":
                self._scan_tokens(child)

    def _scan_tokens(self, tree: Node) -> None:
        """
        매크로 token tree 스캔

        `.name`      → METHOD
        `A::b`       → b (한정자 A)
        `name!`      → MACRO
        나머지 식별자 → PATH
        """
        tokens = tree.children
        skip: Set[int] = set()
        for index, token in enumerate(tokens):
            if token.type == "token_tree":
                self._scan_tokens(token)
                continue
            if token.type != "identifier" or index in skip:
                continue
            text = self._text(token)
            prev = tokens[index - 1].type if index > 0 else ""
            nxt = tokens[index + 1].type if index + 1 < len(tokens) else ""
            if prev == ".":
                receiver = "self" if index >= 2 and self._text(tokens[index - 2]) == "self" else None
                self._add(text, ReferenceKind.METHOD, receiver, token)
            elif nxt == "!":
                self._add(text, ReferenceKind.MACRO, None, token)
            elif nxt == "::" and index + 2 < len(tokens) and tokens[index + 2].type == "identifier":
                self._add(text, ReferenceKind.PATH, None, token)
                self._add(self._text(tokens[index + 2]), ReferenceKind.PATH, text, tokens[index + 2])
                skip.add(index + 2)
            else:
                self._add(text, ReferenceKind.PATH, None, token)

    # -------------------------------------------------------------------------
    # 유틸리티
    # -------------------------------------------------------------------------

    def _add(self, name: str, kind: ReferenceKind, qualifier: Optional[str], node: Node) -> None:
        key = (name, kind, qualifier)
        if key in self._seen:
            return
        self._seen.add(key)
        self._refs.append(Reference(name, kind, qualifier, node.start_point[0] + 1))

    def _text(self, node: Node) -> str:
        return node.text.decode("utf-8")

    @staticmethod
    def _same(a: Node, b: Node) -> bool:
        return a.start_byte == b.start_byte and a.end_byte == b.end_byte and a.type == b.type


def extract_references(catalog: ItemCatalog) -> Dict[str, List[Reference]]:
    """편의 함수"""
    return ReferenceExtractor().extract_all(catalog)


__all__ = [
    'ReferenceExtractor',
    'extract_references',
    'qualifier_of',
]
