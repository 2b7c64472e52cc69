"""
rustfuse/qualified_name.py
==========================
impl 블록 정규화 이름(fully qualified name)과 impl item 패턴

이름 구성 (순서 고정, 공백 하나로 연결):
1. "impl" + 제네릭/라이프타임 파라미터 목록
2. trait 경로 + 구분자 "for" (trait impl인 경우)
3. 대상 타입 경로 (필수)
4. where 절

각 구성요소 내부의 공백은 모두 제거한다. 예:
    impl<'a> From<&'a str> for FooType<'a>
    → impl<'a> From<&'astr> for FooType<'a>

소스에서 읽은 헤더와 설정 파일의 패턴 모두 같은 parse()를 거치므로
비교는 항상 정규화된 문자열 기준이다.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .errors import InvalidImplPattern


_WHITESPACE = re.compile(r"\s+")
_TYPE_PREFIX = re.compile(r"^(?:&|\*const\s+|\*mut\s+|'\w+\s+|mut\s+|dyn\s+|impl\s+|!|\s+)*")
_IDENTIFIER = re.compile(r"^(?:r#)?[A-Za-z_][A-Za-z0-9_]*$")

_OPENERS = "<([{"
_CLOSERS = ">)]}"


def normalize(text: str) -> str:
    """구성요소 내부 공백 제거"""
    return _WHITESPACE.sub("", text)


def base_name(type_text: str) -> str:
    """
    타입/trait 경로에서 마지막 세그먼트 이름 추출

    "&'a mut map::TwoDim<X, Y>" → "TwoDim", "dyn Fn(u8) + Send" → "Fn"
    """
    text = _TYPE_PREFIX.sub("", type_text.strip())
    for stop in ("<", "(", " ", "+", "{"):
        index = text.find(stop)
        if index >= 0:
            text = text[:index]
    segment = text.split("::")[-1]
    return segment.strip() or normalize(type_text)


# =============================================================================
# 스캐너
# =============================================================================

def _scan_group(text: str, start: int, pattern: str) -> int:
    """
    text[start]의 여는 괄호에 대응하는 닫는 위치 반환

    "->"의 ">"는 닫는 괄호로 취급하지 않는다.
    """
    depth = 0
    prev = ""
    for index in range(start, len(text)):
        ch = text[index]
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS and not (ch == ">" and prev == "-"):
            depth -= 1
            if depth == 0:
                return index
        prev = ch
    raise InvalidImplPattern(pattern, "unbalanced brackets in generic parameters")


def _split_top_level(text: str, pattern: str) -> List[str]:
    """괄호 밖의 공백 기준으로 세그먼트 분리"""
    segments: List[str] = []
    current: List[str] = []
    depth = 0
    prev = ""
    for ch in text:
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS and not (ch == ">" and prev == "-"):
            depth -= 1
            if depth < 0:
                raise InvalidImplPattern(pattern, f"unexpected '{ch}'")
        if ch.isspace() and depth == 0:
            if current:
                segments.append("".join(current))
                current = []
        else:
            current.append(ch)
        prev = ch
    if depth != 0:
        raise InvalidImplPattern(pattern, "unbalanced brackets")
    if current:
        segments.append("".join(current))
    return segments


# =============================================================================
# ImplBlockName
# =============================================================================

@dataclass(frozen=True)
class ImplBlockName:
    """
    impl 블록 정규화 이름

    동등성/해시는 정규화된 네 구성요소 기준.
    self_type_name / trait_name은 `Type::item` 한정자 해석용 plain name.
    """
    generics: str
    trait_path: Optional[str]
    type_path: str
    where_clause: Optional[str] = None
    self_type_name: str = field(default="", compare=False)
    trait_name: Optional[str] = field(default=None, compare=False)

    @classmethod
    def from_parts(
        cls,
        generics: str,
        trait_path: Optional[str],
        type_path: str,
        where_clause: Optional[str] = None,
    ) -> "ImplBlockName":
        trait = normalize(trait_path) if trait_path else None
        return cls(
            generics=normalize(generics),
            trait_path=trait or None,
            type_path=normalize(type_path),
            where_clause=normalize(where_clause) if where_clause else None,
            self_type_name=base_name(type_path),
            trait_name=base_name(trait_path) if trait else None,
        )

    @classmethod
    def parse(cls, text: str) -> "ImplBlockName":
        """
        impl 헤더 텍스트 파싱

        소스 헤더(`impl<T: Copy> Foo<T> where T: Default`)와 정규화된
        이름(`impl<T:Copy> Foo<T> whereT:Default`) 모두 허용한다.
        """
        pattern = text
        source = text.strip().rstrip("{;").strip()
        if source.startswith("unsafe") and source[6:7].isspace():
            source = source[6:].lstrip()
        if not source.startswith("impl") or (len(source) > 4 and not (
                source[4] == "<" or source[4].isspace())):
            raise InvalidImplPattern(pattern, "impl block name must start with 'impl'")

        rest = source[4:].lstrip()
        generics = ""
        if rest.startswith("<"):
            end = _scan_group(rest, 0, pattern)
            generics = rest[:end + 1]
            rest = rest[end + 1:]

        trait_segments: List[str] = []
        type_segments: List[str] = []
        where_segments: List[str] = []
        has_trait = False
        for segment in _split_top_level(rest, pattern):
            if where_segments:
                where_segments.append(segment)
            elif segment.startswith("where") and type_segments:
                where_segments.append(segment)
            elif segment == "for" and not has_trait:
                if not type_segments:
                    raise InvalidImplPattern(pattern, "missing trait path before 'for'")
                trait_segments, type_segments = type_segments, []
                has_trait = True
            else:
                type_segments.append(segment)

        if not type_segments:
            raise InvalidImplPattern(pattern, "missing self type")

        return cls.from_parts(
            generics,
            " ".join(trait_segments) if has_trait else None,
            " ".join(type_segments),
            " ".join(where_segments) if where_segments else None,
        )

    @property
    def components(self) -> Tuple[str, ...]:
        parts = ["impl" + self.generics]
        if self.trait_path:
            parts.append(f"{self.trait_path} for")
        parts.append(self.type_path)
        if self.where_clause:
            parts.append(self.where_clause)
        return tuple(parts)

    def __str__(self) -> str:
        return " ".join(self.components)


# =============================================================================
# ImplItemPattern
# =============================================================================

@dataclass(frozen=True)
class ImplItemPattern:
    """
    impl item 설정 패턴

    - "name"            : plain name (유일해야 함)
    - "name@impl ..."   : 특정 블록의 item
    - "*@impl ..."      : 블록의 모든 item
    """
    name: str
    block: Optional[ImplBlockName] = None

    @property
    def is_wildcard(self) -> bool:
        return self.name == "*"

    @classmethod
    def parse(cls, text: str) -> "ImplItemPattern":
        parts = text.strip().split("@")
        if len(parts) > 2:
            raise InvalidImplPattern(text, "more than one '@'")
        name = parts[0].strip()
        if not name:
            raise InvalidImplPattern(text, "missing item name")
        if name != "*" and not _IDENTIFIER.match(name):
            raise InvalidImplPattern(text, f"'{name}' is not an item name")
        if len(parts) == 1:
            if name == "*":
                raise InvalidImplPattern(text, "wildcard requires an impl block qualifier")
            return cls(name)
        return cls(name, ImplBlockName.parse(parts[1]))

    def __str__(self) -> str:
        if self.block is None:
            return self.name
        return f"{self.name}@{self.block}"


def looks_like_block_pattern(text: str) -> bool:
    """impl_items 목록의 항목이 실제로는 블록 이름인지 (공백 포함, '@' 없음)"""
    stripped = text.strip()
    return "@" not in stripped and bool(_WHITESPACE.search(stripped))


__all__ = [
    'ImplBlockName',
    'ImplItemPattern',
    'normalize',
    'base_name',
    'looks_like_block_pattern',
]
