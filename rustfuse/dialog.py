"""
rustfuse/dialog.py
==================
Interactive Disambiguation: 운영자에게 Pending impl item 결정 요청

한 번에 item 하나를 묻고, 블록 단위 단축 명령을 제공한다.
결정 하나가 돌아갈 때마다 정책 엔진이 폐포를 다시 계산하므로
다음 질문은 갱신된 상태를 본다.

명령:
    i  이 item include        e  이 item exclude
    I  블록의 나머지 include   E  블록의 나머지 exclude
    c  코드 보기              u  사용처 보기
    /  다른 블록 검색 (/query)  q  종료 (OperatorCancelled)
"""

import difflib
import sys
from typing import Callable, Dict, IO, List, Optional, Tuple

from .errors import OperatorCancelled
from .models import Item
from .policy import PendingBlock, PendingSession, ResolutionProvider


HELP = ("[i] include  [e] exclude  [I] include all  [E] exclude all  "
        "[c] code  [u] usages  [/] search  [q] quit")


def rank_candidates(query: str, names: List[str], limit: int = 5) -> List[Tuple[int, float]]:
    """
    근사 문자열 매칭으로 후보 순위 계산

    Returns:
        (names 인덱스, 점수) 목록 (점수 내림차순, 동점은 인덱스 순)
    """
    needle = "".join(query.lower().split())
    scored: List[Tuple[int, float]] = []
    for index, name in enumerate(names):
        haystack = "".join(name.lower().split())
        score = difflib.SequenceMatcher(None, needle, haystack).ratio()
        if needle and needle in haystack:
            score += 1.0
        scored.append((index, score))
    scored.sort(key=lambda pair: (-pair[1], pair[0]))
    return scored[:limit]


class ConsoleResolutionProvider(ResolutionProvider):
    """
    터미널 대화형 결정 제공자

    Args:
        input_func: 프롬프트 → 응답 (기본 input)
        output: 출력 스트림 (기본 stdout)
    """

    interactive = True

    def __init__(
        self,
        input_func: Optional[Callable[[str], str]] = None,
        output: Optional[IO[str]] = None,
    ):
        self._input = input_func or input
        self.out = output or sys.stdout
        self._current: Optional[str] = None
        self._shown: Optional[str] = None

    # -------------------------------------------------------------------------
    # ResolutionProvider
    # -------------------------------------------------------------------------

    def decide(self, session: PendingSession) -> Dict[str, bool]:
        pending = session.block(self._current) if self._current else None
        if pending is None:
            pending = session.blocks[0]
            self._current = pending.block.id

        while True:
            if self._shown != pending.block.id:
                self._print_block(pending, len(session.blocks))
                self._shown = pending.block.id
            item = pending.items[0]
            answer = self._ask(f"  {item.name} ({item.kind.value}) > ")

            if answer == "i":
                return {item.id: True}
            if answer == "e":
                return {item.id: False}
            if answer == "I":
                return {i.id: True for i in pending.items}
            if answer == "E":
                return {i.id: False for i in pending.items}
            if answer == "c":
                self._print_code(pending.block, item)
            elif answer == "u":
                self._print_usages(session, item)
            elif answer.startswith("/"):
                jumped = self._search(session, answer[1:].strip(), pending)
                if jumped is not None:
                    pending = jumped
                    self._current = pending.block.id
            elif answer == "q":
                raise OperatorCancelled()
            else:
                self._print(f"  {HELP}")

    def choose_block(self, pattern: str, blocks: List[Item]) -> Optional[str]:
        self._print(f"\nConfig pattern '{pattern}' matches items of several impl blocks:")
        for number, block in enumerate(blocks, 1):
            self._print(f"  {number}) {block.name}  ({block.location})")
        while True:
            answer = self._ask("  Select block number (q to quit) > ")
            if answer == "q":
                raise OperatorCancelled()
            if answer.isdigit() and 1 <= int(answer) <= len(blocks):
                return blocks[int(answer) - 1].id

    def confirm_save(self, patterns: Dict[str, bool]) -> bool:
        self._print("\nDecisions:")
        for pattern, include in patterns.items():
            self._print(f"  {'include' if include else 'exclude'}: {pattern}")
        return self._ask("Save decisions to impl config? [y/N] ").lower() in ("y", "yes")

    # -------------------------------------------------------------------------
    # 출력 / 입력
    # -------------------------------------------------------------------------

    def _print_block(self, pending: PendingBlock, total: int) -> None:
        block = pending.block
        self._print("")
        self._print(f"{block.name}")
        self._print(f"  at {block.location}, {len(pending.items)} pending item(s), "
                    f"{total} block(s) left")
        self._print(f"  {HELP}")

    def _print_code(self, block: Item, item: Item) -> None:
        self._print(block.header)
        self._print(item.source)
        self._print(block.footer)

    def _print_usages(self, session: PendingSession, item: Item) -> None:
        usages = session.usages(item.id)
        if not usages:
            self._print("  no visible usages")
        for user in usages:
            self._print(f"  {user.display_name}  ({user.location})")

    def _search(self, session: PendingSession, query: str,
                current: PendingBlock) -> Optional[PendingBlock]:
        others = [p for p in session.blocks if p.block.id != current.block.id]
        if not others:
            self._print("  no other pending blocks")
            return None
        if not query:
            query = self._ask("  search block > ")
        ranked = rank_candidates(query, [p.block.name for p in others])
        for number, (index, _) in enumerate(ranked, 1):
            self._print(f"  {number}) {others[index].block.name}")
        answer = self._ask("  jump to (number, empty to stay) > ")
        if answer.isdigit() and 1 <= int(answer) <= len(ranked):
            return others[ranked[int(answer) - 1][0]]
        return None

    def _ask(self, prompt: str) -> str:
        try:
            return self._input(prompt).strip()
        except EOFError:
            raise OperatorCancelled("Input closed during interactive resolution")
        except KeyboardInterrupt:
            raise OperatorCancelled("Interrupted during interactive resolution")

    def _print(self, text: str) -> None:
        print(text, file=self.out)


__all__ = [
    'ConsoleResolutionProvider',
    'rank_candidates',
]
