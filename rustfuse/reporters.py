"""
rustfuse/reporters.py
=====================
퓨전 결과 리포터

지원 형식:
- Console: ANSI 색상 지원 터미널 출력
- Markdown: 문서화용 마크다운
- JSON: 기계 판독용 JSON
"""

import json
import sys
import os
from typing import IO, Optional, Dict, List
from abc import ABC, abstractmethod

from .models import FusionResult, Diagnostic, Summary, Severity


SEVERITY_ORDER = [Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW]


def sort_diagnostics(diagnostics: List[Diagnostic]) -> List[Diagnostic]:
    """심각도순 (같은 심각도는 발생 순서)"""
    return sorted(diagnostics, key=lambda d: SEVERITY_ORDER.index(d.severity))


# =============================================================================
# ANSI 색상 코드
# =============================================================================

class Colors:
    """ANSI 색상 코드"""
    RED = "\033[91m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    GREEN = "\033[92m"
    GRAY = "\033[90m"
    WHITE = "\033[97m"
    CYAN = "\033[96m"
    BOLD = "\033[1m"
    RESET = "\033[0m"


# =============================================================================
# 기본 리포터
# =============================================================================

class BaseReporter(ABC):
    """리포터 기본 클래스"""

    def __init__(self, output: Optional[IO[str]] = None):
        self.output = output or sys.stdout

    def writeln(self, text: str = ""):
        """줄 바꿈 포함 쓰기"""
        self.output.write(text + "\n")

    @abstractmethod
    def report(self, result: FusionResult):
        """퓨전 결과 출력"""
        pass


# =============================================================================
# 콘솔 리포터
# =============================================================================

class ConsoleReporter(BaseReporter):
    """
    콘솔 출력 리포터 (ANSI 색상 지원)

    리포트 구조:
    1. 요약 (Summary) - 상태별 Item 수
    2. 진단 목록 (Diagnostics) - 심각도별 정렬
    3. 포함된 Item 목록 - verbose 모드
    """

    SEVERITY_COLORS: Dict[Severity, str] = {
        Severity.CRITICAL: Colors.RED,
        Severity.HIGH: Colors.YELLOW,
        Severity.MEDIUM: Colors.BLUE,
        Severity.LOW: Colors.GRAY,
    }

    def __init__(
        self,
        output: Optional[IO[str]] = None,
        use_color: bool = True,
        verbose: bool = False
    ):
        super().__init__(output)
        self.verbose = verbose

        # 색상 사용 여부 결정
        self.use_color = use_color
        if os.getenv("NO_COLOR"):
            self.use_color = False
        if hasattr(self.output, 'isatty') and not self.output.isatty():
            self.use_color = False

    def color(self, text: str, color: str) -> str:
        """색상 적용"""
        if self.use_color:
            return f"{color}{text}{Colors.RESET}"
        return text

    def report(self, result: FusionResult):
        """퓨전 결과 출력"""
        self._report_header(result)
        self._report_summary(result.summary)

        if result.diagnostics:
            self._report_diagnostics(result.diagnostics)

        if self.verbose:
            self._report_items(result)

        if result.output_path:
            self.writeln(f"  {self.color('✓', Colors.GREEN)} Written: {result.output_path}")
            self.writeln()

    def _report_header(self, result: FusionResult):
        """헤더 출력"""
        self.writeln()
        self.writeln(self.color("=" * 60, Colors.CYAN))
        self.writeln(self.color("  rustfuse Fusion Report", Colors.BOLD))
        self.writeln(self.color("=" * 60, Colors.CYAN))
        self.writeln(f"  Challenge: {result.challenge}")
        self.writeln()

    def _report_summary(self, summary: Summary):
        """요약 출력"""
        self.writeln(self.color("--- Summary ---", Colors.BOLD))
        self.writeln(f"  Crates: {', '.join(summary.crates)}")
        self.writeln(f"  Items: {summary.total_items}")
        self.writeln(f"  Required: {summary.required_items}")
        self.writeln(f"  Excluded: {summary.excluded_items}")

        if summary.diagnostics_by_severity:
            self.writeln()
            self.writeln("  Diagnostics by Severity:")
            for sev, count in summary.diagnostics_by_severity.items():
                color = self.SEVERITY_COLORS.get(Severity(sev), Colors.WHITE)
                self.writeln(f"    {self.color(sev.upper(), color)}: {count}")

        self.writeln()

    def _report_diagnostics(self, diagnostics: List[Diagnostic]):
        """진단 목록 출력"""
        self.writeln(self.color(f"--- Diagnostics ({len(diagnostics)}) ---", Colors.BOLD))

        for diagnostic in sort_diagnostics(diagnostics):
            color = self.SEVERITY_COLORS.get(diagnostic.severity, Colors.WHITE)
            self.writeln()
            self.writeln(f"  [{self.color(diagnostic.severity.value.upper(), color)}] {diagnostic.message}")
            self.writeln(f"    Kind: {diagnostic.kind.value}")
            if diagnostic.locations:
                self.writeln("    Locations:")
                for loc in diagnostic.locations[:5]:
                    self.writeln(f"      • {loc}")
            if diagnostic.suggestion:
                self.writeln(f"    Suggestion: {diagnostic.suggestion}")

        self.writeln()

    def _report_items(self, result: FusionResult):
        """포함된 Item 목록 (verbose)"""
        self.writeln(self.color(f"--- Required Items ({len(result.items)}) ---", Colors.BOLD))
        for item in result.items:
            self.writeln(f"  • {item.id}")
        self.writeln()


# =============================================================================
# Markdown 리포터
# =============================================================================

class MarkdownReporter(BaseReporter):
    """Markdown 형식 리포터"""

    def report(self, result: FusionResult):
        """퓨전 결과 출력"""
        self.writeln("# rustfuse Fusion Report")
        self.writeln()
        self.writeln(f"- **Challenge**: {result.challenge}")
        if result.output_path:
            self.writeln(f"- **Output**: {result.output_path}")
        self.writeln()

        self._report_summary(result.summary)

        if result.diagnostics:
            self._report_diagnostics(result.diagnostics)

        if result.decisions:
            self.writeln("## Decisions")
            self.writeln()
            for item_id, include in result.decisions.items():
                self.writeln(f"- {'include' if include else 'exclude'}: `{item_id}`")
            self.writeln()

    def _report_summary(self, summary: Summary):
        """요약 출력"""
        self.writeln("## Summary")
        self.writeln()
        self.writeln("| Metric | Value |")
        self.writeln("|--------|-------|")
        self.writeln(f"| Crates | {', '.join(summary.crates)} |")
        self.writeln(f"| Items | {summary.total_items} |")
        self.writeln(f"| Required | {summary.required_items} |")
        self.writeln(f"| Excluded | {summary.excluded_items} |")

        for sev, count in summary.diagnostics_by_severity.items():
            self.writeln(f"| {sev.upper()} Diagnostics | {count} |")

        self.writeln()

    def _report_diagnostics(self, diagnostics: List[Diagnostic]):
        """진단 출력"""
        self.writeln("## Diagnostics")
        self.writeln()

        for diagnostic in sort_diagnostics(diagnostics):
            self.writeln(f"### {diagnostic.message}")
            self.writeln()
            self.writeln(f"- **Severity**: {diagnostic.severity.value}")
            self.writeln(f"- **Kind**: {diagnostic.kind.value}")

            if diagnostic.locations:
                self.writeln("- **Locations**:")
                for loc in diagnostic.locations[:5]:
                    self.writeln(f"  - {loc}")

            if diagnostic.suggestion:
                self.writeln(f"- **Suggestion**: {diagnostic.suggestion}")

            self.writeln()


# =============================================================================
# JSON 리포터
# =============================================================================

class JsonReporter(BaseReporter):
    """JSON 형식 리포터"""

    def __init__(self, output: Optional[IO[str]] = None, indent: int = 2):
        super().__init__(output)
        self.indent = indent

    def report(self, result: FusionResult):
        """퓨전 결과 출력"""
        self.writeln(json.dumps(result.to_dict(), indent=self.indent))


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    'Colors',
    'BaseReporter',
    'ConsoleReporter',
    'MarkdownReporter',
    'JsonReporter',
    'sort_diagnostics',
]
