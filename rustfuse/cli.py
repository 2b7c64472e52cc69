#!/usr/bin/env python3
"""
rustfuse/cli.py
===============
rustfuse CLI

Usage:
    python -m rustfuse fuse ./my-challenge
    python -m rustfuse fuse . --batch --config impl_config.toml
    python -m rustfuse fuse . -j set@"impl<T> MyMap2D<T>" --stdout
    python -m rustfuse items .
    python -m rustfuse graph . --mermaid
    python -m rustfuse check-config .
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict

from .catalog import ItemCatalog
from .dialog import ConsoleResolutionProvider
from .errors import FusionError, OperatorCancelled
from .impl_config import ImplConfig, ImplConfigResolver
from .pipeline import FusionPipeline
from .policy import BatchResolutionProvider, FixedResolutionProvider, ResolutionProvider
from .reporters import ConsoleReporter, MarkdownReporter, JsonReporter


logger = logging.getLogger(__name__)


def print_header(text: str):
    print(f"\n{'=' * 60}")
    print(f"  {text}")
    print('=' * 60)


def print_section(text: str):
    print(f"\n--- {text} ---")


def configure_logging(args):
    """--verbose → INFO, --debug → DEBUG, 기본 WARNING"""
    level = logging.WARNING
    if getattr(args, "debug", False):
        level = logging.DEBUG
    elif getattr(args, "verbose", False):
        level = logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def parse_libs(values) -> Dict[str, Path]:
    """--lib NAME=PATH 목록 파싱"""
    libs: Dict[str, Path] = {}
    for value in values or []:
        name, sep, path = value.partition("=")
        if not sep or not name or not path:
            raise FusionError(f"--lib expects NAME=PATH, got '{value}'")
        libs[name.strip()] = Path(path.strip())
    return libs


def load_config(args, crate_dir: Path) -> ImplConfig:
    """설정 파일 + 명령행 규칙"""
    if getattr(args, "config", None):
        config = ImplConfig.load(Path(args.config))
    else:
        config = ImplConfig.for_crate(crate_dir)
    return config.add_rules(
        include_items=getattr(args, "include_impl_item", None),
        exclude_items=getattr(args, "exclude_impl_item", None),
        include_blocks=getattr(args, "include_impl_block", None),
        exclude_blocks=getattr(args, "exclude_impl_block", None),
    )


def select_provider(args) -> ResolutionProvider:
    if args.all_impl_items:
        return FixedResolutionProvider(include=args.all_impl_items == "include")
    if args.batch:
        return BatchResolutionProvider()
    return ConsoleResolutionProvider()


def build_pipeline(args, provider=None) -> FusionPipeline:
    crate_dir = Path(args.path).resolve()
    if not crate_dir.exists():
        raise FusionError(f"Path not found: {crate_dir}")
    return FusionPipeline(
        crate_dir=crate_dir,
        config=load_config(args, crate_dir),
        provider=provider,
        entry_points=getattr(args, "entry", None),
        extra_libs=parse_libs(getattr(args, "lib", None)),
        save_config=getattr(args, "save_config", False),
    )


# =============================================================================
# Commands
# =============================================================================

def cmd_fuse(args):
    """challenge crate 퓨전"""
    pipeline = build_pipeline(args, select_provider(args))

    if args.stdout:
        target = None
    elif args.output:
        target = Path(args.output)
    else:
        target = pipeline.default_output()

    result = pipeline.run(target)

    report_stream = sys.stderr if args.stdout else sys.stdout
    if args.format == "json":
        reporter = JsonReporter(report_stream)
    elif args.format == "markdown":
        reporter = MarkdownReporter(report_stream)
    else:
        reporter = ConsoleReporter(
            report_stream,
            use_color=not args.no_color,
            verbose=args.verbose
        )
    reporter.report(result)

    if args.stdout:
        sys.stdout.write(result.output)
    return 0


def cmd_items(args):
    """카탈로그 Item 목록 (설정 작성용)"""
    pipeline = build_pipeline(args)
    catalog: ItemCatalog = pipeline.load()

    print_header(f"Items: {catalog.binary_crate}")
    print(f"  Crates: {', '.join(catalog.crates)}")
    print(f"  Items: {len(catalog)}")

    if args.impl_only:
        for block in catalog.impl_blocks():
            print_section(block.name)
            print(f"  {block.location}")
            for child in catalog.children_of(block.id):
                print(f"    • {child.name}@{block.name}")
    else:
        print_section("Catalog")
        for item in catalog:
            if item.owner is not None:
                continue
            print(f"  {item.kind.value:<12} {item.id}")
            if item.is_impl_block:
                for child in catalog.children_of(item.id):
                    print(f"  {'':<12}   • {child.name}")

    print()
    return 0


def cmd_graph(args):
    """의존성 그래프 분석"""
    pipeline = build_pipeline(args)
    graph = pipeline.graph()

    print_header(f"Graph Analysis: {pipeline.load().binary_crate}")
    print(f"  Nodes: {graph.node_count}")
    print(f"  Edges: {graph.edge_count}")
    print(f"  Ambiguous: {graph.ambiguous_count}")
    print(f"  Unreferenced: {len(graph.get_roots())}")
    print(f"  Leaves: {len(graph.get_leaves())}")

    cycles = graph.find_cycles()
    if cycles:
        print_section(f"Cycles ({len(cycles)})")
        for cycle in cycles[:10]:
            print(f"  • {' → '.join(cycle)}")

    ambiguous = graph.get_ambiguous_edges()
    if ambiguous:
        print_section(f"Ambiguous References ({len(ambiguous)})")
        for edge in ambiguous[:20]:
            print(f"  • {edge.source}: {edge.reference}")
            for candidate in edge.candidates:
                print(f"      - {candidate}")

    if args.deps:
        if args.deps not in graph:
            raise FusionError(f"Unknown item identity: {args.deps}")
        deps = graph.get_transitive_dependencies(args.deps)
        print_section(f"Dependencies of {args.deps} ({len(deps)})")
        for item in pipeline.load():
            if item.id in deps:
                print(f"  • {item.id}")

    if args.mermaid:
        print_section("Mermaid Diagram")
        print()
        print("```mermaid")
        print(graph.to_mermaid(max_nodes=args.max_nodes))
        print("```")

    if args.dot:
        print_section("DOT")
        print(graph.to_dot(max_nodes=args.max_nodes))

    print()
    return 0


def cmd_check_config(args):
    """설정 패턴 검증"""
    pipeline = build_pipeline(args)
    catalog = pipeline.load()
    problems = ImplConfigResolver(catalog).check(pipeline.config)

    source = pipeline.config.source_path or "(command line)"
    print_header(f"Config Check: {source}")
    print(f"  Item rules: {len(pipeline.config.impl_items.include) + len(pipeline.config.impl_items.exclude)}")
    print(f"  Block rules: {len(pipeline.config.impl_blocks.include) + len(pipeline.config.impl_blocks.exclude)}")

    if not problems:
        print("\n  ✓ All patterns resolve")
        print()
        return 0

    print_section(f"Problems ({len(problems)})")
    for problem in problems:
        for i, line in enumerate(problem.splitlines()):
            print(f"  {'•' if i == 0 else ' '} {line}")
    print()
    return 1


# =============================================================================
# Main
# =============================================================================

def _add_common(parser: argparse.ArgumentParser):
    parser.add_argument('path', help='challenge crate 경로 (Cargo.toml 위치)')
    parser.add_argument('--config', '-c', help='impl 설정 파일 (.yaml/.toml)')
    parser.add_argument('--lib', action='append', metavar='NAME=PATH', help='추가 라이브러리 crate')
    parser.add_argument('--verbose', action='store_true', help='상세 출력 (INFO 로그)')
    parser.add_argument('--debug', action='store_true', help='DEBUG 로그')


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog='rustfuse',
        description='Rust 다중 crate 소스 퓨전 도구'
    )
    parser.add_argument('--version', action='version', version='0.1.0')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # fuse
    p_fuse = subparsers.add_parser('fuse', help='단일 파일로 퓨전')
    _add_common(p_fuse)
    p_fuse.add_argument('--output', '-o', help='출력 파일 (기본 src/bin/fusion_of_<crate>.rs)')
    p_fuse.add_argument('--stdout', action='store_true', help='파일 대신 표준 출력')
    p_fuse.add_argument('--batch', '-b', action='store_true', help='대화 없이 실패')
    p_fuse.add_argument('--all-impl-items', choices=['include', 'exclude'],
                        help='모든 Pending impl item을 include/exclude')
    p_fuse.add_argument('--entry', action='append', help='추가 진입점')
    p_fuse.add_argument('--save-config', action='store_true', help='대화형 결정을 확인 없이 저장')
    p_fuse.add_argument('--include-impl-item', '-j', action='append', metavar='PATTERN')
    p_fuse.add_argument('--exclude-impl-item', '-x', action='append', metavar='PATTERN')
    p_fuse.add_argument('--include-impl-block', action='append', metavar='BLOCK')
    p_fuse.add_argument('--exclude-impl-block', action='append', metavar='BLOCK')
    p_fuse.add_argument('--no-color', action='store_true', help='색상 비활성화')
    p_fuse.add_argument('--format', '-f', choices=['console', 'json', 'markdown'],
                        default='console', help='리포트 형식')

    # items
    p_items = subparsers.add_parser('items', help='카탈로그 Item 목록')
    _add_common(p_items)
    p_items.add_argument('--impl-only', action='store_true', help='impl 블록과 item만')

    # graph
    p_graph = subparsers.add_parser('graph', help='의존성 그래프 분석')
    _add_common(p_graph)
    p_graph.add_argument('--mermaid', '-m', action='store_true', help='Mermaid 다이어그램 출력')
    p_graph.add_argument('--dot', action='store_true', help='DOT 출력')
    p_graph.add_argument('--max-nodes', type=int, default=50, help='최대 노드 수')
    p_graph.add_argument('--deps', metavar='ID', help='Item의 전이적 의존성 (모호한 엣지 제외)')

    # check-config
    p_check = subparsers.add_parser('check-config', help='impl 설정 검증')
    _add_common(p_check)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    configure_logging(args)

    commands = {
        'fuse': cmd_fuse,
        'items': cmd_items,
        'graph': cmd_graph,
        'check-config': cmd_check_config,
    }

    try:
        return commands[args.command](args)
    except OperatorCancelled as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except FusionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
