#!/usr/bin/env python3
"""
rustfuse/tests.py
=================
통합 테스트

실행:
    python -m rustfuse.tests
"""

import contextlib
import io
import json
import tempfile
import textwrap
import unittest
from pathlib import Path

from .catalog import ItemCatalog
from .cli import main as cli_main
from .dialog import ConsoleResolutionProvider, rank_candidates
from .errors import (
    AmbiguousImplItemReference, CrateLoadError, DuplicateItemIdentity,
    EntryPointNotFound, ImplConfigError, InvalidImplPattern, OperatorCancelled,
    SourceParseError, UnsupportedItemKind,
)
from .graph import build_graph
from .impl_config import ImplConfig, ImplConfigResolver
from .models import DiagnosticKind, ItemKind, ReferenceKind, ResolutionState
from .pipeline import FusionPipeline, fuse
from .policy import BatchResolutionProvider, FixedResolutionProvider
from .qualified_name import ImplBlockName, ImplItemPattern, looks_like_block_pattern
from .references import ReferenceExtractor, extract_references, qualifier_of
from .reporters import ConsoleReporter, JsonReporter, MarkdownReporter
from .sources import CargoManifest, CrateLoader, CrateSyntax, RustSourceParser


REQUIRED = ResolutionState.REQUIRED
EXCLUDED = ResolutionState.EXCLUDED


# =============================================================================
# Rust 소스 픽스처
# =============================================================================

HELPER_SRC = """
fn main() {
    helper();
}

fn helper() {}

fn unused() {}
"""

CYCLE_SRC = """
fn main() {
    ping(3);
}

fn ping(n: u32) {
    if n > 0 {
        pong(n - 1);
    }
}

fn pong(n: u32) {
    if n > 0 {
        ping(n - 1);
    }
}
"""

DISPLAY_SRC = """
use std::fmt;
use std::fmt::Display;

struct Go;

struct Value(u32);

impl fmt::Display for Go {
    fn fmt(&self, f: &mut fmt::Formatter) -> fmt::Result {
        write!(f, "go")
    }
}

impl Display for Value {
    fn fmt(&self, f: &mut fmt::Formatter) -> fmt::Result {
        write!(f, "{}", self.0)
    }
}

fn main() {
    let v = Value(3);
    println!("{}", v);
}
"""

MAP_SRC = """
pub struct MyMap2D<T, const X: usize, const Y: usize, const N: usize> {
    cells: [[T; X]; Y],
}

impl<T: Copy + Clone + Default, const X: usize, const Y: usize, const N: usize> MyMap2D<T, X, Y, N> {
    pub fn new() -> Self {
        MyMap2D { cells: [[T::default(); X]; Y] }
    }

    pub fn set(&mut self, x: usize, y: usize, value: T) {
        self.cells[y][x] = value;
    }

    pub fn get(&self, x: usize, y: usize) -> T {
        self.cells[y][x]
    }
}

pub struct Board;

impl Board {
    pub fn set(&mut self) {}
}

fn main() {
    let mut map = MyMap2D::new();
    %s
}
"""

MAP_SET_PATTERN = (
    "set@impl<T:Copy+Clone+Default,constX:usize,constY:usize,constN:usize> MyMap2D<T,X,Y,N>"
)

SHAPES_SRC = """
trait Shape {
    fn area(&self) -> f64;
    fn name(&self) -> String;
}

struct Circle(f64);

impl Shape for Circle {
    fn area(&self) -> f64 {
        self.0 * self.0 * 3.0
    }

    fn name(&self) -> String {
        String::from("circle")
    }
}

struct Counter {
    count: u32,
}

impl Counter {
    fn new() -> Counter {
        Counter { count: 0 }
    }

    fn inc(&mut self) {
        self.count += 1;
    }

    fn reset(&mut self) {
        self.count = 0;
    }
}

fn main() {
    let mut c = Counter::new();
}
"""

AMBIG_SRC = """
struct Alpha;
struct Beta;

impl Alpha {
    fn run(&self) -> u32 {
        1
    }
}

impl Beta {
    fn run(&self) -> u32 {
        2
    }
}

fn main() {
    let a = Alpha;
    a.run();
}
"""

TWO_RECEIVERS_SRC = AMBIG_SRC.replace(
    "    let a = Alpha;\n    a.run();\n",
    "    let a = Alpha;\n    let b = Beta;\n    a.run();\n    b.run();\n",
)

WRAPPER_SRC = """
struct Inner {
    v: u32,
}

struct Wrapper {
    inner: Inner,
}

impl Inner {
    fn get(&self) -> u32 {
        self.v
    }
}

impl Wrapper {
    fn get(&self) -> u32 {
        self.inner.get()
    }
}

fn main() {
    let w = Wrapper { inner: Inner { v: 1 } };
    w.get();
}
"""

SELF_CALL_SRC = """
struct Alpha;
struct Beta;

impl Alpha {
    fn run(&self) -> u32 {
        self.step()
    }

    fn step(&self) -> u32 {
        1
    }
}

impl Beta {
    fn step(&self) -> u32 {
        2
    }
}

fn main() {
    Alpha::run(&Alpha);
}
"""

SPEAK_SRC = """
trait Speak {
    fn speak(&self) -> u32;
}

struct Dog;
struct Cat;

impl Speak for Dog {
    fn speak(&self) -> u32 {
        1
    }
}

impl Speak for Cat {
    fn speak(&self) -> u32 {
        2
    }
}

fn main() {
    let d = Dog;
    d.speak();
}
"""

LIB_SRC = """
pub fn base() -> u32 {
    crate::seed() + 1
}

fn seed() -> u32 {
    20
}

pub fn spare() -> u32 {
    0
}
"""

LIB_MAIN_SRC = """
fn main() {
    let v = mathlib::base();
    println!("{}", v);
}
"""


# =============================================================================
# 헬퍼
# =============================================================================

PARSER = RustSourceParser()


def make_crates(main_src, libs=None, name="app"):
    crates = [CrateSyntax(name, True, PARSER.parse_text(textwrap.dedent(main_src), "main.rs"))]
    for lib_name, src in (libs or {}).items():
        crates.append(CrateSyntax(lib_name, False, PARSER.parse_text(textwrap.dedent(src), "lib.rs")))
    return crates


def make_pipeline(main_src, config=None, provider=None, libs=None):
    return FusionPipeline(
        crates=make_crates(main_src, libs),
        config=config or ImplConfig(),
        provider=provider,
    )


def make_config(include_items=None, exclude_items=None, include_blocks=None, exclude_blocks=None):
    return ImplConfig().add_rules(include_items, exclude_items, include_blocks, exclude_blocks)


def impl_item(catalog, self_type, name):
    for item in catalog.impl_items_named(name):
        if item.block_name.self_type_name == self_type:
            return item.id
    raise KeyError(f"{self_type}::{name}")


def scripted(*answers):
    """미리 정한 응답을 차례로 돌려주는 input 대체"""
    queue = list(answers)

    def answer(prompt):
        if not queue:
            raise EOFError
        return queue.pop(0)
    return answer


def write_crate(root: Path):
    """app(바이너리) + mathlib(path 의존성) crate 생성"""
    app = root / "app"
    (app / "src").mkdir(parents=True)
    (app / "Cargo.toml").write_text(textwrap.dedent("""
        [package]
        name = "app"
        version = "0.1.0"

        [dependencies]
        mathlib = { path = "../mathlib" }
        serde = "1"
    """))
    (app / "src" / "main.rs").write_text(textwrap.dedent("""
        mod util;

        fn main() {
            let v = util::double(mathlib::base());
            println!("{}", v);
        }
    """))
    (app / "src" / "util.rs").write_text(
        "pub fn double(x: u32) -> u32 {\n    x * 2\n}\n\npub fn unused() {}\n")

    lib = root / "mathlib"
    (lib / "src").mkdir(parents=True)
    (lib / "Cargo.toml").write_text('[package]\nname = "mathlib"\nversion = "0.1.0"\n')
    (lib / "src" / "lib.rs").write_text(textwrap.dedent(LIB_SRC))
    return app


def write_package_with_lib(root: Path):
    """src/main.rs 와 src/lib.rs 를 함께 가진 game 패키지 생성"""
    package = root / "game"
    (package / "src").mkdir(parents=True)
    (package / "Cargo.toml").write_text('[package]\nname = "game"\nversion = "0.1.0"\n')
    (package / "src" / "lib.rs").write_text(
        "pub fn helper() -> u32 {\n    7\n}\n\npub fn spare() {}\n")
    (package / "src" / "main.rs").write_text(
        'use game::helper;\n\nfn main() {\n    println!("{}", helper());\n}\n')
    return package


# =============================================================================
# 정규화 이름 / 패턴
# =============================================================================

class TestQualifiedName(unittest.TestCase):
    """impl 블록 정규화 이름"""

    def test_lifetime_and_trait(self):
        """라이프타임 + trait"""
        name = ImplBlockName.parse("impl<'a> From<&'a str> for FooType<'a>")
        self.assertEqual(str(name), "impl<'a> From<&'astr> for FooType<'a>")
        self.assertEqual(name.self_type_name, "FooType")
        self.assertEqual(name.trait_name, "From")

    def test_where_clause(self):
        """where 절"""
        name = ImplBlockName.parse("impl<T: Copy> Foo<T> where T: Default {")
        self.assertEqual(name.generics, "<T:Copy>")
        self.assertEqual(name.type_path, "Foo<T>")
        self.assertEqual(name.where_clause, "whereT:Default")
        self.assertIsNone(name.trait_path)
        self.assertEqual(str(name), "impl<T:Copy> Foo<T> whereT:Default")

    def test_arrow_in_where_clause(self):
        """where 절의 -> 는 괄호로 취급하지 않음"""
        name = ImplBlockName.parse("impl<F> Wrapper<F> where F: Fn(u8) -> u8")
        self.assertEqual(name.where_clause, "whereF:Fn(u8)->u8")

    def test_normalized_name_roundtrip(self):
        """정규화 이름을 다시 파싱해도 같음"""
        source = ("impl<T: Copy + Clone + Default, const X: usize, const Y: usize, "
                  "const N: usize> MyMap2D<T, X, Y, N>")
        name = ImplBlockName.parse(source)
        self.assertEqual(ImplBlockName.parse(str(name)), name)
        self.assertEqual(hash(ImplBlockName.parse(str(name))), hash(name))

    def test_trait_path_is_significant(self):
        """trait 경로는 그대로 비교"""
        self.assertNotEqual(
            ImplBlockName.parse("impl fmt::Display for Go"),
            ImplBlockName.parse("impl Display for Go"),
        )

    def test_unsafe_impl(self):
        """unsafe impl"""
        name = ImplBlockName.parse("unsafe impl Send for Ptr")
        self.assertEqual(name.trait_path, "Send")
        self.assertEqual(str(name), "impl Send for Ptr")

    def test_invalid_names(self):
        """잘못된 블록 이름"""
        for text in ("fn foo", "impl", "impl<T Foo<T>", "impl for Foo"):
            with self.assertRaises(InvalidImplPattern, msg=text):
                ImplBlockName.parse(text)


class TestImplItemPattern(unittest.TestCase):
    """impl item 패턴"""

    def test_plain_and_qualified(self):
        """plain / name@block / *@block"""
        self.assertIsNone(ImplItemPattern.parse("fmt").block)
        qualified = ImplItemPattern.parse("set@impl Board")
        self.assertEqual(qualified.name, "set")
        self.assertEqual(str(qualified.block), "impl Board")
        self.assertTrue(ImplItemPattern.parse("*@impl Board").is_wildcard)

    def test_errors(self):
        """패턴 오류"""
        for text in ("a@impl X@impl Y", "*", "@impl X", "foo bar@impl X", ""):
            with self.assertRaises(InvalidImplPattern, msg=text):
                ImplItemPattern.parse(text)

    def test_block_pattern_detection(self):
        """impl_items 안의 블록 이름"""
        self.assertTrue(looks_like_block_pattern("impl Display for Value"))
        self.assertFalse(looks_like_block_pattern("set"))
        self.assertFalse(looks_like_block_pattern("set@impl Board"))


# =============================================================================
# 카탈로그 / 참조
# =============================================================================

class TestCatalog(unittest.TestCase):
    """Item Catalog"""

    def build(self, src):
        return ItemCatalog.build(make_crates(src))

    def test_identities(self):
        """identity 형식과 반복 impl 블록 접미사"""
        catalog = self.build("""
            struct Foo;

            impl Foo {
                fn a() {}
            }

            impl Foo {
                fn b() {}
            }
        """)
        self.assertIn("app::struct::Foo", catalog)
        self.assertIn("app::impl::impl Foo", catalog)
        self.assertIn("app::impl::impl Foo#2", catalog)
        self.assertEqual(catalog["app::impl::impl Foo#2::b"].owner, "app::impl::impl Foo#2")
        self.assertEqual(catalog["app::impl::impl Foo::a"].kind, ItemKind.IMPL_FN)

    def test_impl_header_footer(self):
        """블록 재조립용 header/footer"""
        catalog = self.build(SHAPES_SRC)
        block = catalog["app::impl::impl Counter"]
        self.assertEqual(block.header, "impl Counter {")
        self.assertEqual(block.footer, "}")
        self.assertEqual([c.name for c in catalog.children_of(block.id)], ["new", "inc", "reset"])

    def test_trait_members(self):
        """trait 블록 item은 원자 단위"""
        catalog = self.build(SHAPES_SRC)
        block = catalog["app::impl::impl Shape for Circle"]
        self.assertTrue(block.implements_trait)
        self.assertEqual(len(block.trait_members), 2)
        self.assertFalse(catalog["app::impl::impl Counter"].trait_members)

    def test_use_names(self):
        """use 선언이 도입하는 이름"""
        catalog = self.build("use std::collections::{HashMap, HashSet as Set};\nuse std::io::*;\n")
        uses = [item for item in catalog if item.kind == ItemKind.USE]
        self.assertEqual(set(uses[0].use_names), {"HashMap", "Set"})
        self.assertFalse(uses[0].use_glob)
        self.assertTrue(uses[1].use_glob)

    def test_cfg_test_and_doc_comments(self):
        """#[cfg(test)] 제외, doc comment 포함"""
        catalog = self.build("""
            /// doubles
            fn double(x: u32) -> u32 {
                x * 2
            }

            #[cfg(test)]
            mod tests {
                fn check() {}
            }
        """)
        self.assertTrue(catalog["app::fn::double"].source.startswith("/// doubles"))
        self.assertNotIn("app::mod::tests", catalog)
        self.assertEqual(len(catalog), 1)

    def test_inline_module(self):
        """인라인 모듈 경로"""
        catalog = self.build("""
            mod geo {
                pub fn dist() -> u32 {
                    0
                }
            }
        """)
        item = catalog["app::geo::fn::dist"]
        self.assertEqual(item.module_path, ("geo",))
        self.assertEqual(item.parent, "app::mod::geo")

    def test_unsupported_top_level_macro(self):
        """top-level 매크로 호출"""
        with self.assertRaises(UnsupportedItemKind):
            self.build("thread_local! {\n    static X: u8 = 0;\n}\n")

    def test_unsupported_impl_body_macro(self):
        """impl 본문의 매크로 호출"""
        with self.assertRaises(UnsupportedItemKind):
            self.build("struct Foo;\n\nimpl Foo {\n    make_getters!();\n}\n")

    def test_duplicate_identity(self):
        """중복 identity"""
        with self.assertRaises(DuplicateItemIdentity):
            self.build("fn a() {}\n\nfn a() {}\n")

    def test_syntax_error(self):
        """구문 오류"""
        with self.assertRaises(SourceParseError):
            PARSER.parse_text("fn main( {\n")

    def test_missing_entry(self):
        """main 없음"""
        catalog = self.build("fn helper() {}\n")
        with self.assertRaises(EntryPointNotFound):
            catalog.find_entry()


class TestReferences(unittest.TestCase):
    """Reference Extractor"""

    def test_reference_kinds(self):
        """경로 / 메서드 / 매크로"""
        catalog = ItemCatalog.build(make_crates("""
            fn main() {
                let m = Foo::new();
                m.bump();
                trace!(m.len());
            }
        """))
        refs = ReferenceExtractor().extract(catalog["app::fn::main"])
        keys = {(r.name, r.kind, r.qualifier) for r in refs}
        self.assertIn(("new", ReferenceKind.PATH, "Foo"), keys)
        self.assertIn(("Foo", ReferenceKind.PATH, None), keys)
        self.assertIn(("bump", ReferenceKind.METHOD, None), keys)
        self.assertIn(("trace", ReferenceKind.MACRO, None), keys)
        self.assertIn(("len", ReferenceKind.METHOD, None), keys)
        self.assertNotIn(("main", ReferenceKind.PATH, None), keys)

    def test_impl_block_references(self):
        """impl 블록 헤더는 trait와 self type을 참조"""
        catalog = ItemCatalog.build(make_crates(SHAPES_SRC))
        refs = extract_references(catalog)["app::impl::impl Shape for Circle"]
        self.assertEqual({r.name for r in refs}, {"Shape", "Circle"})

    def test_method_receivers(self):
        """self.x() 만 한정자 self"""
        catalog = ItemCatalog.build(make_crates(WRAPPER_SRC + SELF_CALL_SRC.replace(
            "fn main() {\n    Alpha::run(&Alpha);\n}\n", "")))
        refs = extract_references(catalog)
        wrapper_get = {(r.name, r.kind, r.qualifier)
                       for r in refs[impl_item(catalog, "Wrapper", "get")]}
        self.assertIn(("get", ReferenceKind.METHOD, None), wrapper_get)
        alpha_run = refs[impl_item(catalog, "Alpha", "run")]
        self.assertIn(("step", ReferenceKind.METHOD, "self"),
                      {(r.name, r.kind, r.qualifier) for r in alpha_run})
        step = next(r for r in alpha_run if r.name == "step")
        self.assertEqual(str(step), "self.step()")

    def test_qualifier_of(self):
        """한정자 추출"""
        self.assertEqual(qualifier_of("Vec::<u8>"), "Vec")
        self.assertEqual(qualifier_of("map::TwoDim<X, Y>"), "TwoDim")
        self.assertEqual(qualifier_of("<T as Trait>"), "Trait")


# =============================================================================
# 그래프 / 폐포
# =============================================================================

class TestGraph(unittest.TestCase):
    """의존성 그래프"""

    def graph(self, src):
        catalog = ItemCatalog.build(make_crates(src))
        return catalog, build_graph(catalog, extract_references(catalog))

    def test_structural_edges(self):
        """impl item → 블록, trait 블록 → item"""
        catalog, graph = self.graph(SHAPES_SRC)
        self.assertTrue(graph.has_edge("app::impl::impl Counter::inc", "app::impl::impl Counter"))
        self.assertTrue(graph.has_edge("app::impl::impl Shape for Circle",
                                       "app::impl::impl Shape for Circle::area"))
        self.assertFalse(graph.has_edge("app::impl::impl Counter", "app::impl::impl Counter::inc"))

    def test_find_cycles(self):
        """상호 재귀"""
        _, graph = self.graph(CYCLE_SRC)
        cycles = graph.find_cycles()
        self.assertEqual(len(cycles), 1)
        self.assertEqual(set(cycles[0][:-1]), {"app::fn::ping", "app::fn::pong"})

    def test_find_cycles_long_chain(self):
        """재귀 한도보다 긴 호출 사슬의 순환"""
        count = 3000
        parts = ["fn main() {\n    f0();\n}\n"]
        for index in range(count):
            parts.append(f"fn f{index}() {{\n    f{(index + 1) % count}();\n}}\n")
        _, graph = self.graph("\n".join(parts))
        cycles = graph.find_cycles()
        self.assertEqual(len(cycles), 1)
        self.assertEqual(len(cycles[0]), count + 1)
        self.assertEqual(cycles[0][0], "app::fn::f0")

    def test_method_on_other_receiver_is_ambiguous(self):
        """impl 안에서도 self 가 아닌 수신자의 호출은 모호한 엣지"""
        _, graph = self.graph(WRAPPER_SRC)
        ambiguous = graph.get_ambiguous_from("app::impl::impl Wrapper::get")
        self.assertEqual(len(ambiguous), 1)
        self.assertEqual(set(ambiguous[0].candidates),
                         {"app::impl::impl Inner::get", "app::impl::impl Wrapper::get"})
        self.assertFalse(graph.has_edge("app::impl::impl Wrapper::get",
                                        "app::impl::impl Inner::get"))

    def test_self_call_prefers_own_block(self):
        """self.x() 는 같은 self type 블록으로 확정"""
        _, graph = self.graph(SELF_CALL_SRC)
        self.assertTrue(graph.has_edge("app::impl::impl Alpha::run", "app::impl::impl Alpha::step"))
        self.assertEqual(graph.get_ambiguous_from("app::impl::impl Alpha::run"), [])

    def test_ambiguous_edges(self):
        """둘 이상의 블록에 걸친 메서드 이름"""
        _, graph = self.graph(AMBIG_SRC)
        ambiguous = graph.get_ambiguous_from("app::fn::main")
        self.assertEqual(len(ambiguous), 1)
        self.assertEqual(set(ambiguous[0].candidates),
                         {"app::impl::impl Alpha::run", "app::impl::impl Beta::run"})
        self.assertFalse(graph.has_edge("app::fn::main", "app::impl::impl Alpha::run"))
        self.assertIn("-.->", graph.to_mermaid())
        self.assertIn("style=dashed", graph.to_dot())

    def test_transitive_roots_leaves(self):
        """전이적 의존성, 루트, 리프"""
        _, graph = self.graph(HELPER_SRC)
        self.assertEqual(graph.get_transitive_dependencies("app::fn::main"), {"app::fn::helper"})
        self.assertEqual(graph.get_roots(), ["app::fn::main", "app::fn::unused"])
        self.assertEqual(graph.get_leaves(), ["app::fn::helper", "app::fn::unused"])
        self.assertEqual(graph.get_transitive_dependencies("app::fn::missing"), set())

    def test_qualified_reference(self):
        """Type::item 은 해당 블록으로 확정"""
        _, graph = self.graph(SHAPES_SRC)
        self.assertTrue(graph.has_edge("app::fn::main", "app::impl::impl Counter::new"))


class TestReachability(unittest.TestCase):
    """폐포"""

    def test_main_helper_closure(self):
        """main → helper 만 포함"""
        result = make_pipeline(HELPER_SRC).run()
        self.assertEqual(set(result.required_ids), {"app::fn::main", "app::fn::helper"})
        self.assertEqual(result.states["app::fn::unused"], EXCLUDED)
        self.assertIn("fn helper() {}", result.output)
        self.assertNotIn("unused", result.output)

    def test_cycle_closure(self):
        """순환이 있어도 종료"""
        result = make_pipeline(CYCLE_SRC).run()
        self.assertEqual(set(result.required_ids),
                         {"app::fn::main", "app::fn::ping", "app::fn::pong"})

    def test_all_states_terminal(self):
        """모든 Item이 terminal 상태"""
        pipeline = make_pipeline(SHAPES_SRC)
        result = pipeline.run()
        self.assertEqual(len(result.states), len(pipeline.load()))
        self.assertTrue(all(s.is_terminal for s in result.states.values()))


# =============================================================================
# 정책 엔진
# =============================================================================

class TestPolicy(unittest.TestCase):
    """설정 우선순위 / 원자성 / 모호성"""

    def test_display_scenario(self):
        """같은 이름 fmt: 블록 include/exclude로 구분"""
        config = make_config(include_blocks=["impl Display for Value"],
                             exclude_blocks=["impl fmt::Display for Go"])
        pipeline = make_pipeline(DISPLAY_SRC, config)
        result = pipeline.run()
        catalog = pipeline.load()

        self.assertEqual(result.states[impl_item(catalog, "Value", "fmt")], REQUIRED)
        self.assertEqual(result.states[impl_item(catalog, "Go", "fmt")], EXCLUDED)
        self.assertIn("impl Display for Value {", result.output)
        self.assertNotIn("for Go", result.output)
        self.assertIn("use std::fmt;", result.output)

    def test_display_without_config_hints(self):
        """설정 없으면 trait impl은 제외, 힌트 진단"""
        result = make_pipeline(DISPLAY_SRC).run()
        kinds = [d.kind for d in result.diagnostics]
        self.assertIn(DiagnosticKind.UNREFERENCED_TRAIT_IMPL, kinds)
        self.assertNotIn("impl Display for Value", result.output)

    def test_generic_block_item_include(self):
        """name@generic block 으로 특정 블록의 set 포함"""
        config = make_config(include_items=[MAP_SET_PATTERN])
        pipeline = make_pipeline(MAP_SRC % "", config)
        result = pipeline.run()
        catalog = pipeline.load()

        self.assertEqual(result.states[impl_item(catalog, "MyMap2D", "set")], REQUIRED)
        self.assertEqual(result.states[impl_item(catalog, "MyMap2D", "get")], EXCLUDED)
        self.assertEqual(result.states[impl_item(catalog, "Board", "set")], EXCLUDED)
        self.assertIn("    pub fn set(&mut self, x: usize", result.output)
        self.assertNotIn("pub fn get", result.output)

    def test_ambiguous_method_batch_failure(self):
        """배치 모드: 모호한 메서드 호출은 실패"""
        with self.assertRaises(AmbiguousImplItemReference) as ctx:
            make_pipeline(MAP_SRC % "map.set(0, 0, 1);").run()
        self.assertEqual(len(ctx.exception.candidates["set"]), 2)

    def test_ambiguous_method_resolved_by_config(self):
        """설정이 후보 하나를 포함하면 모호성 해소"""
        config = make_config(include_items=[MAP_SET_PATTERN])
        pipeline = make_pipeline(MAP_SRC % "map.set(0, 0, 1);", config)
        result = pipeline.run()
        catalog = pipeline.load()
        self.assertEqual(result.states[impl_item(catalog, "MyMap2D", "set")], REQUIRED)
        self.assertEqual(result.states[impl_item(catalog, "Board", "set")], EXCLUDED)

    def test_include_beats_exclude(self):
        """include와 exclude 모두에 있으면 Required"""
        config = make_config(include_items=["reset"], exclude_items=["reset"])
        result = make_pipeline(SHAPES_SRC, config).run()
        self.assertEqual(result.states["app::impl::impl Counter::reset"], REQUIRED)
        self.assertEqual(result.states["app::impl::impl Counter::inc"], EXCLUDED)

    def test_trait_block_atomicity(self):
        """trait 블록 item 하나 포함 → 블록 전체"""
        config = make_config(include_items=["area"],
                             exclude_items=["name@impl Shape for Circle"])
        result = make_pipeline(SHAPES_SRC, config).run()
        self.assertEqual(result.states["app::impl::impl Shape for Circle::area"], REQUIRED)
        self.assertEqual(result.states["app::impl::impl Shape for Circle::name"], REQUIRED)
        self.assertEqual(result.states["app::trait::Shape"], REQUIRED)
        self.assertEqual(result.states["app::struct::Circle"], REQUIRED)

    def test_trait_block_exclude_loses_to_item_include(self):
        """블록 exclude + item include → 블록 전체 Required"""
        config = make_config(include_items=["area"],
                             exclude_blocks=["impl Shape for Circle"])
        result = make_pipeline(SHAPES_SRC, config).run()
        self.assertEqual(result.states["app::impl::impl Shape for Circle"], REQUIRED)
        self.assertEqual(result.states["app::impl::impl Shape for Circle::name"], REQUIRED)

    def test_wildcard_matches_explicit_includes(self):
        """*@block == 모든 item 개별 include"""
        wildcard = make_pipeline(SHAPES_SRC, make_config(include_items=["*@impl Counter"])).run()
        explicit = make_pipeline(
            SHAPES_SRC, make_config(include_items=["new", "inc", "reset"])).run()
        self.assertEqual(wildcard.states, explicit.states)
        self.assertEqual(wildcard.output, explicit.output)
        self.assertEqual(wildcard.states["app::impl::impl Counter::inc"], REQUIRED)

    def test_partial_trait_free_block(self):
        """trait 없는 블록은 Required item만 출력"""
        result = make_pipeline(SHAPES_SRC).run()
        self.assertIn("impl Counter {\n    fn new() -> Counter {", result.output)
        self.assertNotIn("fn inc", result.output)
        self.assertNotIn("impl Shape for Circle", result.output)

    def test_exclude_overridden(self):
        """구조적으로 필요한 item의 exclude는 무시되고 경고"""
        result = make_pipeline(SHAPES_SRC, make_config(exclude_items=["new"])).run()
        self.assertEqual(result.states["app::impl::impl Counter::new"], REQUIRED)
        kinds = [d.kind for d in result.diagnostics]
        self.assertIn(DiagnosticKind.EXCLUDE_OVERRIDDEN, kinds)

    def test_unmatched_pattern_warns(self):
        """매칭 없는 패턴은 경고"""
        result = make_pipeline(SHAPES_SRC, make_config(include_blocks=["impl Missing"])).run()
        kinds = [d.kind for d in result.diagnostics]
        self.assertIn(DiagnosticKind.CONFIG_TARGET_NOT_FOUND, kinds)

    def test_trait_free_block_include_needs_decisions(self):
        """trait 없는 블록 include → item별 결정"""
        config = make_config(include_blocks=["impl Counter"])
        with self.assertRaises(AmbiguousImplItemReference):
            make_pipeline(SHAPES_SRC, config).run()

        included = make_pipeline(SHAPES_SRC, config, FixedResolutionProvider(True)).run()
        self.assertEqual(included.states["app::impl::impl Counter::inc"], REQUIRED)
        self.assertEqual(included.states["app::impl::impl Counter::reset"], REQUIRED)

        excluded = make_pipeline(SHAPES_SRC, config, FixedResolutionProvider(False)).run()
        self.assertEqual(excluded.states["app::impl::impl Counter::inc"], EXCLUDED)
        self.assertEqual(excluded.states["app::impl::impl Counter::new"], REQUIRED)

    def test_unresolved_trait_impls_are_excluded(self):
        """모호한 참조로만 닿는 trait impl은 Excluded + 경고"""
        result = make_pipeline(SPEAK_SRC, provider=BatchResolutionProvider()).run()
        unresolved = [d for d in result.diagnostics
                      if d.kind == DiagnosticKind.UNRESOLVED_TRAIT_IMPL]
        self.assertEqual(len(unresolved), 2)
        self.assertEqual(result.states["app::impl::impl Speak for Dog"], EXCLUDED)
        self.assertEqual(result.states["app::trait::Speak"], REQUIRED)
        self.assertNotIn("impl Speak for Dog", result.output)

    def test_trait_impl_resolved_by_block_include(self):
        """블록 include가 모호성을 해소"""
        config = make_config(include_blocks=["impl Speak for Dog"])
        result = make_pipeline(SPEAK_SRC, config).run()
        self.assertEqual(result.states["app::impl::impl Speak for Dog::speak"], REQUIRED)
        self.assertEqual(result.states["app::impl::impl Speak for Cat::speak"], EXCLUDED)
        kinds = [d.kind for d in result.diagnostics]
        self.assertNotIn(DiagnosticKind.UNRESOLVED_TRAIT_IMPL, kinds)

    def test_ambiguous_config_pattern(self):
        """여러 블록에 있는 plain name 패턴"""
        with self.assertRaises(AmbiguousImplItemReference) as ctx:
            make_pipeline(AMBIG_SRC, make_config(include_items=["run"])).run()
        self.assertEqual(ctx.exception.pattern, "run")

    def test_field_receiver_call_needs_decision(self):
        """self.inner.get() 는 자기 블록으로 고정되지 않음"""
        with self.assertRaises(AmbiguousImplItemReference):
            make_pipeline(WRAPPER_SRC).run()

        config = make_config(include_items=["get@impl Inner", "get@impl Wrapper"])
        pipeline = make_pipeline(WRAPPER_SRC, config)
        result = pipeline.run()
        catalog = pipeline.load()
        self.assertEqual(result.states[impl_item(catalog, "Inner", "get")], REQUIRED)
        self.assertIn("impl Inner {", result.output)
        self.assertIn("        self.v\n", result.output)

    def test_live_type_keeps_method_pending(self):
        """self type이 Required인 다른 후보는 자동으로 제외되지 않음"""
        result = make_pipeline(TWO_RECEIVERS_SRC, provider=FixedResolutionProvider(True)).run()
        self.assertEqual(result.states["app::impl::impl Alpha::run"], REQUIRED)
        self.assertEqual(result.states["app::impl::impl Beta::run"], REQUIRED)
        self.assertIn("impl Beta {", result.output)

    def test_released_candidate_is_reported(self):
        """해소된 모호성으로 제외된 item은 진단"""
        config = make_config(include_items=[MAP_SET_PATTERN])
        pipeline = make_pipeline(MAP_SRC % "map.set(0, 0, 1);", config)
        result = pipeline.run()
        board_set = impl_item(pipeline.load(), "Board", "set")
        released = [d for d in result.diagnostics
                    if d.kind == DiagnosticKind.AMBIGUITY_RELEASED]
        self.assertEqual([d.items for d in released], [[board_set]])
        self.assertIn("set@impl Board", released[0].suggestion)


# =============================================================================
# 대화형 해석
# =============================================================================

class TestDialog(unittest.TestCase):
    """Interactive Disambiguation"""

    def provider(self, *answers):
        self.out = io.StringIO()
        return ConsoleResolutionProvider(input_func=scripted(*answers), output=self.out)

    def test_scripted_include(self):
        """코드/사용처 보기 후 include"""
        result = make_pipeline(AMBIG_SRC, provider=self.provider("c", "u", "i", "n")).run()
        self.assertEqual(result.states["app::impl::impl Alpha::run"], REQUIRED)
        self.assertEqual(result.states["app::impl::impl Beta::run"], EXCLUDED)
        self.assertEqual(result.decisions, {"app::impl::impl Alpha::run": True})
        text = self.out.getvalue()
        self.assertIn("impl Alpha {", text)
        self.assertIn("main (fn)", text)
        kinds = [d.kind for d in result.diagnostics]
        self.assertIn(DiagnosticKind.AMBIGUITY_RELEASED, kinds)

    def test_search_jump(self):
        """검색으로 다른 블록 선택"""
        result = make_pipeline(AMBIG_SRC, provider=self.provider("/Beta", "1", "i", "e", "n")).run()
        self.assertEqual(result.states["app::impl::impl Beta::run"], REQUIRED)
        self.assertEqual(result.states["app::impl::impl Alpha::run"], EXCLUDED)

    def test_cancel_writes_nothing(self):
        """q → OperatorCancelled, 출력 없음"""
        with tempfile.TemporaryDirectory() as tmpdir:
            target = Path(tmpdir) / "out.rs"
            with self.assertRaises(OperatorCancelled):
                make_pipeline(AMBIG_SRC, provider=self.provider("q")).run(target)
            self.assertFalse(target.exists())

    def test_closed_input_cancels(self):
        """입력 종료 → OperatorCancelled"""
        with self.assertRaises(OperatorCancelled):
            make_pipeline(AMBIG_SRC, provider=self.provider()).run()

    def test_interrupt_cancels(self):
        """Ctrl-C → OperatorCancelled"""
        def interrupt(prompt):
            raise KeyboardInterrupt

        provider = ConsoleResolutionProvider(input_func=interrupt, output=io.StringIO())
        with self.assertRaises(OperatorCancelled):
            make_pipeline(AMBIG_SRC, provider=provider).run()

    def test_each_live_receiver_is_asked(self):
        """a.run(); b.run(); → 두 블록 모두 질문"""
        result = make_pipeline(TWO_RECEIVERS_SRC, provider=self.provider("i", "i", "n")).run()
        self.assertEqual(result.decisions, {
            "app::impl::impl Alpha::run": True,
            "app::impl::impl Beta::run": True,
        })
        self.assertIn("impl Alpha {", result.output)
        self.assertIn("impl Beta {", result.output)

    def test_save_decisions(self):
        """결정을 설정 파일에 저장"""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "impl_config.yaml"
            config = ImplConfig(source_path=path)
            make_pipeline(AMBIG_SRC, config, self.provider("i", "y")).run()

            saved = ImplConfig.load(path)
            self.assertEqual(saved.impl_items.include, ["run@impl Alpha"])
            self.assertEqual(saved.last_updated_by, "rustfuse-dialog")

    def test_toml_config_decisions_are_reloaded(self):
        """TOML 설정의 결정은 옆 YAML 파일에 저장되고 다음 로드에 적용"""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "impl.toml"
            path.write_text('[impl_blocks]\nexclude = ["impl Gamma"]\n')
            original = path.read_text()
            make_pipeline(AMBIG_SRC, ImplConfig.load(path), self.provider("i", "y")).run()

            self.assertEqual(path.read_text(), original)
            sidecar = Path(tmpdir) / "impl.decisions.yaml"
            self.assertEqual(ImplConfig.decisions_path(path), sidecar)
            self.assertEqual(ImplConfig.load(sidecar).impl_items.include, ["run@impl Alpha"])

            reloaded = ImplConfig.load(path)
            self.assertEqual(reloaded.impl_items.include, ["run@impl Alpha"])
            self.assertEqual(reloaded.impl_blocks.exclude, ["impl Gamma"])
            result = make_pipeline(AMBIG_SRC, reloaded, BatchResolutionProvider()).run()
            self.assertEqual(result.states["app::impl::impl Alpha::run"], REQUIRED)

    def test_choose_block_for_ambiguous_pattern(self):
        """모호한 설정 패턴은 블록 선택"""
        config = make_config(include_items=["run"])
        result = make_pipeline(AMBIG_SRC, config, self.provider("2", "e", "n")).run()
        self.assertEqual(result.states["app::impl::impl Beta::run"], REQUIRED)
        self.assertEqual(result.states["app::impl::impl Alpha::run"], EXCLUDED)

    def test_rank_candidates(self):
        """근사 매칭 순위"""
        ranked = rank_candidates("map", ["impl Alpha", "impl MyMap2D<T>", "impl Beta"])
        self.assertEqual(ranked[0][0], 1)


# =============================================================================
# 설정
# =============================================================================

class TestImplConfig(unittest.TestCase):
    """설정 파일"""

    def test_load_yaml(self):
        """YAML 로드"""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "impl_config.yaml"
            path.write_text(textwrap.dedent("""
                impl_items:
                  include:
                    - "set@impl Board"
                  exclude:
                    - fmt
                impl_blocks:
                  include:
                    - impl Display for Value
            """))
            config = ImplConfig.load(path)
            self.assertEqual(config.impl_items.include, ["set@impl Board"])
            self.assertEqual(config.impl_items.exclude, ["fmt"])
            self.assertEqual(config.impl_blocks.include, ["impl Display for Value"])
            self.assertTrue(config.has_any_rules())

    def test_load_toml(self):
        """TOML 로드"""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "impl_config.toml"
            path.write_text(textwrap.dedent("""
                [impl_items]
                include = ["set@impl<T> MyMap2D<T>"]
                exclude = ["fmt"]

                [impl_blocks]
                exclude = ["impl fmt::Display for Go"]
            """))
            config = ImplConfig.load(path)
            self.assertEqual(config.impl_items.include, ["set@impl<T> MyMap2D<T>"])
            self.assertEqual(config.impl_blocks.exclude, ["impl fmt::Display for Go"])

            with self.assertRaises(ImplConfigError):
                config.save()

    def test_save_and_reload(self):
        """YAML 저장 후 다시 로드"""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / ".rustfuse" / "impl_config.yaml"
            config = make_config(include_items=["inc"], exclude_blocks=["impl Counter"])
            config.save(path)
            self.assertEqual(ImplConfig.load(path).to_dict(), config.to_dict())

    def test_missing_file(self):
        """파일 없음 → 빈 설정"""
        with tempfile.TemporaryDirectory() as tmpdir:
            config = ImplConfig.for_crate(Path(tmpdir))
            self.assertFalse(config.has_any_rules())

    def test_invalid_structure(self):
        """잘못된 구조"""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "impl_config.yaml"
            path.write_text("impl_items: [1, 2]\n")
            with self.assertRaises(ImplConfigError):
                ImplConfig.load(path)

    def test_merge_decisions_moves_patterns(self):
        """결정은 반대 목록에서 패턴을 제거"""
        catalog = ItemCatalog.build(make_crates(SHAPES_SRC))
        config = make_config(exclude_items=["inc"])
        patterns = config.merge_decisions(catalog, {"app::impl::impl Counter::inc": True})
        self.assertEqual(patterns, {"inc": True})
        self.assertEqual(config.impl_items.include, ["inc"])
        self.assertEqual(config.impl_items.exclude, [])

    def test_check(self):
        """check-config 검증"""
        catalog = ItemCatalog.build(make_crates(SHAPES_SRC))
        config = make_config(include_items=["nothing", "*"], include_blocks=["impl Counter"])
        problems = ImplConfigResolver(catalog).check(config)
        self.assertEqual(len(problems), 2)
        self.assertTrue(any("matches nothing" in p for p in problems))
        self.assertTrue(any("wildcard" in p for p in problems))


# =============================================================================
# crate 로딩 / 출력
# =============================================================================

class TestCrateLoading(unittest.TestCase):
    """Cargo crate 로딩"""

    def test_loader(self):
        """바이너리 + 모듈 파일 + path 의존성"""
        with tempfile.TemporaryDirectory() as tmpdir:
            app = write_crate(Path(tmpdir))
            manifest, crates = CrateLoader().load(app)
            self.assertEqual([c.name for c in crates], ["app", "mathlib"])
            self.assertTrue(crates[0].is_binary)
            self.assertEqual(manifest.registry_dependencies, ["serde"])
            modules = {item.module_path for item in crates[0].items}
            self.assertIn(("util",), modules)

    def test_package_library_is_loaded(self):
        """패키지 자체 lib.rs 는 바이너리와 이름이 같아도 로드"""
        with tempfile.TemporaryDirectory() as tmpdir:
            package = write_package_with_lib(Path(tmpdir))
            _, crates = CrateLoader().load(package)
            self.assertEqual([(c.name, c.is_binary) for c in crates],
                             [("game_bin", True), ("game", False)])

    def test_fuse_package_library(self):
        """main.rs + lib.rs 패키지 퓨전"""
        with tempfile.TemporaryDirectory() as tmpdir:
            package = write_package_with_lib(Path(tmpdir))
            result = fuse(str(package))
            target = package / "src" / "bin" / "fusion_of_game.rs"
            self.assertEqual(result.output_path, str(target))
            self.assertEqual(result.challenge, "game")
            self.assertIn("use crate::game::helper;", result.output)
            self.assertIn("pub mod game {\npub fn helper() -> u32 {", result.output)
            self.assertNotIn("spare", result.output)

    def test_manifest_requires_package(self):
        """[package] 없음"""
        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "Cargo.toml").write_text("[dependencies]\n")
            with self.assertRaises(CrateLoadError):
                CargoManifest.load(Path(tmpdir))

    def test_missing_module_file(self):
        """mod 선언의 파일 없음"""
        with tempfile.TemporaryDirectory() as tmpdir:
            main_rs = Path(tmpdir) / "main.rs"
            main_rs.write_text("mod nothere;\n\nfn main() {}\n")
            with self.assertRaises(CrateLoadError):
                RustSourceParser().parse_file(main_rs)

    def test_fuse_writes_default_output(self):
        """fuse() → src/bin/fusion_of_<crate>.rs"""
        with tempfile.TemporaryDirectory() as tmpdir:
            app = write_crate(Path(tmpdir))
            result = fuse(str(app))
            target = app / "src" / "bin" / "fusion_of_app.rs"
            self.assertEqual(result.output_path, str(target))
            text = target.read_text()
            self.assertIn("mod util {", text)
            self.assertIn("pub fn double", text)
            self.assertNotIn("unused", text)
            self.assertIn("crate::mathlib::base()", text)
            self.assertIn("pub mod mathlib {", text)
            self.assertIn("crate::mathlib::seed() + 1", text)


class TestEmitter(unittest.TestCase):
    """Fusion Assembler / emitter"""

    def test_library_wrapping_and_rewrite(self):
        """라이브러리 crate는 pub mod로, 경로 재작성"""
        result = make_pipeline(LIB_MAIN_SRC, libs={"mathlib": LIB_SRC}).run()
        self.assertIn("let v = crate::mathlib::base();", result.output)
        self.assertIn("pub mod mathlib {\npub fn base() -> u32 {", result.output)
        self.assertIn("crate::mathlib::seed() + 1", result.output)
        self.assertNotIn("spare", result.output)
        self.assertTrue(result.output.endswith("}\n"))

    def test_extern_crate_dropped(self):
        """퓨전된 crate의 extern crate 제거"""
        src = "extern crate mathlib;\n" + LIB_MAIN_SRC
        result = make_pipeline(src, libs={"mathlib": LIB_SRC}).run()
        self.assertNotIn("extern crate", result.output)

    def test_determinism(self):
        """같은 입력 → 같은 출력"""
        config = make_config(include_items=[MAP_SET_PATTERN])
        first = make_pipeline(MAP_SRC % "map.set(0, 0, 1);", config).run()
        second = make_pipeline(MAP_SRC % "map.set(0, 0, 1);", config).run()
        self.assertEqual(first.output, second.output)

    def test_idempotent_refusion(self):
        """퓨전 결과를 다시 퓨전해도 같음"""
        first = make_pipeline(LIB_MAIN_SRC, libs={"mathlib": LIB_SRC}).run()
        crates = [CrateSyntax("fused", True, PARSER.parse_text(first.output, "main.rs"))]
        second = FusionPipeline(crates=crates, config=ImplConfig()).run()
        self.assertEqual(second.output, first.output)
        self.assertEqual(
            {i.name for i in first.items},
            {i.name for i in second.items if i.kind != ItemKind.MODULE},
        )


class TestReporters(unittest.TestCase):
    """리포터"""

    def setUp(self):
        self.result = make_pipeline(SPEAK_SRC).run()

    def test_console(self):
        """콘솔"""
        out = io.StringIO()
        ConsoleReporter(out, use_color=False, verbose=True).report(self.result)
        text = out.getvalue()
        self.assertIn("Required:", text)
        self.assertIn("unresolved_trait_impl", text)
        self.assertIn("app::fn::main", text)

    def test_markdown(self):
        """Markdown"""
        out = io.StringIO()
        MarkdownReporter(out).report(self.result)
        self.assertIn("# rustfuse Fusion Report", out.getvalue())

    def test_json(self):
        """JSON"""
        out = io.StringIO()
        JsonReporter(out).report(self.result)
        data = json.loads(out.getvalue())
        self.assertEqual(data["challenge"], "app")
        self.assertEqual(data["summary"]["diagnostics_by_severity"]["high"], 2)


# =============================================================================
# CLI
# =============================================================================

class TestCli(unittest.TestCase):
    """명령행"""

    def run_cli(self, *argv):
        out, err = io.StringIO(), io.StringIO()
        with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
            code = cli_main(list(argv))
        return code, out.getvalue(), err.getvalue()

    def test_fuse_stdout(self):
        """fuse --stdout"""
        with tempfile.TemporaryDirectory() as tmpdir:
            app = write_crate(Path(tmpdir))
            code, out, err = self.run_cli("fuse", str(app), "--batch", "--stdout")
            self.assertEqual(code, 0)
            self.assertIn("fn main()", out)
            self.assertIn("Fusion Report", err)
            self.assertFalse((app / "src" / "bin").exists())

    def test_fuse_json(self):
        """fuse --format json"""
        with tempfile.TemporaryDirectory() as tmpdir:
            app = write_crate(Path(tmpdir))
            target = Path(tmpdir) / "fused.rs"
            code, out, _ = self.run_cli(
                "fuse", str(app), "--batch", "--format", "json", "-o", str(target))
            self.assertEqual(code, 0)
            self.assertEqual(json.loads(out)["output_path"], str(target))
            self.assertTrue(target.exists())

    def test_items_and_graph(self):
        """items / graph"""
        with tempfile.TemporaryDirectory() as tmpdir:
            app = write_crate(Path(tmpdir))
            code, out, _ = self.run_cli("items", str(app))
            self.assertEqual(code, 0)
            self.assertIn("app::fn::main", out)

            code, out, _ = self.run_cli("graph", str(app), "--mermaid")
            self.assertEqual(code, 0)
            self.assertIn("graph TD", out)

            code, out, _ = self.run_cli("graph", str(app), "--deps", "app::fn::main")
            self.assertEqual(code, 0)
            self.assertIn("app::util::fn::double", out)
            self.assertIn("mathlib::fn::base", out)

            code, _, err = self.run_cli("graph", str(app), "--deps", "app::fn::nope")
            self.assertEqual(code, 1)
            self.assertIn("Unknown item identity", err)

    def test_check_config(self):
        """check-config 실패 코드"""
        with tempfile.TemporaryDirectory() as tmpdir:
            app = write_crate(Path(tmpdir))
            config = Path(tmpdir) / "impl.yaml"
            config.write_text("impl_blocks:\n  include:\n    - impl Nope\n")
            code, out, _ = self.run_cli("check-config", str(app), "-c", str(config))
            self.assertEqual(code, 1)
            self.assertIn("matches nothing", out)

    def test_errors(self):
        """오류 → 종료 코드 1"""
        code, _, err = self.run_cli("fuse", "/nonexistent/rustfuse-crate", "--batch")
        self.assertEqual(code, 1)
        self.assertIn("Error:", err)

        code, _, err = self.run_cli("fuse", ".", "--lib", "broken")
        self.assertEqual(code, 1)
        self.assertIn("NAME=PATH", err)


def run_tests():
    """테스트 실행"""
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    suite.addTests(loader.loadTestsFromTestCase(TestQualifiedName))
    suite.addTests(loader.loadTestsFromTestCase(TestImplItemPattern))
    suite.addTests(loader.loadTestsFromTestCase(TestCatalog))
    suite.addTests(loader.loadTestsFromTestCase(TestReferences))
    suite.addTests(loader.loadTestsFromTestCase(TestGraph))
    suite.addTests(loader.loadTestsFromTestCase(TestReachability))
    suite.addTests(loader.loadTestsFromTestCase(TestPolicy))
    suite.addTests(loader.loadTestsFromTestCase(TestDialog))
    suite.addTests(loader.loadTestsFromTestCase(TestImplConfig))
    suite.addTests(loader.loadTestsFromTestCase(TestCrateLoading))
    suite.addTests(loader.loadTestsFromTestCase(TestEmitter))
    suite.addTests(loader.loadTestsFromTestCase(TestReporters))
    suite.addTests(loader.loadTestsFromTestCase(TestCli))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    return 0 if result.wasSuccessful() else 1


if __name__ == '__main__':
    exit(run_tests())
