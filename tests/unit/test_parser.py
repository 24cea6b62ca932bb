"""
Parser tests: items, enum bodies and match patterns come out as the AST
nodes the passes expect, with spans that point back at the source text.
"""

import pytest

from enumnest.shared.errors import SourceSyntaxError
from enumnest.shared.nodes import (
    CaseShape, EnumDeclaration, FlattenMark, InlineModule, ModuleDeclaration, OpaqueItem,
    OrPattern, PathPattern, RefPattern, StructPattern, TuplePattern, TupleStructPattern,
    WildcardPattern, IdentPattern, LiteralPattern,
)
from tests.test_utils import source


ENUM_SOURCE = source('''
    #![allow(dead_code)]
    use std::fmt;

    #[derive(Debug)]
    #[nest]
    pub enum Inner {
        /// first
        VariantA,
        VariantB(u8, String),
        VariantC { x: i32, y: Vec<u8> },
        VariantD = 4,
    }

    fn main() {
        let _ = Inner::VariantA;
    }
''')


class TestItems:
    """Top-level items"""

    def test_enum_declaration(self, parser):
        ast = parser.parse_file(ENUM_SOURCE, "lib.rs")
        enums = [i for i in ast.items if isinstance(i, EnumDeclaration)]
        assert len(enums) == 1
        decl = enums[0]
        assert decl.name == "Inner"
        assert decl.visibility == "pub"
        assert decl.flatten_mark is FlattenMark.MARKED
        assert decl.case_names == ("VariantA", "VariantB", "VariantC", "VariantD")

    def test_declaration_span_covers_attributes(self, parser):
        ast = parser.parse_file(ENUM_SOURCE, "lib.rs")
        decl = next(i for i in ast.items if isinstance(i, EnumDeclaration))
        assert decl.text.startswith("#[derive(Debug)]")
        assert decl.text.endswith("}")
        assert ENUM_SOURCE[decl.span[0]:decl.span[1]] == decl.text
        assert [a.name for a in decl.attributes] == ["derive", "nest"]

    def test_case_shapes_and_fields(self, parser):
        decl = next(i for i in parser.parse_file(ENUM_SOURCE, "lib.rs").items
                    if isinstance(i, EnumDeclaration))
        a, b, c, d = decl.cases
        assert a.shape is CaseShape.UNIT
        assert b.shape is CaseShape.TUPLE
        assert [f.type.text for f in b.fields] == ["u8", "String"]
        assert c.shape is CaseShape.RECORD
        assert [f.name for f in c.fields] == ["x", "y"]
        assert c.fields[1].type.path == ("Vec",)
        assert c.fields[1].type.has_generics
        assert d.discriminant == "4"

    def test_other_items_are_opaque(self, parser):
        ast = parser.parse_file(ENUM_SOURCE, "lib.rs")
        opaque = [i for i in ast.items if isinstance(i, OpaqueItem)]
        # `use` and `fn main`; the inner attribute is dropped
        assert len(opaque) == 2

    def test_modules(self, parser):
        text = source('''
            mod a {
                mod b {
                    pub enum X { A }
                }
            }
            pub mod c;
        ''')
        ast = parser.parse_file(text, "lib.rs")
        a, c = ast.items
        assert isinstance(a, InlineModule) and a.name == "a"
        b = a.items[0]
        assert isinstance(b, InlineModule) and b.name == "b"
        assert isinstance(b.items[0], EnumDeclaration)
        assert isinstance(c, ModuleDeclaration) and c.name == "c"
        assert b.location.line == 2
        assert b.location.end_line == 4

    def test_flatten_with_arguments(self, parser):
        ast = parser.parse_file("#[nest(flat)]\nenum E { A }\n", "lib.rs")
        assert ast.items[0].flatten_mark is FlattenMark.WITH_ARGS

    def test_external_attribute_on_case(self, parser):
        text = source('''
            #[nest]
            enum Outer {
                #[nest(external = "crate::inner::Inner")]
                Wrap(Inner),
            }
        ''')
        case = parser.parse_file(text, "lib.rs").items[0].cases[0]
        (attr,) = case.flatten_attributes
        assert attr.has_arguments
        assert case.text == "Wrap(Inner)"
        assert case.single_field_type.is_simple

    def test_generic_enum(self, parser):
        ast = parser.parse_file("pub(crate) enum E<T: Clone> where T: Copy { A(T), B(Box<T>) }\n", "lib.rs")
        decl = ast.items[0]
        assert decl.generics == "<T: Clone>"
        assert decl.visibility == "pub(crate)"
        assert not decl.cases[1].single_field_type.is_simple


class TestOpaqueItems:
    """Ordinary Rust around the enums stays parseable as token trees"""

    FUNCTIONS = source('''
        pub fn f() -> u8 { 0 }

        impl Counter {
            pub(crate) fn get(&self) -> u8 { self.0 }
            pub unsafe fn raw(&mut self) -> *mut u8 { &mut self.0 as *mut u8 }
        }

        fn pick(v: Option<u8>, xs: &[u8]) -> u8 {
            let y = 2;
            if 1 > y { return 0; }
            match v {
                Some(_) => 1,
                None if xs.len() >= 1 => match xs { [a] => *a, _ => 0 },
                None => { 3 }
                _ => 4,
            }
        }

        const LIMIT: usize = 1..=5;
        struct Pair<T: Fn() -> u8>(T, T);
    ''')

    def test_functions_and_impls_parse(self, parser):
        ast = parser.parse_file(self.FUNCTIONS, "lib.rs")
        assert len(ast.items) == 5
        assert all(isinstance(i, OpaqueItem) for i in ast.items)

    def test_items_keep_their_text(self, parser):
        ast = parser.parse_file(self.FUNCTIONS, "lib.rs")
        first = ast.items[0]
        assert self.FUNCTIONS[first.span[0]:first.span[1]] == "pub fn f() -> u8 { 0 }"

    def test_enum_after_function(self, parser):
        text = "fn f() -> u8 { match 1 { _ => 2 } }\n#[nest]\nenum E { A }\n"
        decl = parser.parse_file(text, "lib.rs").items[1]
        assert isinstance(decl, EnumDeclaration)
        assert decl.name == "E"

    def test_arm_bodies_with_wildcards_and_slices(self, parser):
        match = parser.parse_match(source('''
            match v {
                Some(_) => f(|x| -> u8 { x }),
                [a, ..] if a > b => a,
                (Outer::Wrap::A, _) => { 1 }
                _ => 0
            }
        '''), "lib.rs")
        assert len(match.arms) == 4
        assert match.arms[0].body.text == "f(|x| -> u8 { x })"
        assert "a > b" in match.arms[1].guard.text


class TestMatchExpressions:
    """The `match_expr` entry point used for macro bodies"""

    MATCH = source('''
        match value {
            Outer::Wrap::A | Outer::Wrap::B => 1,
            Outer::Wrap::C { x, .. } if x > 0 => { x }
            Some(Outer::Wrap::D(n)) => n,
            (&a, 3) => 2,
            whole @ Outer::Other => 4,
            _ => 0
        }
    ''')

    def test_arms(self, parser):
        match = parser.parse_match(self.MATCH, "lib.rs")
        assert len(match.arms) == 6
        assert match.scrutinee.text == "value"

    def test_alternation(self, parser):
        pattern = parser.parse_match(self.MATCH, "lib.rs").arms[0].pattern
        assert isinstance(pattern, OrPattern)
        assert [p.path.segments for p in pattern.alternatives] == [
            ("Outer", "Wrap", "A"), ("Outer", "Wrap", "B"),
        ]

    def test_struct_pattern_and_guard(self, parser):
        arm = parser.parse_match(self.MATCH, "lib.rs").arms[1]
        assert isinstance(arm.pattern, StructPattern)
        assert arm.pattern.has_rest
        assert [f.name for f in arm.pattern.fields] == ["x"]
        assert "x > 0" in arm.guard.text

    def test_nested_patterns(self, parser):
        arms = parser.parse_match(self.MATCH, "lib.rs").arms
        some = arms[2].pattern
        assert isinstance(some, TupleStructPattern)
        assert isinstance(some.elements[0], TupleStructPattern)
        assert some.elements[0].path.segments == ("Outer", "Wrap", "D")

        pair = arms[3].pattern
        assert isinstance(pair, TuplePattern)
        assert isinstance(pair.elements[0], RefPattern)
        assert isinstance(pair.elements[1], LiteralPattern)

        binding = arms[4].pattern
        assert isinstance(binding, IdentPattern)
        assert binding.name == "whole"
        assert isinstance(binding.subpattern, PathPattern)

        assert isinstance(arms[5].pattern, WildcardPattern)

    def test_spans_match_text(self, parser):
        match = parser.parse_match(self.MATCH, "lib.rs")
        for arm in match.arms:
            start, end = arm.pattern.span
            assert self.MATCH[start:end] == arm.pattern.text

    def test_base_offset_locations(self, parser):
        full = "fn f() {\n    nested! { match v { A::B::C => 1 } }\n}\n"
        start = full.index("match")
        end = full.index(" }\n}")
        match = parser.parse_match(full[start:end], "lib.rs", full_text=full, base_offset=start)
        location = match.arms[0].pattern.location
        assert location.line == 2
        assert location.column == full.split("\n")[1].index("A::B::C") + 1


class TestSyntaxErrors:

    def test_unparsable_file(self, parser):
        with pytest.raises(SourceSyntaxError) as exc_info:
            parser.parse_file("enum {\n", "broken.rs")
        assert exc_info.value.location.line == 1
        assert "broken.rs" in exc_info.value.message

    def test_unexpected_end_of_input(self, parser):
        with pytest.raises(SourceSyntaxError):
            parser.parse_match("match x { A => 1,", "lib.rs")
