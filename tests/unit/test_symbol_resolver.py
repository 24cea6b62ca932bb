"""
Name resolution tests: `external = "..."` parsing and enum lookup through
candidate module paths.
"""

import pytest

from enumnest.analysis.module_system import (
    DeclarationRegistry, ModuleLocator, SymbolResolver, parse_external_attribute, parse_external_path,
)
from enumnest.shared.errors import (
    AmbiguousName, ExternalNotFound, InvalidAttribute, ModuleNotFoundError, NestImplementationError,
)
from enumnest.shared.source_location import SourceLocation
from tests.test_utils import source, write_crate


def case_attribute(parser, attribute: str):
    text = source(f'''
        #[nest]
        enum Outer {{
            {attribute}
            Wrap(Inner),
        }}
    ''')
    return parser.parse_file(text, "lib.rs").items[0].cases[0].attributes[0]


class TestParseExternalAttribute:

    def test_root_qualified(self, parser):
        external = parse_external_attribute(case_attribute(parser, '#[nest(external = "crate::a::Inner")]'))
        assert external.segments == ("a", "Inner")
        assert external.root_qualified
        assert external.name == "Inner"
        assert external.module_segments == ("a",)
        assert external.text == "crate::a::Inner"

    def test_relative(self, parser):
        external = parse_external_attribute(case_attribute(parser, '#[nest(external = "inner::Inner")]'))
        assert external.segments == ("inner", "Inner")
        assert not external.root_qualified

    def test_bare_marker_on_case(self, parser):
        with pytest.raises(InvalidAttribute) as exc_info:
            parse_external_attribute(case_attribute(parser, "#[nest]"))
        assert "use #[nest(external" in exc_info.value.message

    def test_assignment_form(self, parser):
        with pytest.raises(InvalidAttribute):
            parse_external_attribute(case_attribute(parser, '#[nest = "crate::Inner"]'))

    def test_unknown_argument(self, parser):
        with pytest.raises(InvalidAttribute) as exc_info:
            parse_external_attribute(case_attribute(parser, "#[nest(flat)]"))
        assert "expected external" in exc_info.value.message

    def test_value_must_be_string(self, parser):
        with pytest.raises(InvalidAttribute) as exc_info:
            parse_external_attribute(case_attribute(parser, "#[nest(external = crate::Inner)]"))
        assert exc_info.value.message == "external must be a string literal"

    def test_byte_string_rejected(self, parser):
        with pytest.raises(InvalidAttribute):
            parse_external_attribute(case_attribute(parser, '#[nest(external = b"crate::Inner")]'))

    def test_error_location_points_at_attribute(self, parser):
        with pytest.raises(InvalidAttribute) as exc_info:
            parse_external_attribute(case_attribute(parser, "#[nest(flat)]"))
        assert exc_info.value.location.line == 3


class TestParseExternalPath:

    @pytest.mark.parametrize("text, segments, root_qualified", [
        ("Inner", ("Inner",), False),
        ("crate::Inner", ("Inner",), True),
        ("::a::Inner", ("a", "Inner"), False),
        ("self::a::Inner", ("self", "a", "Inner"), False),
        ("r#type::Inner", ("r#type", "Inner"), False),
    ])
    def test_valid(self, text, segments, root_qualified):
        external = parse_external_path(text)
        assert external.segments == segments
        assert external.root_qualified is root_qualified

    @pytest.mark.parametrize("text", ["", "crate", "a::", "a::crate::B", "a b::C", "_::C", "1a::C"])
    def test_invalid(self, text):
        with pytest.raises(InvalidAttribute):
            parse_external_path(text)


@pytest.fixture
def resolver(tmp_path, parser):
    src = write_crate(tmp_path, {
        "lib.rs": '''
            mod a;
            pub enum Root { X }
            mod m {
                pub enum Local { X }
                pub mod a {
                    pub enum Dup { X }
                }
            }
        ''',
        "a.rs": '''
            pub enum Dup { X }
            pub enum Only { X }
        ''',
    })
    return SymbolResolver(DeclarationRegistry(ModuleLocator(root=src, parser=parser)))


class TestLookup:

    def test_current_module(self, resolver):
        module_path, decl = resolver.lookup((), ("m",), "Local", None)
        assert module_path == ("m",)
        assert decl.name == "Local"

    def test_relative_then_root(self, resolver):
        module_path, _ = resolver.lookup(("a",), ("m",), "Only", None)
        assert module_path == ("a",)

    def test_anchored_prefix(self, resolver):
        module_path, _ = resolver.lookup(("crate", "a"), ("m",), "Dup", None)
        assert module_path == ("a",)
        module_path, _ = resolver.lookup(("self", "a"), ("m",), "Dup", None)
        assert module_path == ("m", "a")
        module_path, _ = resolver.lookup(("super",), ("m",), "Root", None)
        assert module_path == ()

    def test_ambiguous(self, resolver):
        with pytest.raises(AmbiguousName) as exc_info:
            resolver.lookup(("a",), ("m",), "Dup", None)
        message = exc_info.value.message
        assert "crate::m::a::Dup" in message
        assert "crate::a::Dup" in message
        assert "crate::" in exc_info.value.help_text

    def test_unknown_name(self, resolver):
        assert resolver.lookup((), (), "Nothing", None) is None

    def test_missing_relative_module_is_skipped(self, resolver):
        assert resolver.lookup(("nowhere",), (), "X", None) is None

    def test_missing_anchored_module(self, resolver):
        with pytest.raises(ModuleNotFoundError):
            resolver.lookup(("crate", "nowhere"), (), "X", None)

    def test_super_at_root(self, resolver):
        with pytest.raises(ModuleNotFoundError):
            resolver.lookup(("super",), (), "X", None)


class TestResolveExternal:

    def test_root_qualified(self, resolver):
        module_path, decl = resolver.resolve_external(parse_external_path("crate::a::Only"), ("m",), None)
        assert module_path == ("a",)
        assert decl.name == "Only"

    def test_relative_to_declaring_module(self, resolver):
        module_path, _ = resolver.resolve_external(parse_external_path("Local"), ("m",), None)
        assert module_path == ("m",)

    def test_ambiguous(self, resolver):
        with pytest.raises(AmbiguousName):
            resolver.resolve_external(parse_external_path("a::Dup"), ("m",), None)

    def test_enum_missing(self, resolver):
        with pytest.raises(ExternalNotFound) as exc_info:
            resolver.resolve_external(parse_external_path("crate::a::Missing"), (), None)
        assert exc_info.value.message.startswith("external enum crate::a::Missing not found")
        assert "include!d" in exc_info.value.help_text

    def test_module_missing(self, resolver):
        with pytest.raises(ModuleNotFoundError):
            resolver.resolve_external(parse_external_path("crate::nowhere::E"), (), None)

    def test_describe(self, resolver):
        resolver.registry.ensure_loaded(("a",))
        assert resolver.describe(("a",), "Only").startswith("crate::a::Only (")
        assert resolver.describe(("zzz",), "Only") == "crate::zzz::Only"

    def test_relative_module_missing_carries_location(self, resolver):
        location = SourceLocation("src/lib.rs", 3, 5)
        with pytest.raises(ModuleNotFoundError) as exc_info:
            resolver.resolve_external(parse_external_path("nowhere::E"), (), None, location)
        assert exc_info.value.location == location

    def test_no_candidate_modules(self, resolver, monkeypatch):
        monkeypatch.setattr(resolver.locator, "resolve_relative", lambda prefix, current: [])
        with pytest.raises(NestImplementationError):
            resolver.resolve_external(parse_external_path("a::Only"), ("m",), None)
