"""
End-to-end tests for the command line entry point.
"""

import pytest

from enumnest.__main__ import main
from tests.test_utils import source, write_crate


GOOD = '''
    #[nest]
    pub enum Inner { A, B(u8) }

    #[nest]
    pub enum Outer {
        Wrap(Inner),
    }

    fn f(o: Outer::Outer) -> u8 {
        nested! {
            match o {
                Outer::Wrap::A => 0,
                Outer::Wrap::B(n) => n,
            }
        }
    }
'''

BAD = GOOD.replace("Outer::Wrap::A", "Outer::Wrap::Nope")


class TestCommandLine:

    def test_prints_expansion(self, tmp_path, capsys):
        """Expanded source goes to stdout."""
        src = write_crate(tmp_path, {"lib.rs": GOOD})
        assert main([str(src / "lib.rs")]) == 0
        out = capsys.readouterr().out
        assert "pub const A: super::Outer = super::Outer::Wrap(super::super::Inner::Inner::A);" in out
        assert "Outer::Outer::Wrap(Inner::Inner::B(n)) => n," in out

    def test_output_file(self, tmp_path, capsys):
        src = write_crate(tmp_path, {"lib.rs": GOOD})
        target = tmp_path / "expanded.rs"
        assert main([str(src / "lib.rs"), "-o", str(target)]) == 0
        assert capsys.readouterr().out == ""
        assert "pub mod Outer {" in target.read_text(encoding="utf-8")

    def test_check_mode(self, tmp_path, capsys):
        src = write_crate(tmp_path, {"lib.rs": GOOD})
        assert main([str(src / "lib.rs"), "--check"]) == 0
        assert capsys.readouterr().out == ""

    def test_errors_exit_nonzero(self, tmp_path, capsys):
        """Diagnostics go to stderr and nothing is printed to stdout."""
        src = write_crate(tmp_path, {"lib.rs": BAD})
        assert main([str(src / "lib.rs"), "--no-color"]) == 1
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "error[N0203]: variant Nope not found on inner enum Inner" in captured.err
        assert "error: aborting due to 1 previous error" in captured.err
        assert "\033[" not in captured.err

    def test_missing_file(self, tmp_path, capsys):
        assert main([str(tmp_path / "absent.rs")]) == 1
        assert "file not found" in capsys.readouterr().err

    def test_directory_argument(self, tmp_path, capsys):
        assert main([str(tmp_path)]) == 1
        assert "not a file" in capsys.readouterr().err

    def test_explicit_root(self, tmp_path, capsys):
        """--root anchors module paths for files outside a Cargo layout."""
        (tmp_path / "code").mkdir()
        (tmp_path / "code" / "lib.rs").write_text(source('''
            mod inner;

            #[nest]
            pub enum Outer {
                #[nest(external = "crate::inner::Inner")]
                Wrap(Inner),
            }
        '''), encoding="utf-8")
        (tmp_path / "code" / "inner.rs").write_text("#[nest]\npub enum Inner { A }\n", encoding="utf-8")
        assert main([str(tmp_path / "code" / "lib.rs"), "--root", str(tmp_path / "code")]) == 0
        assert "super::Outer::Wrap(crate::inner::Inner::Inner::A)" in capsys.readouterr().out

    def test_usage_error(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 2
