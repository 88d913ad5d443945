from __future__ import annotations

import os
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import List, Sequence

import pytest

from implgen.errors import CompilationFailed, ErrorKind, ImplerError, PackagingFailed, SynthesisFault
from implgen.implementor import Implementor
from implgen.jar_linker import (
    MANIFEST_NAME, CompilerConfig, JarArchiver, JarLinker, JavacCompiler,
)
from implgen.type_table import TypeTable

LISTING = '''
public interface com.example.Widget {
  void draw(int, int);
}
public interface Plain { }
'''

CLASS_BYTES = b"\xca\xfe\xba\xbe\x00\x00\x00\x3d"


class FakeCompiler:
    """Writes a class file next to the source and records each call"""

    def __init__(self, status: int = 0):
        self.status = status
        self.calls: List[tuple] = []

    def compile(self, source_path: Path, classpath: Sequence[str]) -> int:
        self.calls.append((source_path, list(classpath)))
        if self.status == 0:
            source_path.with_suffix(".class").write_bytes(CLASS_BYTES)
        return self.status


class BrokenArchiver(JarArchiver):
    """Fails while writing the first entry"""

    def write(self, data: bytes):
        raise OSError(28, "No space left on device")


@pytest.fixture
def implementor() -> Implementor:
    types = TypeTable()
    types.load_source(LISTING, "jar.lst")
    return Implementor(types)


@pytest.fixture
def scratch(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Redirect temporary directories so leftovers can be checked"""
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(scratch))
    return scratch


def test_link_packages_class(implementor: Implementor, tmp_path: Path, scratch: Path) -> None:
    compiler = FakeCompiler()
    config = CompilerConfig(classpath=["lib/api.jar"])
    linker = JarLinker(implementor, config, compiler=compiler)
    jar_path = tmp_path / "out" / "widget.jar"

    result = linker.link(implementor.types.get("com.example.Widget"), jar_path)

    assert result == jar_path
    with zipfile.ZipFile(jar_path) as jar:
        assert jar.namelist() == [MANIFEST_NAME, "com/example/WidgetImpl.class"]
        assert jar.read("com/example/WidgetImpl.class") == CLASS_BYTES
        assert jar.read(MANIFEST_NAME).startswith(b"Manifest-Version: 1.0")

    source, classpath = compiler.calls[0]
    assert source.name == "WidgetImpl.java"
    assert classpath[1:] == ["lib/api.jar"]
    assert Path(classpath[0]).parent == scratch
    assert list(scratch.iterdir()) == []


def test_default_package_entry(implementor: Implementor, tmp_path: Path, scratch: Path) -> None:
    linker = JarLinker(implementor, compiler=FakeCompiler())
    jar_path = linker.link(implementor.types.get("Plain"), tmp_path / "plain.jar")
    with zipfile.ZipFile(jar_path) as jar:
        assert "PlainImpl.class" in jar.namelist()


def test_compiler_status_fails(implementor: Implementor, tmp_path: Path, scratch: Path) -> None:
    linker = JarLinker(implementor, compiler=FakeCompiler(status=2))
    jar_path = tmp_path / "widget.jar"
    with pytest.raises(SynthesisFault) as info:
        linker.link(implementor.types.get("com.example.Widget"), jar_path)
    assert info.value.kind == ErrorKind.COMPILATION_FAILED
    assert "status 2" in info.value.message
    assert not jar_path.exists()
    assert list(scratch.iterdir()) == []


def test_archive_removed_on_packaging_failure(implementor: Implementor, tmp_path: Path, scratch: Path) -> None:
    linker = JarLinker(implementor, compiler=FakeCompiler(), archiver_factory=BrokenArchiver)
    jar_path = tmp_path / "widget.jar"
    with pytest.raises(SynthesisFault) as info:
        linker.link(implementor.types.get("com.example.Widget"), jar_path)
    assert info.value.kind == ErrorKind.PACKAGING_FAILED
    assert not jar_path.exists()
    assert list(scratch.iterdir()) == []


def test_missing_compiler(implementor: Implementor, tmp_path: Path, scratch: Path) -> None:
    config = CompilerConfig(command="implgen-no-such-javac")
    jar_path = tmp_path / "widget.jar"
    with pytest.raises(CompilationFailed) as info:
        implementor.implement_jar("com.example.Widget", jar_path, config)
    assert info.value.type_name == "com.example.Widget"
    assert "implgen-no-such-javac" in info.value.message
    assert not jar_path.exists()
    assert list(scratch.iterdir()) == []


def test_javac_command() -> None:
    compiler = JavacCompiler(CompilerConfig(flags=["-g"], release=17))
    cmd = compiler.command(Path("/tmp/p/XImpl.java"), ["/tmp", "lib/a.jar"])
    assert cmd[0] == "javac"
    assert cmd[cmd.index("--release") + 1] == "17"
    assert cmd[cmd.index("-cp") + 1] == os.pathsep.join(["/tmp", "lib/a.jar"])
    assert "-g" in cmd
    assert cmd[-1] == str(Path("/tmp/p/XImpl.java"))


def test_archiver_single_open_entry(tmp_path: Path) -> None:
    with JarArchiver(tmp_path / "a.jar") as jar:
        jar.open_entry("a/A.class")
        with pytest.raises(SynthesisFault):
            jar.open_entry("b/B.class")
        jar.write(b"a")
        jar.close_entry()
    with zipfile.ZipFile(tmp_path / "a.jar") as archive:
        assert archive.read("a/A.class") == b"a"


def test_temp_cleanup_failure_keeps_compiler_error(implementor: Implementor, tmp_path: Path, scratch: Path,
                                                   monkeypatch: pytest.MonkeyPatch) -> None:
    def refuse(path, *args, **kwargs):
        raise PermissionError(13, "Permission denied", str(path))

    monkeypatch.setattr(shutil, "rmtree", refuse)
    linker = JarLinker(implementor, compiler=FakeCompiler(status=2))
    with pytest.raises(SynthesisFault) as info:
        linker.link(implementor.types.get("com.example.Widget"), tmp_path / "widget.jar")
    assert info.value.kind == ErrorKind.COMPILATION_FAILED
    assert "status 2" in info.value.message
    assert any(note.startswith("Could not delete temporary directory") for note in info.value.notes)


def test_jar_cleanup_failure_keeps_packaging_error(implementor: Implementor, tmp_path: Path, scratch: Path,
                                                   monkeypatch: pytest.MonkeyPatch) -> None:
    jar_path = tmp_path / "widget.jar"
    original_unlink = Path.unlink

    def refuse(self, missing_ok=False):
        if self == jar_path:
            raise PermissionError(13, "Permission denied", str(self))
        original_unlink(self, missing_ok=missing_ok)

    monkeypatch.setattr(Path, "unlink", refuse)
    linker = JarLinker(implementor, compiler=FakeCompiler(), archiver_factory=BrokenArchiver)
    with pytest.raises(SynthesisFault) as info:
        linker.link(implementor.types.get("com.example.Widget"), jar_path)
    assert info.value.kind == ErrorKind.PACKAGING_FAILED
    assert "No space left on device" in info.value.message
    assert any(note.startswith(f"Could not delete {jar_path}") for note in info.value.notes)
    assert list(scratch.iterdir()) == []


class OversizedArchiver(JarArchiver):
    """Rejects the entry the way zipfile does past its size limits"""

    def write(self, data: bytes):
        raise zipfile.LargeZipFile("Filesize would require ZIP64 extensions")


def test_zip_error_becomes_packaging_failure(implementor: Implementor, tmp_path: Path, scratch: Path) -> None:
    jar_path = tmp_path / "widget.jar"
    linker = JarLinker(implementor, compiler=FakeCompiler(), archiver_factory=OversizedArchiver)
    with pytest.raises(SynthesisFault) as info:
        linker.link(implementor.types.get("com.example.Widget"), jar_path)
    assert info.value.kind == ErrorKind.PACKAGING_FAILED
    assert "ZIP64" in info.value.message
    assert isinstance(ImplerError.from_fault(info.value, "com.example.Widget"), PackagingFailed)
    assert not jar_path.exists()
    assert list(scratch.iterdir()) == []
