from __future__ import annotations

import io
from pathlib import Path

import pytest

from implgen.closure import build_closure
from implgen.codegen import SourceEmitter, SourceWriter, escape_unicode, output_unit
from implgen.errors import ErrorKind, SynthesisFault
from implgen.members import resolve_constructors, resolve_methods
from implgen.render import TypeRenderer
from implgen.type_table import TypeTable

LISTING = '''
public interface com.example.Source<T> {
  T get();
}
public abstract class com.example.NumberSource implements com.example.Source<java.lang.Integer> { }
public interface com.example.Marker { }
public abstract class com.example.Resource<R extends java.lang.AutoCloseable> {
  protected com.example.Resource(int, java.lang.String...) throws java.io.IOException;
  private com.example.Resource();
  public <E extends java.lang.Exception> com.example.Resource(java.util.List<E>) throws E;
  protected abstract synchronized R acquire(long) throws java.lang.InterruptedException;
  abstract boolean[] flags();
}
public interface Greeter {
  void greet(java.lang.String...);
}
'''


def emit(name: str, override_annotations: bool = True) -> str:
    types = TypeTable()
    types.load_source(LISTING, "codegen.lst")
    target = types.get(name)
    table = build_closure(target, types)
    emitter = SourceEmitter(TypeRenderer(types, table), override_annotations=override_annotations)
    out = io.StringIO()
    emitter.emit(SourceWriter(out), target, resolve_constructors(target), resolve_methods(target, types, table))
    return out.getvalue()


def test_marker_interface() -> None:
    assert emit("com.example.Marker") == (
        "package com.example;\n"
        "\n"
        "public class MarkerImpl implements com.example.Marker {\n"
        "\n"
        "    public MarkerImpl() {\n"
        "    }\n"
        "}\n"
    )


def test_generic_interface_keeps_parameters() -> None:
    assert emit("com.example.Source") == (
        "package com.example;\n"
        "\n"
        "public class SourceImpl<T> implements com.example.Source<T> {\n"
        "\n"
        "    public SourceImpl() {\n"
        "    }\n"
        "\n"
        "    @Override\n"
        "    public T get() {\n"
        "        return null;\n"
        "    }\n"
        "}\n"
    )


def test_number_source_substitutes_argument() -> None:
    source = emit("com.example.NumberSource")
    assert "public class NumberSourceImpl extends com.example.NumberSource {\n" in source
    assert (
        "    public NumberSourceImpl() {\n"
        "        super();\n"
        "    }\n"
    ) in source
    assert (
        "    @Override\n"
        "    public java.lang.Integer get() {\n"
        "        return null;\n"
        "    }\n"
    ) in source
    assert "    public boolean equals(java.lang.Object arg0) {\n        return false;\n" in source


def test_constructor_forwarding_and_method_shapes() -> None:
    source = emit("com.example.Resource")
    assert "public class ResourceImpl<R extends java.lang.AutoCloseable> extends com.example.Resource<R> {" in source
    assert (
        "    protected ResourceImpl(int arg0, java.lang.String... arg1) throws java.io.IOException {\n"
        "        super(arg0, arg1);\n"
        "    }\n"
    ) in source
    assert (
        "    public <E extends java.lang.Exception> ResourceImpl(java.util.List<E> arg0) throws E {\n"
        "        super(arg0);\n"
        "    }\n"
    ) in source
    assert "ResourceImpl() {" not in source
    assert "    protected synchronized R acquire(long arg0) throws java.lang.InterruptedException {\n" in source
    assert "    boolean[] flags() {\n        return null;\n    }\n" in source
    assert "abstract" not in source


def test_default_package_and_varargs() -> None:
    source = emit("Greeter", override_annotations=False)
    assert source.startswith("public class GreeterImpl implements Greeter {\n")
    assert "    public void greet(java.lang.String... arg0) {\n    }\n" in source
    assert "@Override" not in source


def test_escape_unicode() -> None:
    assert escape_unicode("plain") == "plain"
    assert escape_unicode("Grüße") == "Gr\\u00fc\\u00dfe"
    assert escape_unicode("\U0001F600") == "\\ud83d\\ude00"


def test_writer_escapes_when_enabled() -> None:
    out = io.StringIO()
    SourceWriter(out).write("é")
    raw = io.StringIO()
    SourceWriter(raw, escape=False).write("é")
    assert out.getvalue() == "\\u00e9"
    assert raw.getvalue() == "é"


def test_output_unit_writes_file(tmp_path: Path) -> None:
    path = tmp_path / "a" / "b" / "XImpl.java"
    with output_unit(path) as writer:
        writer.line("class XImpl {}")
    assert path.read_text() == "class XImpl {}\n"


def test_output_unit_removes_partial_output(tmp_path: Path) -> None:
    path = tmp_path / "a" / "b" / "XImpl.java"
    with pytest.raises(SynthesisFault):
        with output_unit(path) as writer:
            writer.line("class XImpl {")
            raise SynthesisFault(ErrorKind.INACCESSIBLE_MEMBER, "boom")
    assert not (tmp_path / "a").exists()
    assert tmp_path.exists()


def test_output_unit_keeps_existing_directories(tmp_path: Path) -> None:
    existing = tmp_path / "pkg"
    existing.mkdir()
    (existing / "Other.java").write_text("class Other {}")
    with pytest.raises(RuntimeError):
        with output_unit(existing / "XImpl.java"):
            raise RuntimeError("interrupted")
    assert not (existing / "XImpl.java").exists()
    assert (existing / "Other.java").exists()


def test_cleanup_failure_becomes_note(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def refuse(self, missing_ok=False):
        raise PermissionError(13, "Permission denied", str(self))

    path = tmp_path / "locked" / "XImpl.java"
    with pytest.raises(SynthesisFault) as info:
        with output_unit(path):
            monkeypatch.setattr(Path, "unlink", refuse)
            raise SynthesisFault(ErrorKind.INACCESSIBLE_MEMBER, "boom")
    monkeypatch.undo()

    notes = info.value.notes
    assert any(note.startswith(f"Could not delete {path}") for note in notes)
    assert any("Could not delete directory" in note for note in notes)
    assert info.value.message == "boom"
