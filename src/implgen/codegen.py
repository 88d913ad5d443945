"""
Source emitter for generated implementations.

Writes one `<Simple>Impl` compilation unit: package clause, class header,
forwarding constructors and one default-bodied override per resolved method.
Output goes through a SourceWriter so that non-ASCII text is escaped the way
javac reads it back regardless of platform encoding.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, TextIO

from implgen.errors import attach_notes
from implgen.render import TypeRenderer
from implgen.type_defs import (
    MODIFIER_ORDER, ConstructorDecl, MethodDecl, TypeDecl, TypeReference,
)

logger = logging.getLogger(__name__)

# Never carried over to an override
DROPPED_MODIFIERS = frozenset({"abstract", "default", "transient", "volatile", "synthetic", "bridge"})


def escape_unicode(text: str) -> str:
    """Replace every non-ASCII character by \\uXXXX escapes of its UTF-16 code units"""
    out = []
    for ch in text:
        code = ord(ch)
        if code < 0x80:
            out.append(ch)
        elif code <= 0xFFFF:
            out.append(f"\\u{code:04x}")
        else:
            code -= 0x10000
            out.append(f"\\u{0xD800 + (code >> 10):04x}\\u{0xDC00 + (code & 0x3FF):04x}")
    return "".join(out)


class SourceWriter:
    """Append-only sink over an open text stream"""

    def __init__(self, stream: TextIO, escape: bool = True, indent: str = "    "):
        self.stream = stream
        self.escape = escape
        self.indent = indent
        self.indent_level = 0

    def write(self, text: str):
        self.stream.write(escape_unicode(text) if self.escape else text)

    def line(self, text: str = ""):
        if text:
            self.write(self.indent * self.indent_level + text)
        self.write("\n")

    def open_block(self, header: str):
        self.line(header + " {")
        self.indent_level += 1

    def close_block(self):
        self.indent_level -= 1
        self.line("}")


def _missing_dirs(directory: Path) -> List[Path]:
    """Directories that do not exist yet, deepest first"""
    missing = []
    while not directory.exists():
        missing.append(directory)
        if directory.parent == directory:
            break
        directory = directory.parent
    return missing


def discard(path: Optional[Path], created_dirs: Sequence[Path] = ()) -> List[str]:
    """Delete a partial artifact and the directories created for it.

    Returns one note per failed deletion; never raises.
    """
    failures = []
    if path is not None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            failures.append(f"Could not delete {path}: {e}")
    for directory in created_dirs:
        if not directory.is_dir():
            continue
        try:
            directory.rmdir()
        except OSError as e:
            failures.append(f"Could not delete directory {directory}: {e}")
    for failure in failures:
        logger.warning(failure)
    return failures


@contextmanager
def output_unit(path, escape: bool = True, indent: str = "    ") -> Iterator[SourceWriter]:
    """Open a generated unit for writing.

    Missing parent directories are created. If the body raises, the file and
    every directory created here are deleted, deletion problems are attached
    to the error as notes and the original error propagates.
    """
    path = Path(path)
    created = _missing_dirs(path.parent)
    stream = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        stream = open(path, "w", encoding="utf-8", newline="\n")
        yield SourceWriter(stream, escape=escape, indent=indent)
        stream.close()
    except BaseException as error:
        if stream is not None:
            stream.close()
        attach_notes(error, discard(path if stream is not None else None, created))
        raise


class SourceEmitter:
    def __init__(self, renderer: TypeRenderer, suffix: str = "Impl", override_annotations: bool = True):
        self.renderer = renderer
        self.suffix = suffix
        self.override_annotations = override_annotations

    def class_name(self, target: TypeDecl) -> str:
        return target.simple_name + self.suffix

    def emit(self, writer: SourceWriter, target: TypeDecl,
             constructors: Iterable[ConstructorDecl], methods: Iterable[MethodDecl]):
        renderer = self.renderer
        name = self.class_name(target)

        if target.package:
            writer.line(f"package {target.package};")
            writer.line()

        relation = "implements" if target.is_interface else "extends"
        type_params = renderer.render_type_params(target.type_params, target.name)
        supertype = renderer.qualified_name(target, target.name) + renderer.render_type_args(target.type_params)
        writer.open_block(f"public class {name}{type_params} {relation} {supertype}")

        if target.is_interface:
            writer.line()
            writer.open_block(f"public {name}()")
            writer.close_block()
        for ctor in constructors:
            writer.line()
            self.emit_constructor(writer, name, ctor)

        for method in methods:
            writer.line()
            self.emit_method(writer, method)

        writer.close_block()

    def emit_constructor(self, writer: SourceWriter, name: str, ctor: ConstructorDecl):
        owner = f"constructor of {ctor.declaring}"
        params = self._params(ctor.params, ctor.varargs, owner)
        header = self._prefix(ctor.modifiers, ctor.type_params, owner) + f"{name}({params})"
        writer.open_block(header + self._throws(ctor.exceptions, owner))
        args = ", ".join(f"arg{i}" for i in range(len(ctor.params)))
        writer.line(f"super({args});")
        writer.close_block()

    def emit_method(self, writer: SourceWriter, method: MethodDecl):
        owner = str(method)
        renderer = self.renderer
        params = self._params(method.params, method.varargs, owner)
        header = (self._prefix(method.modifiers, method.type_params, owner)
                  + f"{renderer.render(method.return_type, owner)} {method.name}({params})")
        if self.override_annotations:
            writer.line("@Override")
        writer.open_block(header + self._throws(method.exceptions, owner))
        value = renderer.default_value(method.return_type)
        if value is not None:
            writer.line(f"return {value};")
        writer.close_block()

    def _prefix(self, modifiers, type_params, owner: str) -> str:
        words = [m for m in MODIFIER_ORDER if m in modifiers and m not in DROPPED_MODIFIERS]
        generics = self.renderer.render_type_params(type_params, owner)
        if generics:
            words.append(generics)
        return " ".join(words) + " " if words else ""

    def _params(self, params: Sequence[TypeReference], varargs: bool, owner: str) -> str:
        rendered = []
        for index, param in enumerate(params):
            if varargs and index == len(params) - 1:
                rendered.append(f"{self.renderer.render_vararg(param, owner)} arg{index}")
            else:
                rendered.append(f"{self.renderer.render(param, owner)} arg{index}")
        return ", ".join(rendered)

    def _throws(self, exceptions: Sequence[TypeReference], owner: Optional[str]) -> str:
        if not exceptions:
            return ""
        return " throws " + ", ".join(self.renderer.render(e, owner) for e in exceptions)
