from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
from pathlib import Path


class ErrorKind(Enum):
    INVALID_TARGET = "InvalidTarget"
    NO_USABLE_CONSTRUCTOR = "NoUsableConstructor"
    INACCESSIBLE_MEMBER = "InaccessibleMember"
    COMPILATION_FAILED = "CompilationFailed"
    PACKAGING_FAILED = "PackagingFailed"
    IO_FAILURE = "IOFailure"


@dataclass
class SourceLocation:
    """Location in a signature listing"""
    file: str
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


@dataclass(eq=False)
class ImplerError(Exception):
    """Failure reported to callers of the implementor, naming the offending type"""
    message: str
    error_type: str = "ImplerError"
    type_name: Optional[str] = None
    location: Optional[SourceLocation] = None
    context: Optional[str] = None
    notes: List[str] = field(default_factory=list)  # cleanup failures, hints

    def __str__(self) -> str:
        parts = []

        subject = f" ({self.type_name})" if self.type_name else ""
        where = f" at {self.location}" if self.location else ""
        parts.append(f"{self.error_type}{subject}{where}: {self.message}")

        if self.context:
            parts.append("\nContext:")
            parts.append(self.context)

        if self.notes:
            parts.append("\nNotes:")
            parts.extend(f"  - {note}" for note in self.notes)

        return "\n".join(parts)

    @classmethod
    def from_fault(cls, fault: 'SynthesisFault', type_name: Optional[str]) -> 'ImplerError':
        """Convert an internal synthesis fault into its public failure"""
        error_class = _ERRORS_BY_KIND[fault.kind]
        return error_class(message=fault.message, type_name=type_name, notes=list(fault.notes))

    @classmethod
    def from_exception(cls, e: OSError, type_name: Optional[str]) -> 'ImplerError':
        """Wrap an I/O error raised while writing an artifact"""
        target = f" ({e.filename})" if getattr(e, "filename", None) else ""
        return IOFailure(
            message=f"{e.strerror or e}{target}",
            type_name=type_name,
            notes=["Check that the path exists and is writable"],
        )


@dataclass(eq=False)
class InvalidTarget(ImplerError):
    error_type: str = "InvalidTarget"


@dataclass(eq=False)
class NoUsableConstructor(ImplerError):
    error_type: str = "NoUsableConstructor"


@dataclass(eq=False)
class InaccessibleMember(ImplerError):
    error_type: str = "InaccessibleMember"


@dataclass(eq=False)
class CompilationFailed(ImplerError):
    error_type: str = "CompilationFailed"


@dataclass(eq=False)
class PackagingFailed(ImplerError):
    error_type: str = "PackagingFailed"


@dataclass(eq=False)
class IOFailure(ImplerError):
    error_type: str = "IOFailure"


@dataclass(eq=False)
class ListingError(ImplerError):
    """Syntax or structure error in a signature listing"""
    error_type: str = "ParseError"


_ERRORS_BY_KIND = {
    ErrorKind.INVALID_TARGET: InvalidTarget,
    ErrorKind.NO_USABLE_CONSTRUCTOR: NoUsableConstructor,
    ErrorKind.INACCESSIBLE_MEMBER: InaccessibleMember,
    ErrorKind.COMPILATION_FAILED: CompilationFailed,
    ErrorKind.PACKAGING_FAILED: PackagingFailed,
    ErrorKind.IO_FAILURE: IOFailure,
}


@dataclass(eq=False)
class SynthesisFault(Exception):
    """Raised inside synthesis; converted to an ImplerError by the seam owning the output"""
    kind: ErrorKind
    message: str
    notes: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


def get_source_context(file_path: str, line: int, context_lines: int = 2,
                       source: Optional[str] = None) -> Optional[str]:
    """Get listing text around a location"""
    if source is None:
        path = Path(file_path)
        if not path.exists():
            return None
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None

    lines = source.splitlines()
    start = max(0, line - context_lines - 1)
    end = min(len(lines), line + context_lines)

    context = []
    for i in range(start, end):
        line_num = i + 1
        prefix = '> ' if line_num == line else '  '
        context.append(f"{prefix}{line_num:4d} | {lines[i].rstrip()}")

    return '\n'.join(context) if context else None


def attach_notes(error: BaseException, notes: List[str]) -> None:
    """Record cleanup problems on an in-flight error without replacing it"""
    if not notes:
        return
    existing = getattr(error, "notes", None)
    if isinstance(existing, list):
        existing.extend(notes)
    elif hasattr(error, "add_note"):
        for note in notes:
            error.add_note(note)
