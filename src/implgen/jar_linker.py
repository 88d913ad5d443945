from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence, Union

from implgen.codegen import discard
from implgen.errors import ErrorKind, SynthesisFault, attach_notes
from implgen.type_defs import TypeDecl

if TYPE_CHECKING:
    from implgen.implementor import Implementor

logger = logging.getLogger(__name__)

MANIFEST_NAME = "META-INF/MANIFEST.MF"
MANIFEST = "Manifest-Version: 1.0\r\nCreated-By: implgen\r\n\r\n"


@dataclass
class CompilerConfig:
    """Configuration for the external compiler"""
    command: str = "javac"
    flags: List[str] = field(default_factory=list)
    classpath: List[str] = field(default_factory=list)
    release: Optional[int] = None  # --release N
    encoding: str = "UTF-8"
    timeout: Optional[float] = None  # seconds, None waits forever


class JavacCompiler:
    """Runs javac on one generated source; classes land next to the source"""

    def __init__(self, config: Optional[CompilerConfig] = None):
        self.config = config or CompilerConfig()

    def command(self, source_path: Path, classpath: Sequence[str]) -> List[str]:
        cmd = [self.config.command, "-encoding", self.config.encoding]
        if self.config.release is not None:
            cmd.extend(["--release", str(self.config.release)])
        if classpath:
            cmd.extend(["-cp", os.pathsep.join(classpath)])
        cmd.extend(self.config.flags)
        cmd.append(str(source_path))
        return cmd

    def compile(self, source_path: Path, classpath: Sequence[str]) -> int:
        """Compile and return the exit status"""
        cmd = self.command(source_path, classpath)
        logger.debug(f"Running {' '.join(cmd)}")
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=self.config.timeout,
        )
        if result.returncode != 0:
            logger.error(f"{self.config.command} failed on {source_path}:\n{result.stderr}")
        elif result.stderr:
            logger.debug(result.stderr)
        return result.returncode


class JarArchiver:
    """Jar writer with one open entry at a time"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.archive: Optional[zipfile.ZipFile] = None
        self.entry = None

    def __enter__(self) -> 'JarArchiver':
        self.archive = zipfile.ZipFile(self.path, "w", compression=zipfile.ZIP_DEFLATED)
        self.archive.writestr(MANIFEST_NAME, MANIFEST)
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def open_entry(self, name: str):
        if self.entry is not None:
            raise SynthesisFault(ErrorKind.PACKAGING_FAILED, f"Entry still open when adding {name}")
        self.entry = self.archive.open(name, "w")

    def write(self, data: bytes):
        if self.entry is None:
            raise SynthesisFault(ErrorKind.PACKAGING_FAILED, "No open jar entry")
        self.entry.write(data)

    def close_entry(self):
        if self.entry is not None:
            self.entry.close()
            self.entry = None

    def close(self):
        try:
            self.close_entry()
        finally:
            if self.archive is not None:
                self.archive.close()
                self.archive = None


def remove_tree(path: Path) -> List[str]:
    """Delete a scratch directory; failures come back as notes"""
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return []
    except OSError as e:
        message = f"Could not delete temporary directory {path}: {e}"
        logger.warning(message)
        return [message]
    return []


class JarLinker:
    """Generate, compile and archive one implementation.

    Intermediates live in a fresh temporary directory that is always removed;
    the jar is removed again if anything fails once it has been opened.
    """

    def __init__(self, implementor: 'Implementor', config: Optional[CompilerConfig] = None,
                 compiler=None, archiver_factory: Callable[[Path], JarArchiver] = JarArchiver):
        self.implementor = implementor
        self.config = config or CompilerConfig()
        self.compiler = compiler or JavacCompiler(self.config)
        self.archiver_factory = archiver_factory

    def link(self, target: TypeDecl, jar_path: Union[str, Path]) -> Path:
        jar_path = Path(jar_path)
        workdir = Path(tempfile.mkdtemp(prefix="implgen-"))
        try:
            class_file, entry = self._compile(target, workdir)
            self._package(class_file, entry, jar_path)
        except BaseException as error:
            attach_notes(error, remove_tree(workdir))
            raise
        remove_tree(workdir)
        logger.info(f"Packaged {entry} into {jar_path}")
        return jar_path

    def _compile(self, target: TypeDecl, workdir: Path):
        source = self.implementor.generate(target, workdir)
        classpath = [str(workdir), *self.config.classpath]
        try:
            status = self.compiler.compile(source, classpath)
        except (OSError, subprocess.SubprocessError) as e:
            raise SynthesisFault(
                ErrorKind.COMPILATION_FAILED,
                f"Failed to run {self.config.command}: {e}",
                notes=[f"Make sure {self.config.command} is installed and in your PATH"],
            ) from e
        if status != 0:
            raise SynthesisFault(
                ErrorKind.COMPILATION_FAILED,
                f"{self.config.command} exited with status {status} for {source.name}",
            )
        class_file = source.with_suffix(".class")
        return class_file, class_file.relative_to(workdir).as_posix()

    def _package(self, class_file: Path, entry: str, jar_path: Path):
        jar_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with self.archiver_factory(jar_path) as jar:
                jar.open_entry(entry)
                jar.write(class_file.read_bytes())
                jar.close_entry()
        except SynthesisFault as fault:
            attach_notes(fault, discard(jar_path))
            raise
        except (OSError, ValueError, zipfile.LargeZipFile) as e:
            raise SynthesisFault(
                ErrorKind.PACKAGING_FAILED,
                f"Could not write {entry} to {jar_path}: {e}",
                notes=discard(jar_path),
            ) from e
        except BaseException as error:
            attach_notes(error, discard(jar_path))
            raise
