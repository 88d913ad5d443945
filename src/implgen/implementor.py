from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union
import argparse
import logging
import os
import sys

from implgen.closure import build_closure
from implgen.codegen import SourceEmitter, output_unit
from implgen.errors import ImplerError, InvalidTarget, SynthesisFault
from implgen.jar_linker import CompilerConfig, JarLinker
from implgen.members import resolve_constructors, resolve_methods
from implgen.render import TypeRenderer
from implgen.type_defs import ENUM, TypeDecl, TypeKind
from implgen.type_table import TypeTable

logger = logging.getLogger(__name__)

TypeToken = Union[TypeDecl, str, None]


@dataclass
class ImplementorOptions:
    """Options for generated implementations"""
    suffix: str = "Impl"
    extension: str = "java"
    indent: str = "    "
    override_annotations: bool = True
    escape_unicode: bool = True


class Implementor:
    """Generates default implementations of types known to a TypeTable.

    This is the only place internal faults and I/O errors become ImplerErrors.
    """

    def __init__(self, types: Optional[TypeTable] = None, options: Optional[ImplementorOptions] = None):
        self.types = types if types is not None else TypeTable()
        self.options = options or ImplementorOptions()

    def validate(self, token: TypeToken) -> TypeDecl:
        """Resolve a type token to an implementable declaration or raise InvalidTarget"""
        if token is None:
            raise InvalidTarget(message="No type token given")
        if isinstance(token, str):
            target = self.types.lookup(token)
            if target is None:
                raise InvalidTarget(
                    message=f"Unknown type {token}",
                    type_name=token,
                    notes=["Load a listing that declares it"],
                )
        else:
            target = token

        reason = self._rejection(target)
        if reason:
            raise InvalidTarget(message=f"Cannot implement {reason}", type_name=target.name)
        return target

    def _rejection(self, target: TypeDecl) -> Optional[str]:
        if target.kind is TypeKind.PRIMITIVE:
            return "a primitive type"
        if target.kind is TypeKind.ARRAY:
            return "an array type"
        if target.kind is TypeKind.ENUM or target.name == ENUM:
            return "an enum"
        if target.kind is TypeKind.ANNOTATION:
            return "an annotation type"
        if "final" in target.modifiers:
            return "a final class"
        decl: Optional[TypeDecl] = target
        while decl is not None:
            if "private" in decl.modifiers:
                return f"a private type ({decl.name})"
            decl = self.types.get(decl.enclosing_name) if decl.is_member else None
        return None

    def source_path(self, target: TypeDecl, root: Union[str, Path]) -> Path:
        """<root>/<package path>/<Simple><suffix>.<extension>"""
        path = Path(root)
        if target.package:
            path = path.joinpath(*target.package.split('.'))
        return path / f"{target.simple_name}{self.options.suffix}.{self.options.extension}"

    def generate(self, target: TypeDecl, root: Union[str, Path]) -> Path:
        """Write the implementation of a validated target.

        Raises SynthesisFault and OSError; nothing is created when the target
        has no usable constructor.
        """
        table = build_closure(target, self.types)
        constructors = resolve_constructors(target)
        methods = resolve_methods(target, self.types, table)

        emitter = SourceEmitter(
            TypeRenderer(self.types, table),
            suffix=self.options.suffix,
            override_annotations=self.options.override_annotations,
        )
        path = self.source_path(target, root)
        with output_unit(path, escape=self.options.escape_unicode, indent=self.options.indent) as writer:
            emitter.emit(writer, target, constructors, methods)
        logger.info(f"Generated {path} ({len(constructors)} constructor(s), {len(methods)} method(s))")
        return path

    def implement(self, token: TypeToken, root: Union[str, Path]) -> Path:
        """Generate <Simple>Impl source for the token under root"""
        target = self.validate(token)
        try:
            return self.generate(target, root)
        except SynthesisFault as fault:
            raise ImplerError.from_fault(fault, target.name) from fault
        except OSError as e:
            raise ImplerError.from_exception(e, target.name) from e

    def implement_jar(self, token: TypeToken, jar_path: Union[str, Path],
                      config: Optional[CompilerConfig] = None) -> Path:
        """Generate, compile and package <Simple>Impl.class into a jar"""
        target = self.validate(token)
        linker = JarLinker(self, config)
        try:
            return linker.link(target, jar_path)
        except SynthesisFault as fault:
            raise ImplerError.from_fault(fault, target.name) from fault
        except OSError as e:
            raise ImplerError.from_exception(e, target.name) from e


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point"""
    parser = argparse.ArgumentParser(prog="implgen", description="Generate default implementations of Java types")
    parser.add_argument('listings', nargs='+', help='Signature listings describing the types')
    parser.add_argument('--type', '-t', required=True, dest='type_name',
                        help='Binary name of the type to implement (pkg.Outer$Inner)')
    parser.add_argument('--output', '-o', default='.',
                        help='Root directory for generated sources (default: .)')
    parser.add_argument('--jar', help='Compile and package into this jar instead')
    parser.add_argument('--classpath', default='',
                        help=f'Extra classpath for compilation, {os.pathsep}-separated')
    parser.add_argument('--javac', default='javac', help='Compiler command (default: javac)')
    parser.add_argument('--release', type=int, help='Pass --release to the compiler')
    parser.add_argument('--no-override', action='store_true', help='Omit @Override annotations')
    parser.add_argument('--no-escape', action='store_true', help='Write non-ASCII characters as is')
    parser.add_argument('--verbose', '-v', action='store_true', help='Log resolution details')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    options = ImplementorOptions(
        override_annotations=not args.no_override,
        escape_unicode=not args.no_escape,
    )

    try:
        types = TypeTable()
        for listing in args.listings:
            try:
                types.load_file(listing)
            except OSError as e:
                raise ImplerError.from_exception(e, None) from e

        implementor = Implementor(types, options)
        if args.jar:
            config = CompilerConfig(
                command=args.javac,
                classpath=[entry for entry in args.classpath.split(os.pathsep) if entry],
                release=args.release,
            )
            artifact = implementor.implement_jar(args.type_name, args.jar, config)
        else:
            artifact = implementor.implement(args.type_name, args.output)
    except ImplerError as e:
        print(str(e), file=sys.stderr)
        return 1

    print(artifact)
    return 0


if __name__ == "__main__":
    sys.exit(main())
