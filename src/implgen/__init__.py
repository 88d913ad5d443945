"""Default implementation generator for Java types.

Submodules:
- lexer, parser: ply grammar for javap-style signature listings
- type_table: registry of type declarations loaded from listings
- closure: generic substitution table for a target's ancestors
- members: constructors and methods an implementation has to provide
- render: Java source text for type references
- codegen: source emitter and scoped output units
- jar_linker: javac driver and jar packaging
- implementor: facade and command line entry point
"""

from implgen.errors import ImplerError
from implgen.implementor import Implementor, ImplementorOptions, main
from implgen.jar_linker import CompilerConfig
from implgen.type_table import TypeTable

__all__ = [
    "ImplerError",
    "Implementor",
    "ImplementorOptions",
    "CompilerConfig",
    "TypeTable",
    "main",
]
