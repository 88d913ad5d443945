from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Set, Union
import logging

from implgen.parser import Parser
from implgen.type_defs import (
    PRIMITIVES, MethodDecl, NamedType, TypeDecl, TypeKind, raw_name,
)

logger = logging.getLogger(__name__)

# Reflected shape of java.lang.Object on a current JDK
OBJECT_LISTING = """
public class java.lang.Object {
  public java.lang.Object();
  public final native java.lang.Class<?> getClass();
  public native int hashCode();
  public boolean equals(java.lang.Object);
  protected native java.lang.Object clone() throws java.lang.CloneNotSupportedException;
  public java.lang.String toString();
  public final native void notify();
  public final native void notifyAll();
  public final void wait() throws java.lang.InterruptedException;
  public final native void wait(long) throws java.lang.InterruptedException;
  public final void wait(long, int) throws java.lang.InterruptedException;
  @java.lang.Deprecated protected void finalize() throws java.lang.Throwable;
}
"""


class TypeTable:
    """Registry of type declarations: the introspection facility behind type tokens"""

    def __init__(self, builtins: bool = True):
        self.types: Dict[str, TypeDecl] = {}
        self.sources: Dict[str, str] = {}  # type name -> listing it came from
        self.parser = Parser()
        if builtins:
            self.load_source(OBJECT_LISTING, "<builtin>")

    # ------------------------------------------------------------------
    # Population

    def define(self, decl: TypeDecl, source: str = "<memory>"):
        if decl.name in self.types:
            logger.warning(f"Redefinition of {decl.name} from {source} "
                           f"(was {self.sources.get(decl.name)})")
        self.types[decl.name] = decl
        self.sources[decl.name] = source

    def define_all(self, decls: Iterable[TypeDecl], source: str = "<memory>"):
        for decl in decls:
            self.define(decl, source)

    def load_source(self, text: str, source: str = "<string>") -> List[TypeDecl]:
        """Parse a signature listing and register every type it declares"""
        decls = self.parser.parse(text, source)
        self.define_all(decls, source)
        return decls

    def load_file(self, path: Union[str, Path]) -> List[TypeDecl]:
        path = Path(path)
        decls = self.parser.parse_file(path)
        self.define_all(decls, str(path))
        return decls

    # ------------------------------------------------------------------
    # Lookup

    def get(self, name: str) -> Optional[TypeDecl]:
        return self.types.get(name)

    def lookup(self, name: str) -> Optional[TypeDecl]:
        """Resolve a type token by name, including primitive and array tokens"""
        name = name.strip()
        if name in PRIMITIVES:
            return TypeDecl(name, kind=TypeKind.PRIMITIVE, modifiers=frozenset({"public", "final"}))
        if name.endswith("[]"):
            component = name[:-2].strip()
            return TypeDecl(
                name,
                kind=TypeKind.ARRAY,
                modifiers=frozenset({"public", "final"}),
                component=NamedType(component),
            )
        return self.types.get(name)

    def resolve(self, ref) -> Optional[TypeDecl]:
        """Declaration behind a Named or Parameterized reference"""
        name = raw_name(ref)
        if name is None:
            return None
        decl = self.types.get(name)
        if decl is None:
            logger.debug(f"No metadata for {name}")
        return decl

    # ------------------------------------------------------------------
    # Hierarchy

    def superclass_of(self, decl: TypeDecl) -> Optional[TypeDecl]:
        if decl.superclass is None:
            return None
        return self.resolve(decl.superclass)

    def class_chain(self, decl: TypeDecl) -> Iterator[TypeDecl]:
        """The declaration itself followed by its superclasses, nearest first"""
        seen: Set[str] = set()
        level: Optional[TypeDecl] = decl
        while level is not None and level.name not in seen:
            seen.add(level.name)
            yield level
            level = self.superclass_of(level)

    def ancestors(self, decl: TypeDecl) -> Iterator[TypeDecl]:
        """Every known supertype, depth-first, superclass before interfaces, each once"""
        seen: Set[str] = {decl.name}
        stack = list(reversed(decl.supertypes()))
        while stack:
            parent = self.resolve(stack.pop())
            if parent is None or parent.name in seen:
                continue
            seen.add(parent.name)
            yield parent
            stack.extend(reversed(parent.supertypes()))

    def public_methods(self, decl: TypeDecl) -> Iterator[MethodDecl]:
        """Public methods visible on a type: declared first, then inherited"""
        for level in [decl, *self.ancestors(decl)]:
            for method in level.methods:
                if "public" in method.modifiers:
                    yield method

    def same_package(self, a: TypeDecl, b: TypeDecl) -> bool:
        return a.package == b.package
