"""
Type metadata consumed by the implementor.

Type references form a closed tagged union (NamedType, ArrayType,
VariableType, WildcardType, ParameterizedType). Declarations (TypeDecl,
MethodDecl, ConstructorDecl) are what the type table hands out as type tokens.
All of them are frozen so they can key signature and substitution tables.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple, Optional, Union

OBJECT = "java.lang.Object"
ENUM = "java.lang.Enum"
DEPRECATED = ("Deprecated", "java.lang.Deprecated")

PRIMITIVES = frozenset({
    "boolean", "byte", "short", "char", "int", "long", "float", "double", "void",
})

# Order used by java.lang.reflect.Modifier.toString
MODIFIER_ORDER = (
    "public", "protected", "private",
    "abstract", "static", "final", "transient", "volatile",
    "synchronized", "native", "strictfp",
)

# Listing-only markers, never written back into generated source
PSEUDO_MODIFIERS = frozenset({"default", "synthetic", "bridge"})


@dataclass(frozen=True)
class NamedType:
    path: str  # binary name, member types use '$': java.util.Map$Entry

    def __str__(self):
        return self.path


@dataclass(frozen=True)
class ArrayType:
    component: 'TypeReference'

    def __str__(self):
        return f"{self.component}[]"


@dataclass(frozen=True)
class VariableType:
    name: str
    owner: str  # declaring type (pkg.Type) or method (pkg.Type#name)

    @property
    def key(self) -> 'SubstitutionKey':
        return SubstitutionKey(self.name, self.owner)

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class WildcardType:
    kind: str  # 'extends' or 'super'
    bounds: tuple['TypeReference', ...]

    @classmethod
    def unbounded(cls) -> 'WildcardType':
        return cls("extends", (NamedType(OBJECT),))

    def __str__(self):
        if self.kind == "extends" and self.bounds == (NamedType(OBJECT),):
            return "?"
        return f"? {self.kind} " + " & ".join(map(str, self.bounds))


@dataclass(frozen=True)
class ParameterizedType:
    raw: NamedType
    args: tuple['TypeReference', ...]

    def __str__(self):
        return f"{self.raw}<{', '.join(map(str, self.args))}>"


TypeReference = Union[NamedType, ArrayType, VariableType, WildcardType, ParameterizedType]


class SubstitutionKey(NamedTuple):
    name: str
    owner: str


SubstitutionTable = dict  # SubstitutionKey -> TypeReference


def is_primitive(ref: TypeReference, name: Optional[str] = None) -> bool:
    if not isinstance(ref, NamedType) or ref.path not in PRIMITIVES:
        return False
    return name is None or ref.path == name


class TypeKind(Enum):
    CLASS = "class"
    INTERFACE = "interface"
    ENUM = "enum"
    ANNOTATION = "@interface"
    PRIMITIVE = "primitive"
    ARRAY = "array"


@dataclass(frozen=True)
class TypeParam:
    """Declared generic parameter with its upper bounds"""
    name: str
    bounds: tuple[TypeReference, ...] = (NamedType(OBJECT),)


@dataclass(frozen=True)
class ConstructorDecl:
    declaring: str
    params: tuple[TypeReference, ...] = ()
    modifiers: frozenset[str] = frozenset()
    exceptions: tuple[TypeReference, ...] = ()
    varargs: bool = False
    type_params: tuple[TypeParam, ...] = ()

    @property
    def is_private(self) -> bool:
        return "private" in self.modifiers


@dataclass(frozen=True)
class MethodDecl:
    declaring: str
    name: str
    return_type: TypeReference = NamedType("void")
    params: tuple[TypeReference, ...] = ()
    modifiers: frozenset[str] = frozenset()
    exceptions: tuple[TypeReference, ...] = ()
    varargs: bool = False
    type_params: tuple[TypeParam, ...] = ()
    annotations: frozenset[str] = frozenset()

    @property
    def owner(self) -> str:
        """Owner string of the method's own type variables"""
        return f"{self.declaring}#{self.name}"

    @property
    def is_abstract(self) -> bool:
        return "abstract" in self.modifiers

    @property
    def is_deprecated(self) -> bool:
        return any(a in self.annotations for a in DEPRECATED)

    @property
    def is_synthetic(self) -> bool:
        return "synthetic" in self.modifiers or "bridge" in self.modifiers

    def __str__(self):
        params = ', '.join(map(str, self.params))
        return f"{self.declaring}.{self.name}({params})"


@dataclass(frozen=True)
class TypeDecl:
    name: str  # binary name: pkg.Outer$Inner
    kind: TypeKind = TypeKind.CLASS
    modifiers: frozenset[str] = frozenset({"public"})
    type_params: tuple[TypeParam, ...] = ()
    superclass: Optional[TypeReference] = None
    interfaces: tuple[TypeReference, ...] = ()
    constructors: tuple[ConstructorDecl, ...] = ()
    methods: tuple[MethodDecl, ...] = ()
    annotations: frozenset[str] = frozenset()
    component: Optional[TypeReference] = field(default=None, compare=False)

    @property
    def is_interface(self) -> bool:
        return self.kind in (TypeKind.INTERFACE, TypeKind.ANNOTATION)

    @property
    def is_member(self) -> bool:
        return self.enclosing_name is not None

    @property
    def top_level_name(self) -> str:
        return self.name.split('$', 1)[0]

    @property
    def package(self) -> str:
        """Package name, '' for the default package"""
        top = self.top_level_name
        return top.rpartition('.')[0]

    @property
    def simple_name(self) -> str:
        return self.name.rpartition('.')[2].rpartition('$')[2]

    @property
    def enclosing_name(self) -> Optional[str]:
        head, sep, _ = self.name.rpartition('$')
        if not sep or not head or head.endswith('.'):
            return None
        return head

    def supertypes(self) -> tuple[TypeReference, ...]:
        """Direct superclass (if any) followed by direct super-interfaces"""
        head = (self.superclass,) if self.superclass is not None else ()
        return head + self.interfaces

    def __str__(self):
        return self.name


def raw_name(ref: TypeReference) -> Optional[str]:
    """Binary name of the class behind a Named or Parameterized reference"""
    if isinstance(ref, ParameterizedType):
        return ref.raw.path
    if isinstance(ref, NamedType):
        return ref.path
    return None
