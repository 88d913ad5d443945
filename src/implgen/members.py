from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Set

from implgen.errors import ErrorKind, SynthesisFault
from implgen.render import TypeRenderer
from implgen.type_defs import (
    ArrayType, ConstructorDecl, MethodDecl, ParameterizedType,
    PRIMITIVES, NamedType, SubstitutionKey, SubstitutionTable, TypeDecl, TypeReference,
    VariableType, WildcardType, raw_name,
)
from implgen.type_table import TypeTable

logger = logging.getLogger(__name__)

# Methods carrying any of these are never overridden
NOT_OVERRIDABLE = frozenset({"static", "final", "native", "private"})


@dataclass(frozen=True)
class MethodSignature:
    """Name and parameter types; the return type does not take part in equality"""
    name: str
    params: tuple[TypeReference, ...]

    def __str__(self):
        return f"{self.name}({', '.join(map(str, self.params))})"


def signature_of(method: MethodDecl, renderer: TypeRenderer) -> MethodSignature:
    """Signature with parameters seen from the target: bound variables substituted,
    the method's own type variables replaced by their position"""
    positions = {
        SubstitutionKey(param.name, method.owner): index
        for index, param in enumerate(method.type_params)
    }
    params = tuple(_by_position(renderer.substitute(p), positions) for p in method.params)
    return MethodSignature(method.name, params)


def _by_position(ref: TypeReference, positions: Mapping[SubstitutionKey, int]) -> TypeReference:
    if isinstance(ref, VariableType):
        if ref.key in positions:
            return VariableType(f"#{positions[ref.key]}", "")
        return ref
    if isinstance(ref, ArrayType):
        return ArrayType(_by_position(ref.component, positions))
    if isinstance(ref, WildcardType):
        return WildcardType(ref.kind, tuple(_by_position(b, positions) for b in ref.bounds))
    if isinstance(ref, ParameterizedType):
        return ParameterizedType(ref.raw, tuple(_by_position(a, positions) for a in ref.args))
    return ref


@dataclass
class MethodSet:
    """Accepted candidates keyed by signature, plus signatures a final declaration forbids"""
    accepted: Dict[MethodSignature, MethodDecl] = field(default_factory=dict)
    forbidden: Set[MethodSignature] = field(default_factory=set)
    # (candidate, accepted) -> True when the candidate should take the accepted one's place
    narrower: Optional[Callable[[MethodDecl, MethodDecl], bool]] = None

    def offer(self, method: MethodDecl, signature: MethodSignature) -> None:
        if "final" in method.modifiers:
            self.forbidden.add(signature)
            evicted = self.accepted.pop(signature, None)
            if evicted is not None:
                logger.debug(f"{signature}: {evicted} shadowed by final {method}")
            return
        if method.is_synthetic or signature in self.forbidden:
            return
        if method.modifiers & NOT_OVERRIDABLE:
            return
        current = self.accepted.get(signature)
        if current is None:
            self.accepted[signature] = method
        elif (self.narrower is not None and _as_visible(method, current)
              and self.narrower(method, current)):
            logger.debug(f"{signature}: {method} narrows the return type of {current}")
            self.accepted[signature] = method

    def methods(self) -> List[MethodDecl]:
        return list(self.accepted.values())


def _as_visible(candidate: MethodDecl, current: MethodDecl) -> bool:
    return "public" in candidate.modifiers or "public" not in current.modifiers


def narrows_return(types: TypeTable, renderer: TypeRenderer) -> Callable[[MethodDecl, MethodDecl], bool]:
    """Whether a candidate's return type is a proper subtype of the accepted one's.

    Covers `java.lang.Object` against any reference type and class types known
    to the table; anything else keeps the accepted candidate.
    """
    def narrower(candidate: MethodDecl, current: MethodDecl) -> bool:
        new = renderer.substitute(candidate.return_type)
        old = renderer.substitute(current.return_type)
        if new == old or _is_primitive(new):
            return False
        if old == NamedType("java.lang.Object"):
            return True
        old_name, new_name = raw_name(old), raw_name(new)
        if old_name is None or new_name is None or old_name == new_name:
            return False
        decl = types.get(new_name)
        return decl is not None and any(a.name == old_name for a in types.ancestors(decl))

    return narrower


def _is_primitive(ref: TypeReference) -> bool:
    return isinstance(ref, NamedType) and ref.path in PRIMITIVES


def resolve_constructors(target: TypeDecl) -> List[ConstructorDecl]:
    """Constructors a subclass can forward to; none for interfaces"""
    if target.is_interface:
        return []
    usable = [ctor for ctor in target.constructors if not ctor.is_private]
    if not usable:
        raise SynthesisFault(
            ErrorKind.NO_USABLE_CONSTRUCTOR,
            f"{target.name} declares no constructor a subclass can call",
            notes=[f"{len(target.constructors)} constructor(s), all private"],
        )
    return usable


def resolve_methods(target: TypeDecl, types: TypeTable, table: SubstitutionTable) -> List[MethodDecl]:
    """Every method the implementation has to override, in a fixed order.

    Public methods come from the whole ancestor closure. Protected and
    package-private ones come from the superclass chain, the latter only from
    levels in the target's own package. A final declaration anywhere removes
    its signature for good.
    """
    renderer = TypeRenderer(types, table)
    found = MethodSet(narrower=narrows_return(types, renderer))

    for method in types.public_methods(target):
        found.offer(method, signature_of(method, renderer))

    for level in types.class_chain(target):
        same_package = types.same_package(level, target)
        for method in level.methods:
            modifiers = method.modifiers
            if "public" in modifiers or "private" in modifiers:
                continue
            if method.is_deprecated and not method.is_abstract:
                continue
            if "protected" in modifiers or same_package:
                found.offer(method, signature_of(method, renderer))

    logger.debug(f"{target.name}: {len(found.accepted)} method(s) to implement, "
                 f"{len(found.forbidden)} final signature(s)")
    return found.methods()
