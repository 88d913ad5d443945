"""
Rendering of type references to Java source text.

Rendering is a pure function of the reference, the type table and the
substitution table built for the current invocation. Variables are resolved
through the table before they are printed, so an ancestor's `T` comes out as
whatever argument the descendants bound it to.
"""

from __future__ import annotations

from typing import FrozenSet, Iterable, Optional

from implgen.errors import ErrorKind, SynthesisFault
from implgen.type_defs import (
    OBJECT, PRIMITIVES, ArrayType, NamedType, ParameterizedType, SubstitutionKey,
    SubstitutionTable, TypeDecl, TypeParam, TypeReference, VariableType,
    WildcardType, is_primitive,
)
from implgen.type_table import TypeTable

TOP = NamedType(OBJECT)


class TypeRenderer:
    def __init__(self, types: TypeTable, table: SubstitutionTable):
        self.types = types
        self.table = table

    def substitute(self, ref: TypeReference,
                   trail: FrozenSet[SubstitutionKey] = frozenset()) -> TypeReference:
        """Replace every bound variable by its binding, to a fixed point.

        `trail` holds the variables already expanded on the current path; a
        variable met again keeps its own name instead of looping.
        """
        if isinstance(ref, VariableType):
            seen = set(trail)
            current = ref
            while current.key not in seen:
                seen.add(current.key)
                bound = self.table.get(current.key)
                if bound is None:
                    return current
                if not isinstance(bound, VariableType):
                    return self.substitute(bound, frozenset(seen))
                current = bound
            return current
        if isinstance(ref, ArrayType):
            return ArrayType(self.substitute(ref.component, trail))
        if isinstance(ref, WildcardType):
            return WildcardType(ref.kind, tuple(self.substitute(b, trail) for b in ref.bounds))
        if isinstance(ref, ParameterizedType):
            return ParameterizedType(ref.raw, tuple(self.substitute(a, trail) for a in ref.args))
        return ref

    def render(self, ref: TypeReference, owner: Optional[str] = None) -> str:
        """Java text for a reference; `owner` names the declaration that needs it"""
        return self._format(self.substitute(ref), owner)

    def _format(self, ref: TypeReference, owner: Optional[str]) -> str:
        if isinstance(ref, ArrayType):
            return self._format(ref.component, owner) + "[]"
        if isinstance(ref, VariableType):
            return ref.name
        if isinstance(ref, WildcardType):
            if ref.kind == "extends" and ref.bounds == (TOP,):
                return "?"
            return f"? {ref.kind} " + " & ".join(self._format(b, owner) for b in ref.bounds)
        if isinstance(ref, ParameterizedType):
            args = ", ".join(self._format(a, owner) for a in ref.args)
            return f"{self._format(ref.raw, owner)}<{args}>"
        if ref.path in PRIMITIVES:
            return ref.path
        decl = self.types.get(ref.path)
        if decl is None:
            return ref.path.replace('$', '.')
        return self.qualified_name(decl, owner)

    def qualified_name(self, decl: TypeDecl, owner: Optional[str] = None) -> str:
        """Source name of a declaration; member types are qualified through their enclosing types"""
        enclosing_name = decl.enclosing_name
        if enclosing_name is None:
            return decl.name
        if "private" in decl.modifiers:
            required = f" required by {owner}" if owner else ""
            raise SynthesisFault(
                ErrorKind.INACCESSIBLE_MEMBER,
                f"Private member type {decl.name}{required} cannot be named",
            )
        enclosing = self.types.get(enclosing_name)
        if enclosing is None:
            prefix = enclosing_name.replace('$', '.')
        else:
            prefix = self.qualified_name(enclosing, owner)
        return f"{prefix}.{decl.simple_name}"

    def render_type_params(self, params: Iterable[TypeParam], owner: Optional[str] = None) -> str:
        """Declaration form: <T extends A & B, U>"""
        rendered = []
        for param in params:
            bounds = [b for b in param.bounds if b != TOP] if len(param.bounds) == 1 else list(param.bounds)
            if bounds:
                rendered.append(f"{param.name} extends " + " & ".join(self.render(b, owner) for b in bounds))
            else:
                rendered.append(param.name)
        return f"<{', '.join(rendered)}>" if rendered else ""

    def render_type_args(self, params: Iterable[TypeParam]) -> str:
        """Use form: <T, U>"""
        names = [param.name for param in params]
        return f"<{', '.join(names)}>" if names else ""

    def render_vararg(self, ref: TypeReference, owner: Optional[str] = None) -> str:
        """T[] -> T..."""
        resolved = self.substitute(ref)
        if isinstance(resolved, ArrayType):
            return self._format(resolved.component, owner) + "..."
        return self._format(resolved, owner) + "..."

    def default_value(self, ref: TypeReference) -> Optional[str]:
        """Value a stub returns for a type: None for void"""
        resolved = self.substitute(ref)
        if is_primitive(resolved, "void"):
            return None
        if is_primitive(resolved, "boolean"):
            return "false"
        if is_primitive(resolved):
            return "0"
        return "null"
