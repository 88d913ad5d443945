"""
Parser for signature listings.

A listing is a declaration-only dump in the shape `javap` prints: type
headers with generic parameters and supertypes, followed by constructor,
method and field signatures. Parsing produces raw declarations, which are
then bound (simple names of in-scope type parameters become VariableType)
and normalized to the implicit rules of the Java language.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union
import logging

import ply.yacc as yacc

from implgen.errors import ListingError, SourceLocation, get_source_context
from implgen.lexer import Lexer
from implgen.type_defs import (
    ENUM, OBJECT, ArrayType, ConstructorDecl, MethodDecl, NamedType,
    ParameterizedType, TypeDecl, TypeKind, TypeParam, TypeReference,
    VariableType, WildcardType,
)

logger = logging.getLogger(__name__)

ANNOTATION_BASE = "java.lang.annotation.Annotation"
ACCESS = ("public", "protected", "private")


@dataclass
class RawParam:
    type: TypeReference
    varargs: bool = False
    name: Optional[str] = None


@dataclass
class RawMember:
    kind: str  # 'constructor', 'method', 'field', 'initializer'
    line: int
    modifiers: List[str] = field(default_factory=list)
    annotations: List[str] = field(default_factory=list)
    type_params: List[TypeParam] = field(default_factory=list)
    name: Optional[str] = None
    return_type: Optional[TypeReference] = None
    params: List[RawParam] = field(default_factory=list)
    exceptions: List[TypeReference] = field(default_factory=list)


@dataclass
class RawType:
    kind: TypeKind
    name: str
    line: int
    modifiers: List[str]
    annotations: List[str]
    type_params: List[TypeParam]
    extends: List[TypeReference]
    implements: List[TypeReference]
    members: List[RawMember]


def _split_prefix(prefix):
    modifiers = [value for tag, value in prefix if tag == 'modifier']
    annotations = [value for tag, value in prefix if tag == 'annotation']
    return modifiers, annotations


class Parser:
    start = 'listing'

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.lexer = Lexer()
        self.tokens = self.lexer.tokens
        self.parser = yacc.yacc(module=self, debug=False, write_tables=False)
        self.source_file = "<string>"
        self.source = ""

    # ------------------------------------------------------------------
    # Entry points

    def parse(self, source: str, file_path: str = "<string>") -> List[TypeDecl]:
        """Parse a listing into bound, normalized type declarations"""
        self.source = source
        self.source_file = file_path
        self.lexer.input(source, file_path)
        # no input argument: ply would feed the lexer again and lose file_path
        raw_types = self.parser.parse(lexer=self.lexer) or []
        self.logger.debug(f"Parsed {len(raw_types)} type(s) from {file_path}")

        by_name = {raw.name: raw for raw in raw_types}
        return [self._build_type(raw, by_name) for raw in raw_types]

    def parse_file(self, path: Union[str, Path]) -> List[TypeDecl]:
        path = Path(path)
        data = path.read_bytes()
        try:
            source = data.decode("utf-8")
        except UnicodeDecodeError as e:
            line = data.count(b"\n", 0, e.start) + 1
            column = e.start - (data.rfind(b"\n", 0, e.start) + 1) + 1
            raise ListingError(
                message=f"Listing is not valid UTF-8: byte 0x{data[e.start]:02x} {e.reason}",
                location=SourceLocation(str(path), line, column),
            ) from e
        return self.parse(source, str(path))

    # ------------------------------------------------------------------
    # Grammar

    def p_listing(self, p):
        '''listing : declarations'''
        p[0] = p[1]

    def p_declarations(self, p):
        '''declarations : declarations type_declaration
                        | empty'''
        p[0] = p[1] + [p[2]] if len(p) == 3 else []

    def p_empty(self, p):
        '''empty :'''
        p[0] = None

    def p_type_declaration(self, p):
        '''type_declaration : prefix kind qualified_name type_params_opt extends_opt implements_opt LBRACE members RBRACE'''
        modifiers, annotations = _split_prefix(p[1])
        p[0] = RawType(
            kind=p[2],
            name=p[3],
            line=p.lineno(7),
            modifiers=modifiers,
            annotations=annotations,
            type_params=p[4] or [],
            extends=p[5] or [],
            implements=p[6] or [],
            members=p[8],
        )

    def p_kind(self, p):
        '''kind : CLASS
                | INTERFACE
                | ENUM
                | AT INTERFACE'''
        p[0] = TypeKind.ANNOTATION if len(p) == 3 else TypeKind(p[1])

    def p_prefix(self, p):
        '''prefix : prefix prefix_item
                  | empty'''
        p[0] = p[1] + [p[2]] if len(p) == 3 else []

    def p_prefix_item(self, p):
        '''prefix_item : MODIFIER
                       | AT qualified_name'''
        p[0] = ('annotation', p[2]) if len(p) == 3 else ('modifier', p[1])

    def p_qualified_name(self, p):
        '''qualified_name : IDENTIFIER
                          | qualified_name DOT IDENTIFIER'''
        p[0] = p[1] if len(p) == 2 else f"{p[1]}.{p[3]}"

    def p_type_params_opt(self, p):
        '''type_params_opt : type_params
                           | empty'''
        p[0] = p[1] or []

    def p_type_params(self, p):
        '''type_params : LESS type_param_list GREATER'''
        p[0] = p[2]

    def p_type_param_list(self, p):
        '''type_param_list : type_param
                           | type_param_list COMMA type_param'''
        p[0] = [p[1]] if len(p) == 2 else p[1] + [p[3]]

    def p_type_param(self, p):
        '''type_param : IDENTIFIER
                      | IDENTIFIER EXTENDS bound_list'''
        if len(p) == 2:
            p[0] = TypeParam(p[1])
        else:
            p[0] = TypeParam(p[1], tuple(p[3]))

    def p_bound_list(self, p):
        '''bound_list : type
                      | bound_list AMPERSAND type'''
        p[0] = [p[1]] if len(p) == 2 else p[1] + [p[3]]

    def p_extends_opt(self, p):
        '''extends_opt : EXTENDS type_list
                       | empty'''
        p[0] = p[2] if len(p) == 3 else []

    def p_implements_opt(self, p):
        '''implements_opt : IMPLEMENTS type_list
                          | empty'''
        p[0] = p[2] if len(p) == 3 else []

    def p_type_list(self, p):
        '''type_list : type
                     | type_list COMMA type'''
        p[0] = [p[1]] if len(p) == 2 else p[1] + [p[3]]

    def p_type(self, p):
        '''type : class_type
                | type LBRACKET RBRACKET'''
        p[0] = p[1] if len(p) == 2 else ArrayType(p[1])

    def p_class_type(self, p):
        '''class_type : qualified_name
                      | qualified_name LESS type_args GREATER'''
        if len(p) == 2:
            p[0] = NamedType(p[1])
        else:
            p[0] = ParameterizedType(NamedType(p[1]), tuple(p[3]))

    def p_type_args(self, p):
        '''type_args : type_arg
                     | type_args COMMA type_arg'''
        p[0] = [p[1]] if len(p) == 2 else p[1] + [p[3]]

    def p_type_arg(self, p):
        '''type_arg : type
                    | QUESTION
                    | QUESTION EXTENDS bound_list
                    | QUESTION SUPER bound_list'''
        if len(p) == 4:
            p[0] = WildcardType(p[2], tuple(p[3]))
        elif p[1] == '?':
            p[0] = WildcardType.unbounded()
        else:
            p[0] = p[1]

    def p_members(self, p):
        '''members : members member
                   | empty'''
        p[0] = p[1] + [p[2]] if len(p) == 3 else []

    def p_member_method(self, p):
        '''member : prefix type IDENTIFIER LPAREN params_opt RPAREN throws_opt SEMICOLON
                  | prefix type_params type IDENTIFIER LPAREN params_opt RPAREN throws_opt SEMICOLON'''
        offset = 1 if len(p) == 10 else 0
        modifiers, annotations = _split_prefix(p[1])
        p[0] = RawMember(
            kind='method',
            line=p.lineno(3 + offset),
            modifiers=modifiers,
            annotations=annotations,
            type_params=p[2] if offset else [],
            return_type=p[2 + offset],
            name=p[3 + offset],
            params=p[5 + offset],
            exceptions=p[7 + offset],
        )

    def p_member_constructor(self, p):
        '''member : prefix qualified_name LPAREN params_opt RPAREN throws_opt SEMICOLON
                  | prefix type_params qualified_name LPAREN params_opt RPAREN throws_opt SEMICOLON'''
        offset = 1 if len(p) == 9 else 0
        modifiers, annotations = _split_prefix(p[1])
        p[0] = RawMember(
            kind='constructor',
            line=p.lineno(3 + offset),
            modifiers=modifiers,
            annotations=annotations,
            type_params=p[2] if offset else [],
            name=p[2 + offset],
            params=p[4 + offset],
            exceptions=p[6 + offset],
        )

    def p_member_field(self, p):
        '''member : prefix type IDENTIFIER SEMICOLON'''
        p[0] = RawMember(kind='field', line=p.lineno(3), name=p[3], return_type=p[2])

    def p_member_initializer(self, p):
        '''member : prefix LBRACE RBRACE SEMICOLON'''
        p[0] = RawMember(kind='initializer', line=p.lineno(2))

    def p_params_opt(self, p):
        '''params_opt : params
                      | empty'''
        p[0] = p[1] or []

    def p_params(self, p):
        '''params : param
                  | params COMMA param'''
        p[0] = [p[1]] if len(p) == 2 else p[1] + [p[3]]

    def p_param(self, p):
        '''param : type
                 | type IDENTIFIER
                 | type ELLIPSIS
                 | type ELLIPSIS IDENTIFIER'''
        varargs = len(p) > 2 and p[2] == '...'
        name = p[len(p) - 1] if len(p) == 4 or (len(p) == 3 and not varargs) else None
        p[0] = RawParam(ArrayType(p[1]) if varargs else p[1], varargs, name)

    def p_throws_opt(self, p):
        '''throws_opt : THROWS type_list
                      | empty'''
        p[0] = p[2] if len(p) == 3 else []

    def p_error(self, p):
        if p is None:
            line = self.source.count('\n') + 1
            raise ListingError(
                message="Unexpected end of listing",
                location=SourceLocation(self.source_file, line, 1),
                notes=["Check for a missing '}' or ';'"],
            )
        column = getattr(p, 'column', 0)
        raise ListingError(
            message=f"Syntax error at '{p.value}'",
            location=SourceLocation(self.source_file, p.lineno, column),
            context=get_source_context(self.source_file, p.lineno, source=self.source),
        )

    # ------------------------------------------------------------------
    # Binding and normalization

    def _error(self, message: str, line: int) -> ListingError:
        return ListingError(
            message=message,
            location=SourceLocation(self.source_file, line, 1),
            context=get_source_context(self.source_file, line, source=self.source),
        )

    def _type_scope(self, raw: RawType, by_name: Dict[str, RawType]) -> Dict[str, str]:
        """Type parameter names visible inside a declaration, mapped to their owner"""
        scope: Dict[str, str] = {}
        enclosing_name = raw.name.rpartition('$')[0] if '$' in raw.name else None
        enclosing = by_name.get(enclosing_name) if enclosing_name else None
        if enclosing is not None and 'static' not in raw.modifiers and raw.kind == TypeKind.CLASS:
            scope.update(self._type_scope(enclosing, by_name))
        scope.update({param.name: raw.name for param in raw.type_params})
        return scope

    def _bind(self, ref: TypeReference, scope: Dict[str, str]) -> TypeReference:
        if isinstance(ref, NamedType):
            if ref.path in scope:
                return VariableType(ref.path, scope[ref.path])
            return ref
        if isinstance(ref, ArrayType):
            return ArrayType(self._bind(ref.component, scope))
        if isinstance(ref, WildcardType):
            return WildcardType(ref.kind, tuple(self._bind(b, scope) for b in ref.bounds))
        if isinstance(ref, ParameterizedType):
            return ParameterizedType(ref.raw, tuple(self._bind(a, scope) for a in ref.args))
        return ref

    def _bind_params(self, params: List[TypeParam], scope: Dict[str, str]) -> tuple:
        return tuple(
            TypeParam(param.name, tuple(self._bind(b, scope) for b in param.bounds))
            for param in params
        )

    def _method_scope(self, scope: Dict[str, str], owner: str, params: List[TypeParam]) -> Dict[str, str]:
        inner = dict(scope)
        inner.update({param.name: owner for param in params})
        return inner

    def _signature_params(self, member: RawMember, scope: Dict[str, str]):
        for param in member.params[:-1]:
            if param.varargs:
                raise self._error(f"Only the last parameter of '{member.name}' may be variadic", member.line)
        params = tuple(self._bind(param.type, scope) for param in member.params)
        varargs = bool(member.params) and member.params[-1].varargs
        return params, varargs

    def _build_type(self, raw: RawType, by_name: Dict[str, RawType]) -> TypeDecl:
        scope = self._type_scope(raw, by_name)
        extends = [self._bind(ref, scope) for ref in raw.extends]
        implements = [self._bind(ref, scope) for ref in raw.implements]

        superclass = None
        if raw.kind == TypeKind.CLASS:
            if len(extends) > 1:
                raise self._error(f"Class {raw.name} extends more than one class", raw.line)
            if extends:
                superclass = extends[0]
            elif raw.name != OBJECT:
                superclass = NamedType(OBJECT)
            interfaces = tuple(implements)
        elif raw.kind == TypeKind.ENUM:
            superclass = ParameterizedType(NamedType(ENUM), (NamedType(raw.name),))
            interfaces = tuple(implements)
        else:
            if implements:
                raise self._error(f"Interface {raw.name} cannot implement other types", raw.line)
            interfaces = tuple(extends)
            if raw.kind == TypeKind.ANNOTATION and not interfaces:
                interfaces = (NamedType(ANNOTATION_BASE),)

        constructors = []
        methods = []
        for member in raw.members:
            if member.kind == 'constructor':
                constructors.append(self._build_constructor(raw, member, scope))
            elif member.kind == 'method':
                methods.append(self._build_method(raw, member, scope))

        if not constructors and raw.kind in (TypeKind.CLASS, TypeKind.ENUM):
            access = [m for m in ACCESS if m in raw.modifiers]
            if raw.kind == TypeKind.ENUM:
                access = ['private']
            constructors.append(ConstructorDecl(raw.name, modifiers=frozenset(access)))

        return TypeDecl(
            name=raw.name,
            kind=raw.kind,
            modifiers=frozenset(raw.modifiers),
            type_params=self._bind_params(raw.type_params, scope),
            superclass=superclass,
            interfaces=interfaces,
            constructors=tuple(constructors),
            methods=tuple(methods),
            annotations=frozenset(raw.annotations),
        )

    def _build_constructor(self, raw: RawType, member: RawMember, scope: Dict[str, str]) -> ConstructorDecl:
        simple = raw.name.rpartition('.')[2].rpartition('$')[2]
        if member.name not in (raw.name, simple):
            raise self._error(f"Method '{member.name}' in {raw.name} has no return type", member.line)
        if raw.kind not in (TypeKind.CLASS, TypeKind.ENUM):
            raise self._error(f"Interface {raw.name} cannot declare constructors", member.line)
        inner = self._method_scope(scope, f"{raw.name}#<init>", member.type_params)
        params, varargs = self._signature_params(member, inner)
        modifiers = set(member.modifiers)
        if 'transient' in modifiers:
            modifiers.discard('transient')
            varargs = varargs or bool(params and isinstance(params[-1], ArrayType))
        return ConstructorDecl(
            declaring=raw.name,
            params=params,
            modifiers=frozenset(modifiers),
            exceptions=tuple(self._bind(e, inner) for e in member.exceptions),
            varargs=varargs,
            type_params=self._bind_params(member.type_params, inner),
        )

    def _build_method(self, raw: RawType, member: RawMember, scope: Dict[str, str]) -> MethodDecl:
        owner = f"{raw.name}#{member.name}"
        inner = self._method_scope(scope, owner, member.type_params)
        params, varargs = self._signature_params(member, inner)

        modifiers = set(member.modifiers)
        if 'volatile' in modifiers:
            modifiers.discard('volatile')
            modifiers.add('bridge')
        if 'transient' in modifiers:
            modifiers.discard('transient')
            varargs = varargs or bool(params and isinstance(params[-1], ArrayType))
        if raw.kind in (TypeKind.INTERFACE, TypeKind.ANNOTATION):
            if not modifiers & {'public', 'private'}:
                modifiers.add('public')
            if not modifiers & {'default', 'static', 'private'}:
                modifiers.add('abstract')

        return MethodDecl(
            declaring=raw.name,
            name=member.name,
            return_type=self._bind(member.return_type, inner),
            params=params,
            modifiers=frozenset(modifiers),
            exceptions=tuple(self._bind(e, inner) for e in member.exceptions),
            varargs=varargs,
            type_params=self._bind_params(member.type_params, inner),
            annotations=frozenset(member.annotations),
        )
