from __future__ import annotations

import logging
from typing import Optional

from implgen.type_defs import (
    ParameterizedType, SubstitutionKey, SubstitutionTable, TypeDecl,
)
from implgen.type_table import TypeTable

logger = logging.getLogger(__name__)


def build_closure(target: TypeDecl, types: TypeTable) -> SubstitutionTable:
    """Map every ancestor's generic parameters to the arguments its descendants supply.

    Keys are (parameter name, declaring type). Values keep the variables of the
    descendant that wrote them, so a lookup may chain through several levels;
    the renderer follows those chains. A fresh table is built per call.
    """
    table: SubstitutionTable = {}
    _walk(target, types, table, visited={target.name})
    logger.debug(f"Closure of {target.name}: {len(table)} binding(s)")
    return table


def _walk(decl: TypeDecl, types: TypeTable, table: SubstitutionTable, visited: set[str]) -> None:
    for ref in decl.supertypes():
        parent = _bind_edge(ref, types, table)
        if parent is None or parent.name in visited:
            continue
        visited.add(parent.name)
        _walk(parent, types, table, visited)


def _bind_edge(ref, types: TypeTable, table: SubstitutionTable) -> Optional[TypeDecl]:
    parent = types.resolve(ref)
    if parent is None:
        return None
    if isinstance(ref, ParameterizedType):
        if len(ref.args) != len(parent.type_params):
            logger.debug(f"{ref} supplies {len(ref.args)} argument(s) for "
                         f"{len(parent.type_params)} parameter(s) of {parent.name}")
        for param, arg in zip(parent.type_params, ref.args):
            table[SubstitutionKey(param.name, parent.name)] = arg
    return parent
