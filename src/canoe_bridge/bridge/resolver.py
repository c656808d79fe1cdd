"""Namespace resolver: symbolic variable name to live handle.

The remote data model keeps variables in named namespaces, and which
namespace holds a given variable is not known up front. The resolver
tries an ordered list of candidate namespaces:

    for each candidate, in order:
        namespace missing          -> next candidate
        variable missing in it     -> next candidate
        remote error during lookup -> logged, next candidate
        variable found             -> return handle (first match wins)
    nothing found                  -> VARIABLE_NOT_FOUND result

Namespace lookup and variable lookup fail independently, and neither
kind of failure aborts the search. When the same name exists in several
candidates, the earliest candidate wins; no ambiguity check is made.

A qualified name such as ``"Engine::Inputs::Throttle"`` bypasses the
candidate list and is looked up in exactly that namespace path.

Example:
    resolver = NamespaceResolver(connection, ("General", "Measurement"))
    result = resolver.resolve("Temperature")
    if result.success:
        handle = result.value   # VariableHandle(namespace='Measurement', ...)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from canoe_bridge.bridge.connection import ConnectionManager
from canoe_bridge.bridge.results import BridgeResult, ErrorKind
from canoe_bridge.drivers.types import (
    NAMESPACE_SEPARATOR,
    NamespaceCollection,
    RemoteNamespace,
    RemoteVariable,
    join_namespace,
    split_qualified_name,
)
from canoe_bridge.observability import get_logger

logger = get_logger(__name__)

__all__ = [
    "NamespaceResolver",
    "VariableHandle",
    "lookup_namespace",
]


@dataclass(frozen=True)
class VariableHandle:
    """A variable bound to one (namespace, name) pair in one session.

    The handle is only valid while ``generation`` is the connection's
    current session generation; the accessor rejects it otherwise.

    Attributes:
        namespace: Namespace path the variable was found in.
        name: Variable name.
        generation: Session generation it was resolved under.
    """

    namespace: str
    name: str
    generation: int
    remote: RemoteVariable = field(repr=False, compare=False)

    @property
    def qualified_name(self) -> str:
        return join_namespace(self.namespace, self.name)

    def to_dict(self) -> dict[str, object]:
        return {
            "namespace": self.namespace,
            "name": self.name,
            "qualified_name": self.qualified_name,
            "generation": self.generation,
        }


def lookup_namespace(
    namespaces: NamespaceCollection, path: str
) -> RemoteNamespace | None:
    """Find the namespace at ``path`` (``"A"`` or ``"A::B::C"``).

    Returns None as soon as one path segment is missing. Remote errors
    propagate to the caller.
    """
    segments = path.split(NAMESPACE_SEPARATOR)
    namespace = namespaces.find(segments[0])
    for segment in segments[1:]:
        if namespace is None:
            return None
        namespace = namespace.find_namespace(segment)
    return namespace


class NamespaceResolver:
    """Resolves variable names against an ordered namespace list.

    Args:
        connection: Connection manager providing the live session.
        default_candidates: Candidates used when a call passes none.
    """

    def __init__(
        self,
        connection: ConnectionManager,
        default_candidates: Sequence[str] = ("General", "Measurement"),
    ) -> None:
        self._connection = connection
        self.default_candidates: tuple[str, ...] = tuple(default_candidates)

    def resolve(
        self,
        name: str,
        candidates: Sequence[str] | None = None,
    ) -> BridgeResult[VariableHandle]:
        """Resolve ``name`` to a handle bound to the current session.

        Args:
            name: Variable name, or a qualified ``"NS::Var"`` name.
            candidates: Ordered namespace names to try. None uses the
                default candidates. Ignored for qualified names.

        Returns:
            Success with the handle from the first candidate containing
            the variable, or a VARIABLE_NOT_FOUND failure naming the
            namespaces tried.

        Raises:
            NotConnectedError: No session (from the connection guard).
        """
        session = self._connection.ensure_connected()

        qualifier, variable_name = split_qualified_name(name)
        if qualifier is not None:
            order: tuple[str, ...] = (qualifier,)
        else:
            order = tuple(self.default_candidates if candidates is None else candidates)

        remote_errors: list[str] = []
        for candidate in order:
            try:
                namespace = lookup_namespace(session.namespaces, candidate)
                if namespace is None:
                    logger.debug("Namespace not present", namespace=candidate)
                    continue

                variable = namespace.find_variable(variable_name)
                if variable is None:
                    logger.debug(
                        "Variable not in namespace",
                        namespace=candidate,
                        variable=variable_name,
                    )
                    continue
            except Exception as e:  # noqa: BLE001 - never aborts the search
                remote_errors.append(f"{candidate}: {e}")
                logger.warning(
                    "Lookup failed in namespace, trying next",
                    namespace=candidate,
                    variable=variable_name,
                    error=str(e),
                )
                continue

            logger.debug(
                "Variable resolved", namespace=candidate, variable=variable_name
            )
            return BridgeResult.ok(
                VariableHandle(
                    namespace=candidate,
                    name=variable_name,
                    generation=session.generation,
                    remote=variable,
                )
            )

        tried = ", ".join(order) if order else "no namespaces"
        logger.info(
            "Variable not found", variable=variable_name, candidates=list(order)
        )
        return BridgeResult.fail(
            ErrorKind.VARIABLE_NOT_FOUND,
            f"Variable '{variable_name}' not found in {tried}",
            "; ".join(remote_errors),
        )
