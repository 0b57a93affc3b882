"""
File: core/graph_model.py
Purpose: Normalize a raw resource table into an immutable graph snapshot.
Dependencies: Standard library, schema models
Performance: O(V + E) single pass at load time

Every polymorphic field representation is resolved here, once:
  - host given as ``host`` or ``node`` (``host`` wins)
  - dependencies given as ``depends`` (list) or ``depends_on`` (set or
    set-keyed mapping), unioned into one frozenset
  - demand given as ``cores``/``memory``/``disk``, negatives floored at 0
  - capacity given as ``cores_total``/``memory_total``/``storage_total``
Algorithms never branch on the input representation.
"""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Union

from resilience_engine.schema import CapacityTotals, Demand, Resource

_CAPACITY_FIELDS = ("cores_total", "memory_total", "storage_total")

ResourceRef = Union[str, Resource]


def _as_int(value: Any) -> int:
    if value is None or value == "":
        return 0
    return int(value)


def _as_demand(value: Any) -> int:
    return max(_as_int(value), 0)


def _as_names(value: Any) -> FrozenSet[str]:
    if not value:
        return frozenset()
    if isinstance(value, str):
        return frozenset({value})
    if isinstance(value, Mapping):
        return frozenset(str(k) for k in value.keys())
    return frozenset(str(v) for v in value)


def normalize_record(
    name: str,
    record: Mapping[str, Any],
    default_priority: int = 5,
) -> Resource:
    """Resolve one raw record into a canonical ``Resource``.

    Args:
        name: Unique resource name (the table key).
        record: Raw record with optional legacy fields.
        default_priority: Priority for records that carry none.

    Returns:
        Normalized, frozen Resource.

    Raises:
        TypeError: If ``record`` is not a mapping.
    """
    if not isinstance(record, Mapping):
        raise TypeError(
            f"resource '{name}' must be a mapping, "
            f"got {type(record).__name__}"
        )

    host = record.get("host") or record.get("node") or ""
    depends = _as_names(record.get("depends")) | _as_names(
        record.get("depends_on")
    )

    capacity: Optional[CapacityTotals] = None
    if any(f in record for f in _CAPACITY_FIELDS):
        capacity = CapacityTotals(
            cores=_as_int(record.get("cores_total")),
            memory=_as_int(record.get("memory_total")),
            disk=_as_int(record.get("storage_total")),
        )

    priority = record.get("priority")

    return Resource(
        name=name,
        host=str(host),
        depends_on=depends,
        demand=Demand(
            cores=_as_demand(record.get("cores")),
            memory=_as_demand(record.get("memory")),
            disk=_as_demand(record.get("disk")),
        ),
        capacity=capacity,
        priority=default_priority if priority is None else int(priority),
        replica=str(record.get("replica") or ""),
        replica_of=str(record.get("replica_of") or ""),
    )


class GraphModel:
    """Read-only view over a normalized resource table.

    Iteration order is the insertion order of the input table; analyzers
    rely on it for stable tie-breaking.

    Example::

        graph = GraphModel.from_table({
            "dns": {"depends": []},
            "web": {"depends": ["dns"], "node": "pve1"},
        })
        graph.normalized_dependencies("web")   # frozenset({'dns'})
    """

    def __init__(self, resources: Iterable[Resource] = ()) -> None:
        self._resources: Dict[str, Resource] = {}
        for resource in resources:
            self._resources[resource.name] = resource

    @classmethod
    def from_table(
        cls,
        table: Optional[Mapping[str, Any]],
        default_priority: int = 5,
    ) -> GraphModel:
        """Normalize a raw ``name -> record`` table.

        Records that are already ``Resource`` instances are kept as-is.
        """
        resources: List[Resource] = []
        for name, record in (table or {}).items():
            if isinstance(record, Resource):
                resources.append(record)
            else:
                resources.append(
                    normalize_record(str(name), record, default_priority)
                )
        return cls(resources)

    # ── container protocol ──────────────────────────────────────

    def __len__(self) -> int:
        return len(self._resources)

    def __iter__(self) -> Iterator[Resource]:
        return iter(self._resources.values())

    def __contains__(self, name: object) -> bool:
        return name in self._resources

    def get(self, name: str) -> Optional[Resource]:
        return self._resources.get(name)

    def names(self) -> List[str]:
        return list(self._resources)

    # ── normalized accessors ────────────────────────────────────

    def _resolve(self, resource: ResourceRef) -> Optional[Resource]:
        if isinstance(resource, Resource):
            return resource
        return self._resources.get(resource)

    def normalized_host(self, resource: ResourceRef) -> str:
        """Host node name, ``""`` when absent or unknown."""
        found = self._resolve(resource)
        return found.host if found else ""

    def normalized_dependencies(self, resource: ResourceRef) -> FrozenSet[str]:
        """Names this resource depends on (empty when absent or unknown)."""
        found = self._resolve(resource)
        return found.depends_on if found else frozenset()

    def normalized_demand(self, resource: ResourceRef) -> Demand:
        """Capacity demand, all-zero when absent or unknown."""
        found = self._resolve(resource)
        return found.demand if found else Demand()

    # ── capacity views ──────────────────────────────────────────

    def capacity_nodes(self) -> List[Resource]:
        """Resources that declare capacity totals, valid or not."""
        return [r for r in self._resources.values() if r.capacity is not None]

    def hosted_on(self, node: str) -> List[Resource]:
        """Resources whose normalized host equals ``node``."""
        return [r for r in self._resources.values() if r.host == node]
