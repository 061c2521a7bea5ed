"""HTS hierarchy: code helpers, rate parsing and read-only stores."""

from tariffnav.hts.store import HierarchyStore, HtsNode, InMemoryHierarchyStore

__all__ = ["HierarchyStore", "HtsNode", "InMemoryHierarchyStore"]
