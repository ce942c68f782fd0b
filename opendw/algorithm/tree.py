"""
Algorithm-tree orchestration.

The algorithms of a search form a static tree: a node is an (algorithm,
model) pair and its children are the pairs returned by
get_child_algorithms. The tree is materialised as a networkx DiGraph and
queried twice:

- collect_units_to_create walks every descendant; the union of their usages
  is the set of units to instantiate once at setup.
- collect_units_to_restore walks the descendants that the root is
  responsible for. It does not descend into manager children, which
  protect their own subtree.

Design Notes:
------------
- Nodes are keyed by the identities of the algorithm and the model, so the
  same algorithm object run on two subproblems gives two nodes.
- Shared subtrees are visited once.
"""

import logging
from typing import Any, Hashable

import networkx as nx

from opendw.storage.base import ContractViolation
from opendw.storage.records import UnitsUsage

logger = logging.getLogger(__name__)


def _node_key(algo, model) -> Hashable:
    return (id(algo), id(model))


def build_algorithm_tree(algo, model: Any) -> nx.DiGraph:
    """
    Build the tree of (algorithm, model) pairs rooted at `algo` on `model`.

    Args:
        algo: Root algorithm
        model: Model the root runs on

    Returns:
        DiGraph whose nodes carry 'algorithm' and 'model' attributes; the
        root key is stored in graph.graph['root']
    """
    tree = nx.DiGraph()
    root = _node_key(algo, model)
    tree.add_node(root, algorithm=algo, model=model)
    tree.graph["root"] = root

    stack = [(algo, model)]
    while stack:
        parent, parent_model = stack.pop()
        parent_key = _node_key(parent, parent_model)
        for child, child_model in parent.get_child_algorithms(parent_model):
            child_key = _node_key(child, child_model)
            if child_key not in tree:
                tree.add_node(child_key, algorithm=child, model=child_model)
                stack.append((child, child_model))
            tree.add_edge(parent_key, child_key)
    return tree


def _collect(tree: nx.DiGraph, nodes) -> UnitsUsage:
    usage = UnitsUsage()
    for node in nodes:
        attrs = tree.nodes[node]
        usage.update(attrs["algorithm"].get_units_usage(attrs["model"]))
    return usage


def collect_units_to_create(algo, model: Any) -> UnitsUsage:
    """Usages of `algo` and of every algorithm below it."""
    tree = build_algorithm_tree(algo, model)
    return _collect(tree, nx.dfs_preorder_nodes(tree, tree.graph["root"]))


def collect_units_to_restore(algo, model: Any) -> UnitsUsage:
    """
    Usages `algo` is responsible for restoring.

    The walk includes `algo` itself and stops at manager children.
    """
    tree = build_algorithm_tree(algo, model)
    root = tree.graph["root"]
    view = nx.subgraph_view(
        tree,
        filter_node=lambda n: n == root or not tree.nodes[n]["algorithm"].is_manager,
    )
    return _collect(tree, nx.dfs_preorder_nodes(view, root))


def initialize_storage_units(data, algo) -> None:
    """
    Create every storage unit the algorithm tree rooted at `algo` uses.

    Args:
        data: ModelData or ReformData of the search
        algo: Root algorithm, run on data.model

    Raises:
        ContractViolation: If an algorithm uses a model `data` does not hold
    """
    usage = collect_units_to_create(algo, data.model)
    for model, pair, _ in usage:
        if data.get_model_storage_dict(model) is None:
            raise ContractViolation(
                f"Algorithm tree uses model {getattr(model, 'name', model)!r} "
                f"which has no storage dictionary"
            )
        data.get_model_data(model).get_or_create_storage(pair)
    logger.debug("Initialized %d storage units", len(usage))
