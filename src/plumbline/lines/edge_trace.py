"""
Edge chain tracing for plumbline.

Thins the edge mask, builds an 8-connected pixel graph and walks it into
ordered chains that run between endpoints and junctions. Closed loops
without endpoints are walked once from their smallest pixel.
"""

import networkx as nx
import numpy as np
from skimage.morphology import skeletonize

from plumbline.tracer import get_tracer, trace


# 8-connectivity neighborhood offsets
NEIGHBORS_8 = [
    (-1, -1), (-1, 0), (-1, 1),
    (0, -1),           (0, 1),
    (1, -1),  (1, 0),  (1, 1),
]


@trace(label="build_edge_graph")
def build_edge_graph(edge):
    """
    Pixel graph of a thinned edge mask (0 = edge).

    Returns:
        graph: networkx graph with (y, x) nodes
        endpoints: degree-1 nodes in scan order
        junctions: degree-3+ nodes in scan order
    """
    tracer = get_tracer()

    thin = skeletonize(edge == 0)
    height, width = thin.shape

    graph = nx.Graph()
    ys, xs = np.nonzero(thin)
    pixels = [(int(y), int(x)) for y, x in zip(ys, xs)]
    graph.add_nodes_from(pixels)

    for y, x in pixels:
        for dy, dx in NEIGHBORS_8:
            ny, nx_coord = y + dy, x + dx
            if 0 <= ny < height and 0 <= nx_coord < width and thin[ny, nx_coord]:
                graph.add_edge((y, x), (ny, nx_coord))

    endpoints = []
    junctions = []
    for node in graph.nodes():
        degree = graph.degree(node)
        if degree == 1:
            endpoints.append(node)
        elif degree >= 3:
            junctions.append(node)

    tracer.event(
        f"Edge graph: nodes={graph.number_of_nodes()}, edges={graph.number_of_edges()}, "
        f"endpoints={len(endpoints)}, junctions={len(junctions)}"
    )
    return graph, endpoints, junctions


@trace(label="trace_edge_chains")
def trace_edge_chains(graph, endpoints, junctions):
    """
    Walk the graph into chains of [x, y] points.

    Every graph edge is used by exactly one chain. Junction pixels are shared
    by the chains meeting there.
    """
    tracer = get_tracer()

    chains = []
    visited_edges = set()
    special_nodes = set(endpoints) | set(junctions)

    def walk_from(start_node):
        for neighbor in sorted(graph.neighbors(start_node)):
            if _edge_key(start_node, neighbor) in visited_edges:
                continue
            path = _trace_path(graph, start_node, neighbor, special_nodes, visited_edges)
            if len(path) >= 2:
                chains.append([[x, y] for y, x in path])

    for node in endpoints:
        walk_from(node)
    for node in junctions:
        walk_from(node)

    # isolated loops have neither endpoints nor junctions
    for component in nx.connected_components(graph):
        if component & special_nodes:
            continue
        start = min(component)
        if len(component) > 1:
            walk_from(start)

    tracer.event(f"Traced {len(chains)} edge chains")
    return chains


def _edge_key(a, b):
    return (a, b) if a <= b else (b, a)


def _trace_path(graph, start, next_node, special_nodes, visited_edges):
    """
    Follow degree-2 pixels from start through next_node.

    Stops at a special node, a dead end, or an already used edge.
    """
    path = [start]
    current = start
    next_n = next_node

    while True:
        edge = _edge_key(current, next_n)
        if edge in visited_edges:
            break

        visited_edges.add(edge)
        path.append(next_n)

        if next_n in special_nodes:
            break

        neighbors = [n for n in graph.neighbors(next_n) if n != current]
        if len(neighbors) != 1:
            break

        current = next_n
        next_n = neighbors[0]

    return path
