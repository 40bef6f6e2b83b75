import logging

import numpy as np
import pytest

from manipulation_graph.core import RoadmapNode
from manipulation_graph.errors import GraphError, UnsupportedOperationError
from manipulation_graph.graph import Graph, LevelSetEdge

from planar import GX, GY, OX, OY, coordinate_constraint, difference_constraint, planar_device


def make_level_set_edge():
    """Grab an object lying on ``oy = 0``; the leaves are indexed by ``ox``."""

    graph = Graph('graph', planar_device())
    selector = graph.create_node_selector('selector')
    placed = selector.create_node('placed')
    grasped = selector.create_node('grasped')
    on_table = coordinate_constraint('oy=0', OY)
    placed.add_numerical_constraint(on_table)
    grasped.add_numerical_constraint(difference_constraint('gx=ox', GX, OX))
    grasped.add_numerical_constraint(difference_constraint('gy=oy', GY, OY))
    edge = placed.link_to('grab', grasped, 1, LevelSetEdge)
    object_x = coordinate_constraint('ox', OX, parametric=True)
    edge.insert_condition_constraint(on_table)
    edge.insert_param_constraint(object_x)
    return graph, edge, object_x


def test_raw_configuration_offset_is_unsupported():
    graph, edge, _ = make_level_set_edge()
    edge.build_histogram()

    with pytest.raises(UnsupportedOperationError):
        edge.apply_constraints(np.zeros(4), np.zeros(4))


def test_missing_histogram_raises():
    graph, edge, _ = make_level_set_edge()

    with pytest.raises(GraphError):
        edge.apply_constraints(RoadmapNode(np.zeros(4)), np.zeros(4))


def test_empty_distribution_fails_without_touching_configuration(caplog):
    graph, edge, _ = make_level_set_edge()
    histogram = edge.build_histogram()
    offset = RoadmapNode([0.0, 1.0, 2.0, 0.0])
    histogram.add(offset)
    q = np.array([0.0, 1.0, 2.0, 0.0])

    with caplog.at_level(logging.WARNING, logger='manipulation_graph.graph.edge'):
        assert not edge.apply_constraints(offset, q)

    np.testing.assert_array_equal(q, [0.0, 1.0, 2.0, 0.0])
    assert 'distribution of leaves is empty' in caplog.text


def test_projects_on_a_leaf_of_another_connected_component():
    graph, edge, _ = make_level_set_edge()
    histogram = edge.build_histogram()
    offset = RoadmapNode([0.0, 1.0, 2.0, 0.0])
    histogram.add(offset)
    histogram.add(RoadmapNode([3.0, 3.0, 5.0, 0.0]))
    q = np.array([0.0, 1.0, 2.0, 0.0])

    assert edge.apply_constraints(offset, q)

    assert q[OX] == pytest.approx(5.0)
    assert q[GX] == pytest.approx(q[OX])
    assert q[GY] == pytest.approx(q[OY])


def test_histogram_only_records_configurations_of_the_foliation():
    graph, edge, _ = make_level_set_edge()
    histogram = edge.build_histogram()

    assert histogram.add(RoadmapNode([0.0, 0.0, 1.0, 0.0]))
    assert not histogram.add(RoadmapNode([0.0, 0.0, 1.0, 0.5]))
    assert len(histogram.bins) == 1


def test_extra_constraint_contains_leaf_parameters_and_target_constraints():
    graph, edge, object_x = make_level_set_edge()

    extra = edge.extra_config_constraint()
    names = [constraint.name for constraint in extra.config_projector().numerical_constraints]

    assert extra is edge.extra_config_constraint()
    assert names == ['ox', 'gx=ox', 'gy=oy']
    assert edge.param_constraints == [object_x]
    assert [constraint.name for constraint in edge.condition_constraints] == ['oy=0']
    assert object_x not in edge.config_constraint().config_projector().numerical_constraints
