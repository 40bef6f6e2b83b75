import logging

import numpy as np
import pytest

from manipulation_graph.core import RoadmapNode, StraightSteeringMethod
from manipulation_graph.graph import Edge, Graph

from planar import GX, OX, OY, coordinate_constraint, difference_constraint, planar_device


class RecordingSteeringMethod(StraightSteeringMethod):
    """Straight steering method recording its calls; copies share the record."""

    def __init__(self, device, calls):
        super().__init__(device)
        self.calls = calls

    def impl_compute(self, q1, q2):
        self.calls.append((q1.copy(), q2.copy()))
        return super().impl_compute(q1, q2)


def make_graph(calls=None):
    device = planar_device()
    steering = RecordingSteeringMethod(device, calls if calls is not None else [])
    graph = Graph('graph', device, steering)
    selector = graph.create_node_selector('selector')
    placed = selector.create_node('placed')
    grasped = selector.create_node('grasped')
    return graph, placed, grasped


def test_constraint_sets_are_cached():
    graph, placed, grasped = make_graph()
    edge = placed.link_to('grab', grasped)

    assert edge.config_constraint() is edge.config_constraint()
    assert edge.path_constraint() is edge.path_constraint()


def test_editing_edge_constraints_rebuilds_the_cache():
    graph, placed, grasped = make_graph()
    edge = placed.link_to('grab', grasped)
    before = edge.config_constraint()

    edge.add_numerical_constraint(coordinate_constraint('oy=0', OY))

    after = edge.config_constraint()
    assert after is not before
    assert after.config_projector().numerical_constraints == edge.numerical_constraints


def test_graph_wide_edits_need_explicit_invalidation():
    graph, placed, grasped = make_graph()
    edge = placed.link_to('grab', grasped)
    before = edge.config_constraint()

    graph.add_numerical_constraint(coordinate_constraint('oy=0', OY))

    assert edge.config_constraint() is before
    graph.invalidate_caches()
    assert edge.config_constraint() is not before


def test_config_constraint_gathers_graph_edge_and_target_constraints():
    graph, placed, grasped = make_graph()
    on_table = coordinate_constraint('oy=0', OY)
    grasp = difference_constraint('gx=ox', GX, OX)
    fixed_x = coordinate_constraint('ox', OX, parametric=True)
    graph.add_numerical_constraint(on_table)
    grasped.add_numerical_constraint(grasp)
    placed.add_numerical_constraint(coordinate_constraint('unused', GX))
    edge = placed.link_to('grab', grasped)
    edge.add_numerical_constraint(fixed_x)

    projector = edge.config_constraint().config_projector()

    assert projector.numerical_constraints == [on_table, fixed_x, grasp]
    assert edge.config_constraint().name == 'Set (grab)'


def test_path_constraint_uses_path_constraints_of_the_edge_node():
    graph, placed, grasped = make_graph()
    at_rest = coordinate_constraint('oy=0', OY)
    along_path = coordinate_constraint('oy=0 on path', OY)
    placed.add_numerical_constraint(at_rest)
    placed.add_numerical_constraint_for_path(along_path)
    edge = placed.link_to('slide', grasped)
    edge.node = placed

    projector = edge.path_constraint().config_projector()

    assert projector.numerical_constraints == [along_path]
    assert edge.steering_method.constraints is edge.path_constraint()


def test_build_rejects_end_points_outside_of_the_path_constraints():
    calls = []
    graph, placed, grasped = make_graph(calls)
    grasped.add_numerical_constraint_for_path(coordinate_constraint('oy=0', OY))
    edge = placed.link_to('grab', grasped)

    assert edge.build(np.zeros(4), np.array([0.0, 0.0, 0.0, 1.0])) is None
    assert edge.build(np.array([0.0, 0.0, 0.0, 1.0]), np.zeros(4)) is None
    assert calls == []

    path = edge.build(np.zeros(4), np.array([1.0, 1.0, 1.0, 0.0]))

    assert path is not None
    assert len(calls) == 1
    np.testing.assert_allclose(path.end, [1.0, 1.0, 1.0, 0.0])


def test_build_offsets_parametric_constraints_from_the_start():
    graph, placed, grasped = make_graph()
    edge = placed.link_to('grab', grasped)
    edge.add_numerical_constraint(coordinate_constraint('ox', OX, parametric=True))

    assert edge.build(np.array([0.0, 0.0, 1.0, 0.0]), np.array([3.0, 0.0, 1.0, 0.0])) is not None
    assert edge.build(np.array([0.0, 0.0, 1.0, 0.0]), np.array([3.0, 0.0, 2.0, 0.0])) is None


def test_paths_are_projected_on_the_path_constraints():
    graph, placed, grasped = make_graph()
    edge = placed.link_to('grab', grasped)
    edge.add_numerical_constraint(coordinate_constraint('ox', OX, parametric=True))
    path = edge.build(np.array([0.0, 0.0, 1.0, 0.0]), np.array([2.0, 0.0, 1.0, 0.0]))

    q, success = path(path.length / 2)

    assert success
    np.testing.assert_allclose(q, [1.0, 0.0, 1.0, 0.0])


def test_apply_constraints_projects_on_the_target_leaf():
    graph, placed, grasped = make_graph()
    grasped.add_numerical_constraint(difference_constraint('gx=ox', GX, OX))
    edge = placed.link_to('grab', grasped)
    edge.add_numerical_constraint(coordinate_constraint('ox', OX, parametric=True))
    q = np.array([4.0, 1.0, 0.0, 0.0])

    assert edge.apply_constraints(np.array([0.0, 0.0, 2.0, 0.0]), q)

    np.testing.assert_allclose(q, [2.0, 1.0, 2.0, 0.0], atol=1e-9)


def test_apply_constraints_accepts_a_roadmap_node():
    graph, placed, grasped = make_graph()
    edge = placed.link_to('grab', grasped)
    edge.add_numerical_constraint(coordinate_constraint('ox', OX, parametric=True))
    q = np.zeros(4)

    assert edge.apply_constraints(RoadmapNode([0.0, 0.0, 3.0, 0.0]), q)

    assert q[OX] == pytest.approx(3.0)


def test_failed_projection_keeps_configuration_and_warns(caplog):
    graph, placed, grasped = make_graph()
    grasped.add_numerical_constraint(coordinate_constraint('oy=0', OY, 0.0))
    edge = placed.link_to('grab', grasped)
    edge.add_numerical_constraint(coordinate_constraint('oy=1', OY, 1.0))
    q = np.array([1.0, 2.0, 3.0, 4.0])

    with caplog.at_level(logging.WARNING, logger='manipulation_graph.graph.edge'):
        assert not edge.apply_constraints(np.zeros(4), q)

    np.testing.assert_array_equal(q, [1.0, 2.0, 3.0, 4.0])
    assert 'fails often' in caplog.text
    assert 'Set (grab)' in caplog.text


def test_node_defaults_to_target_unless_in_node_from():
    graph, placed, grasped = make_graph()
    edge = placed.link_to('grab', grasped)

    assert edge.node is grasped
    edge.is_in_node_from = True
    assert edge.node is placed
    edge.node = grasped
    assert edge.node is grasped


def test_edges_copy_the_graph_steering_method():
    graph, placed, grasped = make_graph()
    first = placed.link_to('first', grasped)
    second = placed.link_to('second', grasped)

    assert first.steering_method is not graph.steering_method
    assert first.steering_method is not second.steering_method
    assert isinstance(first.steering_method, RecordingSteeringMethod)


def test_hidden_edges_are_not_neighbors():
    graph, placed, grasped = make_graph()
    visible = placed.link_to('visible', grasped, 2)
    hidden = placed.link_to('hidden', grasped, -1)

    assert placed.neighbors() == [(visible, 2.0)]
    assert placed.hidden_neighbor_edges() == [hidden]
    assert graph.get_edges(placed, grasped) == [visible]
    assert set(graph.edges()) == {visible, hidden}
    assert isinstance(hidden, Edge)
