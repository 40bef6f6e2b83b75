import numpy as np
import pytest

from manipulation_graph.config import ProjectorOptions, get_projector_options, set_projector_options
from manipulation_graph.core import (
    ConfigProjector,
    ConnectedComponent,
    ConstraintSet,
    DiscreteDistribution,
    Foliation,
    LeafHistogram,
    LockedJoint,
    PathVector,
    RoadmapNode,
    StraightPath,
)

from planar import GX, GY, OX, OY, coordinate_constraint, difference_constraint, planar_device


def make_projector(method='newton'):
    return ConfigProjector(planar_device(), 'proj', 1e-6, 40, method=method)


@pytest.mark.parametrize('method', ['newton', 'trf', 'dogbox'])
def test_projection_reaches_the_manifold(method):
    proj = make_projector(method)
    proj.add(difference_constraint('gx=ox', GX, OX))
    proj.add(coordinate_constraint('oy=0', OY))
    q = np.array([1.0, 2.0, 3.0, 4.0])

    assert proj.apply(q)
    assert proj.is_satisfied(q)
    assert q[GX] == pytest.approx(q[OX], abs=1e-6)
    assert q[OY] == pytest.approx(0.0, abs=1e-6)
    assert q[GY] == pytest.approx(2.0)


def test_newton_step_is_minimal_norm():
    proj = make_projector()
    proj.add(difference_constraint('gx=ox', GX, OX))
    q = np.array([1.0, 0.0, 3.0, 0.0])

    assert proj.apply(q)

    np.testing.assert_allclose(q, [2.0, 0.0, 2.0, 0.0], atol=1e-9)


def test_failed_projection_leaves_configuration_untouched():
    proj = make_projector()
    proj.add(coordinate_constraint('oy=0', OY, 0.0))
    proj.add(coordinate_constraint('oy=1', OY, 1.0))
    q = np.array([1.0, 2.0, 3.0, 4.0])

    assert not proj.apply(q)

    np.testing.assert_array_equal(q, [1.0, 2.0, 3.0, 4.0])
    assert proj.statistics.nb_failure == 1
    assert proj.statistics.nb_success == 0


def test_duplicate_constraints_are_ignored():
    proj = make_projector()
    constraint = coordinate_constraint('oy=0', OY)

    assert proj.add(constraint)
    assert not proj.add(constraint)
    assert proj.numerical_constraints == [constraint]


def test_locked_joints_are_frozen_during_projection():
    proj = make_projector()
    proj.add(difference_constraint('gx=ox', GX, OX))
    proj.add(LockedJoint('object x', OX, [5.0]))
    q = np.array([1.0, 0.0, 0.0, 0.0])

    assert proj.apply(q)

    assert q[OX] == pytest.approx(5.0)
    assert q[GX] == pytest.approx(5.0)


def test_passive_dofs_are_not_moved():
    proj = make_projector()
    proj.add(difference_constraint('gx=ox', GX, OX), passive_dofs=[(OX, 1)])
    q = np.array([1.0, 0.0, 3.0, 0.0])

    assert proj.apply(q)

    assert q[OX] == pytest.approx(3.0)
    assert q[GX] == pytest.approx(3.0)


def test_right_hand_side_is_read_from_configuration():
    proj = make_projector()
    constraint = coordinate_constraint('ox', OX, parametric=True)
    proj.add(constraint)
    proj.right_hand_side_from_config(np.array([0.0, 0.0, 2.5, 0.0]))
    q = np.array([0.0, 0.0, 7.0, 0.0])

    assert not proj.is_satisfied(q)
    assert proj.apply(q)
    assert q[OX] == pytest.approx(2.5)


def test_projector_keeps_its_own_copy_of_the_right_hand_side():
    proj = make_projector()
    constraint = coordinate_constraint('ox', OX, parametric=True)
    proj.add(constraint)
    constraint.right_hand_side_from_config(np.array([0.0, 0.0, 1.0, 0.0]))

    assert proj.is_satisfied(np.zeros(4))

    proj.update_right_hand_side()

    assert not proj.is_satisfied(np.zeros(4))


def test_configuration_shape_is_checked():
    proj = make_projector()

    with pytest.raises(ValueError):
        proj.apply(np.zeros(3))
    with pytest.raises(TypeError):
        proj.apply([0.0, 0.0, 0.0, 0.0])


def test_constraint_set_writes_back_only_when_every_projector_succeeds():
    device = planar_device()
    first = ConfigProjector(device, 'first', 1e-6, 20)
    first.add(coordinate_constraint('gx=1', GX, 1.0))
    second = ConfigProjector(device, 'second', 1e-6, 20)
    second.add(coordinate_constraint('oy=0', OY, 0.0))
    second.add(coordinate_constraint('oy=1', OY, 1.0))
    constraints = ConstraintSet(device, 'set')
    constraints.add_constraint(first)
    constraints.add_constraint(second)
    q = np.zeros(4)

    assert constraints.config_projector() is first
    assert not constraints.apply(q)
    np.testing.assert_array_equal(q, np.zeros(4))


def test_path_vector_flattens_concatenated_paths():
    inner = PathVector(4)
    inner.append_path(StraightPath(np.zeros(4), np.ones(4)))
    inner.append_path(StraightPath(np.ones(4), 2 * np.ones(4)))
    outer = PathVector(4)
    outer.concatenate(inner)
    outer.append_path(StraightPath(2 * np.ones(4), 3 * np.ones(4)))

    assert outer.number_paths() == 3
    assert outer.length == pytest.approx(3 * inner.path_at_rank(0).length)
    np.testing.assert_allclose(outer.initial, np.zeros(4))
    np.testing.assert_allclose(outer.end, 3 * np.ones(4))
    q, success = outer(outer.length / 2)
    assert success
    np.testing.assert_allclose(q, 1.5 * np.ones(4))


def test_path_evaluation_outside_of_range_raises():
    path = StraightPath(np.zeros(4), np.ones(4))

    with pytest.raises(ValueError):
        path(path.length + 1.0)


def test_histogram_groups_nodes_by_leaf():
    device = planar_device()
    condition = ConfigProjector(device, 'cond', 1e-6, 20)
    condition.add(coordinate_constraint('oy=0', OY))
    parametrizer = ConfigProjector(device, 'param', 1e-6, 20)
    parametrizer.add(coordinate_constraint('ox', OX, parametric=True))
    histogram = LeafHistogram(Foliation(condition, parametrizer))
    cc = ConnectedComponent()

    assert histogram.add(RoadmapNode([0.0, 0.0, 1.0, 0.0], cc))
    assert histogram.add(RoadmapNode([3.0, 1.0, 1.0, 0.0]))
    assert histogram.add(RoadmapNode([0.0, 0.0, 2.0, 0.0]))
    assert not histogram.add(RoadmapNode([0.0, 0.0, 2.0, 1.0]))

    assert [freq for _, freq in histogram.bins] == [2, 1]
    distrib = histogram.get_distrib_out_of_connected_component(cc)
    assert distrib.size() == 1
    assert distrib.values()[0].configuration[OX] == pytest.approx(2.0)


def test_discrete_distribution_rejects_empty_sampling():
    distrib = DiscreteDistribution()

    with pytest.raises(ValueError):
        distrib()
    with pytest.raises(ValueError):
        distrib.insert('leaf', 0)


def test_projector_options_are_copied():
    original = get_projector_options()
    try:
        options = ProjectorOptions(error_threshold=1e-3, max_iterations=5)
        set_projector_options(options)
        options.max_iterations = 100

        assert get_projector_options().max_iterations == 5
        get_projector_options().max_iterations = 7
        assert get_projector_options().max_iterations == 5
    finally:
        set_projector_options(original)
