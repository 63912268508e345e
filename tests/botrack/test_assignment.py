r"""
Tests for ``botrack.assignment``.
"""


from __future__ import annotations

import pytest
import torch
from hypothesis import given, settings
from hypothesis import strategies as st

from botrack import assignment


@pytest.fixture(
    params=[
        (8, 8),
        (8, 10),
        (10, 8),
        (0, 0),
        (0, 3),
        (3, 0),
    ],
    ids=(
        "cost:square",
        "cost:tall",
        "cost:wide",
        "cost:empty",
        "cost:no-rows",
        "cost:no-cols",
    ),
)
def cost_matrix(request):
    shape = request.param
    return torch.rand(shape, dtype=torch.float) ** 10


@pytest.fixture(
    params=[
        assignment.Greedy,
        assignment.Hungarian,
        assignment.Jonker,
    ],
    ids=(
        "alg:greedy",
        "alg:hungarian",
        "alg:jonker",
    ),
    scope="module",
)
def solver(request):
    mod = request.param()
    assert isinstance(mod, assignment.Assignment)
    return mod


def test_assignment_invoke(cost_matrix, solver):
    matches, unmatch_rows, unmatch_cols = solver(cost_matrix)

    assert matches.shape[0] <= min(cost_matrix.shape)
    assert matches.shape[1] == 2
    assert matches.shape[0] + unmatch_rows.shape[0] == cost_matrix.shape[0]
    assert matches.shape[0] + unmatch_cols.shape[0] == cost_matrix.shape[1]
    assert not any(matches[:, 0] < 0)
    assert not any(matches[:, 1] < 0)
    assert not any(r in matches[:, 0] for r in unmatch_rows)
    assert not any(c in matches[:, 1] for c in unmatch_cols)


@pytest.mark.parametrize(
    ["cost_matrix", "solution"],
    [
        (
            torch.arange(9, dtype=torch.float).reshape(3, 3),
            torch.tensor([[0, 0], [1, 1], [2, 2]]),
        ),
        (
            torch.arange(6, dtype=torch.float).reshape(2, 3),
            torch.tensor([[0, 0], [1, 1]]),
        ),
        (
            torch.tensor([[0.1, 0.2], [0.2, 0.9]]),
            torch.tensor([[0, 1], [1, 0]]),
        ),
    ],
)
@pytest.mark.parametrize("solver_cls", [assignment.Hungarian, assignment.Jonker])
def test_assignment_known(cost_matrix, solution, solver_cls):
    """
    Test if the optimal solvers find the minimal total cost.
    """
    matches, _, _ = solver_cls()(cost_matrix)

    assert matches.shape == solution.shape
    assert torch.isclose(
        assignment.gather_total_cost(cost_matrix, matches),
        assignment.gather_total_cost(cost_matrix, solution),
    )


def test_greedy_picks_minimum_first():
    cost_matrix = torch.tensor([[0.1, 0.2], [0.2, 0.9]])
    matches, unmatch_rows, unmatch_cols = assignment.Greedy()(cost_matrix)

    assert matches.tolist() == [[0, 0], [1, 1]]
    assert unmatch_rows.numel() == 0
    assert unmatch_cols.numel() == 0


@pytest.mark.parametrize("solver_cls", [assignment.Greedy, assignment.Hungarian, assignment.Jonker])
def test_assignment_threshold(solver_cls):
    cost_matrix = torch.tensor([[0.1, 0.95], [0.9, 0.95]])
    matches, unmatch_rows, unmatch_cols = solver_cls(threshold=0.5)(cost_matrix)

    assert matches.tolist() == [[0, 0]]
    assert unmatch_rows.tolist() == [1]
    assert unmatch_cols.tolist() == [1]


@pytest.mark.parametrize("solver_cls", [assignment.Greedy, assignment.Hungarian, assignment.Jonker])
def test_assignment_threshold_is_exclusive(solver_cls):
    cost_matrix = torch.tensor([[0.5]])
    matches, unmatch_rows, unmatch_cols = solver_cls(threshold=0.5)(cost_matrix)

    assert matches.shape == (0, 2)
    assert unmatch_rows.tolist() == [0]
    assert unmatch_cols.tolist() == [0]


@pytest.mark.parametrize("solver_cls", [assignment.Greedy, assignment.Hungarian, assignment.Jonker])
def test_assignment_infinite_entries(solver_cls):
    cost_matrix = torch.tensor([[torch.inf, 0.3], [torch.inf, torch.inf]])
    matches, unmatch_rows, unmatch_cols = solver_cls()(cost_matrix)

    assert matches.tolist() == [[0, 1]]
    assert unmatch_rows.tolist() == [1]
    assert unmatch_cols.tolist() == [0]


@pytest.mark.parametrize(
    ["cost_matrix", "solution"],
    [
        (torch.full((1, 3), 0.3), [[0, 0]]),
        (torch.full((3, 1), 0.3), [[0, 0]]),
        (torch.full((2, 3), 0.5), [[0, 0], [1, 1]]),
        (torch.full((3, 2), 0.5), [[0, 0], [1, 1]]),
        (torch.full((3, 3), 0.5), [[0, 0], [1, 1], [2, 2]]),
    ],
    ids=("ties:row", "ties:col", "ties:wide", "ties:tall", "ties:square"),
)
@pytest.mark.parametrize("solver_cls", [assignment.Greedy, assignment.Hungarian, assignment.Jonker])
def test_assignment_ties_follow_input_order(cost_matrix, solution, solver_cls):
    matches, _, _ = solver_cls(threshold=0.8)(cost_matrix)

    assert matches.tolist() == solution


def test_assignment_rejects_vector():
    with pytest.raises(ValueError):
        assignment.Jonker()(torch.zeros(3))


@settings(deadline=None, max_examples=25)
@given(
    rows=st.integers(min_value=1, max_value=12),
    cols=st.integers(min_value=1, max_value=12),
    seed=st.integers(min_value=0, max_value=2**16),
)
def test_optimal_solvers_agree(rows, cols, seed):
    gen = torch.Generator().manual_seed(seed)
    cost_matrix = torch.rand((rows, cols), generator=gen)

    hungarian, _, _ = assignment.Hungarian()(cost_matrix)
    jonker, _, _ = assignment.Jonker()(cost_matrix)

    assert torch.isclose(
        assignment.gather_total_cost(cost_matrix, hungarian),
        assignment.gather_total_cost(cost_matrix, jonker),
        atol=1e-5,
    )
