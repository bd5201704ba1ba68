from __future__ import annotations

import numpy as np

from rwnn_reduce.core.layout import output_row_count
from rwnn_reduce.core.network import Network
from rwnn_reduce.core.output_pruning import reduce_output, trace_output_rows, zero_output_rows
from rwnn_reduce.core.reduction import reduce_network
from rwnn_reduce.core.strategy import ReductionContext


def _build_network(
    widths: tuple[int, ...],
    input_dim: int = 2,
    combine_input: bool = False,
    combine_hidden: bool = True,
    output_dim: int = 1,
) -> Network:
    rng = np.random.default_rng(13)
    hidden_weights = []
    previous_width = input_dim
    for width in widths:
        hidden_weights.append(rng.uniform(0.1, 1.0, size=(previous_width + 1, width)))
        previous_width = width
    rows = output_row_count(widths, input_dim, True, combine_input, combine_hidden)
    return Network(
        input_dim=input_dim,
        hidden_weights=hidden_weights,
        hidden_biases=[True] * len(widths),
        activations=["relu"] * len(widths),
        output_weights=np.ones((rows, output_dim)),
        combine_input=combine_input,
        combine_hidden=combine_hidden,
    )


def test_should_remove_bias_features_and_neurons_with_zero_output_rows() -> None:
    network = _build_network((2, 3), combine_input=True)
    network.output_weights[[0, 1, 3, 6], :] = 0.0

    reduce_output(network, ReductionContext(params={"tolerance": 1e-8}))

    assert not network.output_bias
    assert network.hidden_widths == [1, 2]
    assert np.all(network.hidden_weights[0][1, :] == 0.0)
    assert network.output_weights.shape == (2 + 1 + 2, 1)
    assert np.all(network.output_weights[2:] == 1.0)
    network.check_invariants()


def test_should_keep_first_neuron_when_every_output_row_of_a_layer_is_zero() -> None:
    network = _build_network((2,))
    network.output_weights[[1, 2], :] = 0.0

    reduce_output(network, ReductionContext(params={"tolerance": 1e-8}))

    assert network.hidden_widths == [1]
    assert network.output_weights.shape == (2, 1)


def test_should_keep_rows_that_are_non_zero_for_any_output() -> None:
    network = _build_network((3,), output_dim=2)
    network.output_weights[1, :] = [0.0, 0.5]
    network.output_weights[2, :] = 0.0

    rows = zero_output_rows(network, 1e-8)

    assert rows.tolist() == [2]


def test_should_only_trace_last_layer_when_hidden_layers_are_not_combined() -> None:
    network = _build_network((2, 3), combine_hidden=False)

    bias_hit, features, instruction = trace_output_rows(network, np.array([2]))

    assert not bias_hit
    assert features == ()
    assert dict(instruction.remove_indices) == {1: (1,)}


def test_should_shrink_parameter_count_when_reducing_by_output_rows() -> None:
    network = _build_network((3, 3))
    network.output_weights[[2, 5], :] = 0.0

    reduced = reduce_network(network, "output", retrain=False, tolerance=1e-8)

    assert reduced.hidden_widths == [2, 2]
    assert reduced.parameter_count() < network.parameter_count()
    assert network.hidden_widths == [3, 3]
