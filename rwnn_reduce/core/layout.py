"""Row layout of the output-layer design matrix.

The output layer sees, in order: an optional bias column, the raw input
features when ``combine_input`` is set, then either every hidden layer
(``combine_hidden``) or only the last one. Every structural edit locates output
rows through these two functions.
"""

from __future__ import annotations

from collections.abc import Sequence


def output_row_offset(
    layer_index: int,
    hidden_widths: Sequence[int],
    input_dim: int,
    output_bias: bool,
    combine_input: bool,
    combine_hidden: bool,
) -> int:
    """Index of the first output-weight row fed by hidden layer ``layer_index``.

    Raises ``ValueError`` when the layer does not feed the output layer, which
    happens for every layer but the last one when hidden layers are not combined.
    """
    layer_count = len(hidden_widths)
    if not 0 <= layer_index < layer_count:
        raise ValueError(f"layer_index {layer_index} is out of range for {layer_count} hidden layers")
    if not combine_hidden and layer_index != layer_count - 1:
        raise ValueError(f"hidden layer {layer_index} does not feed the output layer")

    offset = int(output_bias) + (input_dim if combine_input else 0)
    if combine_hidden:
        offset += sum(int(width) for width in hidden_widths[:layer_index])
    return offset


def output_row_count(
    hidden_widths: Sequence[int],
    input_dim: int,
    output_bias: bool,
    combine_input: bool,
    combine_hidden: bool,
) -> int:
    """Number of rows the output weight matrix must have."""
    hidden_rows = 0
    if hidden_widths:
        hidden_rows = sum(int(width) for width in hidden_widths) if combine_hidden else int(hidden_widths[-1])
    return int(output_bias) + (input_dim if combine_input else 0) + hidden_rows


def feeds_output(layer_index: int, layer_count: int, combine_hidden: bool) -> bool:
    return combine_hidden or layer_index == layer_count - 1
