from __future__ import annotations

import pytest

from rwnn_reduce.core.layout import feeds_output, output_row_count, output_row_offset


def test_should_offset_combined_layers_past_bias_inputs_and_earlier_layers() -> None:
    widths = [3, 4]

    first = output_row_offset(0, widths, input_dim=2, output_bias=True, combine_input=True, combine_hidden=True)
    second = output_row_offset(1, widths, input_dim=2, output_bias=True, combine_input=True, combine_hidden=True)

    assert first == 3
    assert second == 6


def test_should_ignore_inputs_and_bias_when_they_are_not_part_of_the_output_design() -> None:
    offset = output_row_offset(1, [3, 4], input_dim=2, output_bias=False, combine_input=False, combine_hidden=True)

    assert offset == 3


def test_should_not_count_earlier_layer_widths_when_hidden_layers_are_not_combined() -> None:
    offset = output_row_offset(1, [3, 4], input_dim=2, output_bias=True, combine_input=True, combine_hidden=False)

    assert offset == 3


def test_should_reject_layers_that_do_not_feed_the_output() -> None:
    with pytest.raises(ValueError, match="does not feed"):
        output_row_offset(0, [3, 4], input_dim=2, output_bias=True, combine_input=False, combine_hidden=False)
    with pytest.raises(ValueError, match="out of range"):
        output_row_offset(2, [3, 4], input_dim=2, output_bias=True, combine_input=False, combine_hidden=True)


def test_should_count_output_rows_for_each_layout() -> None:
    assert output_row_count([3, 4], input_dim=2, output_bias=True, combine_input=True, combine_hidden=True) == 10
    assert output_row_count([3, 4], input_dim=2, output_bias=True, combine_input=False, combine_hidden=False) == 5
    assert output_row_count([3, 4], input_dim=2, output_bias=False, combine_input=True, combine_hidden=False) == 6


def test_should_report_which_layers_feed_the_output() -> None:
    assert feeds_output(0, 3, combine_hidden=True)
    assert not feeds_output(0, 3, combine_hidden=False)
    assert feeds_output(2, 3, combine_hidden=False)
