"""
Test comparison heatmaps (rctdprobe.tools.visualization)
"""
import matplotlib.pyplot as plt
import pytest

from rctdprobe.tools.experiment import run_weight_interpretation
from rctdprobe.tools.visualization import PANEL_TITLES, plot_weight_comparison


@pytest.fixture
def nnls_result(nnls_experiment_params):
    return run_weight_interpretation(nnls_experiment_params)


def test_four_panels(nnls_result):
    fig = plot_weight_comparison(nnls_result)
    try:
        titles = [ax.get_title() for ax in fig.axes if ax.get_title()]
        assert titles == [title for _, title in PANEL_TITLES]
        assert "rna_proportion" in fig._suptitle.get_text()
    finally:
        plt.close(fig)


def test_saves_figure(nnls_result, tmp_path):
    output = tmp_path / "figures" / "weights.png"
    fig = plot_weight_comparison(nnls_result, output_path=output, dpi=50)
    plt.close(fig)
    assert output.exists()
    assert output.stat().st_size > 0
