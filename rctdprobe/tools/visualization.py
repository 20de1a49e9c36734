"""
Heatmaps of the weight matrix next to both hypothesis matrices.
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Tuple, Union

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import seaborn as sns  # noqa: E402

if TYPE_CHECKING:
    from .experiment import ExperimentResult

logger = logging.getLogger(__name__)

PANEL_TITLES = (
    ("weights", "Deconvolution weights"),
    ("cell_fraction", "Cell-fraction hypothesis"),
    ("rna_proportion", "RNA-proportion hypothesis"),
    ("normalized_weights", "Normalized weights"),
)


def plot_weight_comparison(
    result: "ExperimentResult",
    output_path: Optional[Union[str, Path]] = None,
    figsize: Optional[Tuple[float, float]] = None,
    dpi: int = 150,
    colormap: str = "viridis",
) -> plt.Figure:
    """Four annotated heatmaps sharing one 0..1 color scale.

    Args:
        result: Finished experiment
        output_path: Save the figure here when given
        figsize: Figure size in inches; scales with spot count by default
        dpi: Resolution used when saving (capped at 300)
        colormap: Matplotlib colormap name

    Returns:
        The matplotlib Figure
    """
    n_spots, n_types = result.weights.shape
    figsize = figsize or (4 * len(PANEL_TITLES), max(3, 0.6 * n_spots + 1.5))

    fig, axes = plt.subplots(1, len(PANEL_TITLES), figsize=figsize, sharey=True)
    for ax, (attribute, title) in zip(axes, PANEL_TITLES):
        sns.heatmap(
            getattr(result, attribute).astype(float),
            ax=ax,
            cmap=colormap,
            vmin=0.0,
            vmax=1.0,
            annot=n_spots <= 20 and n_types <= 10,
            fmt=".3f",
            linewidths=0.5,
            cbar=ax is axes[-1],
            cbar_kws={"label": "fraction"},
        )
        ax.set_title(title, fontsize=11, fontweight="bold")
        ax.set_xlabel("Cell type", fontsize=9)
        ax.set_ylabel("Spot" if ax is axes[0] else "", fontsize=9)

    fig.suptitle(
        f"{result.deconvolution.method}: weights follow "
        f"'{result.interpretation.verdict}'",
        fontsize=12,
    )
    fig.tight_layout()

    if output_path is not None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=min(dpi, 300), bbox_inches="tight")
        logger.info(f"Saved comparison figure to {output_path}")

    return fig
