"""
Utility script to plot GEMM benchmark results from CSV.
Usage: python -m parallel_gemm.bench.plot_results [results/gemm_results.csv]
"""

import sys
from pathlib import Path

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd

KERNEL_STYLES = {
    'naive': ('Naive', 'o'),
    'numpy': ('NumPy', 's'),
    'parallel': ('Blocked parallel', '^'),
}


def plot_gemm_results(csv_path, plots_dir=None):
    """Plot latency and throughput per kernel. Returns the saved PNG path, or None."""
    csv_path = Path(csv_path)
    if not csv_path.exists():
        print(f"Results file not found: {csv_path}")
        return None

    df = pd.read_csv(csv_path)
    plots_dir = Path(plots_dir) if plots_dir else csv_path.parent / "plots"
    plots_dir.mkdir(parents=True, exist_ok=True)

    fig, axes = plt.subplots(1, 2, figsize=(14, 5))

    for kernel, (label, marker) in KERNEL_STYLES.items():
        data = df[df['kernel'] == kernel]
        if data.empty:
            continue
        axes[0].semilogy(data['M'], data['latency_ms'], '-', label=label, marker=marker)
        axes[1].plot(data['M'], data['throughput_gflops'], '-', label=label, marker=marker)

    axes[0].set_xlabel('Matrix Dimension (M)')
    axes[0].set_ylabel('Latency (ms)')
    axes[0].set_title('GEMM Latency Comparison')
    axes[1].set_xlabel('Matrix Dimension (M)')
    axes[1].set_ylabel('Throughput (GFLOPS)')
    axes[1].set_title('GEMM Throughput Comparison')
    for ax in axes:
        ax.legend()
        ax.grid(True, alpha=0.3)

    plt.tight_layout()
    out_path = plots_dir / "gemm_results.png"
    plt.savefig(out_path, dpi=150)
    print(f"Saved plot: {out_path}")
    plt.close(fig)
    return out_path


if __name__ == "__main__":
    csv = sys.argv[1] if len(sys.argv) > 1 else Path("results") / "gemm_results.csv"
    plot_gemm_results(csv)
