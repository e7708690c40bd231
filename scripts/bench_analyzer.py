#!/usr/bin/env python3
"""
Echo Bench log analysis and visualization
"""
import argparse
import datetime
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.gridspec import GridSpec

from scripts.log_manager import BenchLogManager

COLORS = ["#1f77b4", "#ff7f0e", "#2ca02c", "#d62728", "#17becf", "#9467bd"]


class BenchAnalyzer:
    def __init__(self, log_dir="logs", dpi=150):
        self.log_dir = Path(log_dir)
        self.manager = BenchLogManager(str(self.log_dir))
        self.dpi = dpi
        self.data = None

    def get_run_dir(self, run_id=None):
        """Run directory for `run_id` (relative to the log dir) or the latest run"""
        if run_id:
            run_dir = self.log_dir / run_id
            return run_dir if run_dir.exists() else None
        return self.manager.latest_run()

    def get_log_files(self, run_dir):
        return sorted(run_dir.glob("worker_*.csv"))

    def get_log_info(self, run_dir):
        info = {}
        for path in self.get_log_files(run_dir):
            stat = path.stat()
            with open(path, 'r') as f:
                lines = sum(1 for _ in f) - 1  # header
            info[path.stem] = {
                'path': str(path),
                'size_kb': stat.st_size / 1024,
                'modified': datetime.datetime.fromtimestamp(stat.st_mtime),
                'lines': lines,
            }
        return info

    def load_exchange_data(self, run_dir):
        """Load every worker CSV of a run into one frame with a 'worker' column"""
        files = self.get_log_files(run_dir)
        if not files:
            raise FileNotFoundError(f"no worker_*.csv in {run_dir}")

        frames = []
        for path in files:
            frame = pd.read_csv(path)
            frame['worker'] = path.stem[len("worker_"):]
            frames.append(frame)

        self.data = pd.concat(frames, ignore_index=True)
        print(f"Loaded {len(self.data)} exchanges from {len(files)} workers")
        return self.data

    def summarize(self, data=None):
        """Per worker/peer RTT and throughput statistics"""
        data = self.data if data is None else data
        grouped = data.groupby(['worker', 'peer'])
        summary = grouped.agg(
            exchanges=('rtt_ms', 'count'),
            bytes=('size', 'sum'),
            rtt_mean=('rtt_ms', 'mean'),
            rtt_std=('rtt_ms', lambda s: float(np.std(s))),
            rtt_p95=('rtt_ms', lambda s: float(np.percentile(s, 95))),
            throughput_mean=('throughput_mb_s', 'mean'),
        )
        return summary.reset_index()

    def create_dashboard(self, data=None):
        """RTT, throughput and totals for one run"""
        data = self.data if data is None else data

        fig = plt.figure(figsize=(14, 9))
        gs = GridSpec(2, 2, figure=fig, hspace=0.35, wspace=0.3)
        fig.suptitle('Echo Bench Run Analysis', fontsize=16, fontweight='bold')

        pairs = list(data.groupby(['worker', 'peer']))

        # 1. RTT per exchange
        ax1 = fig.add_subplot(gs[0, :])
        for i, ((worker, peer), frame) in enumerate(pairs):
            ax1.plot(frame['round'].values, frame['rtt_ms'].values, marker='o',
                     color=COLORS[i % len(COLORS)], label=f"{worker} -> {peer}")
        ax1.set_xlabel('Round')
        ax1.set_ylabel('RTT [ms]')
        ax1.set_title('Round Trip Time', fontweight='bold')
        ax1.legend()
        ax1.grid(True, alpha=0.3)

        # 2. Throughput distribution
        ax2 = fig.add_subplot(gs[1, 0])
        ax2.hist(data['throughput_mb_s'].values, bins=20, alpha=0.7,
                 color=COLORS[2], edgecolor='black')
        ax2.set_xlabel('Throughput [MB/s]')
        ax2.set_ylabel('Exchanges')
        ax2.set_title('Throughput Distribution', fontweight='bold')
        ax2.grid(True, alpha=0.3)

        # 3. Summary
        ax3 = fig.add_subplot(gs[1, 1])
        ax3.axis('off')
        rtt = data['rtt_ms'].values
        total_mb = data['size'].sum() / (1024 * 1024)
        metrics = [
            f"Exchanges: {len(data)}",
            f"Payload volume: {total_mb:.1f} MB",
            f"RTT: {np.mean(rtt):.2f}±{np.std(rtt):.2f} ms",
            f"RTT P95: {np.percentile(rtt, 95):.2f} ms",
            f"Throughput: {data['throughput_mb_s'].mean():.1f} MB/s",
        ]
        for i, metric in enumerate(metrics):
            ax3.text(0.05, 0.9 - i * 0.15, metric, transform=ax3.transAxes,
                     fontsize=11, verticalalignment='top')
        ax3.set_title('Summary', fontweight='bold')

        return fig

    def generate_visualizations(self, run_id=None):
        run_dir = self.get_run_dir(run_id)
        if run_dir is None:
            print("No run directory found")
            return []

        self.load_exchange_data(run_dir)
        fig = self.create_dashboard()
        filename = run_dir / 'bench_dashboard.png'
        fig.savefig(str(filename), dpi=self.dpi, bbox_inches='tight')
        plt.close(fig)

        print(f"Generated: {filename}")
        return [str(filename)]

    def print_log_status(self, run_id=None):
        run_dir = self.get_run_dir(run_id)
        print("\n" + "=" * 60)
        print("ECHO BENCH LOG STATUS")
        print("=" * 60)
        if run_dir is None:
            print("No run directory found")
            return

        print(f"Run: {run_dir}")
        for name, details in self.get_log_info(run_dir).items():
            print(f"\n{name}:")
            print(f"  File: {details['path']}")
            print(f"  Size: {details['size_kb']:.1f} KB")
            print(f"  Exchanges: {details['lines']}")
            print(f"  Modified: {details['modified'].strftime('%Y-%m-%d %H:%M:%S')}")
        print("=" * 60)


def main():
    parser = argparse.ArgumentParser(
        description='Echo Bench log analysis',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s status                              - Show latest run logs
  %(prog)s summary                             - Print per-peer statistics
  %(prog)s visualize --run-id 2026-10-17/101500_bench - Plot a specific run
        """
    )
    parser.add_argument('--log-dir', default='logs', help='Base log directory')
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    for name, help_text in (('status', 'Show log status'),
                            ('summary', 'Print per worker/peer statistics'),
                            ('visualize', 'Generate the run dashboard')):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument('--run-id', help='Run directory relative to the log dir')

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    analyzer = BenchAnalyzer(args.log_dir)

    if args.command == 'status':
        analyzer.print_log_status(args.run_id)
    elif args.command == 'summary':
        run_dir = analyzer.get_run_dir(args.run_id)
        if run_dir is None:
            print("No run directory found")
            return
        analyzer.load_exchange_data(run_dir)
        print(analyzer.summarize().to_string(index=False))
    elif args.command == 'visualize':
        analyzer.generate_visualizations(args.run_id)


if __name__ == "__main__":
    main()
