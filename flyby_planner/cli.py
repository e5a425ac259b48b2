"""
Command line interface.

    python -m flyby_planner sequences Kerbin Jool --max-swing-bys 2
    python -m flyby_planner search Kerbin-Eve-Jool --start-day 0 --window-days 200 --plot out/kej

Ctrl-C stops the running computation at its next checkpoint.
"""
from __future__ import annotations

import argparse
import contextlib
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from tqdm import tqdm

from flyby_planner.bodies import BodyCatalog, kerbol_system, load_bodies_data
from flyby_planner.config import PlannerConfig, SequenceParameters, load_config
from flyby_planner.constants import DAY
from flyby_planner.planner import Planner, SequencePlanner, TrajectoryPlanner
from flyby_planner.results import Cancelled, Failed, Ok
from flyby_planner.sequences.sequence import FlybySequence
from flyby_planner.trajectory.steps import maneuvre_details
from flyby_planner.workers.worker import BACKENDS


class _ProgressBar:
    """tqdm bar driven by progress fractions."""

    def __init__(self, desc: str, enabled: bool = True) -> None:
        self.bar = tqdm(total=100, desc=desc, unit="%", disable=not enabled,
                        bar_format="{l_bar}{bar}| {n:.0f}/{total}% [{elapsed}<{remaining}{postfix}]")

    def __call__(self, fraction: float, data=None) -> None:
        self.bar.n = round(100.0 * fraction, 1)
        if isinstance(data, int):
            self.bar.set_postfix(found=data, refresh=False)
        elif data is not None and hasattr(data, "best_delta_v"):
            self.bar.set_postfix(best=f"{data.best_delta_v:.1f} m/s", refresh=False)
        self.bar.refresh()

    def close(self) -> None:
        self.bar.close()


@contextlib.contextmanager
def _stop_on_interrupt(planner: Planner):
    previous = signal.signal(signal.SIGINT, lambda signum, frame: planner.stop())
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _body_id(text: str, catalog: BodyCatalog) -> int:
    return int(text) if text.isdigit() else catalog.by_name(text).id


def _report_failure(outcome) -> int:
    match outcome:
        case Cancelled():
            print("Stopped.")
            return 130
        case Failed(reason=reason):
            print(f"Failed: {reason}", file=sys.stderr)
            return 1
    return 0


def run_sequences(args: argparse.Namespace, config: PlannerConfig, catalog: BodyCatalog) -> int:
    params = SequenceParameters(
        departure_id=_body_id(args.origin or config.defaults.origin, catalog),
        destination_id=_body_id(args.destination or config.defaults.destination, catalog),
        max_swing_bys=args.max_swing_bys,
        max_resonant=args.max_resonant,
        max_back_legs=args.max_back_legs,
        max_back_spacing=args.max_back_spacing,
    )
    progress = _ProgressBar("Sequences", enabled=not args.no_progress)
    with SequencePlanner(config, catalog, backend=args.backend) as planner, _stop_on_interrupt(planner):
        try:
            outcome = planner.generate(params, on_progress=progress,
                                       on_debug=lambda stats: logging.getLogger(__name__).info("%s", stats))
        finally:
            progress.close()

    match outcome:
        case Ok(value=sequences):
            print(f"\n{len(sequences)} sequences")
            for rank, sequence in enumerate(sequences[:args.top], start=1):
                print(f"{rank:3d}. {sequence!s:50s} score {sequence.score:10.1f} m/s  "
                      f"swing-bys {sequence.swing_bys}  back legs {sequence.back_legs}")
            return 0
    return _report_failure(outcome)


def run_search(args: argparse.Namespace, config: PlannerConfig, catalog: BodyCatalog) -> int:
    sequence = FlybySequence.parse(args.sequence, catalog)
    start = args.start_day * DAY
    end = start + args.window_days * DAY
    altitude = config.defaults.altitude if args.altitude is None else args.altitude

    with TrajectoryPlanner(config, catalog, backend=args.backend) as planner, _stop_on_interrupt(planner):
        progress = _ProgressBar(str(sequence), enabled=not args.no_progress)
        try:
            outcome = planner.search(sequence, start, end, altitude, on_progress=progress, seed=args.seed)
        finally:
            progress.close()
        for _ in range(args.extend):
            if not isinstance(outcome, Ok):
                break
            progress = _ProgressBar("Continuing", enabled=not args.no_progress)
            try:
                outcome = planner.continue_search(on_progress=progress)
            finally:
                progress.close()

    match outcome:
        case Ok(value=result):
            print(f"\n{sequence}: total delta-V {result.total_delta_v:.1f} m/s "
                  f"after {result.generations} generations")
            print(f"{'burn':16s} {'day':>10s} {'elapsed':>10s} {'prograde':>10s} {'normal':>10s} "
                  f"{'radial':>10s} {'total':>10s}")
            for burn in maneuvre_details(result.steps):
                print(f"{burn.kind:16s} {burn.date / DAY:10.2f} {burn.mission_elapsed / DAY:10.2f} "
                      f"{burn.prograde:10.1f} {burn.normal:10.1f} {burn.radial:10.1f} {burn.magnitude:10.1f}")
            if args.plot:
                _save_plots(args.plot, result, catalog)
            return 0
    return _report_failure(outcome)


def _save_plots(prefix: str, result, catalog: BodyCatalog) -> None:
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    from flyby_planner.plotting import plot_evolution, plot_trajectory

    prefix = Path(prefix)
    prefix.parent.mkdir(parents=True, exist_ok=True)
    fig, _ = plot_evolution(result.history, save_path=f"{prefix}_evolution.png")
    plt.close(fig)
    fig, _ = plot_trajectory(result.steps, catalog, save_path=f"{prefix}_trajectory.png")
    plt.close(fig)
    print(f"Plots written to {prefix}_evolution.png and {prefix}_trajectory.png")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="flyby_planner", description="Multi-flyby trajectory planner.")
    parser.add_argument("--config", default=None, help="JSON configuration file (camelCase option names).")
    parser.add_argument("--bodies", default=None, help="CSV body catalog (defaults to the bundled Kerbol system).")
    parser.add_argument("--backend", choices=BACKENDS, default="process", help="Worker backend.")
    parser.add_argument("--no-progress", action="store_true", help="Hide progress bars.")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v for info logging, -vv for debug.")
    sub = parser.add_subparsers(dest="command", required=True)

    seq = sub.add_parser("sequences", help="Generate and rank flyby sequences.")
    seq.add_argument("origin", nargs="?", default=None, help="Origin body name or id.")
    seq.add_argument("destination", nargs="?", default=None, help="Destination body name or id.")
    seq.add_argument("--max-swing-bys", type=int, default=2, help="Maximum number of intermediate bodies.")
    seq.add_argument("--max-resonant", type=int, default=1, help="Maximum consecutive repeats at one body.")
    seq.add_argument("--max-back-legs", type=int, default=1, help="Maximum number of back legs.")
    seq.add_argument("--max-back-spacing", type=int, default=1, help="Maximum legs between back legs.")
    seq.add_argument("--top", type=int, default=20, help="Number of sequences to print.")

    search = sub.add_parser("search", help="Search the cheapest trajectory along a sequence.")
    search.add_argument("sequence", help="Bodies from origin to destination, e.g. 'Kerbin-Eve-Jool' or '4,2,10'.")
    search.add_argument("--start-day", type=float, default=0.0, help="Departure window start (days).")
    search.add_argument("--window-days", type=float, default=100.0, help="Departure window length (days).")
    search.add_argument("--altitude", type=float, default=None, help="Parking orbit altitude (m).")
    search.add_argument("--seed", type=int, default=None, help="Random seed.")
    search.add_argument("--extend", type=int, default=0,
                        help="Number of times to continue the search by maxGenerations more generations.")
    search.add_argument("--plot", default=None, help="Save evolution and trajectory plots with this path prefix.")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    level = logging.WARNING if args.verbose == 0 else logging.INFO if args.verbose == 1 else logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config = load_config(args.config) if args.config else PlannerConfig()
    catalog = load_bodies_data(Path(args.bodies)) if args.bodies else kerbol_system

    if args.command == "sequences":
        return run_sequences(args, config, catalog)
    return run_search(args, config, catalog)
