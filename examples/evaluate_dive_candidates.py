"""
Example: Evaluating diving candidates with preprocessing.

This example demonstrates how a diving heuristic uses OpenDW:
1. Build a cutting-stock-like Dantzig-Wolfe reformulation
2. Add a pool of random feasible cutting patterns as columns
3. For each column, fix it to 1 and preprocess inside a manager algorithm
4. Report which candidates are infeasible and how many columns each
   candidate forbids; every trial is undone before the next one

Usage:
    python examples/evaluate_dive_candidates.py [--items N] [--columns N] [--seed S] [--verbose]
"""

import argparse
import time

import numpy as np

from opendw import (
    AbstractManagerAlgorithm,
    ConstrDuty,
    ConstrSense,
    PreprocessAlgorithm,
    PreprocessingUnitPair,
    ReformData,
    Reformulation,
    VarKind,
    configure_logging,
    initialize_storage_units,
)


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Evaluate diving candidates of a cutting stock reformulation"
    )
    parser.add_argument("--items", type=int, default=6, help="Number of item types (default: 6)")
    parser.add_argument("--columns", type=int, default=15, help="Number of patterns (default: 15)")
    parser.add_argument("--roll-width", type=int, default=100, help="Roll width (default: 100)")
    parser.add_argument("--rolls", type=int, default=10, help="Rolls available (default: 10)")
    parser.add_argument("--seed", type=int, default=0, help="Random seed (default: 0)")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    return parser.parse_args()


def build_reformulation(rng, num_items, roll_width, num_rolls):
    """
    One pricing subproblem (a knapsack over the roll) used up to `num_rolls` times.

    Returns:
        (reformulation, subproblem, pricing variables, item widths)
    """
    widths = rng.integers(roll_width // 10, roll_width // 2, size=num_items)
    demands = rng.integers(1, 2 * num_rolls, size=num_items)

    reform = Reformulation(name="cutting_stock")
    sp = reform.add_dw_pricing_sp(lb_mult=0, ub_mult=num_rolls, name="roll")

    sp_vars, clones = [], []
    for i, width in enumerate(widths):
        x, x_clone = reform.add_pricing_var(
            sp, f"cut_{i}", lb=0.0, ub=float(roll_width // width),
            kind=VarKind.INTEGER,
        )
        sp_vars.append(x)
        clones.append(x_clone)

    sp.add_constr(
        "knapsack", ConstrDuty.DW_SP_PURE_CONSTR, ConstrSense.LESS, float(roll_width),
        members={x: float(w) for x, w in zip(sp_vars, widths)},
    )
    for i, (x_clone, demand) in enumerate(zip(clones, demands)):
        reform.master.add_constr(
            f"demand_{i}", ConstrDuty.MASTER_MIXED_CONSTR, ConstrSense.GREATER,
            float(demand), members={x_clone: 1.0},
        )
    return reform, sp, sp_vars, widths


def random_pattern(rng, widths, roll_width):
    """Greedy random pattern: add random items while they fit."""
    counts = np.zeros(len(widths), dtype=int)
    remaining = roll_width
    for i in rng.permutation(len(widths)):
        fit = remaining // widths[i]
        if fit > 0:
            counts[i] = rng.integers(0, fit + 1)
            remaining -= counts[i] * widths[i]
    return counts


class CandidateEvaluation(AbstractManagerAlgorithm):
    """Preprocesses once per candidate column, restoring the model in between."""

    def __init__(self, preprocess_algo, candidates):
        self.preprocess_algo = preprocess_algo
        self.candidates = candidates

    def get_child_algorithms(self, model):
        return [(self.preprocess_algo, model)]

    def run(self, data, input=None):
        unit = data.master_data.get_unit(PreprocessingUnitPair)
        results = []
        for col in self.candidates:
            unit.add_to_local_partial_sol(col, 1.0)
            output = self.run_child(self.preprocess_algo, data, data.model)
            unit.empty_local_solution()
            results.append((col, output))
        return results


def main():
    args = parse_args()
    if args.verbose:
        configure_logging("INFO")

    rng = np.random.default_rng(args.seed)
    reform, sp, sp_vars, widths = build_reformulation(
        rng, args.items, args.roll_width, args.rolls
    )
    columns = []
    for j in range(args.columns):
        counts = random_pattern(rng, widths, args.roll_width)
        solution = {x: float(c) for x, c in zip(sp_vars, counts) if c > 0}
        columns.append(reform.add_column(sp, solution, cost=1.0, name=f"pattern_{j}"))

    print("=" * 60)
    print("Diving candidate evaluation")
    print("=" * 60)
    print(reform.master.summary())
    print()

    evaluation = CandidateEvaluation(PreprocessAlgorithm(), columns)
    data = ReformData(reform)
    initialize_storage_units(data, evaluation)

    start = time.time()
    results = evaluation.run(data)
    elapsed = time.time() - start

    print(f"{'Column':<14}{'Status':<14}{'Pops':>6}{'Changes':>9}{'Forbidden':>11}")
    print("-" * 54)
    for col, output in results:
        print(
            f"{col.name:<14}{output.status.name:<14}{output.num_pops:>6}"
            f"{output.num_bound_changes:>9}{len(output.forbidden_columns):>11}"
        )
    print("-" * 54)
    num_infeasible = sum(1 for _, output in results if output.infeasible)
    print(f"Infeasible candidates: {num_infeasible}/{len(results)}")
    print(f"Time: {elapsed:.3f}s")


if __name__ == "__main__":
    main()
