import argparse
import random
import numpy as np
import pandas as pd
from tqdm import tqdm

from .LazyRangeTree import LazyRangeTree
from .utils import bruteforce_sum, bruteforce_update


def run_demo(n=100000):
    """
    Builds a tree over ``n`` zeros, then alternates range updates and range sums
    on ``[1000, 7500]``, printing each sum.

    :param int n: (default=100000)
        Size of the array. Must be larger than 7500.

    :returns list:
        The three sums printed.
    """
    arr = np.zeros(n, dtype=np.int64)
    tree = LazyRangeTree(arr)
    sums = []

    sums.append(tree.query_sum(1000, 7500))
    print("Sum of values in range [1000-7500] ", sums[-1])

    # Add 100 to all elements at indexes 1000 to 7500
    tree.update_range(1000, 7500, 100)
    sums.append(tree.query_sum(1000, 7500))
    print("Sum of values in range [1000-7500] ", sums[-1])

    # Add 1000 to all elements at indexes 1000 to 2000
    tree.update_range(1000, 2000, 1000)
    sums.append(tree.query_sum(1000, 7500))
    print("Sum of values in range [1000-7500] ", sums[-1])

    return sums


def stress_check(n=1000, n_ops=2000, seed=0, max_delta=100, progress=True):
    """
    Runs random range updates and range sums on a tree and on a plain numpy mirror.

    :param int n: (default=1000)
        Size of the array.

    :param int n_ops: (default=2000)
        Number of random operations (half updates, half queries on average).

    :param int seed: (default=0)
        Seed for ``random`` and ``numpy.random``.

    :param int max_delta: (default=100)
        Updates draw their delta uniformly in ``[-max_delta, max_delta]``.

    :param bool progress: (default=True)
        Whether to display a tqdm progress bar.

    :returns pd.DataFrame:
        One row per operation with columns ``op, start, end, delta, expected, found``.
        For updates, ``expected`` and ``found`` are the sum of the updated range after the update.
    """
    random.seed(seed)
    np.random.seed(seed)
    mirror = np.random.randint(-max_delta, max_delta + 1, size=n).astype(np.int64)
    tree = LazyRangeTree(mirror)

    log = []
    for _ in tqdm(range(n_ops), disable=not(progress)):
        start = random.randint(0, n - 1)
        end = random.randint(start, n - 1)
        if random.random() < 0.5:
            delta = random.randint(-max_delta, max_delta)
            tree.update_range(start, end, delta)
            bruteforce_update(mirror, start, end, delta)
            log.append(('update', start, end, delta))
        else:
            log.append(('query', start, end, 0))
        expected = bruteforce_sum(mirror, start, end)
        found = tree.query_sum(start, end)
        log[-1] = log[-1] + (expected, found)

    return pd.DataFrame(log, columns=['op', 'start', 'end', 'delta', 'expected', 'found'])


def main(argv=None):
    parser = argparse.ArgumentParser(description="Lazy segment tree demonstration")
    parser.add_argument('--n', type=int, default=100000, help="size of the array (> 7500)")
    parser.add_argument('--stress', type=int, default=0, help="number of random operations to check against numpy")
    parser.add_argument('--seed', type=int, default=0)
    args = parser.parse_args(argv)
    if args.n <= 7500:
        parser.error("--n must be larger than 7500, the demo queries [1000, 7500]")

    run_demo(args.n)
    if args.stress > 0:
        df = stress_check(n=args.n, n_ops=args.stress, seed=args.seed)
        mismatches = df[df['expected'] != df['found']]
        print(f'{len(df)} operations checked, {len(mismatches)} mismatches')
        if len(mismatches) > 0:
            print(mismatches.to_string())
            return 1
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
