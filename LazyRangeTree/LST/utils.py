import numpy as np


def next_pow2(n):
    """ Smallest power of two >= n (n >= 1). """
    return 1 << (n - 1).bit_length()


def tree_size(n):
    # complete binary tree over next_pow2(n) leaves
    if n < 1:
        raise ValueError("A tree needs at least one value, got n={0}".format(n))
    return 2 * next_pow2(n) - 1


def overlap_length(a, b, l, r):
    """
    Number of indices shared by the inclusive ranges ``[a, b]`` and ``[l, r]``.

    :returns int: 0 if the ranges are disjoint.
    """
    return max(0, min(b, r) - max(a, l) + 1)


def bruteforce_update(values, start, end, delta):
    # clamp like the tree does: the part outside the array is ignored
    start = max(start, 0)
    end = min(end, len(values) - 1)
    if start <= end:
        values[start:end + 1] += delta
    return values


def bruteforce_sum(values, start, end):
    if start < 0 or end > len(values) - 1 or start > end:
        return 0
    return np.sum(values[start:end + 1]).item()
