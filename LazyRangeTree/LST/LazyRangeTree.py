import logging
import warnings
import numpy as np
from .utils import tree_size

logger = logging.getLogger(__name__)

available_settings = {}

# Dtypes accepted for the tree and lazy buffers
# (no int32: numpy 2 raises OverflowError when a scaled delta does not fit)
available_settings['dtype'] = [np.int64, np.float32, np.float64]


class InvalidRangeWarning(UserWarning):
    """ Emitted when a range outside ``[0, N-1]`` (or with start > end) is rejected. """


class LazyRangeTree(object):
    """
    A segment tree with lazy propagation, for range additions and range sums.

    Adding a constant to a contiguous range is O(log n).
    Computing the sum of a contiguous range is O(log n).

    The tree is stored in two flat buffers indexed like a heap (children of
    node ``i`` are ``2*i+1`` and ``2*i+2``), sized for a complete binary tree
    whose leaf count is the next power of two >= n. The range covered by a
    node is never stored, it is derived from the recursion parameters.

    :param array-like or None values: (default=None)
        Initial values. If provided, :meth:`build` is called right away.

    :param numpy.dtype dtype: (default=np.int64)
        Dtype of the ``tree`` and ``lazy`` buffers.

    :param bool strict_updates: (default=False)
        If True, :meth:`update_range` rejects ranges outside ``[0, n-1]`` with an
        :class:`InvalidRangeWarning` instead of silently ignoring the part of
        the range lying outside the array.

    .. rubric:: Attributes

    :ivar np.ndarray tree:
        Aggregated sums, one entry per node.

    :ivar np.ndarray lazy:
        Pending per-element deltas already counted in the node itself but not
        yet forwarded to its children.

    .. rubric:: Notes

    - :meth:`query_sum` is not a read-only operation: it pushes pending deltas
      down the visited path. Calls from several threads must be serialized by
      the caller.
    """
    def __init__(self, values=None, dtype=np.int64, strict_updates=False):
        if not(np.dtype(dtype) in [np.dtype(d) for d in available_settings['dtype']]):
            raise ValueError("Unsupported dtype {0}, choose among {1}".format(dtype, available_settings['dtype']))
        self.dtype = np.dtype(dtype)
        self.strict_updates = strict_updates
        self._n = 0
        self.tree = None
        self.lazy = None
        if not(values is None):
            self.build(values)

    def __len__(self):
        return self._n

    def build(self, values):
        """
        Allocates the buffers and builds the tree from ``values`` in O(n).

        Calling it again on an existing tree discards its content.

        :param array-like values:
            The n >= 1 initial values.

        :raises ValueError: If ``values`` is empty.
        """
        arr = np.asarray(values, dtype=self.dtype)
        if arr.ndim != 1 or arr.shape[0] == 0:
            raise ValueError("Cannot build a tree from an empty or multi-dimensional array")
        self._n = arr.shape[0]
        max_tree_size = tree_size(self._n)
        self.tree = np.zeros(max_tree_size, dtype=self.dtype)
        self.lazy = np.zeros(max_tree_size, dtype=self.dtype)
        self._build(arr, 0, self._n - 1, 0)
        logger.debug("Built tree over %d values (%d nodes)", self._n, max_tree_size)

    def _build(self, arr, current_start, current_end, node):
        if current_start > current_end:
            return

        # leaf
        if current_start == current_end:
            self.tree[node] = arr[current_start]
            return

        mid = (current_start + current_end) // 2
        self._build(arr, current_start, mid, 2 * node + 1)
        self._build(arr, mid + 1, current_end, 2 * node + 2)

        self.tree[node] = self.tree[2 * node + 1] + self.tree[2 * node + 2]

    def _push_down(self, node, current_start, current_end):
        """ Folds the pending delta of ``node`` into its sum and hands it to its children. """
        delta = self.lazy[node]
        if delta != 0:
            self.tree[node] += (current_end - current_start + 1) * delta
            if current_start != current_end:
                # accumulate, children may already hold a pending delta
                self.lazy[2 * node + 1] += delta
                self.lazy[2 * node + 2] += delta
            self.lazy[node] = 0

    def update_range(self, start, end, delta):
        """
        Adds ``delta`` to every element with index in ``[start, end]``.

        Parts of the range lying outside ``[0, n-1]`` are ignored, unless the
        tree was created with ``strict_updates=True``, in which case the whole
        update is rejected with an :class:`InvalidRangeWarning`.

        :param int start: First index of the range (inclusive).
        :param int end: Last index of the range (inclusive).
        :param delta: Value added to each element of the range.

        :raises TypeError: If the tree holds integers and ``delta`` is not an integer.
        """
        self._check_built()
        start, end = _as_index(start), _as_index(end)
        delta = self._as_delta(delta)
        if self.strict_updates and not(self._valid_range(start, end)):
            self._reject('update_range', start, end)
            return
        self._update_range(0, 0, self._n - 1, start, end, delta)

    def _update_range(self, node, current_start, current_end, start, end, delta):
        self._push_down(node, current_start, current_end)

        # disjoint
        if current_start > current_end or current_start > end or current_end < start:
            return

        # fully contained
        if current_start >= start and current_end <= end:
            self.tree[node] += (current_end - current_start + 1) * delta
            if current_start != current_end:
                self.lazy[2 * node + 1] += delta
                self.lazy[2 * node + 2] += delta
            return

        mid = (current_start + current_end) // 2
        self._update_range(2 * node + 1, current_start, mid, start, end, delta)
        self._update_range(2 * node + 2, mid + 1, current_end, start, end, delta)

        self.tree[node] = self.tree[2 * node + 1] + self.tree[2 * node + 2]

    def query_sum(self, start, end):
        """
        Returns the sum of the elements with index in ``[start, end]``.

        The traversal pushes pending deltas down the visited nodes, so this
        method writes to the buffers even though the logical content of the
        array is left unchanged.

        :param int start: First index of the range (inclusive).
        :param int end: Last index of the range (inclusive).

        :returns:
            The sum as a Python scalar, or ``0`` when the range is not within
            ``[0, n-1]`` or ``start > end``. In the latter case an
            :class:`InvalidRangeWarning` is emitted.
        """
        self._check_built()
        start, end = _as_index(start), _as_index(end)
        if not(self._valid_range(start, end)):
            self._reject('query_sum', start, end)
            return 0
        return self._query_sum(0, 0, self._n - 1, start, end).item()

    def _query_sum(self, node, current_start, current_end, start, end):
        self._push_down(node, current_start, current_end)

        if current_start > current_end or current_start > end or current_end < start:
            return self.dtype.type(0)

        if current_start >= start and current_end <= end:
            return self.tree[node]

        mid = (current_start + current_end) // 2
        return (self._query_sum(2 * node + 1, current_start, mid, start, end) +
                self._query_sum(2 * node + 2, mid + 1, current_end, start, end))

    def add(self, idx, k):
        """ Point update: shorthand for ``update_range(idx, idx, k)`` with a bounds check. """
        self._check_built()
        idx = _as_index(idx)
        if idx < 0 or idx >= self._n:
            raise IndexError("Index {0} out of range for a tree of size {1}".format(idx, self._n))
        self.update_range(idx, idx, k)

    def __getitem__(self, idx):
        self._check_built()
        idx = _as_index(idx)
        if idx < 0 or idx >= self._n:
            raise IndexError("Index {0} out of range for a tree of size {1}".format(idx, self._n))
        return self.query_sum(idx, idx)

    def __setitem__(self, idx, value):
        # Goes through __getitem__, prefer add when the increment is known.
        self.add(idx, value - self[idx])

    def values(self):
        """ Retrieves all current values in O(n), flushing every pending delta to the leaves. """
        self._check_built()
        out = np.zeros(self._n, dtype=self.dtype)
        self._collect(0, 0, self._n - 1, out)
        return out

    def _collect(self, node, current_start, current_end, out):
        self._push_down(node, current_start, current_end)
        if current_start > current_end:
            return
        if current_start == current_end:
            out[current_start] = self.tree[node]
            return
        mid = (current_start + current_end) // 2
        self._collect(2 * node + 1, current_start, mid, out)
        self._collect(2 * node + 2, mid + 1, current_end, out)

    def check_correctness(self, reference):
        """
        Compares every node aggregate with the sum of ``reference`` over the node range.

        All pending deltas are flushed first, so after the call every node
        holds its exact sum.

        :param array-like reference:
            The expected current values, of length n.

        :returns list:
            Tuples ``(node, start, end, expected, found)``, one per mismatching
            node. An empty list means the tree is consistent with ``reference``.
        """
        self._check_built()
        reference = np.asarray(reference)
        if reference.shape != (self._n,):
            raise ValueError("Reference must have shape ({0},), got {1}".format(self._n, reference.shape))
        self.values()
        prefix = np.concatenate((np.array([0], dtype=reference.dtype), np.cumsum(reference)))
        errors = []
        stack = [(0, 0, self._n - 1)]
        while stack:
            node, current_start, current_end = stack.pop()
            expected = prefix[current_end + 1] - prefix[current_start]
            found = self.tree[node]
            if abs(found - expected) >= 1e-4:
                errors.append((node, current_start, current_end, expected, found))
            if current_start != current_end:
                mid = (current_start + current_end) // 2
                stack.append((2 * node + 1, current_start, mid))
                stack.append((2 * node + 2, mid + 1, current_end))
        return errors

    def __eq__(self, other):
        return (isinstance(other, LazyRangeTree) and self._n == other._n and
                (self._n == 0 or np.array_equal(self.values(), other.values())))

    def _valid_range(self, start, end):
        return 0 <= start <= end <= self._n - 1

    def _reject(self, operation, start, end):
        # logged on every call, the warning below may be filtered after the first one
        logger.warning("%s: invalid range [%d, %d] for a tree of size %d", operation, start, end, self._n)
        warnings.warn("{0}: invalid range [{1}, {2}] for a tree of size {3}".format(operation, start, end, self._n),
                      InvalidRangeWarning, stacklevel=3)

    def _as_delta(self, delta):
        # an integer buffer would truncate len*delta and delta differently
        if self.dtype.kind == 'i':
            if isinstance(delta, (bool, np.bool_)) or not(isinstance(delta, (int, np.integer))):
                raise TypeError("Delta must be an integer for a {0} tree, got {1}".format(self.dtype, type(delta).__name__))
            return int(delta)
        if isinstance(delta, (bool, np.bool_)) or not(isinstance(delta, (int, float, np.integer, np.floating))):
            raise TypeError("Delta must be a real number, got {0}".format(type(delta).__name__))
        return float(delta)

    def _check_built(self):
        if self.tree is None:
            raise RuntimeError("The tree has not been built, call build(values) first")


def _as_index(idx):
    if isinstance(idx, (bool, np.bool_)) or not(isinstance(idx, (int, np.integer))):
        raise TypeError("Indices must be integers, got {0}".format(type(idx).__name__))
    return int(idx)
