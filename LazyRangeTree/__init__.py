from .LST.LazyRangeTree import LazyRangeTree, InvalidRangeWarning
