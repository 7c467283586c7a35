from .LazyRangeTree import LazyRangeTree, InvalidRangeWarning, available_settings
