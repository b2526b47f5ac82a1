import codecs
from typing import Set


def contains_at_most_one_of(values_to_restrict: Set):
    """
    Generates a validator that refuses a value containing more than one of the specified keys.
    Having none of them is allowed, the caller picks the default.
    """
    def at_most_one_of(field, value, error):
        found_objects = values_to_restrict.intersection(value.keys())
        if len(found_objects) > 1:
            error(field, f"More than one value is present: {sorted(found_objects)}")
    return at_most_one_of


def is_known_charset(field, value, error):
    try:
        codecs.lookup(value)
    except LookupError:
        error(field, f"Unknown charset: {value}")
