"""
Tracking options and their context-local defaults.

Default options are held in a ContextVar so a scope can change how nested
objects are wrapped without threading options through every call:

    with tracking_options(make_collection_properties_trackable=False):
        view = wrap(order)   # collections stay plain lists

Explicit options passed to wrap() always win over the defaults.
"""

import contextvars
import dataclasses
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackingOptions:
    """Options recognized by wrap().

    Attributes:
        make_complex_properties_trackable: Recurse into complex-valued properties
            (nested objects) and relay their changes to the holding property.
        make_collection_properties_trackable: Adapt list-valued properties so
            insertion/removal is intercepted and elements are tracked.
    """
    make_complex_properties_trackable: bool = True
    make_collection_properties_trackable: bool = True


# Current default options for wrap() calls that don't pass explicit options
_default_options: contextvars.ContextVar[TrackingOptions] = contextvars.ContextVar(
    'changetracking_default_options', default=TrackingOptions()
)


def get_default_options() -> TrackingOptions:
    """Get the TrackingOptions used when wrap() receives none."""
    return _default_options.get()


def set_default_options(options: TrackingOptions) -> contextvars.Token:
    """Replace the default TrackingOptions for the current context.

    Returns:
        Token that can be passed to reset_default_options() to undo the change.
    """
    logger.debug(f"Default tracking options set: {options}")
    return _default_options.set(options)


def reset_default_options(token: contextvars.Token) -> None:
    """Undo a set_default_options() call."""
    _default_options.reset(token)


def resolve_options(
    options: Optional[TrackingOptions] = None,
    make_complex_properties_trackable: Optional[bool] = None,
    make_collection_properties_trackable: Optional[bool] = None,
) -> TrackingOptions:
    """Merge keyword overrides onto explicit options (or the current defaults).

    None means "not given"; only explicit booleans override.
    """
    base = options if options is not None else get_default_options()
    overrides = {}
    if make_complex_properties_trackable is not None:
        overrides['make_complex_properties_trackable'] = make_complex_properties_trackable
    if make_collection_properties_trackable is not None:
        overrides['make_collection_properties_trackable'] = make_collection_properties_trackable
    return dataclasses.replace(base, **overrides) if overrides else base


@contextmanager
def tracking_options(
    options: Optional[TrackingOptions] = None,
    **overrides: bool,
) -> Generator[TrackingOptions, None, None]:
    """Temporarily change the default TrackingOptions.

    Args:
        options: Base options for the scope (defaults to the current defaults)
        **overrides: Individual TrackingOptions fields to override

    Usage:
        with tracking_options(make_complex_properties_trackable=False):
            view = wrap(order)
    """
    scoped = resolve_options(options, **overrides)
    token = _default_options.set(scoped)
    try:
        yield scoped
    finally:
        _default_options.reset(token)
