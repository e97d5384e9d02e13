"""CAD backends for sketches."""

from .slvs_adapter import (
    AdapterFail,
    AdapterOK,
    AdapterResult,
    CAD_MAPPING_TABLE,
    SlvsAdapter,
    SlvsAdapterOptions,
    solve_with_slvs,
)

__all__ = [
    "AdapterFail",
    "AdapterOK",
    "AdapterResult",
    "CAD_MAPPING_TABLE",
    "SlvsAdapter",
    "SlvsAdapterOptions",
    "solve_with_slvs",
]
