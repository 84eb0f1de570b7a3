from .merge import (
    SOURCE_TRUST,
    GuestMergeEngine,
    GuestUpdate,
    MergeResult,
    TrustLevel,
    plan_merge,
    split_name,
)

__all__ = [
    "SOURCE_TRUST",
    "GuestMergeEngine",
    "GuestUpdate",
    "MergeResult",
    "TrustLevel",
    "plan_merge",
    "split_name",
]
