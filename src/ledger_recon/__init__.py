"""Statement reconciliation and double-entry posting for a small real-estate business."""

__version__ = "0.1.0"
