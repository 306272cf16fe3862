"""
Approval Kernel

Routes expense claims through configurable multi-stage approval chains:
- Validated, immutable workflow definitions snapshotted into each claim
- Per-stage vote aggregation (any one, all required, conditional)
- Append-only decision history
- Full auditability via hash chain
"""

__version__ = "0.1.0"
