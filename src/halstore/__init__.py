"""halstore package."""

from .alignment import AlignmentStore, create_alignment, open_alignment
from .config import StorageConfig
from .errors import (
    AlreadyExists,
    HalError,
    InvalidArgument,
    InvalidState,
    InvariantViolation,
    IOFailure,
    NotFound,
)
from .genome import Genome
from .metadata import MetaData
from .phylo import PhyloTree, TreeNode

__all__ = [
    "AlignmentStore",
    "AlreadyExists",
    "Genome",
    "HalError",
    "IOFailure",
    "InvalidArgument",
    "InvalidState",
    "InvariantViolation",
    "MetaData",
    "NotFound",
    "PhyloTree",
    "StorageConfig",
    "TreeNode",
    "create_alignment",
    "open_alignment",
]

__version__ = "0.1.0"
