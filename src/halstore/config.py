from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from .errors import InvalidArgument


@dataclass(frozen=True)
class StorageConfig:
    """HDF5 tuning passed through to every file and dataset the store creates.

    ``mdc_nelmts`` is kept for completeness; HDF5 >= 1.8 ignores it and h5py
    does not expose it, so it is recorded but never applied.
    """

    chunk_size: int = 2_000_000
    compression_level: int = 9
    mdc_nelmts: int = 11
    rdcc_nslots: int = 51
    rdcc_nbytes: int = 100_000_000
    rdcc_w0: float = 0.25

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise InvalidArgument(f"chunk_size must be > 0, got {self.chunk_size}")
        if not 0 <= self.compression_level <= 9:
            raise InvalidArgument(
                f"compression_level must be in [0, 9], got {self.compression_level}"
            )
        if self.mdc_nelmts < 0 or self.rdcc_nslots <= 0 or self.rdcc_nbytes < 0:
            raise InvalidArgument("cache sizes must be non-negative (rdcc_nslots > 0).")
        if not 0.0 <= self.rdcc_w0 <= 1.0:
            raise InvalidArgument(f"rdcc_w0 must be in [0, 1], got {self.rdcc_w0}")

    def file_kwargs(self) -> dict[str, Any]:
        return {
            "rdcc_nslots": self.rdcc_nslots,
            "rdcc_nbytes": self.rdcc_nbytes,
            "rdcc_w0": self.rdcc_w0,
        }

    def dataset_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for a resizable 1-D chunked deflate dataset."""
        return {
            "chunks": (self.chunk_size,),
            "maxshape": (None,),
            "compression": "gzip",
            "compression_opts": self.compression_level,
        }

    def to_dict(self) -> dict[str, object]:
        return {
            "chunk_size": self.chunk_size,
            "compression_level": self.compression_level,
            "mdc_nelmts": self.mdc_nelmts,
            "rdcc_nslots": self.rdcc_nslots,
            "rdcc_nbytes": self.rdcc_nbytes,
            "rdcc_w0": self.rdcc_w0,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, object]) -> "StorageConfig":
        defaults = cls()
        return cls(
            chunk_size=int(payload.get("chunk_size", defaults.chunk_size)),  # type: ignore[arg-type]
            compression_level=int(payload.get("compression_level", defaults.compression_level)),  # type: ignore[arg-type]
            mdc_nelmts=int(payload.get("mdc_nelmts", defaults.mdc_nelmts)),  # type: ignore[arg-type]
            rdcc_nslots=int(payload.get("rdcc_nslots", defaults.rdcc_nslots)),  # type: ignore[arg-type]
            rdcc_nbytes=int(payload.get("rdcc_nbytes", defaults.rdcc_nbytes)),  # type: ignore[arg-type]
            rdcc_w0=float(payload.get("rdcc_w0", defaults.rdcc_w0)),  # type: ignore[arg-type]
        )

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "StorageConfig":
        env = os.environ if environ is None else environ
        payload: dict[str, object] = {}
        for key in ("chunk_size", "compression_level", "rdcc_nslots", "rdcc_nbytes", "rdcc_w0"):
            raw = env.get(f"HALSTORE_{key.upper()}")
            if raw is None or not raw.strip():
                continue
            try:
                payload[key] = float(raw) if key == "rdcc_w0" else int(raw)
            except ValueError as exc:
                raise InvalidArgument(f"HALSTORE_{key.upper()} is not a number: {raw!r}") from exc
        return cls.from_dict(payload)
