from __future__ import annotations

import logging

import h5py

from .errors import InvalidArgument, InvalidState, NotFound

logger = logging.getLogger(__name__)


def _as_text(value: object) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


class MetaData:
    """String key/value table kept as attributes of one HDF5 group.

    Values are buffered in memory; nothing reaches the file until ``write()``.
    The group is only created on the first write that has something to flush.
    """

    def __init__(self, parent: h5py.Group, group_path: str, read_only: bool = False):
        self._parent = parent
        self._group_path = group_path
        self._read_only = read_only
        self._map: dict[str, str] = {}
        self._dirty = False
        if group_path in parent:
            group = parent[group_path]
            for key, value in group.attrs.items():
                self._map[str(key)] = _as_text(value)

    @property
    def group_path(self) -> str:
        return self._group_path

    @property
    def dirty(self) -> bool:
        return self._dirty

    def set(self, key: str, value: str) -> None:
        if self._read_only:
            raise InvalidState(f"metadata in /{self._group_path} is read-only")
        if not key:
            raise InvalidArgument("metadata key can't be empty")
        value = str(value)
        if self._map.get(key) == value:
            return
        self._map[key] = value
        self._dirty = True

    def get(self, key: str) -> str:
        try:
            return self._map[key]
        except KeyError:
            raise NotFound(f"metadata key {key} not found in {self._group_path}") from None

    def has(self, key: str) -> bool:
        return key in self._map

    def get_map(self) -> dict[str, str]:
        return dict(self._map)

    def write(self) -> None:
        if not self._dirty:
            return
        group = self._parent.require_group(self._group_path)
        for key, value in self._map.items():
            group.attrs.create(key, value, dtype=h5py.string_dtype())
        logger.debug("Flushed %d metadata entries to /%s", len(self._map), self._group_path)
        self._dirty = False
