from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import h5py
import numpy as np

from .config import StorageConfig
from .errors import AlreadyExists, InvalidArgument, InvalidState, NotFound
from .metadata import MetaData

if TYPE_CHECKING:
    from .alignment import AlignmentStore

logger = logging.getLogger(__name__)

GENOMES_GROUP = "Genomes"
DNA_DATASET = "DNA"
SEQUENCE_NAMES_DATASET = "SequenceNames"
SEQUENCE_LENGTHS_DATASET = "SequenceLengths"
GENOME_META_GROUP = "Meta"


class Genome:
    """One genome of an alignment, bound to ``/Genomes/<name>``.

    Sequences are kept concatenated in a single uint8 ``DNA`` array, in the
    order they were added; sequence names and lengths index into it.
    Handles are created and destroyed by the owning store only.
    """

    def __init__(
        self,
        name: str,
        alignment: "AlignmentStore",
        h5file: h5py.File,
        config: StorageConfig,
    ):
        self._name = name
        self._alignment = alignment
        self._file = h5file
        self._config = config
        self._group_path = f"{GENOMES_GROUP}/{name}"
        self._dna = np.zeros(0, dtype=np.uint8)
        self._sequence_names: list[str] = []
        self._sequence_lengths: list[int] = []
        self._meta = MetaData(
            h5file,
            f"{self._group_path}/{GENOME_META_GROUP}",
            read_only=alignment.read_only,
        )
        self._dirty = True

    def get_name(self) -> str:
        return self._name

    def get_alignment(self) -> "AlignmentStore":
        return self._alignment

    def get_meta_data(self) -> MetaData:
        return self._meta

    def get_parent_name(self) -> str:
        return self._alignment.get_parent_name(self._name)

    def get_child_names(self) -> list[str]:
        return self._alignment.get_child_names(self._name)

    def get_num_children(self) -> int:
        return len(self.get_child_names())

    # sequences

    def get_sequence_names(self) -> list[str]:
        return list(self._sequence_names)

    def get_num_sequences(self) -> int:
        return len(self._sequence_names)

    def get_sequence_length(self) -> int:
        return int(self._dna.shape[0])

    def _offset(self, name: str) -> tuple[int, int]:
        start = 0
        for seq_name, length in zip(self._sequence_names, self._sequence_lengths):
            if seq_name == name:
                return start, length
            start += length
        raise NotFound(f"sequence {name} not found in genome {self._name}")

    def get_sequence(self, name: str) -> str:
        start, length = self._offset(name)
        return self._dna[start : start + length].tobytes().decode("ascii")

    def add_sequence(self, name: str, dna: str) -> None:
        if self._alignment.read_only:
            raise InvalidState(f"genome {self._name} is read-only")
        if not name:
            raise InvalidArgument("sequence name can't be empty")
        if name in self._sequence_names:
            raise AlreadyExists(f"sequence {name} already exists in genome {self._name}")
        try:
            encoded = np.frombuffer(dna.encode("ascii"), dtype=np.uint8)
        except UnicodeEncodeError as exc:
            raise InvalidArgument(f"sequence {name} contains non-ASCII bases") from exc
        self._dna = np.concatenate([self._dna, encoded])
        self._sequence_names.append(name)
        self._sequence_lengths.append(int(encoded.shape[0]))
        self._dirty = True

    # persistence

    def read(self) -> None:
        self._dirty = False
        if self._group_path not in self._file:
            logger.debug("Genome %s has no stored data yet", self._name)
            return
        group = self._file[self._group_path]
        if DNA_DATASET in group:
            self._dna = np.asarray(group[DNA_DATASET][()], dtype=np.uint8)
        if SEQUENCE_NAMES_DATASET in group:
            names = group[SEQUENCE_NAMES_DATASET].asstr()[()]
            self._sequence_names = [str(x) for x in names]
            lengths = group[SEQUENCE_LENGTHS_DATASET][()]
            self._sequence_lengths = [int(x) for x in lengths]
        if sum(self._sequence_lengths) != self._dna.shape[0]:
            raise ValueError(
                f"genome {self._name}: sequence lengths do not add up to the DNA array size"
            )
        logger.debug(
            "Read genome %s (%d sequences, %d bases)",
            self._name,
            len(self._sequence_names),
            self._dna.shape[0],
        )

    def write(self) -> None:
        if self._dirty:
            group = self._file.require_group(self._group_path)
            for key in (DNA_DATASET, SEQUENCE_NAMES_DATASET, SEQUENCE_LENGTHS_DATASET):
                if key in group:
                    del group[key]
            group.create_dataset(DNA_DATASET, data=self._dna, **self._config.dataset_kwargs())
            group.create_dataset(
                SEQUENCE_NAMES_DATASET,
                data=np.array(self._sequence_names, dtype=object),
                dtype=h5py.string_dtype(),
            )
            group.create_dataset(
                SEQUENCE_LENGTHS_DATASET,
                data=np.array(self._sequence_lengths, dtype=np.int64),
            )
            self._dirty = False
            logger.debug("Wrote genome %s", self._name)
        self._meta.write()
