from __future__ import annotations

import logging
from pathlib import Path

import h5py

from .cache import GenomeCache
from .config import StorageConfig
from .errors import HalError, InvalidState, IOFailure, NotFound
from .genome import GENOMES_GROUP, Genome
from .metadata import MetaData
from .phylo import PhyloTree

logger = logging.getLogger(__name__)

META_GROUP = "Meta"
TREE_GROUP = "Phylogeny"
STORE_GROUPS = (META_GROUP, TREE_GROUP, GENOMES_GROUP)


class AlignmentStore:
    """A hierarchical alignment kept in one HDF5 file.

    The phylogeny is held in memory while the file is open and written back
    as a Newick string on ``close()`` when it changed. Genomes are loaded
    lazily into a cache and written back when closed individually or when
    the store closes. Dropping an open store closes it.
    """

    def __init__(self, config: StorageConfig | None = None):
        self._config = config if config is not None else StorageConfig()
        self._file: h5py.File | None = None
        self._path: Path | None = None
        self._read_only = True
        self._meta: MetaData | None = None
        self._tree: PhyloTree | None = None
        self._dirty = False
        self._genomes = GenomeCache()

    def __del__(self) -> None:
        if getattr(self, "_file", None) is None:
            return
        try:
            self.close()
        except HalError:
            logger.exception("Failed to close alignment %s during teardown", self._path)

    def __enter__(self) -> "AlignmentStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def config(self) -> StorageConfig:
        return self._config

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._file is not None

    @property
    def read_only(self) -> bool:
        return self._read_only

    # lifecycle

    def create_new(self, path: str | Path) -> None:
        self.close()
        path = Path(path)
        try:
            h5file = h5py.File(path, "w", **self._config.file_kwargs())
        except OSError as exc:
            raise IOFailure(f"Unable to create alignment {path}: {exc}") from exc
        try:
            for group in STORE_GROUPS:
                h5file.create_group(group)
        except (OSError, ValueError) as exc:
            h5file.close()
            raise IOFailure(f"Unable to initialise alignment {path}: {exc}") from exc
        self._file = h5file
        self._path = path
        self._read_only = False
        self._meta = MetaData(h5file, META_GROUP)
        self._tree = PhyloTree()
        self._dirty = True
        logger.debug("Created alignment %s", path)

    def open(self, path: str | Path, read_only: bool = True) -> None:
        self.close()
        path = Path(path)
        if not path.exists():
            raise NotFound(f"alignment file not found: {path}")
        try:
            h5file = h5py.File(path, "r" if read_only else "r+", **self._config.file_kwargs())
        except OSError as exc:
            raise IOFailure(f"Unable to open alignment {path}: {exc}") from exc
        missing = [group for group in STORE_GROUPS if group not in h5file]
        if missing:
            h5file.close()
            raise IOFailure(f"{path} is not an alignment file: missing {', '.join(missing)}")
        try:
            tree = self._load_tree(h5file)
        except ValueError as exc:
            h5file.close()
            raise IOFailure(f"Unable to parse phylogeny stored in {path}: {exc}") from exc
        self._file = h5file
        self._path = path
        self._read_only = read_only
        self._meta = MetaData(h5file, META_GROUP, read_only=read_only)
        self._tree = tree
        self._dirty = False
        logger.debug(
            "Opened alignment %s (%s, %d genomes)",
            path,
            "read-only" if read_only else "read-write",
            len(tree),
        )

    def _load_tree(self, h5file: h5py.File) -> PhyloTree:
        tree_map = MetaData(h5file, TREE_GROUP, read_only=True).get_map()
        if TREE_GROUP not in tree_map:
            raise ValueError(f"no {TREE_GROUP} entry in /{TREE_GROUP}")
        return PhyloTree.from_newick(tree_map[TREE_GROUP])

    def _write_tree(self) -> None:
        assert self._file is not None
        tree_meta = MetaData(self._file, TREE_GROUP)
        tree_meta.set(TREE_GROUP, self._tree.to_newick() if self._tree is not None else "")
        tree_meta.write()
        self._dirty = False

    def close(self) -> None:
        """Flush the tree, metadata and every open genome, then close the file.

        A failure in one step never stops the others: every cached genome is
        written and the file is closed even when the tree or metadata can't
        be stored. The failures are reported together afterwards in one
        ``IOFailure``, chained from the first tree or metadata error.
        """
        if self._file is None:
            assert self._tree is None
            assert len(self._genomes) == 0
            return

        h5file = self._file
        path = self._path
        header_failures: list[tuple[str, BaseException]] = []
        failures: list[tuple[str, BaseException]] = []
        try:
            if self._dirty:
                try:
                    self._write_tree()
                except Exception as exc:
                    logger.warning("Failed to write phylogeny to %s: %s", path, exc)
                    header_failures.append((f"/{TREE_GROUP}", exc))
            if self._meta is not None:
                try:
                    self._meta.write()
                except Exception as exc:
                    logger.warning("Failed to write metadata to %s: %s", path, exc)
                    header_failures.append((f"/{META_GROUP}", exc))
            self._tree = None
            self._meta = None
            self._dirty = False
            for genome in self._genomes.drain():
                try:
                    genome.write()
                except (HalError, OSError, ValueError) as exc:
                    logger.warning("Failed to write genome %s to %s: %s", genome.get_name(), path, exc)
                    failures.append((genome.get_name(), exc))
            try:
                h5file.flush()
            except OSError as exc:
                header_failures.append(("/", exc))
        finally:
            self._tree = None
            self._meta = None
            self._dirty = False
            for _ in self._genomes.drain():
                pass
            self._file = None
            h5file.close()
            logger.debug("Closed alignment %s", path)

        if header_failures:
            names = ", ".join(name for name, _ in header_failures + failures)
            raise IOFailure(
                f"Unable to flush alignment {path}: {names}",
                failures=header_failures + failures,
            ) from header_failures[0][1]
        if failures:
            names = ", ".join(name for name, _ in failures)
            raise IOFailure(
                f"Failed to write {len(failures)} genome(s) while closing {path}: {names}",
                failures=failures,
            )

    # guards

    def _require_tree(self) -> PhyloTree:
        if self._tree is None:
            raise InvalidState("alignment is not open")
        return self._tree

    def _require_writable(self) -> PhyloTree:
        tree = self._require_tree()
        if self._read_only:
            raise InvalidState(f"alignment {self._path} is open read-only")
        return tree

    # tree mutation

    def add_root_genome(self, name: str, branch_length: float = 0.0) -> Genome:
        """Add ``name`` above the current root (if any) and return its new handle."""
        tree = self._require_writable()
        tree.add_root(name, branch_length)
        self._dirty = True
        return self._genomes.insert(self._new_genome(name))

    def add_leaf_genome(self, name: str, parent_name: str, branch_length: float) -> Genome:
        tree = self._require_writable()
        tree.add_leaf(name, parent_name, branch_length)
        self._dirty = True
        return self._genomes.insert(self._new_genome(name))

    def remove_genome(self, name: str) -> None:
        raise NotImplementedError(f"Removing genomes is not supported (requested: {name})")

    # tree queries

    def get_root_name(self) -> str:
        if self._tree is None:
            raise InvalidState("Can't get root name of empty tree")
        return self._tree.root_name()

    def get_parent_name(self, name: str) -> str:
        return self._require_tree().parent_name(name)

    def get_branch_length(self, parent_name: str, child_name: str) -> float:
        return self._require_tree().branch_length(parent_name, child_name)

    def get_child_names(self, name: str) -> list[str]:
        return self._require_tree().child_names(name)

    def get_leaf_names_below(self, name: str) -> list[str]:
        return self._require_tree().leaf_names_below(name)

    def get_genomes_in_subtree(self, name: str) -> list[str]:
        return self._require_tree().subtree_names(name)

    def get_num_genomes(self) -> int:
        return 0 if self._tree is None else len(self._tree)

    def get_newick_tree(self) -> str:
        return "" if self._tree is None else self._tree.to_newick()

    def get_meta_data(self) -> MetaData:
        if self._meta is None:
            raise InvalidState("alignment is not open")
        return self._meta

    # genome cache

    def _new_genome(self, name: str) -> Genome:
        assert self._file is not None
        return Genome(name, self, self._file, self._config)

    def _load_genome(self, name: str) -> Genome:
        genome = self._new_genome(name)
        try:
            genome.read()
        except (OSError, ValueError) as exc:
            raise IOFailure(f"Unable to read genome {name} from {self._path}: {exc}") from exc
        return genome

    def _open_genome(self, tree: PhyloTree, name: str) -> Genome | None:
        cached = self._genomes.get(name)
        if cached is not None:
            return cached
        if name not in tree:
            return None
        return self._genomes.get_or_load(name, self._load_genome)

    def open_genome(self, name: str) -> Genome | None:
        """Open ``name`` for modification; ``None`` if it is not in the tree."""
        return self._open_genome(self._require_writable(), name)

    def open_genome_readonly(self, name: str) -> Genome | None:
        """Open ``name`` for reading, also allowed on read-only stores."""
        return self._open_genome(self._require_tree(), name)

    def close_genome(self, genome: Genome) -> None:
        self._genomes.require(genome)
        try:
            genome.write()
        except (HalError, OSError, ValueError) as exc:
            raise IOFailure(f"Unable to write genome {genome.get_name()}: {exc}") from exc
        self._genomes.pop(genome)


def create_alignment(path: str | Path, config: StorageConfig | None = None) -> AlignmentStore:
    alignment = AlignmentStore(config)
    alignment.create_new(path)
    return alignment


def open_alignment(
    path: str | Path,
    read_only: bool = True,
    config: StorageConfig | None = None,
) -> AlignmentStore:
    alignment = AlignmentStore(config)
    alignment.open(path, read_only=read_only)
    return alignment
