from __future__ import annotations

from typing import Callable, Iterator

from .errors import InvariantViolation
from .genome import Genome


class GenomeCache:
    """Open genome handles by name, at most one live handle per name.

    ``get_or_load`` mutates the cache even when called from a query path on
    the store: loading a genome is logically a read, physically a cache fill.
    """

    def __init__(self) -> None:
        self._genomes: dict[str, Genome] = {}

    def __len__(self) -> int:
        return len(self._genomes)

    def __contains__(self, name: object) -> bool:
        return name in self._genomes

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._genomes))

    def get(self, name: str) -> Genome | None:
        return self._genomes.get(name)

    def insert(self, genome: Genome) -> Genome:
        name = genome.get_name()
        if name in self._genomes:
            raise InvariantViolation(f"genome {name} already has an open handle")
        self._genomes[name] = genome
        return genome

    def get_or_load(self, name: str, loader: Callable[[str], Genome]) -> Genome:
        genome = self._genomes.get(name)
        if genome is None:
            genome = self.insert(loader(name))
        return genome

    def require(self, genome: Genome) -> None:
        name = genome.get_name()
        cached = self._genomes.get(name)
        if cached is None:
            raise InvariantViolation(
                f"Attempt to close non-open genome {name}. Should not even be possible"
            )
        if cached is not genome:
            raise InvariantViolation(f"handle for genome {name} does not belong to this store")

    def pop(self, genome: Genome) -> Genome:
        self.require(genome)
        return self._genomes.pop(genome.get_name())

    def drain(self) -> Iterator[Genome]:
        """Yield and evict every cached genome, oldest first."""
        while self._genomes:
            name = next(iter(self._genomes))
            yield self._genomes.pop(name)
