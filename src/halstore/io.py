from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable


@dataclass(frozen=True)
class FastaRecord:
    name: str
    sequence: str

    @property
    def length(self) -> int:
        return len(self.sequence)


def _normalize_sequence(text: str) -> str:
    return "".join(text.split()).upper()


def read_fasta(path: str | Path) -> list[FastaRecord]:
    """Read every record of a FASTA file; records may differ in length."""
    path = Path(path)
    records: list[FastaRecord] = []
    header: str | None = None
    chunks: list[str] = []

    if not path.exists():
        raise FileNotFoundError(f"FASTA file not found: {path}")

    with path.open("r", encoding="utf-8") as handle:
        for line_no, raw in enumerate(handle, start=1):
            line = raw.strip()
            if not line:
                continue
            if line.startswith(">"):
                if header is not None:
                    records.append(FastaRecord(header, _normalize_sequence("".join(chunks))))
                    chunks = []
                fields = line[1:].split()
                if not fields:
                    raise ValueError(f"Missing FASTA header name at line {line_no} in {path}")
                header = fields[0]
                continue
            if header is None:
                raise ValueError(f"FASTA sequence without header at line {line_no} in {path}")
            chunks.append(line)

    if header is not None:
        records.append(FastaRecord(header, _normalize_sequence("".join(chunks))))

    if not records:
        raise ValueError(f"No FASTA records found in {path}")
    names = [record.name for record in records]
    if len(set(names)) != len(names):
        raise ValueError(f"Duplicate FASTA record names in {path}")
    return records


def parse_genome_fasta_args(values: Iterable[str]) -> dict[str, Path]:
    """Turn ``GENOME=PATH`` command-line values into a mapping."""
    mapping: dict[str, Path] = {}
    for value in values:
        genome, sep, path = value.partition("=")
        if not sep or not genome or not path:
            raise ValueError(f"Expected GENOME=FASTA, got: {value}")
        if genome in mapping:
            raise ValueError(f"FASTA given twice for genome {genome}")
        mapping[genome] = Path(path)
    return mapping
