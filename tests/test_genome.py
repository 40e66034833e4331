from pathlib import Path

import pytest

from halstore import AlreadyExists, NotFound, create_alignment, open_alignment


def test_sequences_survive_reopen(tmp_path: Path) -> None:
    path = tmp_path / "a.hal"
    with create_alignment(path) as alignment:
        root = alignment.add_root_genome("anc0")
        leaf = alignment.add_leaf_genome("human", "anc0", 0.1)
        root.add_sequence("chr1", "ACGTACGT")
        leaf.add_sequence("chr1", "ACGTTT")
        leaf.add_sequence("chr2", "GG")
        leaf.get_meta_data().set("assembly", "hg38")

    with open_alignment(path) as alignment:
        human = alignment.open_genome_readonly("human")
        assert human is not None
        assert human.get_sequence_names() == ["chr1", "chr2"]
        assert human.get_num_sequences() == 2
        assert human.get_sequence_length() == 8
        assert human.get_sequence("chr1") == "ACGTTT"
        assert human.get_sequence("chr2") == "GG"
        assert human.get_meta_data().get("assembly") == "hg38"
        assert human.get_parent_name() == "anc0"
        assert human.get_num_children() == 0
        with pytest.raises(NotFound):
            human.get_sequence("chrX")

        anc = alignment.open_genome_readonly("anc0")
        assert anc is not None
        assert anc.get_sequence("chr1") == "ACGTACGT"
        assert anc.get_child_names() == ["human"]
        assert anc.get_alignment() is alignment


def test_genome_without_sequences_reads_empty(tmp_path: Path) -> None:
    path = tmp_path / "a.hal"
    with create_alignment(path) as alignment:
        alignment.add_root_genome("A")

    with open_alignment(path) as alignment:
        genome = alignment.open_genome_readonly("A")
        assert genome is not None
        assert genome.get_sequence_names() == []
        assert genome.get_sequence_length() == 0


def test_duplicate_sequence_name_is_rejected(tmp_path: Path) -> None:
    with create_alignment(tmp_path / "a.hal") as alignment:
        genome = alignment.add_root_genome("A")
        genome.add_sequence("chr1", "AC")
        with pytest.raises(AlreadyExists):
            genome.add_sequence("chr1", "GT")


def test_reopened_genome_can_be_extended(tmp_path: Path) -> None:
    path = tmp_path / "a.hal"
    with create_alignment(path) as alignment:
        alignment.add_root_genome("A").add_sequence("chr1", "AAAA")

    with open_alignment(path, read_only=False) as alignment:
        genome = alignment.open_genome("A")
        assert genome is not None
        genome.add_sequence("chr2", "CC")
        alignment.close_genome(genome)

    with open_alignment(path) as alignment:
        genome = alignment.open_genome_readonly("A")
        assert genome is not None
        assert genome.get_sequence("chr1") == "AAAA"
        assert genome.get_sequence("chr2") == "CC"
