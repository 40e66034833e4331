import json
from pathlib import Path

import pytest

from halstore import AlignmentStore, open_alignment
from halstore.cli import main


def _create(tmp_path: Path) -> Path:
    hal = tmp_path / "out" / "toy.hal"
    hal.parent.mkdir()
    fasta = tmp_path / "human.fa"
    fasta.write_text(">chr1\nACGTACGT\n>chr2\nGG\n", encoding="utf-8")
    assert (
        main(
            [
                "create",
                str(hal),
                "--tree",
                "((human:0.1,chimp:0.1)anc1:0.2,mouse:0.5)anc0;",
                "--fasta",
                f"human={fasta}",
                "--chunk-size",
                "64",
            ]
        )
        == 0
    )
    return hal


def test_cli_create_builds_the_tree(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    hal = _create(tmp_path)
    assert "5 genomes" in capsys.readouterr().out
    with open_alignment(hal) as alignment:
        assert alignment.get_root_name() == "anc0"
        assert alignment.get_child_names("anc1") == ["human", "chimp"]
        assert alignment.get_branch_length("anc0", "mouse") == 0.5
        human = alignment.open_genome_readonly("human")
        assert human is not None
        assert human.get_sequence("chr1") == "ACGTACGT"


def test_cli_tree_leaves_and_subtree(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    hal = _create(tmp_path)
    capsys.readouterr()

    assert main(["tree", str(hal)]) == 0
    assert capsys.readouterr().out.strip() == "((human:0.1,chimp:0.1)anc1:0.2,mouse:0.5)anc0;"

    assert main(["leaves", str(hal), "anc0"]) == 0
    assert capsys.readouterr().out.split() == ["mouse", "human", "chimp"]

    assert main(["subtree", str(hal), "anc1"]) == 0
    assert capsys.readouterr().out.split() == ["anc1", "human", "chimp"]


def test_cli_stats_json_and_tsv(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    hal = _create(tmp_path)
    capsys.readouterr()

    assert main(["stats", str(hal), "--json"]) == 0
    rows = json.loads(capsys.readouterr().out)
    by_name = {row["genome"]: row for row in rows}
    assert by_name["anc0"]["parent"] == ""
    assert by_name["anc0"]["branch_length"] is None
    assert by_name["human"]["n_sequences"] == 2
    assert by_name["human"]["length"] == 10
    assert by_name["anc1"]["n_children"] == 2

    out = tmp_path / "stats" / "genomes.tsv"
    assert main(["stats", str(hal), "--output", str(out)]) == 0
    lines = out.read_text(encoding="utf-8").splitlines()
    assert lines[0].split("\t") == [
        "genome",
        "parent",
        "branch_length",
        "n_children",
        "n_sequences",
        "length",
    ]
    assert len(lines) == 6


def test_cli_reports_errors(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["tree", str(tmp_path / "missing.hal")])
    assert excinfo.value.code == 2
    assert "not found" in capsys.readouterr().err

    hal = _create(tmp_path)
    with pytest.raises(SystemExit):
        main(["leaves", str(hal), "ghost"])
    assert "ghost" in capsys.readouterr().err

    with pytest.raises(SystemExit):
        main(["create", str(tmp_path / "bad.hal"), "--tree", "(A,B);"])
    assert "needs a name" in capsys.readouterr().err


def test_cli_stats_reports_unreadable_genome(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    hal = _create(tmp_path)
    capsys.readouterr()
    monkeypatch.setattr(AlignmentStore, "open_genome_readonly", lambda self, name: None)
    with pytest.raises(SystemExit) as excinfo:
        main(["stats", str(hal), "--json"])
    assert excinfo.value.code == 2
    assert "genome anc0 not found" in capsys.readouterr().err
