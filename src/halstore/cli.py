from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from . import __version__
from .config import StorageConfig
from .errors import NotFound


def _emit_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def _load_tree_text(tree: str | None, tree_file: str | None) -> str:
    if tree and tree_file:
        raise ValueError("Use either --tree or --tree-file, not both.")
    if tree:
        return tree.strip()
    if tree_file:
        return Path(tree_file).read_text(encoding="utf-8").strip()
    raise ValueError("One of --tree or --tree-file is required.")


def _storage_config(args: argparse.Namespace) -> StorageConfig:
    config = StorageConfig.from_env()
    overrides = config.to_dict()
    if getattr(args, "chunk_size", None) is not None:
        overrides["chunk_size"] = args.chunk_size
    if getattr(args, "compression_level", None) is not None:
        overrides["compression_level"] = args.compression_level
    return StorageConfig.from_dict(overrides)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="halstore",
        description="halstore: HDF5-backed hierarchical multi-genome alignments.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # create
    create = subparsers.add_parser("create", help="Create an alignment from a Newick genome tree.")
    create.add_argument("path", metavar="HAL")
    create.add_argument("--tree", default=None, metavar="NEWICK")
    create.add_argument("--tree-file", default=None, metavar="PATH")
    create.add_argument(
        "--fasta",
        action="append",
        default=[],
        metavar="GENOME=FASTA",
        help="Load the sequences of one genome from a FASTA file (repeatable).",
    )
    create.add_argument("--chunk-size", type=int, default=None)
    create.add_argument("--compression-level", type=int, default=None)

    # tree
    tree = subparsers.add_parser("tree", help="Print the genome tree in Newick format.")
    tree.add_argument("path", metavar="HAL")

    # stats
    stats = subparsers.add_parser("stats", help="One row per genome: parent, branch, sequences.")
    stats.add_argument("path", metavar="HAL")
    stats.add_argument("--output", default=None, metavar="TSV")
    stats.add_argument("--json", action="store_true")

    # leaves
    leaves = subparsers.add_parser("leaves", help="List the leaf genomes below a genome.")
    leaves.add_argument("path", metavar="HAL")
    leaves.add_argument("genome")

    # subtree
    subtree = subparsers.add_parser("subtree", help="List a genome and every genome below it.")
    subtree.add_argument("path", metavar="HAL")
    subtree.add_argument("genome")

    return parser


def _cmd_create(args: argparse.Namespace) -> int:
    from .alignment import create_alignment
    from .io import parse_genome_fasta_args, read_fasta
    from .phylo import PhyloTree

    skeleton = PhyloTree.from_newick(_load_tree_text(args.tree, args.tree_file))
    if skeleton.empty:
        raise ValueError("Genome tree is empty.")
    fasta_paths = parse_genome_fasta_args(args.fasta)
    unknown = sorted(set(fasta_paths) - {node.name for node in skeleton.iter_preorder()})
    if unknown:
        raise ValueError(f"FASTA given for genomes not in the tree: {', '.join(unknown)}")

    with create_alignment(args.path, _storage_config(args)) as alignment:
        for node in skeleton.iter_preorder():
            if node.parent is None:
                genome = alignment.add_root_genome(node.name)
            else:
                genome = alignment.add_leaf_genome(node.name, node.parent, node.length or 0.0)
            if node.name in fasta_paths:
                for record in read_fasta(fasta_paths[node.name]):
                    genome.add_sequence(record.name, record.sequence)
            alignment.close_genome(genome)
        n_genomes = alignment.get_num_genomes()
    print(f"Created {args.path} with {n_genomes} genomes")
    return 0


def _cmd_tree(args: argparse.Namespace) -> int:
    from .alignment import open_alignment

    with open_alignment(args.path) as alignment:
        print(alignment.get_newick_tree())
    return 0


def _genome_rows(path: str) -> list[dict[str, object]]:
    from .alignment import open_alignment

    rows: list[dict[str, object]] = []
    with open_alignment(path) as alignment:
        if alignment.get_num_genomes() == 0:
            return rows
        for name in alignment.get_genomes_in_subtree(alignment.get_root_name()):
            parent = alignment.get_parent_name(name)
            genome = alignment.open_genome_readonly(name)
            if genome is None:
                raise NotFound(f"genome {name} not found in {path}")
            rows.append(
                {
                    "genome": name,
                    "parent": parent,
                    "branch_length": (
                        alignment.get_branch_length(parent, name) if parent else None
                    ),
                    "n_children": len(alignment.get_child_names(name)),
                    "n_sequences": genome.get_num_sequences(),
                    "length": genome.get_sequence_length(),
                }
            )
            alignment.close_genome(genome)
    return rows


def _cmd_stats(args: argparse.Namespace) -> int:
    import pandas as pd

    rows = _genome_rows(args.path)
    if args.json:
        _emit_json(rows)
        return 0
    df = pd.DataFrame(
        rows,
        columns=["genome", "parent", "branch_length", "n_children", "n_sequences", "length"],
    )
    if args.output:
        out = Path(args.output)
        out.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(out, sep="\t", index=False)
        print(f"Genome stats: {out.resolve()}")
    else:
        df.to_csv(sys.stdout, sep="\t", index=False)
    return 0


def _cmd_leaves(args: argparse.Namespace) -> int:
    from .alignment import open_alignment

    with open_alignment(args.path) as alignment:
        for name in alignment.get_leaf_names_below(args.genome):
            print(name)
    return 0


def _cmd_subtree(args: argparse.Namespace) -> int:
    from .alignment import open_alignment

    with open_alignment(args.path) as alignment:
        for name in alignment.get_genomes_in_subtree(args.genome):
            print(name)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        if args.command == "create":
            return _cmd_create(args)
        if args.command == "tree":
            return _cmd_tree(args)
        if args.command == "stats":
            return _cmd_stats(args)
        if args.command == "leaves":
            return _cmd_leaves(args)
        if args.command == "subtree":
            return _cmd_subtree(args)
    except Exception as exc:
        parser.exit(status=2, message=f"error: {exc}\n")
    parser.exit(status=2, message="error: unknown command\n")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
