"""
I/O for expression snapshots, gene sets and run artifacts.

Key Functions:
    - load_expression: genes x samples table (+ sample annotation)
    - load_sample_annotation: sample id -> condition labels
    - load_gene_set: ordered gene selection
    - write_*: one CSV per artifact, written atomically
    - write_run_config: config.json with the resolved configuration
"""

from switchminer.io.loaders import (
    load_expression,
    load_gene_set,
    load_sample_annotation,
    sniff_delimiter,
)
from switchminer.io.writers import (
    write_cartography,
    write_clusters,
    write_edges,
    write_run_config,
    write_scree,
    write_sweep,
    write_switches,
)

__all__ = [
    'load_expression',
    'load_gene_set',
    'load_sample_annotation',
    'sniff_delimiter',
    'write_cartography',
    'write_clusters',
    'write_edges',
    'write_run_config',
    'write_scree',
    'write_sweep',
    'write_switches',
]
