"""Tests for loaders, writers and atomic file output."""

import json

import numpy as np
import pandas as pd
import pytest

from switchminer.core.errors import InvalidInput
from switchminer.io import loaders
from switchminer.io.loaders import (
    load_expression,
    load_gene_set,
    load_sample_annotation,
    sniff_delimiter,
)
from switchminer.io.writers import write_edges, write_run_config, write_sweep
from switchminer.network.correlation import CorrelationEngine
from switchminer.utils.fileio import atomic_write_json, to_jsonable

from conftest import save_expression_csv


class TestLoadExpression:

    def test_round_trip(self, six_gene_files, six_gene_matrix):
        matrix = load_expression(six_gene_files['input'], annotation=six_gene_files['annotation'])

        np.testing.assert_array_equal(matrix.data, six_gene_matrix.data)
        assert list(matrix.feature_ids) == list(six_gene_matrix.feature_ids)
        assert list(matrix.sample_ids) == list(six_gene_matrix.sample_ids)
        assert matrix.conditions('condition') == ['DCM', 'NF']

    def test_tab_separated(self, tmp_path, six_gene_matrix):
        path = tmp_path / "expression.tsv"
        save_expression_csv(six_gene_matrix, path, sep="\t")
        assert sniff_delimiter(path) == "\t"
        assert load_expression(path).shape == (6, 8)

    def test_without_annotation(self, six_gene_files):
        matrix = load_expression(six_gene_files['input'])
        assert list(matrix.sample_metadata.columns) == []

    def test_annotation_dataframe(self, six_gene_files, six_gene_matrix):
        matrix = load_expression(six_gene_files['input'], annotation=six_gene_matrix.sample_metadata)
        assert matrix.conditions('condition') == ['DCM', 'NF']

    def test_unannotated_samples(self, six_gene_files, tmp_path):
        annotation = tmp_path / "partial.csv"
        annotation.write_text("sample,condition\nS1,NF\nS2,DCM\n")
        with pytest.raises(InvalidInput, match="no annotation"):
            load_expression(six_gene_files['input'], annotation=annotation)

    def test_non_numeric_values(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("gene,S1,S2,S3\nA,1,2,3\nB,4,oops,6\n")
        with pytest.raises(InvalidInput, match="non-numeric") as exc_info:
            load_expression(path)
        assert exc_info.value.context['n_bad'] == 1

    def test_duplicate_genes_warn(self, tmp_path):
        path = tmp_path / "dup.csv"
        path.write_text("gene,S1,S2,S3\nA,1,2,3\nA,4,5,6\nB,1,1,2\n")
        with pytest.warns(UserWarning, match="duplicate gene"):
            matrix = load_expression(path)
        assert list(matrix.feature_ids) == ['A', 'B']
        np.testing.assert_array_equal(matrix.data[0], [1, 2, 3])

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_expression(tmp_path / "absent.csv")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("")
        with pytest.raises(InvalidInput):
            load_expression(path)


class TestRetries:

    def test_transient_error_is_retried(self, six_gene_files, monkeypatch, caplog):
        real_read_csv = pd.read_csv
        calls = {'n': 0}

        def flaky_read_csv(*args, **kwargs):
            calls['n'] += 1
            if calls['n'] == 1:
                raise OSError("stale file handle")
            return real_read_csv(*args, **kwargs)

        monkeypatch.setattr(loaders, "RETRY_DELAY", 0.0)
        monkeypatch.setattr(loaders.pd, "read_csv", flaky_read_csv)
        matrix = load_expression(six_gene_files['input'], retries=2)

        assert matrix.shape == (6, 8)
        assert calls['n'] == 2
        assert "retrying" in caplog.text

    def test_gives_up_after_retries(self, six_gene_files, monkeypatch):
        def broken_read_csv(*args, **kwargs):
            raise OSError("device not ready")

        monkeypatch.setattr(loaders, "RETRY_DELAY", 0.0)
        monkeypatch.setattr(loaders.pd, "read_csv", broken_read_csv)
        with pytest.raises(OSError, match="device not ready"):
            load_expression(six_gene_files['input'], retries=1)


class TestLoadAnnotationAndGeneSet:

    def test_annotation_indexed_by_sample(self, six_gene_files):
        annotation = load_sample_annotation(six_gene_files['annotation'])
        assert annotation.index.tolist()[:2] == ['S1', 'S2']
        assert annotation.loc['S2', 'condition'] == 'DCM'

    def test_duplicate_samples(self, tmp_path):
        path = tmp_path / "dup.csv"
        path.write_text("sample,condition\nS1,NF\nS1,DCM\n")
        with pytest.raises(InvalidInput, match="more than once"):
            load_sample_annotation(path)

    def test_gene_list(self, tmp_path):
        path = tmp_path / "genes.txt"
        path.write_text("# DE genes\nMYH7\n\nTTN\nNPPA\n")
        assert load_gene_set(path).genes == ('MYH7', 'TTN', 'NPPA')

    def test_gene_table_first_column(self, tmp_path):
        path = tmp_path / "de.csv"
        path.write_text("gene,log2fc,padj\nMYH7,1.2,0.01\nTTN,-0.8,0.02\n")
        assert load_gene_set(path).genes == ('MYH7', 'TTN')

    def test_duplicate_genes(self, tmp_path):
        path = tmp_path / "genes.txt"
        path.write_text("MYH7\nTTN\nMYH7\n")
        with pytest.raises(InvalidInput, match="duplicate"):
            load_gene_set(path)

    def test_empty_gene_list(self, tmp_path):
        path = tmp_path / "genes.txt"
        path.write_text("# nothing\n\n")
        with pytest.raises(InvalidInput):
            load_gene_set(path)


class TestWriters:

    def test_edges_one_row_per_edge(self, six_gene_matrix, six_gene_set, tmp_path):
        edges = CorrelationEngine().compute(six_gene_matrix, six_gene_set)
        path = write_edges(edges, tmp_path / "out" / "edges.csv")

        frame = pd.read_csv(path)
        assert len(frame) == 15
        assert list(frame.columns) == ['gene_a', 'gene_b', 'rho', 'p_value', 'p_adj']
        np.testing.assert_allclose(frame['rho'].to_numpy(), edges.edges['rho'].to_numpy(), rtol=1e-12)

    def test_no_temp_files_left(self, tmp_path):
        write_sweep(pd.DataFrame({'rho_cutoff': [0.5], 'n_nodes': [3]}), tmp_path / "sweep.csv")
        assert [p.name for p in tmp_path.iterdir()] == ["sweep.csv"]

    def test_run_config(self, tmp_path, default_config):
        path = write_run_config(tmp_path / "config.json", default_config.to_dict(), summary={'k': np.int64(3)})
        payload = json.loads(path.read_text())

        assert payload['config']['correlation']['method'] == 'spearman'
        assert payload['config']['threshold']['p_adj_cutoff'] == 1.0
        assert payload['summary'] == {'k': 3}
        assert 'version' in payload


class TestFileIO:

    def test_to_jsonable(self):
        from pathlib import Path
        from switchminer.cartography.classifier import HubClass

        value = {'a': np.float64(0.5), 'b': (1, 2), 'c': Path('x/y'), 'd': HubClass.CONNECTOR}
        assert to_jsonable(value) == {'a': 0.5, 'b': [1, 2], 'c': 'x/y', 'd': 'CONNECTOR'}

    def test_atomic_write_json_overwrites(self, tmp_path):
        path = tmp_path / "data.json"
        atomic_write_json(path, {'v': 1})
        atomic_write_json(path, {'v': 2})
        assert json.loads(path.read_text()) == {'v': 2}
