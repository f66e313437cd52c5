"""Tests for thresholding, network construction and the threshold sweep."""

import numpy as np
import pandas as pd
import pytest

from switchminer.core.errors import EmptyNetwork, InvalidInput
from switchminer.core.expression import ExpressionMatrix, GeneSet
from switchminer.network.builder import Threshold, build_adjacency, build_network
from switchminer.network.correlation import CorrelationEngine
from switchminer.network.thresholds import (
    SWEEP_COLUMNS,
    ThresholdSelector,
    default_threshold,
    quantile_cutoff,
)


@pytest.fixture
def six_gene_edges(six_gene_matrix, six_gene_set):
    return CorrelationEngine(method='spearman', correction='fdr_bh').compute(
        six_gene_matrix, six_gene_set
    )


@pytest.fixture
def small_edges(small_matrix, small_gene_set):
    return CorrelationEngine().compute(small_matrix, small_gene_set)


class TestThreshold:

    def test_rejects_out_of_range(self):
        with pytest.raises(InvalidInput):
            Threshold(rho_cutoff=1.2)
        with pytest.raises(InvalidInput):
            Threshold(rho_cutoff=0.5, p_adj_cutoff=-0.1)

    def test_quantile_default_keeps_two_edges(self, six_gene_edges):
        threshold = default_threshold(six_gene_edges, quantile=0.9, p_adj_cutoff=1.0)
        network = build_network(six_gene_edges, threshold)

        assert 0.81 < threshold.rho_cutoff < 1 - 12 / 504
        assert network.n_edges == 2
        assert network.nodes == ('G1', 'G2', 'G3', 'G4')

    def test_quantile_cutoff_bounds(self, six_gene_edges):
        with pytest.raises(InvalidInput):
            quantile_cutoff(six_gene_edges, quantile=1.0)


class TestBuildNetwork:

    def test_filters_on_magnitude_and_padj(self, small_edges):
        threshold = Threshold(rho_cutoff=0.5, p_adj_cutoff=0.05)
        network = build_network(small_edges, threshold)

        assert (network.edges['rho'].abs() >= 0.5).all()
        assert (network.edges['p_adj'] <= 0.05).all()
        incident = set(network.edges['gene_a']) | set(network.edges['gene_b'])
        assert set(network.nodes) == incident

    def test_negative_correlations_survive(self, six_gene_edges):
        network = build_network(six_gene_edges, Threshold(rho_cutoff=0.8, p_adj_cutoff=1.0))
        assert (network.edges['rho'] < 0).any()

    def test_monotone_in_cutoff(self, small_edges):
        loose = build_network(small_edges, Threshold(rho_cutoff=0.3, p_adj_cutoff=1.0))
        strict = build_network(small_edges, Threshold(rho_cutoff=0.6, p_adj_cutoff=1.0))

        loose_pairs = set(zip(loose.edges['gene_a'], loose.edges['gene_b']))
        strict_pairs = set(zip(strict.edges['gene_a'], strict.edges['gene_b']))
        assert strict_pairs <= loose_pairs
        assert set(strict.nodes) <= set(loose.nodes)

    def test_empty_network_raises_with_context(self, six_gene_edges):
        with pytest.raises(EmptyNetwork) as exc_info:
            build_network(six_gene_edges, Threshold(rho_cutoff=0.99, p_adj_cutoff=1.0))

        error = exc_info.value
        assert error.stage == "network"
        assert error.context['rho_cutoff'] == 0.99
        assert error.context['n_edges_in'] == 15
        assert "[network]" in str(error)

    def test_cutoff_on_a_discrete_rho_value(self, six_gene_matrix, six_gene_set):
        # NF samples only: four-sample Spearman rho takes values in steps of 0.1
        nf_samples = ['S1', 'S3', 'S5', 'S7']
        edges = CorrelationEngine().compute(six_gene_matrix, six_gene_set, samples=nf_samples)
        network = build_network(edges, Threshold(rho_cutoff=0.8, p_adj_cutoff=1.0))

        assert edges.rho_between('G5', 'G6') == -0.8
        assert network.n_edges == 7
        assert set(network.nodes) == {'G1', 'G2', 'G3', 'G4', 'G5', 'G6'}

    def test_zero_rho_is_never_an_edge(self):
        matrix = ExpressionMatrix(
            np.array([[1.0, 2, 3, 4, 5], [2.0, 1, 3, 5, 4], [3.0, 3, 3, 3, 3]]),
            pd.Index(['A', 'B', 'FLAT']),
            pd.Index([f"S{i}" for i in range(5)]),
        )
        edges = CorrelationEngine().compute(matrix, GeneSet(('A', 'B', 'FLAT')))
        network = build_network(edges, Threshold(rho_cutoff=0.0, p_adj_cutoff=1.0))
        adjacency = build_adjacency(network)

        assert network.n_edges == 1
        assert network.nodes == ('A', 'B')
        assert int((adjacency.weights != 0).sum()) == 2 * network.n_edges

    def test_edge_list_is_not_modified(self, six_gene_edges):
        before = six_gene_edges.to_frame()
        build_network(six_gene_edges, Threshold(rho_cutoff=0.5, p_adj_cutoff=1.0))
        assert six_gene_edges.to_frame().equals(before)

    def test_to_graph(self, six_gene_edges):
        network = build_network(six_gene_edges, Threshold(rho_cutoff=0.9, p_adj_cutoff=1.0))
        graph = network.to_graph()
        assert graph.number_of_nodes() == 4
        assert graph.number_of_edges() == 2
        assert graph['G1']['G2']['weight'] == pytest.approx(1 - 12 / 504)


class TestAdjacency:

    def test_symmetric_with_zero_diagonal(self, small_edges):
        network = build_network(small_edges, Threshold(rho_cutoff=0.4, p_adj_cutoff=1.0))
        adjacency = build_adjacency(network)

        assert adjacency.weights.shape == (network.n_nodes, network.n_nodes)
        np.testing.assert_array_equal(adjacency.weights, adjacency.weights.T)
        assert (np.diag(adjacency.weights) == 0).all()
        assert int((adjacency.weights != 0).sum()) == 2 * network.n_edges

    def test_weights_are_signed_rho(self, six_gene_edges):
        network = build_network(six_gene_edges, Threshold(rho_cutoff=0.8, p_adj_cutoff=1.0))
        adjacency = build_adjacency(network)
        frame = adjacency.to_frame()

        assert frame.loc['G5', 'G6'] == pytest.approx(six_gene_edges.rho_between('G5', 'G6'))
        assert frame.loc['G5', 'G6'] < 0
        assert adjacency.nodes == network.nodes

    def test_weights_are_read_only(self, six_gene_edges):
        network = build_network(six_gene_edges, Threshold(rho_cutoff=0.9, p_adj_cutoff=1.0))
        adjacency = build_adjacency(network)
        with pytest.raises(ValueError):
            adjacency.weights[0, 1] = 0.0


class TestThresholdSelector:

    def test_sweep_columns_and_rows(self, small_edges):
        selector = ThresholdSelector(rho_min=0.3, rho_max=0.9, step=0.1, p_adj_cutoff=1.0)
        table = selector.sweep(small_edges)

        assert list(table.columns) == SWEEP_COLUMNS
        assert table['rho_cutoff'].tolist() == [0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9]

    def test_surviving_edges_non_increasing(self, small_edges):
        table = ThresholdSelector(rho_min=0.0, rho_max=1.0, step=0.1, p_adj_cutoff=1.0).sweep(small_edges)

        assert (np.diff(table['n_edges']) <= 0).all()
        assert (np.diff(table['n_nodes']) <= 0).all()
        assert table['n_edges'].iloc[0] == int((small_edges.abs_rho() > 0).sum())

    def test_matches_build_network(self, small_edges):
        table = ThresholdSelector(rho_min=0.5, rho_max=0.5, step=0.1, p_adj_cutoff=0.05).sweep(small_edges)
        network = build_network(small_edges, Threshold(rho_cutoff=0.5, p_adj_cutoff=0.05))

        row = table.iloc[0]
        assert row['n_edges'] == network.n_edges
        assert row['n_nodes'] == network.n_nodes
        assert row['node_fraction'] == pytest.approx(network.n_nodes / small_edges.n_genes)

    def test_empty_step_reports_zeros(self, six_gene_edges):
        table = ThresholdSelector(rho_min=0.99, rho_max=0.99, step=0.01, p_adj_cutoff=1.0).sweep(six_gene_edges)
        assert table['n_nodes'].iloc[0] == 0
        assert table['giant_component_fraction'].iloc[0] == 0.0

    def test_zero_cutoff_skips_null_pairs(self, six_gene_matrix):
        data = np.vstack([six_gene_matrix.data, np.full(8, 3.0)])
        matrix = ExpressionMatrix(
            data, pd.Index(list(six_gene_matrix.feature_ids) + ['FLAT']), six_gene_matrix.sample_ids
        )
        edges = CorrelationEngine().compute(matrix, GeneSet(('G1', 'G2', 'FLAT')))
        table = ThresholdSelector(rho_min=0.0, rho_max=0.0, step=0.1, p_adj_cutoff=1.0).sweep(edges)

        assert table['n_edges'].iloc[0] == 1
        assert table['n_nodes'].iloc[0] == 2

    def test_parallel_matches_serial(self, small_edges):
        serial = ThresholdSelector(rho_min=0.3, rho_max=0.8, step=0.1, n_jobs=1).sweep(small_edges)
        parallel = ThresholdSelector(rho_min=0.3, rho_max=0.8, step=0.1, n_jobs=2).sweep(small_edges)
        assert serial.equals(parallel)

    def test_invalid_range(self):
        with pytest.raises(InvalidInput):
            ThresholdSelector(rho_min=0.9, rho_max=0.5)
        with pytest.raises(InvalidInput):
            ThresholdSelector(step=0)
