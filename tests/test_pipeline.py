"""End-to-end tests of the switch-mining pipeline."""

import ast
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

import switchminer
from switchminer.cartography.classifier import HubClass
from switchminer.config import PipelineConfig
from switchminer.core.errors import EmptyNetwork, IncoherentCartography, InvalidInput
from switchminer.core.expression import ExpressionMatrix
from switchminer.io.writers import write_cartography, write_switches
from switchminer.pipeline import (
    STAGES,
    build_cartography,
    resolve_conditions,
    run_switch_analysis,
    sweep_condition,
)


class TestSixGeneEndToEnd:
    """Spearman over all eight samples, 90th percentile |rho| threshold."""

    @pytest.fixture
    def result(self, six_gene_matrix, six_gene_set):
        config = PipelineConfig.from_dict({
            'threshold': {'p_adj_cutoff': 1.0, 'quantile': 0.9},
            'clustering': {'k': 2},
        })
        with pytest.warns(IncoherentCartography):
            return build_cartography(six_gene_matrix, six_gene_set, config, label='all')

    def test_fifteen_edges(self, result):
        assert len(result.edge_list) == 15
        assert result.edge_list.method == 'spearman'

    def test_two_edges_retained(self, result):
        assert result.network.n_edges == 2
        assert result.network.nodes == ('G1', 'G2', 'G3', 'G4')

    def test_two_non_empty_clusters(self, result):
        assert result.clusters.k == 2
        assert set(result.clusters.nodes) == set(result.network.nodes)
        assert result.clusters.members(1) == ('G1', 'G2')
        assert result.clusters.members(2) == ('G3', 'G4')

    def test_every_node_peripheral(self, result):
        # one partner each, nothing across clusters
        assert (result.metrics.table['degree_in_cluster'] == 1).all()
        assert (result.metrics.table['apcc'] == 0.0).all()
        assert all(result.cartography.hub_class_of(g) == HubClass.PERIPHERAL for g in result.network.nodes)

    def test_k_from_scree_elbow(self, six_gene_matrix, six_gene_set, default_config):
        with pytest.warns(IncoherentCartography):
            result = build_cartography(six_gene_matrix, six_gene_set, default_config)
        assert result.scree is not None
        assert result.scree.table['k'].tolist() == [1, 2, 3, 4]
        assert result.clusters.k == 2

    @pytest.mark.filterwarnings("ignore::switchminer.core.errors.IncoherentCartography")
    def test_explicit_cutoff_used(self, six_gene_matrix, six_gene_set):
        config = PipelineConfig.from_dict({
            'threshold': {'rho_cutoff': 0.8, 'p_adj_cutoff': 1.0},
            'clustering': {'k': 3},
        })
        result = build_cartography(six_gene_matrix, six_gene_set, config)
        assert result.threshold.rho_cutoff == 0.8
        assert result.network.n_edges == 3

    def test_strict_cutoff_is_not_relaxed(self, six_gene_matrix, six_gene_set):
        config = PipelineConfig.from_dict({'threshold': {'rho_cutoff': 0.99, 'p_adj_cutoff': 1.0}})
        with pytest.raises(EmptyNetwork):
            build_cartography(six_gene_matrix, six_gene_set, config)


@pytest.mark.filterwarnings("ignore::switchminer.core.errors.IncoherentCartography")
class TestSwitchAnalysis:

    @pytest.fixture
    def config(self):
        return PipelineConfig.from_dict({
            'threshold': {'p_adj_cutoff': 1.0},
            'clustering': {'k': 3},
        })

    def test_one_cartography_per_condition(self, small_matrix, small_gene_set, config):
        analysis = run_switch_analysis(small_matrix, small_gene_set, config)

        assert analysis.condition_a.label == 'DCM'
        assert analysis.condition_b.label == 'NF'
        assert len(analysis.condition_a.samples) == 20
        assert set(analysis.condition_a.samples).isdisjoint(analysis.condition_b.samples)
        assert analysis.report.label_a == 'DCM'
        assert analysis.report.gene_set_size == len(small_gene_set)

    def test_switches_are_real_role_changes(self, small_matrix, small_gene_set, config):
        analysis = run_switch_analysis(small_matrix, small_gene_set, config)
        a = analysis.condition_a.cartography
        b = analysis.condition_b.cartography
        for switch in analysis.report.switches:
            assert a.hub_class_of(switch.gene) == switch.from_class
            assert b.hub_class_of(switch.gene) == switch.to_class
            assert switch.from_class != switch.to_class

    def test_reruns_are_byte_identical(self, small_matrix, small_gene_set, config, tmp_path):
        outputs = []
        for run in ('first', 'second'):
            analysis = run_switch_analysis(small_matrix, small_gene_set, config)
            run_dir = tmp_path / run
            write_cartography(analysis.condition_a.cartography, run_dir / "a.csv")
            write_cartography(analysis.condition_b.cartography, run_dir / "b.csv")
            write_switches(analysis.report, run_dir / "switches.csv")
            outputs.append([(run_dir / name).read_bytes() for name in ("a.csv", "b.csv", "switches.csv")])

        assert outputs[0] == outputs[1]

    def test_attributes_reach_cartographies(self, small_matrix, small_gene_set, config):
        attributes = pd.DataFrame(
            {'log2fc': np.linspace(-2, 2, len(small_gene_set))},
            index=list(small_gene_set),
        )
        analysis = run_switch_analysis(small_matrix, small_gene_set, config, attributes=attributes)
        assert 'log2fc' in analysis.condition_b.cartography.table.columns

    def test_summary(self, small_matrix, small_gene_set, config):
        summary = run_switch_analysis(small_matrix, small_gene_set, config).summary()
        assert summary['condition_a']['k'] == 3
        assert summary['switches']['label_b'] == 'NF'


class TestResolveConditions:

    def test_two_labels_sorted(self, six_gene_matrix, default_config):
        assert resolve_conditions(six_gene_matrix, default_config) == ('DCM', 'NF')

    def test_explicit_labels(self, six_gene_matrix):
        config = PipelineConfig.from_dict({'conditions': {'condition_a': 'NF', 'condition_b': 'DCM'}})
        assert resolve_conditions(six_gene_matrix, config) == ('NF', 'DCM')

    def test_unknown_label(self, six_gene_matrix):
        config = PipelineConfig.from_dict({'conditions': {'condition_a': 'NF', 'condition_b': 'HCM'}})
        with pytest.raises(InvalidInput, match="HCM"):
            resolve_conditions(six_gene_matrix, config)

    def test_only_one_label_given(self, six_gene_matrix):
        config = PipelineConfig.from_dict({'conditions': {'condition_a': 'NF'}})
        with pytest.raises(InvalidInput):
            resolve_conditions(six_gene_matrix, config)

    def test_more_than_two_conditions(self, six_gene_matrix, default_config):
        metadata = pd.DataFrame(
            {'condition': ['NF', 'DCM', 'HCM', 'DCM', 'NF', 'HCM', 'NF', 'DCM']},
            index=six_gene_matrix.sample_ids,
        )
        matrix = ExpressionMatrix(
            six_gene_matrix.data, six_gene_matrix.feature_ids, six_gene_matrix.sample_ids, metadata
        )
        with pytest.raises(InvalidInput, match="3 conditions"):
            resolve_conditions(matrix, default_config)

    def test_missing_column(self, six_gene_matrix):
        config = PipelineConfig.from_dict({'conditions': {'column': 'etiology'}})
        with pytest.raises(InvalidInput):
            resolve_conditions(six_gene_matrix, config)


class TestSweepCondition:

    def test_diagnostics(self, small_matrix, small_gene_set, default_config):
        edge_list, sweep, scree = sweep_condition(small_matrix, small_gene_set, default_config)

        assert len(edge_list) == len(small_gene_set) * (len(small_gene_set) - 1) // 2
        assert sweep['rho_cutoff'].iloc[0] == 0.5
        assert scree is not None
        assert scree.table['k'].iloc[-1] == 10

    def test_scree_reaches_node_count(self, six_gene_matrix, six_gene_set, default_config):
        _, _, scree = sweep_condition(six_gene_matrix, six_gene_set, default_config)
        assert scree.table['k'].tolist() == [1, 2, 3, 4]
        assert scree.elbow() == 2


def test_stages_in_execution_order():
    assert list(STAGES) == [
        'correlation', 'network', 'adjacency', 'clustering', 'metrics', 'cartography', 'switches',
    ]


def test_library_modules_do_not_import_cli():
    package_root = Path(switchminer.__file__).parent
    offenders = []
    for path in package_root.rglob("*.py"):
        if "cli" in path.relative_to(package_root).parts:
            continue
        for node in ast.walk(ast.parse(path.read_text())):
            if isinstance(node, ast.ImportFrom) and (node.module or "").startswith("switchminer.cli"):
                offenders.append(str(path.relative_to(package_root)))
            elif isinstance(node, ast.Import) and any(a.name.startswith("switchminer.cli") for a in node.names):
                offenders.append(str(path.relative_to(package_root)))
    assert offenders == []
