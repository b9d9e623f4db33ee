from __future__ import annotations

from dashboard_copilot.core.semantic.classifier import (
    CLASSIFICATION_ORDER,
    ClassificationPass,
    ColumnEvidence,
    classify_column,
    classify_columns,
)
from dashboard_copilot.core.semantic.models import HIDDEN_ROLES, SemanticRole
from dashboard_copilot.core.semantic.profiler import compute_column_stats


def _evidence(name, values, **kwargs) -> ColumnEvidence:
    return ColumnEvidence(
        name=name,
        stats=compute_column_stats(values),
        values=list(values),
        rows=len(values),
        **kwargs,
    )


def _classify(name, values):
    p = ClassificationPass()
    col = classify_column(_evidence(name, values), p)
    return col, p


def test_rule_order_is_explicit():
    assert CLASSIFICATION_ORDER[0] == "ignore"
    assert CLASSIFICATION_ORDER.index("time") < CLASSIFICATION_ORDER.index("identifier")
    assert CLASSIFICATION_ORDER.index("stage_flag") < CLASSIFICATION_ORDER.index("numeric")
    assert CLASSIFICATION_ORDER.index("numeric") < CLASSIFICATION_ORDER.index("dimension")
    assert CLASSIFICATION_ORDER[-1] == "text"


def test_each_column_gets_exactly_one_rule_note():
    col, _ = _classify("canal", ["google", "meta", "google", "tiktok", "meta"])
    rule_notes = [n for n in col.notes if n.startswith("rule=")]
    assert rule_notes == ["rule=dimension"]


def test_sensitive_names_are_ignored_before_anything_else():
    col, _ = _classify("api_key", ["2025-01-01", "2025-01-02"])
    assert col.semantic_role == SemanticRole.IGNORE
    assert col.ignore_in_ui


def test_time_column_by_values_is_an_assumption():
    col, p = _classify("quando", ["2025-01-01", "2025-01-02", "2025-01-03"])
    assert col.semantic_role == SemanticRole.TIME
    assert p.time_column == "quando"
    assert p.date_range == {"min": "2025-01-01", "max": "2025-01-03"}
    assert p.assumptions


def test_temporal_name_without_dates_warns():
    col, p = _classify("created_at", ["ontem", "hoje", "amanha"])
    assert col.semantic_role != SemanticRole.TIME
    assert any("temporal name" in w for w in p.warnings)


def test_first_primary_id_wins_second_is_secondary():
    p = ClassificationPass()
    a = classify_column(_evidence("lead_id", [f"L{i}" for i in range(6)]), p)
    b = classify_column(_evidence("deal_id", [f"D{i}" for i in range(6)]), p)
    assert a.semantic_role == SemanticRole.ID_PRIMARY
    assert a.aggregator == "count_distinct"
    assert b.semantic_role == SemanticRole.ID_SECONDARY
    assert p.id_primary == "lead_id"
    assert p.ids_discarded == ["deal_id"]


def test_high_cardinality_codes_are_secondary_ids():
    col, p = _classify("protocolo", [f"PX-{i:04d}" for i in range(10)])
    assert col.semantic_role == SemanticRole.ID_SECONDARY
    assert p.id_secondary == ["protocolo"]


def test_unique_counts_with_metric_names_are_not_ids():
    col, _ = _classify("leads_total", [3, 5, 8, 13, 21, 34])
    assert col.semantic_role == SemanticRole.METRIC
    assert col.aggregator == "sum"


def test_hidden_roles_are_never_usable():
    for name, values in (("token", ["a", "b"]), ("order_id", ["1", "2", "3"])):
        col, _ = _classify(name, values)
        assert col.semantic_role in HIDDEN_ROLES
        assert not col.usable_in_kpi
        assert not col.usable_in_chart
        assert not col.usable_as_filter
        assert col.filter_type == "none"


def test_stage_flag_records_funnel_stage():
    col, p = _classify("exp_agendada", ["1", "", "1", "", ""])
    assert col.semantic_role == SemanticRole.STAGE_FLAG
    assert col.aggregator == "truthy_count"
    assert col.filter_type == "toggle"
    assert len(p.funnel_stages) == 1
    stage = p.funnel_stages[0]
    assert stage.order == 4.0
    assert stage.prevalence == 0.4


def test_generic_boolean_column_is_a_flag_but_not_a_stage():
    col, p = _classify("recorrente", ["sim", "não", "sim", "sim", "não"])
    assert col.semantic_role == SemanticRole.STAGE_FLAG
    assert p.funnel_stages == []


def test_status_enum_beats_dimension():
    col, _ = _classify("status", ["aberto", "fechado", "aberto", "perdido", "aberto", "novo"])
    assert col.semantic_role == SemanticRole.STATUS_ENUM
    assert col.filter_type == "multi_select"


def test_numeric_roles():
    cur, _ = _classify("investimento", [10.5, 20.25, 30.75])
    assert cur.semantic_role == SemanticRole.CURRENCY
    assert cur.format == "currency"

    rate, _ = _classify("taxa_conversao", [0.12, 0.2, 0.15])
    assert rate.semantic_role == SemanticRole.RATE
    assert rate.aggregator == "avg"

    plain, _ = _classify("peso", [1.5, 2.5, 2.5])
    assert plain.semantic_role == SemanticRole.METRIC
    assert plain.format == "float"


def test_low_cardinality_rate_is_numeric_not_dimension():
    values = [0.1, 0.2, 0.1, 0.2, 0.1, 0.2, 0.1, 0.2, 0.1, 0.2]
    col, _ = _classify("conv_rate", values)
    assert col.semantic_role == SemanticRole.RATE


def test_long_text_and_fallback_text():
    long_col, _ = _classify("comentario", ["x" * 150, "y" * 120])
    assert long_col.semantic_role == SemanticRole.TEXT_LONG

    txt, _ = _classify("observacao", ["algo aqui", "outra coisa"])
    assert txt.semantic_role == SemanticRole.TEXT
    assert txt.confidence == 0.3


def test_declared_metadata_overrides_inferred_type_and_label():
    ev = _evidence("valor", [1.0, 2.0], declared_type="numeric(12,2)", declared_label="Valor Pago")
    col = classify_column(ev, ClassificationPass())
    assert col.db_type == "numeric(12,2)"
    assert col.display_label == "Valor Pago"


def test_classify_columns_warns_without_time():
    p = classify_columns([_evidence("peso", [1.5, 2.5])])
    assert len(p.columns) == 1
    assert any("No time column" in w for w in p.warnings)


def test_impossible_dates_are_not_a_time_column():
    col, p = _classify("quando", ["2025-02-30", "2025-04-31", "31/02/2025"])
    assert col.semantic_role != SemanticRole.TIME
    assert p.time_column is None
    assert p.date_range == {"min": None, "max": None}


def test_date_range_reads_day_first_values():
    col, p = _classify("quando", ["31/01/2025", "05/01/2025", "2025-01-20"])
    assert col.semantic_role == SemanticRole.TIME
    assert p.date_range == {"min": "2025-01-05", "max": "2025-01-31"}
