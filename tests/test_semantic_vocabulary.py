from __future__ import annotations

from dashboard_copilot.core.semantic.vocabulary import (
    FALSY_TOKENS,
    TRUTHY_TOKENS,
    count_truthy,
    humanize_label,
    is_boolean_like,
    is_secondary_id_name,
    is_truthy,
    match_stage,
    parse_numeric,
)


def test_truthy_and_falsy_vocabularies_do_not_overlap():
    assert not (TRUTHY_TOKENS & FALSY_TOKENS)


def test_truthy_tokens_are_case_and_space_insensitive():
    for v in ("1", "Sim", " TRUE ", "x", "realizado", 1, 2.5, True):
        assert is_truthy(v), v
    for v in ("0", "não", "", None, 0, False, "pendente", "talvez"):
        assert not is_truthy(v), v


def test_every_truthy_value_is_boolean_like():
    for token in TRUTHY_TOKENS:
        assert is_boolean_like(token)
        assert is_truthy(token)
    assert is_boolean_like(0)
    assert not is_boolean_like(7)
    assert not is_boolean_like("talvez")


def test_count_truthy_uses_shared_vocabulary():
    assert count_truthy(["1", "", "sim", "0", None, "ok", "não"]) == 3


def test_parse_numeric_handles_currency_and_separators():
    assert parse_numeric("R$ 1.234,56") == 1234.56
    assert parse_numeric("$1,234.50") == 1234.5
    assert parse_numeric("1,234") == 1234.0
    assert parse_numeric("12,5") == 12.5
    assert parse_numeric("45%") == 45.0
    assert parse_numeric(7) == 7.0
    assert parse_numeric(float("nan")) is None
    assert parse_numeric(True) is None
    assert parse_numeric("abc") is None
    assert parse_numeric("") is None


def test_stage_matching_allows_st_prefix_and_is_anchored():
    assert match_stage("st_venda") == (6.0, "Venda")
    assert match_stage("EXP_AGENDADA") == (4.0, "Exp. Agendada")
    assert match_stage("venda_total") is None
    assert match_stage("perdido")[0] >= 99


def test_secondary_id_suffix_needs_separator():
    assert is_secondary_id_name("id")
    assert is_secondary_id_name("order_id")
    assert is_secondary_id_name("id_cliente")
    assert is_secondary_id_name("campaign_uuid")
    assert not is_secondary_id_name("paid")
    assert not is_secondary_id_name("valid")


def test_humanize_label_prefers_known_labels():
    assert humanize_label("custo_total") == "Investimento"
    assert humanize_label("st_lead_novo") == "Lead Novo"
    assert humanize_label("vendas_total") == "Vendas"
