"""Shared vocabulary for column classification and truthy aggregation.

Anything that decides whether a cell value counts as "true" MUST go through
``is_truthy`` / ``is_boolean_like`` here, so that stage-flag detection and the
downstream ``truthy_count`` aggregation always agree on the same tokens.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Any, List, Optional, Tuple

TRUTHY_TOKENS = frozenset(
    {
        "1", "true", "sim", "s", "yes", "y", "ok", "x", "on",
        "ativo", "realizado", "agendado", "ganho", "concluido", "fechado",
    }
)
FALSY_TOKENS = frozenset(
    {
        "0", "false", "nao", "não", "n", "no", "", "off",
        "inativo", "pendente", "cancelado", "perdido",
    }
)

CURRENCY_SYMBOLS: Tuple[str, ...] = ("R$", "$", "€", "£", "¥")

# ----------------------------
# Name lexicons
# ----------------------------
IGNORE_PATTERNS = (
    "token", "hash", "secret", "password", "api_key",
    "internal_id", "external_id", "legacy_id", "old_id",
    "created_by", "updated_by", "deleted_at",
)

TIME_PATTERNS = (
    "created_at", "created_at_ts", "updated_at", "inserted_at",
    "data", "dia", "day", "date", "timestamp", "created", "updated",
    "dt_", "data_", "datetime",
)

ID_PRIMARY_PATTERNS = (
    "lead_id", "leadid", "kommo_lead_id", "deal_id", "contact_id", "customer_id", "client_id",
)
ID_SECONDARY_PATTERNS = (
    "id", "uuid", "_id", "codigo", "code", "idd", "token", "hash", "key", "ref",
    "external_id", "internal_id",
)

CURRENCY_PATTERNS = (
    "custo", "valor", "preco", "price", "spend", "investimento",
    "receita", "faturamento", "revenue", "amount", "cpl", "cac",
)
RATE_PATTERNS = ("taxa_", "rate", "conv_", "pct_", "percent", "ratio")
COUNT_PATTERNS = ("_total", "count", "qtd", "quantidade", "leads", "num_")

DIMENSION_PATTERNS = (
    "vendedor", "vendedora", "professor", "unidade", "origem", "fonte", "source",
    "canal", "modalidade", "categoria", "tipo", "campanha", "campaign", "retencao",
    "channel", "region", "country", "state", "city",
)
STATUS_PATTERNS = ("status", "estado", "situacao", "stage", "etapa", "fase")

# Funnel stages ordered by typical position. Ranks >= 99 are terminal outcomes.
ENTRY_STAGE_ORDER = 1.0
TERMINAL_STAGE_ORDER = 99.0

_STAGE_LEXICON: Tuple[Tuple[str, float, str], ...] = (
    (r"entrada", 1, "Entrada"),
    (r"entrou", 1, "Entrada"),
    (r"lead_entrada", 1, "Entrada"),
    (r"lead_ativo", 2, "Lead Ativo"),
    (r"ativo", 2, "Lead Ativo"),
    (r"qualificado", 3, "Qualificado"),
    (r"qualificacao", 3, "Qualificado"),
    (r"lead_qualificado", 3, "Qualificado"),
    (r"exp_nao_confirmada", 3.5, "Exp. Não Confirmada"),
    (r"exp_agendada", 4, "Exp. Agendada"),
    (r"agendado", 4, "Exp. Agendada"),
    (r"agendamento", 4, "Exp. Agendada"),
    (r"faltou_exp", 4.5, "Faltou Exp."),
    (r"reagendou", 4.6, "Reagendou"),
    (r"exp_realizada", 5, "Exp. Realizada"),
    (r"realizada", 5, "Exp. Realizada"),
    (r"compareceu", 5, "Exp. Realizada"),
    (r"venda", 6, "Venda"),
    (r"fechou", 6, "Venda"),
    (r"ganho", 6, "Venda"),
    (r"vendido", 6, "Venda"),
    (r"convertido", 6, "Venda"),
    (r"perdida", 99, "Perdido"),
    (r"perdido", 99, "Perdido"),
    (r"perdeu", 99, "Perdido"),
    (r"aluno_ativo", 100, "Aluno Ativo"),
    (r"cliente_ativo", 100, "Cliente Ativo"),
)

STAGE_PATTERNS: Tuple[Tuple[re.Pattern, float, str], ...] = tuple(
    (re.compile(rf"^(st_)?{stem}$", re.IGNORECASE), float(order), label) for stem, order, label in _STAGE_LEXICON
)

LABEL_MAP = {
    "custo_total": "Investimento",
    "leads_total": "Leads",
    "entrada_total": "Entradas",
    "entrada": "Entrada",
    "venda_total": "Vendas",
    "venda": "Venda",
    "qualificado": "Qualificado",
    "exp_agendada": "Exp. Agendada",
    "exp_realizada": "Exp. Realizada",
    "lead_ativo": "Lead Ativo",
    "dia": "Data",
    "day": "Data",
    "spend": "Investimento",
    "sales": "Vendas",
    "leads_new": "Novos Leads",
    "cpl": "CPL",
    "cac": "CAC",
    "vendedora": "Vendedora",
    "professor": "Professor",
    "unidade": "Unidade",
    "origem": "Origem",
    "modalidade": "Modalidade",
    "retencao": "Retenção",
    "created_at": "Data de Criação",
    "created_at_ts": "Data de Criação",
}


# ----------------------------
# Name matching
# ----------------------------
def name_contains_any(name: str, patterns: Tuple[str, ...]) -> bool:
    lower = (name or "").lower()
    return any(p in lower for p in patterns)


def is_time_name(name: str) -> bool:
    lower = (name or "").lower()
    if "created" in lower or "updated" in lower:
        return True
    return any(lower == p or lower.startswith(p) for p in TIME_PATTERNS)


def is_primary_id_name(name: str) -> bool:
    lower = (name or "").lower()
    return any(lower == p or p in lower for p in ID_PRIMARY_PATTERNS)


def is_secondary_id_name(name: str) -> bool:
    # suffixes only count after a separator: "paid" is not an id
    lower = (name or "").lower()
    if lower.startswith("id_"):
        return True
    for p in ID_SECONDARY_PATTERNS:
        suffix = p if p.startswith("_") else "_" + p
        if lower == p.lstrip("_") or lower.endswith(suffix):
            return True
    return False


def is_rate_name(name: str) -> bool:
    lower = (name or "").lower()
    return any(lower.startswith(p) or p in lower for p in RATE_PATTERNS)


def match_stage(name: str) -> Optional[Tuple[float, str]]:
    for pattern, order, label in STAGE_PATTERNS:
        if pattern.match(name or ""):
            return order, label
    return None


def humanize_label(name: str) -> str:
    lower = (name or "").lower()
    if lower in LABEL_MAP:
        return LABEL_MAP[lower]
    s = re.sub(r"^st_", "", name or "")
    s = re.sub(r"_total$", "", s)
    s = s.replace("_", " ")
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), s)


# ----------------------------
# Value predicates
# ----------------------------
def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def is_boolean_like(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return True
    if isinstance(value, (int, float)):
        return value == 0 or value == 1
    return str(value).strip().lower() in TRUTHY_TOKENS or str(value).strip().lower() in FALSY_TOKENS


def is_truthy(value: Any) -> bool:
    if is_blank(value):
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value > 0
    return str(value).strip().lower() in TRUTHY_TOKENS


_DATE_RES = (
    re.compile(r"^\d{4}-\d{2}-\d{2}"),
    re.compile(r"^\d{2}/\d{2}/\d{4}"),
    re.compile(r"^\d{2}-\d{2}-\d{4}"),
)


def looks_like_date(value: Any) -> bool:
    """Shape check only; ``profiler.parse_dates`` decides calendar validity."""
    if value is None:
        return False
    if isinstance(value, (date, datetime)):
        return True
    if not isinstance(value, str):
        return False
    v = value.strip()
    return any(r.match(v) for r in _DATE_RES)


def contains_currency_symbol(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    return any(s in value for s in CURRENCY_SYMBOLS)


_PLAIN_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_THOUSANDS_COMMA_RE = re.compile(r"^[+-]?\d{1,3}(,\d{3})+$")


def numeric_text(value: str) -> Optional[str]:
    """Plain ``[+-]digits[.digits]`` text for a number written with currency
    symbols, a trailing percent or either separator convention."""
    s = value.strip()
    for sym in CURRENCY_SYMBOLS:
        s = s.replace(sym, "")
    s = re.sub(r"\s+", "", s).rstrip("%")
    if not s:
        return None

    if "," in s and "." in s:
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif "," in s:
        s = s.replace(",", "") if _THOUSANDS_COMMA_RE.match(s) else s.replace(",", ".")
    elif s.count(".") > 1:
        s = s.replace(".", "")

    return s if _PLAIN_NUMBER_RE.match(s) else None


def parse_numeric(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        f = float(value)
        return f if math.isfinite(f) else None
    if not isinstance(value, str):
        return None
    s = numeric_text(value)
    if s is None:
        return None
    f = float(s)
    return f if math.isfinite(f) else None


def looks_like_numeric(value: Any) -> bool:
    return parse_numeric(value) is not None


def count_truthy(values: List[Any]) -> int:
    return sum(1 for v in values if is_truthy(v))
