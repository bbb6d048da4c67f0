# src/atlas_taskflow/notebook_ui/renderers.py
"""
Notebook UI Adapter (v1)

Objetivo:
- Renderizar previews e resultados de run para saída legível em notebooks.
- NÃO altera payloads.
- NÃO infere semântica.
- NÃO importa o core (Engine/graph/store); trabalha sobre `to_dict()`.

Saídas:
- HTML (string) quando possível
- fallback seguro em string (JSON pretty ou repr)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence, Optional
import copy
import html
import json


_STATUS_COLORS = {
    "satisfied": "#2e7d32",
    "cached": "#2e7d32",
    "executed": "#1565c0",
    "stale": "#ef6c00",
    "missing": "#c62828",
    "failed": "#c62828",
    "skipped": "#757575",
    "cancelled": "#757575",
}


@dataclass(frozen=True)
class RenderResult:
    """Resultado de renderização (apenas apresentação)."""
    html: Optional[str]  # HTML string (quando aplicável)
    text: str            # fallback textual (sempre preenchido)

    def _repr_html_(self) -> Optional[str]:
        return self.html


def _escape(s: Any) -> str:
    return html.escape("" if s is None else str(s))


def _as_pretty_json(payload: Any) -> str:
    try:
        return json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True)
    except TypeError:
        return repr(payload)


def _as_payload(obj: Any) -> Any:
    to_dict = getattr(obj, "to_dict", None)
    return to_dict() if callable(to_dict) else obj


def render_payload(payload: Any) -> RenderResult:
    """
    Renderizador genérico v1:
    - dict com chaves simples -> tabela key/value
    - list[dict] homogêneo -> tabela
    - caso contrário -> JSON pretty (fallback)
    """
    before = copy.deepcopy(payload) if isinstance(payload, (dict, list)) else None

    html_out: Optional[str] = None
    if isinstance(payload, Mapping):
        html_out = render_kv_table_html(payload)
    elif isinstance(payload, Sequence) and not isinstance(payload, (str, bytes, bytearray)):
        html_out = render_table_html(payload)
    text_out = _as_pretty_json(payload)

    after = copy.deepcopy(payload) if isinstance(payload, (dict, list)) else None
    if before is not None and before != after:
        raise AssertionError("Notebook UI renderer mutated the input payload")

    return RenderResult(html=html_out, text=text_out)


def render_kv_table_html(payload: Mapping[str, Any], title: Optional[str] = None) -> str:
    """Renderiza dict como tabela key/value (HTML puro)."""
    rows = []
    for k in payload.keys():
        rows.append(
            f"<tr><td><code>{_escape(k)}</code></td><td>{_escape(payload[k])}</td></tr>"
        )

    heading = f"<h4>{_escape(title)}</h4>" if title else ""
    return (
        f"{heading}"
        "<table>"
        "<thead><tr><th>key</th><th>value</th></tr></thead>"
        "<tbody>"
        + "".join(rows) +
        "</tbody></table>"
    )


def render_table_html(payload: Sequence[Any], title: Optional[str] = None, max_rows: int = 200) -> str:
    """
    Renderiza list payload como tabela:
    - list[dict] -> colunas = união das chaves (ordem estável)
    - caso contrário -> tabela de 1 coluna (value)
    """
    items = list(payload)[:max_rows]
    heading = f"<h4>{_escape(title)}</h4>" if title else ""

    if not items:
        return f"{heading}<div><em>(empty)</em></div>"

    if all(isinstance(x, Mapping) for x in items):
        columns = []
        seen = set()
        for row in items:
            for k in row.keys():
                if k not in seen:
                    columns.append(k)
                    seen.add(k)

        th = "".join(f"<th>{_escape(c)}</th>" for c in columns)
        trs = []
        for row in items:
            tds = "".join(f"<td>{_render_cell(c, row.get(c))}</td>" for c in columns)
            trs.append(f"<tr>{tds}</tr>")

        return (
            f"{heading}"
            "<table>"
            f"<thead><tr>{th}</tr></thead>"
            "<tbody>" + "".join(trs) + "</tbody>"
            "</table>"
        )

    trs = "".join(f"<tr><td>{_escape(x)}</td></tr>" for x in items)
    return (
        f"{heading}"
        "<table>"
        "<thead><tr><th>value</th></tr></thead>"
        f"<tbody>{trs}</tbody>"
        "</table>"
    )


def _render_cell(column: str, value: Any) -> str:
    if column == "status" and isinstance(value, str) and value in _STATUS_COLORS:
        return f"<span style='color:{_STATUS_COLORS[value]}; font-weight:600'>{_escape(value)}</span>"
    if isinstance(value, Mapping):
        return _escape(", ".join(f"{k}={v!r}" for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return _escape(", ".join(str(v) for v in value))
    return _escape(value)


def render_card_html(payload: Mapping[str, Any], title: str, subtitle: Optional[str] = None) -> str:
    """Renderiza um card simples em HTML (apresentação pura)."""
    st = f"<div style='opacity:0.75'>{_escape(subtitle)}</div>" if subtitle else ""
    body = render_kv_table_html(payload)
    return (
        "<div style='border:1px solid #ddd; border-radius:12px; padding:12px; margin:8px 0;'>"
        f"<h3 style='margin:0 0 6px 0;'>{_escape(title)}</h3>"
        f"{st}"
        f"{body}"
        "</div>"
    )


def render_preview(report: Any) -> RenderResult:
    """Renderiza um PreviewReport (ou seu `to_dict()`) como card + tabela de nós."""
    payload = _as_payload(report)
    nodes = [
        {
            "task": n.get("task"),
            "key": n.get("key"),
            "status": n.get("status"),
            "will_run": "yes" if n.get("will_run") else "",
            "params": n.get("params", {}),
            "inherited": n.get("inherited", []),
            "dependencies": n.get("dependencies", []),
        }
        for n in payload.get("nodes", [])
    ]
    counts = dict(payload.get("counts", {}))
    html_out = render_card_html(counts, title="Preview", subtitle=payload.get("root")) + render_table_html(nodes)
    render_text = getattr(report, "render_text", None)
    text_out = render_text() if callable(render_text) else _as_pretty_json(payload)
    return RenderResult(html=html_out, text=text_out)


def render_run_result(result: Any) -> RenderResult:
    """Renderiza um RunResult (ou seu `to_dict()`) como card + tabela de nós."""
    payload = _as_payload(result)
    nodes = [
        {
            "task": n.get("task"),
            "key": n.get("key"),
            "status": n.get("status"),
            "duration_ms": n.get("duration_ms"),
            "summary": n.get("summary"),
        }
        for n in payload.get("nodes", [])
    ]
    card = {"run_id": payload.get("run_id"), "ok": payload.get("ok")}
    html_out = render_card_html(card, title="Run", subtitle=payload.get("root")) + render_table_html(nodes)
    summary = getattr(result, "summary", None)
    text_out = summary() if callable(summary) else _as_pretty_json(payload)
    return RenderResult(html=html_out, text=text_out)
