from .renderers import (
    RenderResult,
    render_payload,
    render_preview,
    render_run_result,
    render_kv_table_html,
    render_table_html,
    render_card_html,
)

__all__ = [
    "RenderResult",
    "render_payload",
    "render_preview",
    "render_run_result",
    "render_kv_table_html",
    "render_table_html",
    "render_card_html",
]
