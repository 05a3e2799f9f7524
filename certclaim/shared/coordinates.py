from __future__ import annotations


def to_document_space(
    pct_x: float, pct_y: float, page_width: float, page_height: float
) -> tuple[float, float]:
    """Map a percentage anchor (top-left origin) to PDF points (bottom-left).

    Values outside 0–100 are not clamped and may land off the page.
    """
    x = (pct_x / 100.0) * page_width
    y = page_height - (pct_y / 100.0) * page_height
    return x, y
