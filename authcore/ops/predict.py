"""The protected business operation.

The auth core treats this as opaque: it only runs after the guard has accepted
the caller. The model is a deterministic stand-in (reversed text); swap in a
real classifier behind ``predict_text``.
"""

from __future__ import annotations

from typing import Any, Dict, List

from authcore.util.time import utcnow_iso


def predict_text(text: str) -> str:
    return (text or "")[::-1]


def log_prediction(conn: Any, *, username: str, input_text: str, output_text: str) -> None:
    conn.execute(
        """
        INSERT INTO prediction_logs (username, input_text, output_text, created_at)
        VALUES (?,?,?,?)
        """,
        (username, input_text, output_text, utcnow_iso()),
    )


def list_predictions(conn: Any, *, username: str, limit: int = 50) -> List[Dict[str, Any]]:
    rows = conn.execute(
        """
        SELECT log_id, input_text, output_text, created_at
        FROM prediction_logs
        WHERE username=?
        ORDER BY log_id DESC
        LIMIT ?
        """,
        (username, max(1, min(int(limit), 500))),
    ).fetchall()
    return [dict(r) for r in rows]
