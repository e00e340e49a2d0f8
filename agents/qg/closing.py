"""Closing lines."""
from __future__ import annotations

from typing import List

from .common import QGContext, make_question

CLOSING_LINES = (
    "それでは、面接はここまでとなります。最後に、何か伝えておきたいことはありますか？",
    "ありがとうございました。以上で面接を終わります。最後に、確認しておきたいことはありますか？",
)


def run(ctx: QGContext) -> List[str]:
    index = min(max(ctx.depth, 1), len(CLOSING_LINES)) - 1
    return [make_question(CLOSING_LINES[index], ctx, purpose="closing")]


__all__ = ["CLOSING_LINES", "run"]
