import csv
import io
from typing import Any, Iterable

from ..models import VideoRecord

EXPORT_COLUMNS = [
    "channelTitle",
    "title",
    "publishedAt",
    "durationSec",
    "views",
    "likes",
    "comments",
    "ageDays",
    "viewsPerDay",
    "velocity",
    "hookTag",
    "url",
]


def rows_to_csv(rows: Iterable[VideoRecord | dict[str, Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    buffer.write(",".join(EXPORT_COLUMNS) + "\n")
    for row in rows:
        data = row.to_dict() if isinstance(row, VideoRecord) else row
        writer.writerow(["" if data.get(column) is None else data.get(column) for column in EXPORT_COLUMNS])
    return buffer.getvalue().rstrip("\n")
