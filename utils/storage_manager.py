"""Local filesystem storage for watermarked place images."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator


@dataclass(frozen=True)
class StoredAsset:
    name: str
    modified_at: datetime


class LocalAssetStorage:
    """Flat directory of image files"""

    def __init__(self, root: str | Path = "uploads/places") -> None:
        self.root = Path(root)
        if not self.root.exists():
            self.root.mkdir(parents=True, exist_ok=True)

    def save(self, name: str, data: bytes, content_type: str = "image/jpeg") -> str:
        path = self.root / name
        tmp = path.with_suffix(path.suffix + ".part")
        tmp.write_bytes(data)
        tmp.replace(path)
        return str(path)

    def iter_assets(self) -> Iterator[StoredAsset]:
        if not self.root.exists():
            return
        for path in sorted(self.root.iterdir()):
            if not path.is_file():
                continue
            mtime = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
            yield StoredAsset(name=path.name, modified_at=mtime)

    def delete(self, name: str) -> None:
        (self.root / name).unlink(missing_ok=True)
