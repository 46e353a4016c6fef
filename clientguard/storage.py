"""Key-value media underneath the protected store.

Both media are plain: string keys, string values, no schema and no
locking. Every structure and every guarantee is imposed by the layers
above. Concurrent writers to the same persistent medium are last
writer wins at the key level.
"""
import os
import logging
from pathlib import Path
from typing import Optional, Protocol, Union
from collections.abc import Iterator, MutableMapping

import orjson

logger = logging.getLogger("clientguard.storage")


class KeyValueStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...

    def clear(self) -> None: ...

    def keys(self) -> list[str]: ...


class MemoryStorage(MutableMapping[str, str]):
    """Dict-backed medium.

    Used as the session-scoped volatile medium (it dies with the
    process) and as the default persistent medium in tests.
    """

    def __init__(self, data: Optional[dict[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(data or {})

    def __repr__(self) -> str:
        return f'<MemoryStorage keys={list(self._data.keys())}>'

    # --- Storage API ---

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> list[str]:  # type: ignore[override]
        return list(self._data.keys())

    # --- Magic Methods ---

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._data))

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __setitem__(self, key: str, value: str) -> None:
        self.set_item(key, value)

    def __delitem__(self, key: str) -> None:
        del self._data[key]


class FileStorage(MemoryStorage):
    """Persistent medium backed by a single JSON document.

    Every mutation is written through to disk. The whole document is
    rewritten on each write, so two processes sharing the file overwrite
    each other's keys (last writer wins).
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)
        super().__init__(self._load())

    def __repr__(self) -> str:
        return f'<FileStorage path={str(self._path)!r} keys={len(self._data)}>'

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = orjson.loads(self._path.read_bytes())
        except (OSError, orjson.JSONDecodeError) as err:
            logger.error("Unable to read storage file %s: %s", self._path, err)
            return {}
        if not isinstance(data, dict):
            logger.error("Storage file %s is not a JSON object", self._path)
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_bytes(orjson.dumps(self._data))
        os.replace(tmp, self._path)

    def reload(self) -> None:
        """Discard in-memory state and re-read the file."""
        self._data = self._load()

    def set_item(self, key: str, value: str) -> None:
        super().set_item(key, value)
        self._flush()

    def remove_item(self, key: str) -> None:
        if key in self._data:
            super().remove_item(key)
            self._flush()

    def clear(self) -> None:
        super().clear()
        self._flush()

    def __delitem__(self, key: str) -> None:
        super().__delitem__(key)
        self._flush()
