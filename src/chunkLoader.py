# ------------------------------------------------------------------------------
#  BikeReplay
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of BikeReplay, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""Time-windowed data chunks: manifest parsing, fetching and load order."""
from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Deque, Dict, Iterable, List, Optional, Tuple

from errors import DataFetchError, MalformedChunkError
from plugin_base import ChunkFetcher
from plugin_registry import register_chunk_fetcher
from waypoints import Movement, parse_movements

logger = logging.getLogger("replay.chunks")

ChunkRecords = List[Tuple[int, List[Movement]]]


@dataclass(frozen=True)
class ChunkDescriptor:
    """Manifest entry for one chunk file."""
    file_name: str
    start_time: int
    last_time: int


def _field(record: Any, key: str, where: str) -> Any:
    if not isinstance(record, dict) or key not in record:
        raise MalformedChunkError(f"Missing required field '{key}' in {where}")
    return record[key]

def _integer(value: Any, key: str, where: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedChunkError(f"Field '{key}' must be an integer in {where}")
    if isinstance(value, float) and not value.is_integer():
        raise MalformedChunkError(f"Field '{key}' must be an integer in {where}")
    return int(value)

def parse_manifest(payload: Any) -> List[ChunkDescriptor]:
    """Turn `{"timeChunks": [...]}` into descriptors, keeping manifest order."""
    chunks = _field(payload, "timeChunks", "manifest")
    if not isinstance(chunks, list):
        raise MalformedChunkError("Field 'timeChunks' must be a list in manifest")
    descriptors = []
    for n, item in enumerate(chunks):
        where = f"manifest.timeChunks[{n}]"
        file_name = _field(item, "fileName", where)
        if not isinstance(file_name, str) or not file_name:
            raise MalformedChunkError(f"Field 'fileName' must be a non-empty string in {where}")
        descriptors.append(ChunkDescriptor(
            file_name,
            _integer(_field(item, "startTime", where), "startTime", where),
            _integer(_field(item, "lastTime", where), "lastTime", where),
        ))
    return descriptors

def parse_chunk(payload: Any, name: str = "chunk") -> ChunkRecords:
    """Validate a chunk payload completely and return `(id, movements)` pairs."""
    bikes = _field(payload, "bikes", name)
    if not isinstance(bikes, list):
        raise MalformedChunkError(f"Field 'bikes' must be a list in {name}")
    records = []
    for n, bike in enumerate(bikes):
        where = f"{name}.bikes[{n}]"
        bike_id = _integer(_field(bike, "id", where), "id", where)
        movements = parse_movements(_field(bike, "movements", where), f"{where}.movements")
        records.append((bike_id, movements))
    return records


class FileChunkFetcher:
    """Read manifest and chunk files from a data directory."""
    def __init__(self, base_dir: str | Path = "data"):
        """Initialize the instance."""
        self.base_dir = Path(base_dir)

    def fetch_json(self, name: str) -> Any:
        """Return the decoded JSON document called `name`."""
        path = self.base_dir / name
        try:
            with path.open("r", encoding="utf-8") as file:
                return json.load(file)
        except OSError as exc:
            raise DataFetchError(name, str(exc)) from exc
        except json.JSONDecodeError as exc:
            raise DataFetchError(name, f"invalid JSON ({exc})") from exc


class MemoryChunkFetcher:
    """Serve already decoded documents, keyed by name."""
    def __init__(self, documents: Optional[Dict[str, Any]] = None):
        """Initialize the instance."""
        self.documents = dict(documents or {})
        self.requests: List[str] = []

    def fetch_json(self, name: str) -> Any:
        """Return the document called `name`."""
        self.requests.append(name)
        if name not in self.documents:
            raise DataFetchError(name, "not found")
        return self.documents[name]


class ChunkLoader:
    """
    Remaining chunks of the dataset, consumed head to tail.

    `last_time` stays None until the final descriptor has been taken;
    from then on it is the end bound of the whole replay.
    """

    def __init__(self, fetcher: ChunkFetcher, descriptors: Iterable[ChunkDescriptor] = ()):
        """Initialize the instance."""
        self.fetcher = fetcher
        self._pending: Deque[ChunkDescriptor] = deque(descriptors)
        self.last_time: Optional[int] = None

    def reset(self, descriptors: Iterable[ChunkDescriptor]) -> None:
        """Replace the pending queue."""
        self._pending = deque(descriptors)
        self.last_time = None
        logger.info("Chunk queue initialised with %d chunks", len(self._pending))

    def fetch_manifest(self, name: str) -> List[ChunkDescriptor]:
        """Fetch and parse the manifest called `name`."""
        return parse_manifest(self.fetcher.fetch_json(name))

    @property
    def pending(self) -> List[ChunkDescriptor]:
        """Return the descriptors not yet taken."""
        return list(self._pending)

    def head(self) -> Optional[ChunkDescriptor]:
        """Return the next descriptor without taking it."""
        return self._pending[0] if self._pending else None

    def should_prefetch(self, current_time: int, lookahead: float) -> bool:
        """Return True if the next chunk starts within `lookahead` of `current_time`."""
        if not self._pending:
            return False
        return current_time + lookahead >= self._pending[0].start_time

    def pop_next(self) -> Optional[ChunkDescriptor]:
        """Take the next descriptor off the queue."""
        if not self._pending:
            return None
        descriptor = self._pending.popleft()
        if not self._pending:
            self.last_time = descriptor.last_time
            logger.info("Last chunk taken, replay ends at %s", self.last_time)
        return descriptor

    def fetch(self, descriptor: ChunkDescriptor) -> ChunkRecords:
        """Fetch and parse the chunk behind `descriptor`."""
        payload = self.fetcher.fetch_json(descriptor.file_name)
        records = parse_chunk(payload, descriptor.file_name)
        logger.info("Fetched chunk %s with %d bikes", descriptor.file_name, len(records))
        return records

    def load_next(self) -> Optional[ChunkRecords]:
        """
        Take the next descriptor and fetch it.

        Returns None on an empty queue. Fetch and parse errors propagate;
        the descriptor is not put back.
        """
        descriptor = self.pop_next()
        if descriptor is None:
            return None
        return self.fetch(descriptor)

    def __len__(self) -> int:
        return len(self._pending)


register_chunk_fetcher("file", lambda settings: FileChunkFetcher(settings.get("data_dir", "data")))
