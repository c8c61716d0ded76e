import json
from pathlib import Path
from typing import Generic, Protocol, TypeVar

from loguru import logger
from pydantic import BaseModel

from tied_siren.errors import BlocklistNotFoundError, NotFoundError, SessionNotFoundError
from tied_siren.schema import Blocklist, BlockSession
from tied_siren.settings import settings
from tied_siren.utils.files import atomic_write_json


class BlockSessionRepository(Protocol):
    def find_all(self) -> list[BlockSession]: ...

    def find_by_id(self, session_id: str) -> BlockSession: ...

    def create(self, session: BlockSession) -> BlockSession: ...

    def update(self, session_id: str, changes: dict) -> BlockSession: ...

    def delete(self, session_id: str) -> None: ...


class BlocklistRepository(Protocol):
    def find_all(self) -> list[Blocklist]: ...

    def find_by_id(self, blocklist_id: str) -> Blocklist: ...

    def create(self, blocklist: Blocklist) -> Blocklist: ...

    def delete(self, blocklist_id: str) -> None: ...


ModelT = TypeVar("ModelT", bound=BaseModel)


class _JsonFileRepository(Generic[ModelT]):
    """Keeps a list of models in a JSON file, reloading when the file changes."""

    model: type[ModelT]
    not_found: type[NotFoundError]

    def __init__(self, path: Path):
        self.path = path
        self._items: list[ModelT] = []
        self._last_mtime: float | None = None
        self._load()

    def _load(self):
        if not self.path.exists():
            self._last_mtime = None
            self._items = []
            return

        current_mtime = self.path.stat().st_mtime
        if self._last_mtime == current_mtime:
            return

        try:
            with open(self.path) as f:
                data = json.load(f)
            items = [self.model.model_validate(item) for item in data]
        except (OSError, ValueError) as e:
            logger.warning(
                f"Keeping {len(self._items)} cached entries, cannot read {self.path}: {e}"
            )
            return
        self._items = items
        self._last_mtime = current_mtime
        logger.debug(f"Loaded {len(self._items)} entries from {self.path}")

    def _save(self):
        atomic_write_json(self.path, [item.model_dump(mode="json") for item in self._items])
        self._last_mtime = self.path.stat().st_mtime

    def find_all(self) -> list[ModelT]:
        self._load()
        return list(self._items)

    def find_by_id(self, item_id: str) -> ModelT:
        self._load()
        for item in self._items:
            if item.id == item_id:
                return item
        raise self.not_found(item_id)

    def create(self, item: ModelT) -> ModelT:
        self._load()
        self._items.append(item)
        self._save()
        return item

    def update(self, item_id: str, changes: dict) -> ModelT:
        current = self.find_by_id(item_id)
        updated = self.model.model_validate({**current.model_dump(), **changes})
        self._items = [updated if item.id == item_id else item for item in self._items]
        self._save()
        return updated

    def delete(self, item_id: str) -> None:
        self.find_by_id(item_id)
        self._items = [item for item in self._items if item.id != item_id]
        self._save()


class JsonBlockSessionRepository(_JsonFileRepository[BlockSession]):
    model = BlockSession
    not_found = SessionNotFoundError

    def __init__(self, path: Path | None = None):
        super().__init__(path or settings.sessions_file)


class JsonBlocklistRepository(_JsonFileRepository[Blocklist]):
    model = Blocklist
    not_found = BlocklistNotFoundError

    def __init__(self, path: Path | None = None):
        super().__init__(path or settings.blocklists_file)
