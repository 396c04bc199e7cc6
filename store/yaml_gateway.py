"""File-backed gateway: one YAML document per owner under a data directory."""

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Callable, List, Union

import yaml

from models.errors import GatewayError
from models.schema import ENTITY_KINDS, new_record_id

from .gateway import Document, DocumentGateway

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.@-]")


def owner_filename(owner_id: str) -> str:
    return _UNSAFE_CHARS.sub("_", owner_id) + ".yaml"


class YamlFileGateway(DocumentGateway):
    """
    Stores each owner's model as `<data_dir>/<owner>.yaml`.

    Documents are replaced atomically (temp file + os.replace), so a reader
    never observes a half-written seed or update.
    """

    def __init__(
        self,
        data_dir: Union[str, Path],
        id_factory: Callable[[], str] = new_record_id
    ):
        super().__init__(id_factory)
        self.data_dir = Path(data_dir)

    def path_for(self, owner_id: str) -> Path:
        return self.data_dir / owner_filename(owner_id)

    def _load_document(self, owner_id: str) -> Document:
        path = self.path_for(owner_id)
        if not path.exists():
            return {}
        try:
            with open(path, "r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
        except (OSError, yaml.YAMLError) as exc:
            logger.error(f"Could not read {path}: {exc}")
            raise GatewayError(f"Could not read model file {path}: {exc}") from exc

        if not isinstance(data, dict):
            raise GatewayError(f"Model file {path} does not contain a mapping")
        if data.get("owner_id") not in (None, owner_id):
            raise GatewayError(f"Model file {path} belongs to {data.get('owner_id')!r}")

        collections = data.get("collections") or {}
        return {kind: list(collections.get(kind) or []) for kind in ENTITY_KINDS}

    def _save_document(self, owner_id: str, document: Document) -> None:
        path = self.path_for(owner_id)
        payload = {
            "owner_id": owner_id,
            "collections": {kind: document.get(kind, []) for kind in ENTITY_KINDS},
        }
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=".tmp-", suffix=".yaml")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    yaml.safe_dump(payload, handle, sort_keys=False, allow_unicode=True)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            logger.error(f"Could not write {path}: {exc}")
            raise GatewayError(f"Could not write model file {path}: {exc}") from exc

    def owners(self) -> List[str]:
        if not self.data_dir.exists():
            return []
        return sorted(p.stem for p in self.data_dir.glob("*.yaml") if not p.name.startswith("."))
