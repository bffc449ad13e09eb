import copy
import json
import os
from pathlib import Path
from typing import Dict, Optional

from boxoffice.logger import logger


class MemoryStorage:
    """Хранилище документов сеансов в памяти (для тестов и офлайн-режима)"""

    def __init__(self):
        self.documents: Dict[str, dict] = {}

    def load(self, session_key: str) -> Optional[dict]:
        document = self.documents.get(session_key)
        return copy.deepcopy(document) if document is not None else None

    def save(self, session_key: str, document: dict):
        self.documents[session_key] = copy.deepcopy(document)


class JsonFileStorage:
    """Файловое хранилище: один JSON-документ на сеанс"""

    def __init__(self, data_dir):
        self.data_dir = Path(data_dir)

    def ensure_data_dir(self):
        """Создать директорию для данных если не существует"""
        os.makedirs(self.data_dir, exist_ok=True)

    def path_for(self, session_key: str) -> Path:
        safe_key = "".join(c if c.isalnum() or c in "-_." else "_" for c in session_key)
        return self.data_dir / f"{safe_key}.json"

    def load(self, session_key: str) -> Optional[dict]:
        """Загрузить документ сеанса из файла"""
        path = self.path_for(session_key)
        if not path.exists():
            logger.info(f"State file {path} not found, using default data")
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading state {path}: {e}")
            return None

        if not isinstance(document, dict):
            logger.error(f"Unexpected state format in {path}")
            return None
        return document

    def save(self, session_key: str, document: dict):
        """Сохранить документ сеанса в файл"""
        self.ensure_data_dir()
        path = self.path_for(session_key)
        tmp_path = path.with_suffix(".json.tmp")

        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(document, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)
        logger.info(f"State saved to {path}")
