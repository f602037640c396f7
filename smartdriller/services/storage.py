"""
services/storage.py — 키-값 영속화 (브라우저 localStorage 대응)

세션 컨트롤러는 이 좁은 인터페이스(get/set/remove)에만 의존한다.
  - MemoryStore   : 프로세스 내 dict (테스트, 단일 프로세스 실행)
  - JsonFileStore : 키별 JSON 파일 (재시작 후 복구)
  - NamespacedStore : 쿠키 세션별로 키 앞에 접두사를 붙이는 래퍼
값은 항상 문자열(JSON 직렬화 결과)이다.
"""

import logging
import os
import re
import threading
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    """스레드 안전 인메모리 저장소."""

    def __init__(self):
        self._lock = threading.Lock()
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list:
        with self._lock:
            return list(self._data)


class JsonFileStore:
    """
    디렉토리 하나에 키별 파일로 저장.
    쓰기는 임시 파일 → os.replace 로 원자적으로 교체한다.
    """

    def __init__(self, directory: str):
        self.directory = directory
        self._lock = threading.Lock()
        os.makedirs(directory, exist_ok=True)

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, _UNSAFE_CHARS.sub("_", key) + ".json")

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        with self._lock:
            if not os.path.exists(path):
                return None
            with open(path, "r", encoding="utf-8") as f:
                return f.read()

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_path = path + ".tmp"
        with self._lock:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_path, path)

    def remove(self, key: str) -> None:
        path = self._path(key)
        with self._lock:
            if os.path.exists(path):
                os.remove(path)


class NamespacedStore:
    """다른 저장소 위에서 모든 키 앞에 `{namespace}:` 를 붙인다."""

    def __init__(self, inner: KeyValueStore, namespace: str):
        self.inner = inner
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get(self, key: str) -> Optional[str]:
        return self.inner.get(self._key(key))

    def set(self, key: str, value: str) -> None:
        self.inner.set(self._key(key), value)

    def remove(self, key: str) -> None:
        self.inner.remove(self._key(key))


def make_store(snapshot_dir: str = "") -> KeyValueStore:
    """설정값에 따라 저장소를 만든다. 디렉토리가 비어 있으면 인메모리."""
    if snapshot_dir:
        logger.info(f"스냅샷 저장소: {snapshot_dir}")
        return JsonFileStore(snapshot_dir)
    logger.info("스냅샷 저장소: 인메모리")
    return MemoryStore()
