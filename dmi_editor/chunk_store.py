import os
from typing import Optional

from .logger import trace
from .png import Chunk, DMI_KEYWORDS, extract
from .sprite import IOFailure


DEFAULT_METADATA_PATH = "dmi_metadata.bin"


def persist(chunk: bytes, path: str) -> None:
    """청크 바이트를 파일에 저장합니다. 기존 내용은 덮어씁니다."""
    try:
        with open(path, 'wb') as f:
            f.write(chunk)
    except OSError as e:
        raise IOFailure(f"Could not write metadata file: {path} ({e})") from e

    trace(f"{len(chunk)} 바이트를 {path}에 저장")


def recall(path: str) -> Optional[bytes]:
    """저장된 청크를 읽습니다. 파일이 없거나 비어 있으면 None을 반환합니다."""
    try:
        with open(path, 'rb') as f:
            data = f.read()
    except FileNotFoundError:
        return None
    except OSError as e:
        raise IOFailure(f"Could not read metadata file: {path} ({e})") from e

    if not data:
        return None

    trace(f"{path}에서 {len(data)} 바이트 로드")
    return data


def clear(path: str) -> None:
    """파일을 삭제하지 않고 빈 파일로 잘라냅니다."""
    try:
        with open(path, 'wb'):
            pass
    except OSError as e:
        raise IOFailure(f"Could not empty metadata file: {path} ({e})") from e

    trace(f"파일 비움: {path}")


class ChunkStore:
    """한 경로에 묶인 청크 저장소"""

    def __init__(self, path: Optional[str] = None):
        self.path = path or os.environ.get("DMI_METADATA_PATH", DEFAULT_METADATA_PATH)

    def persist(self, chunk: bytes) -> None:
        persist(chunk, self.path)

    def recall(self) -> Optional[bytes]:
        return recall(self.path)

    def clear(self) -> None:
        clear(self.path)


class MetadataSession:
    """가져오기와 내보내기 사이에 zTXt 청크 하나를 보관합니다."""

    def __init__(self, store: Optional[ChunkStore] = None):
        self.store = store or ChunkStore()
        self.chunk: Optional[bytes] = None

    @property
    def is_loaded(self) -> bool:
        return self.chunk is not None

    def load(self) -> Optional[bytes]:
        """아직 청크가 없으면 저장소에서 읽어옵니다."""
        if self.chunk is None:
            self.chunk = self.store.recall()
        return self.chunk

    def replace(self, chunk: bytes) -> None:
        """세션의 청크를 교체하고 저장소에 기록합니다.

        저장에 실패해도 세션의 청크는 이전 값으로 남습니다.
        """
        self.store.persist(chunk)
        self.chunk = bytes(chunk)

    def import_from(self, buffer: bytes) -> Chunk:
        """버퍼에서 청크를 추출해 세션에 담습니다."""
        chunk = extract(buffer, DMI_KEYWORDS)
        self.replace(chunk.data)
        return chunk

    def clear(self) -> None:
        self.store.clear()
        self.chunk = None
