from dataclasses import dataclass
from typing import Optional, Protocol, Sequence
import struct

from .logger import trace
from .sprite import ChunkNotFound, MalformedChunk


PNG_SIGNATURE = bytes([137, 80, 78, 71, 13, 10, 26, 10])

ZTXT_TAG = b"zTXt"
# DMI 파일은 "Description" 키워드를 가진 zTXt 청크에 메타데이터를 저장합니다
DMI_KEYWORDS = (b"zTXtDescription", ZTXT_TAG)
ANCHOR_TAG = b"IDAT"

# 길이(4) + 타입(4) + CRC(4)
CHUNK_OVERHEAD = 12


@dataclass
class PngDimensions:
    """PNG 이미지의 크기 정보"""
    width: int
    height: int


@dataclass(frozen=True)
class Chunk:
    """길이 필드부터 CRC까지 그대로 잘라낸 PNG 청크"""
    data: bytes
    offset: int

    @property
    def length(self) -> int:
        """페이로드 길이 L (길이/타입/CRC 필드 제외)"""
        return struct.unpack('>I', self.data[:4])[0]

    @property
    def chunk_type(self) -> str:
        return self.data[4:8].decode('latin-1')

    @property
    def payload(self) -> bytes:
        return self.data[8:-4]

    @property
    def crc(self) -> bytes:
        return self.data[-4:]

    def __len__(self) -> int:
        return len(self.data)


class ChunkLocator(Protocol):
    """버퍼에서 청크 타입 태그의 위치를 찾는 인터페이스"""

    def find(self, buffer: bytes, tag: bytes) -> int:
        """태그의 첫 바이트 오프셋을 반환합니다. 없으면 -1."""
        ...


class ScanningChunkLocator:
    """청크 테이블을 따라가지 않고 바이트 단위로 태그를 검색합니다.

    태그와 같은 바이트열이 다른 청크의 데이터(예: 압축된 IDAT) 안에 먼저
    나타나면 그 위치가 청크로 잘못 해석됩니다. 알려진 제약입니다.
    """

    def find(self, buffer: bytes, tag: bytes) -> int:
        return buffer.find(tag)


_default_locator = ScanningChunkLocator()


def _as_bytes(value) -> bytes:
    if isinstance(value, str):
        return value.encode('latin-1')
    return bytes(value)


class PNG:
    """PNG 이미지 처리 클래스"""

    def __init__(self, buffer: bytes, locator: Optional[ChunkLocator] = None):
        """
        Args:
            buffer: PNG 이미지의 바이트 데이터
            locator: 청크 위치 검색기. 기본값은 선형 검색
        """
        self.buffer = buffer
        self.locator = locator or _default_locator

    def get_dimensions(self) -> PngDimensions:
        """PNG 이미지의 너비와 높이를 반환합니다."""
        if self.buffer[:8] != PNG_SIGNATURE:
            raise ValueError("Not a valid PNG file")

        # IHDR 청크에서 너비와 높이 읽기
        # 너비는 16번째 바이트부터 4바이트 (big-endian)
        # 높이는 20번째 바이트부터 4바이트 (big-endian)
        width = struct.unpack('>I', self.buffer[16:20])[0]
        height = struct.unpack('>I', self.buffer[20:24])[0]

        return PngDimensions(width=width, height=height)

    def find_chunk_start(self, tag) -> int:
        """태그가 붙은 첫 청크의 길이 필드 오프셋을 반환합니다."""
        tag = _as_bytes(tag)
        pos = self.locator.find(self.buffer, tag)
        if pos < 0:
            raise ChunkNotFound(f"Could not find {tag.decode('latin-1')} chunk")
        if pos < 4:
            raise MalformedChunk(
                f"Found {tag.decode('latin-1')} chunk but could not determine length (offset {pos})"
            )
        return pos - 4

    def extract_chunk(self, keywords: Sequence = DMI_KEYWORDS) -> Chunk:
        """키워드를 순서대로 검색해 처음 찾은 청크를 그대로 잘라냅니다.

        복합 태그(zTXtDescription)를 먼저 찾고, 없을 때만 단순 태그(zTXt)를
        찾습니다. 단순 태그가 더 앞에 있어도 복합 태그가 우선합니다.
        """
        if isinstance(keywords, (str, bytes, bytearray)):
            keywords = (keywords,)
        for keyword in keywords:
            keyword = _as_bytes(keyword)
            pos = self.locator.find(self.buffer, keyword)
            if pos < 0:
                trace(f"키워드 {keyword!r} 없음")
                continue
            if pos < 4:
                raise MalformedChunk("Found zTXt chunk but could not determine length")

            start = pos - 4
            length = struct.unpack('>I', self.buffer[start:pos])[0]
            end = start + CHUNK_OVERHEAD + length
            if end > len(self.buffer):
                raise MalformedChunk(
                    f"zTXt chunk length {length} runs past end of file ({end} > {len(self.buffer)})"
                )

            trace(f"오프셋 {start}에서 zTXt 청크 발견, 길이 {length}")
            return Chunk(data=bytes(self.buffer[start:end]), offset=start)

        raise ChunkNotFound("No zTXt chunk found in file")

    def splice(self, chunk: bytes, anchor=ANCHOR_TAG) -> bytes:
        """앵커 청크(첫 IDAT) 바로 앞에 청크를 삽입한 새 버퍼를 반환합니다."""
        start = self.find_chunk_start(anchor)
        trace(f"오프셋 {start}에 {len(chunk)} 바이트 삽입")
        return self.buffer[:start] + bytes(chunk) + self.buffer[start:]


def extract(buffer: bytes, keywords: Sequence = DMI_KEYWORDS) -> Chunk:
    return PNG(buffer).extract_chunk(keywords)


def splice(png_buffer: bytes, chunk: bytes, anchor=ANCHOR_TAG) -> bytes:
    return PNG(png_buffer).splice(chunk, anchor)


def bytes_to_hex(data: bytes, max_len: Optional[int] = None) -> str:
    """바이트를 16바이트 단위로 줄바꿈한 16진수 문자열로 변환합니다."""
    if max_len is None:
        max_len = len(data)
    result = []
    for i, byte in enumerate(data[:max_len], start=1):
        result.append(f"{byte:02X} ")
        if i % 16 == 0:
            result.append("\n")
    return "".join(result)


def printable_text(data: bytes, max_len: Optional[int] = None) -> str:
    """출력 가능한 ASCII 문자는 그대로, 나머지는 '.'으로 표시합니다."""
    if max_len is None:
        max_len = len(data)
    return "".join(chr(b) if 32 <= b <= 126 else "." for b in data[:max_len])
