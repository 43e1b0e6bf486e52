from typing import Protocol, List, Tuple
from dataclasses import dataclass
from enum import IntEnum


Pixel = Tuple[int, int, int, int]

TRANSPARENT: Pixel = (0, 0, 0, 0)


class Direction(IntEnum):
    """SNEW 순서의 방향. 셀 인덱스 % 4 로 결정됩니다."""
    SOUTH = 0
    NORTH = 1
    EAST = 2
    WEST = 3

    @classmethod
    def of_index(cls, index: int) -> 'Direction':
        return cls(index % 4)

    @classmethod
    def parse(cls, value: str) -> 'Direction':
        """'east', 'E', '2' 같은 문자열을 방향으로 변환합니다."""
        text = value.strip().upper()
        if text.isdigit():
            return cls(int(text) % 4)
        for direction in cls:
            if direction.name == text or direction.name[0] == text:
                return direction
        raise ValueError(f"Unknown direction: {value}")


class ActionableError(Exception):
    """사용자가 조치 가능한 오류"""
    pass


class ChunkNotFound(ActionableError):
    """키워드나 앵커 청크를 버퍼에서 찾지 못했습니다."""
    pass


class MalformedChunk(ActionableError):
    """청크의 길이 필드나 본문을 읽을 수 없습니다."""
    pass


class InvalidGeometry(ActionableError):
    """스프라이트 크기가 셀 크기로 나누어떨어지지 않습니다."""
    pass


class IOFailure(ActionableError):
    """저장소 파일을 열 수 없습니다."""
    pass


class SpriteHost(Protocol):
    """스프라이트를 편집하는 호스트 애플리케이션의 공통 인터페이스"""

    @property
    def width(self) -> int:
        ...

    @property
    def height(self) -> int:
        ...

    def get_frame_pixels(self, frame: int = 0) -> List[Pixel]:
        """프레임 전체 해상도의 RGBA 픽셀을 행 우선 순서로 가져옵니다."""
        ...

    def commit_frame_pixels(self, pixels: List[Pixel], frame: int = 0) -> None:
        """픽셀 버퍼로 프레임 내용을 교체합니다. 하나의 되돌리기 단위로 처리됩니다."""
        ...

    def save(self, path: str) -> None:
        """스프라이트를 PNG 파일로 저장합니다."""
        ...


@dataclass
class OpenSprite:
    """현재 열려 있는 스프라이트와 그 경로"""
    path: str
    host: SpriteHost
    frame: int = 0
