from typing import List

from PIL import Image

from .logger import trace
from .sprite import Pixel


class FileSprite:
    """PNG/DMI 파일 하나를 스프라이트로 다루는 호스트 구현 (Pillow 사용)"""

    def __init__(self, image: Image.Image):
        self.image = image.convert("RGBA")
        self._undo: List[Image.Image] = []

    @classmethod
    def open(cls, path: str) -> 'FileSprite':
        """파일에서 스프라이트를 엽니다."""
        with Image.open(path) as img:
            img.load()
            sprite = cls(img)
        trace(f"스프라이트 열림: {path} ({sprite.width}x{sprite.height})")
        return sprite

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def get_frame_pixels(self, frame: int = 0) -> List[Pixel]:
        return [tuple(p) for p in self.image.getdata()]

    def commit_frame_pixels(self, pixels: List[Pixel], frame: int = 0) -> None:
        """프레임 전체를 교체합니다. 이전 이미지는 되돌리기용으로 보관합니다."""
        if len(pixels) != self.width * self.height:
            raise ValueError(
                f"pixel count mismatch: got {len(pixels)} expected {self.width * self.height}"
            )
        replacement = Image.new("RGBA", self.image.size, (0, 0, 0, 0))
        replacement.putdata(pixels)
        self._undo.append(self.image)
        self.image = replacement

    def undo(self) -> bool:
        """마지막 커밋을 되돌립니다. 되돌릴 것이 없으면 False."""
        if not self._undo:
            return False
        self.image = self._undo.pop()
        return True

    def save(self, path: str) -> None:
        self.image.save(path, format="PNG")
        trace(f"스프라이트 저장: {path}")

