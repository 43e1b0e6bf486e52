from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from .logger import trace
from .sprite import Direction, InvalidGeometry, Pixel, TRANSPARENT


class PixelGrid:
    """행 우선 RGBA 픽셀 버퍼. 좌표 접근 시 범위를 검사합니다."""

    def __init__(self, width: int, height: int, pixels: Optional[List[Pixel]] = None):
        if width < 0 or height < 0:
            raise ValueError("width/height must be >= 0")
        if pixels is None:
            pixels = [TRANSPARENT] * (width * height)
        elif len(pixels) != width * height:
            raise ValueError(
                f"pixel count mismatch: got {len(pixels)} expected {width * height}"
            )
        self.width = width
        self.height = height
        self.pixels = list(pixels)

    def _index(self, x: int, y: int) -> int:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"pixel ({x}, {y}) outside {self.width}x{self.height}")
        return y * self.width + x

    def get_pixel(self, x: int, y: int) -> Pixel:
        return self.pixels[self._index(x, y)]

    def set_pixel(self, x: int, y: int, color: Pixel) -> None:
        self.pixels[self._index(x, y)] = color


@dataclass
class Cell:
    index: int
    x: int
    y: int

    @property
    def direction(self) -> Direction:
        return Direction.of_index(self.index)


class CellLayout:
    """스프라이트 시트를 고정 크기 셀의 격자로 나눕니다."""

    def __init__(self, width: int, height: int, cell_width: int, cell_height: int):
        if cell_width <= 0 or cell_height <= 0:
            raise InvalidGeometry("Frame size must be greater than zero")
        if width % cell_width != 0 or height % cell_height != 0:
            raise InvalidGeometry("Sprite dimensions must be multiples of the frame size")

        self.cell_width = cell_width
        self.cell_height = cell_height
        self.columns = width // cell_width
        self.rows = height // cell_height

    @property
    def total_cells(self) -> int:
        return self.columns * self.rows

    def cell(self, index: int) -> Cell:
        col = index % self.columns
        row = index // self.columns
        return Cell(index=index, x=col * self.cell_width, y=row * self.cell_height)

    def cells(self) -> Iterator[Cell]:
        for index in range(self.total_cells):
            yield self.cell(index)


def _clear_cell(grid: PixelGrid, layout: CellLayout, cell: Cell) -> None:
    for py in range(layout.cell_height):
        for px in range(layout.cell_width):
            grid.set_pixel(cell.x + px, cell.y + py, TRANSPARENT)


def mirror_paired(
    grid: PixelGrid,
    cell_width: int,
    cell_height: int,
    source: Direction = Direction.EAST,
    target: Direction = Direction.WEST,
) -> Tuple[PixelGrid, int]:
    """source 방향 셀을 바로 다음 target 방향 셀에 좌우 반전하여 복사합니다.

    다음 셀이 없거나 방향이 target이 아니면 건너뜁니다.

    Returns:
        (grid, 처리한 셀 쌍의 수). 0이면 아무것도 바뀌지 않았습니다.
    """
    layout = CellLayout(grid.width, grid.height, cell_width, cell_height)
    processed = 0

    for cell in layout.cells():
        if cell.direction != source:
            continue

        next_index = cell.index + 1
        if next_index >= layout.total_cells or Direction.of_index(next_index) != target:
            continue
        dest = layout.cell(next_index)

        # 원본 셀을 임시 버퍼로 복사
        buffer = PixelGrid(cell_width, cell_height)
        for py in range(cell_height):
            for px in range(cell_width):
                buffer.set_pixel(px, py, grid.get_pixel(cell.x + px, cell.y + py))

        _clear_cell(grid, layout, dest)

        for py in range(cell_height):
            for px in range(cell_width):
                grid.set_pixel(dest.x + (cell_width - 1 - px), dest.y + py, buffer.get_pixel(px, py))

        processed += 1

    trace(f"{source.name} -> {target.name} 반전: {processed}쌍")
    return grid, processed


def clear_by_direction(
    grid: PixelGrid,
    cell_width: int,
    cell_height: int,
    direction: Direction = Direction.WEST,
) -> Tuple[PixelGrid, int]:
    """해당 방향의 모든 셀을 투명하게 지웁니다. grid와 지운 셀 수를 반환합니다."""
    layout = CellLayout(grid.width, grid.height, cell_width, cell_height)
    cleared = 0

    for cell in layout.cells():
        if cell.direction == direction:
            _clear_cell(grid, layout, cell)
            cleared += 1

    trace(f"{direction.name} 프레임 삭제: {cleared}개")
    return grid, cleared
