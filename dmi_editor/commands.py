import os
from functools import wraps
from typing import Any, Dict, Optional

from .chunk_store import ChunkStore, MetadataSession, clear as truncate_file
from .grid import PixelGrid, clear_by_direction, mirror_paired
from .image_utils import FileSprite
from .logger import error, trace
from .png import PNG, bytes_to_hex, printable_text
from .sprite import (
    ActionableError,
    ChunkNotFound,
    Direction,
    MalformedChunk,
    IOFailure,
    OpenSprite,
)

TEMP_PNG_PATH = os.environ.get("DMI_TEMP_PNG", "temp_dmi.png")
DEFAULT_CELL_WIDTH = int(os.environ.get("DMI_CELL_WIDTH", "32"))
DEFAULT_CELL_HEIGHT = int(os.environ.get("DMI_CELL_HEIGHT", "32"))
HEX_PREVIEW_BYTES = 200


class EditorSession:
    """열린 스프라이트와 불러온 DMI 메타데이터를 함께 보관합니다."""

    def __init__(self, metadata_path: Optional[str] = None):
        self.metadata = MetadataSession(ChunkStore(metadata_path))
        self.sprite: Optional[OpenSprite] = None

    def require_sprite(self) -> OpenSprite:
        if not self.sprite:
            raise ActionableError("No sprite open to process")
        return self.sprite


def handle_errors(fn):
    """명령 경계에서 오류를 상태 딕셔너리로 변환합니다."""
    @wraps(fn)
    def wrapper(*args, **kwargs) -> Dict[str, Any]:
        try:
            return fn(*args, **kwargs)
        except ChunkNotFound as e:
            return {"status": "not_found", "reason": str(e)}
        except ActionableError as e:
            return {"status": "error", "reason": str(e)}
        except Exception as e:
            error(f"'{fn.__name__}' 실패: {e}")
            return {"status": "failed", "reason": str(e)}
    return wrapper


# Metadata commands ----------------------------------------------------------

@handle_errors
def status(session: EditorSession) -> Dict[str, Any]:
    chunk = session.metadata.load()
    info: Dict[str, Any] = {
        "status": "success",
        "metadata_loaded": chunk is not None,
        "metadata_bytes": len(chunk) if chunk else 0,
        "metadata_path": session.metadata.store.path,
    }
    if session.sprite:
        info["sprite"] = session.sprite.path
    if chunk is None:
        info["message"] = "No DMI metadata loaded"
    else:
        info["message"] = f"DMI metadata is loaded ({len(chunk)} bytes)"
    return info


@handle_errors
def import_dmi(session: EditorSession, path: str) -> Dict[str, Any]:
    """DMI 파일에서 zTXt 청크를 가져오고 파일을 스프라이트로 엽니다."""
    trace(f"Opening file: {path}")
    try:
        with open(path, 'rb') as f:
            file_data = f.read()
    except OSError as e:
        raise IOFailure(f"Could not open file: {path}") from e

    trace(f"File size: {len(file_data)} bytes")

    result: Dict[str, Any]
    try:
        chunk = session.metadata.import_from(file_data)
        result = {
            "status": "imported",
            "offset": chunk.offset,
            "length": chunk.length,
            "bytes": len(chunk),
        }
        trace(f"Extracted {len(chunk)} bytes of raw chunk data")
    except ChunkNotFound:
        result = {"status": "not_found", "reason": "No zTXt chunk found in file"}
    except MalformedChunk as e:
        result = {"status": "error", "reason": str(e)}

    # 메타데이터 유무와 관계없이 파일은 연다
    session.sprite = OpenSprite(path=path, host=FileSprite.open(path))
    result["sprite"] = path
    return result


@handle_errors
def export_dmi(
    session: EditorSession,
    output_path: str,
    width: int = DEFAULT_CELL_WIDTH,
    height: int = DEFAULT_CELL_HEIGHT,
    directions: int = 4,
) -> Dict[str, Any]:
    """현재 스프라이트를 PNG로 저장하고 보관한 zTXt 청크를 첫 IDAT 앞에 넣습니다."""
    sprite = session.require_sprite()
    chunk = session.metadata.load()
    if chunk is None:
        raise ActionableError("No DMI metadata loaded. Please import a DMI file first.")

    trace(f"Exporting to: {output_path}")
    try:
        sprite.host.save(TEMP_PNG_PATH)
        with open(TEMP_PNG_PATH, 'rb') as f:
            png_data = f.read()
    except OSError as e:
        raise IOFailure(f"Could not create temporary PNG file at: {TEMP_PNG_PATH}") from e

    trace(f"Temp PNG size: {len(png_data)} bytes")
    output_data = PNG(png_data).splice(chunk)

    try:
        with open(output_path, 'wb') as f:
            f.write(output_data)
    except OSError as e:
        raise IOFailure(f"Could not create output file: {output_path}") from e

    truncate_file(TEMP_PNG_PATH)
    dims = PNG(output_data).get_dimensions()

    return {
        "status": "exported",
        "path": output_path,
        "bytes": len(output_data),
        "width": dims.width,
        "height": dims.height,
        "frame_width": width,
        "frame_height": height,
        "directions": directions,
    }


@handle_errors
def view_metadata(session: EditorSession, max_len: int = HEX_PREVIEW_BYTES) -> Dict[str, Any]:
    chunk = session.metadata.load()
    if chunk is None:
        return {"status": "empty", "message": "No DMI metadata loaded"}
    return {
        "status": "success",
        "bytes": len(chunk),
        "hex": bytes_to_hex(chunk, max_len),
        "text": printable_text(chunk, max_len),
    }


@handle_errors
def clear_metadata(session: EditorSession) -> Dict[str, Any]:
    session.metadata.clear()
    return {"status": "cleared"}


# Sprite commands ------------------------------------------------------------

@handle_errors
def open_sprite(session: EditorSession, path: str) -> Dict[str, Any]:
    host = FileSprite.open(path)
    session.sprite = OpenSprite(path=path, host=host)
    return {"status": "opened", "path": path, "width": host.width, "height": host.height}


@handle_errors
def save_sprite(session: EditorSession, path: Optional[str] = None) -> Dict[str, Any]:
    sprite = session.require_sprite()
    target = path or sprite.path
    sprite.host.save(target)
    return {"status": "saved", "path": target}


def _transform_frame(session: EditorSession, transform) -> int:
    sprite = session.require_sprite()
    host = sprite.host
    grid = PixelGrid(host.width, host.height, host.get_frame_pixels(sprite.frame))
    grid, count = transform(grid)
    if count > 0:
        host.commit_frame_pixels(grid.pixels, sprite.frame)
    return count


@handle_errors
def mirror_east_to_west(
    session: EditorSession,
    cell_width: int = DEFAULT_CELL_WIDTH,
    cell_height: int = DEFAULT_CELL_HEIGHT,
    source: Direction = Direction.EAST,
    target: Direction = Direction.WEST,
) -> Dict[str, Any]:
    count = _transform_frame(
        session, lambda grid: mirror_paired(grid, cell_width, cell_height, source, target)
    )
    if count > 0:
        message = f"Mirrored {count} {source.name.lower()}-facing sprites to {target.name.lower()}-facing positions"
        return {"status": "mirrored", "count": count, "message": message}
    return {
        "status": "unchanged",
        "count": 0,
        "message": f"No {source.name.lower()}-facing sprites were found to process",
    }


@handle_errors
def delete_west_frames(
    session: EditorSession,
    cell_width: int = DEFAULT_CELL_WIDTH,
    cell_height: int = DEFAULT_CELL_HEIGHT,
    direction: Direction = Direction.WEST,
) -> Dict[str, Any]:
    count = _transform_frame(
        session, lambda grid: clear_by_direction(grid, cell_width, cell_height, direction)
    )
    if count > 0:
        message = f"Deleted {count} {direction.name.lower()}-facing frames"
        return {"status": "deleted", "count": count, "message": message}
    return {
        "status": "unchanged",
        "count": 0,
        "message": f"No {direction.name.lower()}-facing frames were found to delete",
    }
