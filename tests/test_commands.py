import os
import struct
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

sys.path.insert(0, str(Path(__file__).resolve().parent))

from dmi_editor import commands
from dmi_editor.commands import EditorSession
from dmi_editor.image_utils import FileSprite
from dmi_editor.png import extract
from dmi_editor.sprite import Direction, OpenSprite, TRANSPARENT
from samples import insert_before_idat, make_dmi, make_png, make_ztxt


class FakeHost:
    """픽셀 버퍼만 가진 호스트 대역"""

    def __init__(self, width, height, pixels):
        self.width = width
        self.height = height
        self.pixels = list(pixels)
        self.commits = []

    def get_frame_pixels(self, frame=0):
        return list(self.pixels)

    def commit_frame_pixels(self, pixels, frame=0):
        self.commits.append(frame)
        self.pixels = list(pixels)


def opaque(width, height):
    return [(x % 256, y % 256, 1, 255) for y in range(height) for x in range(width)]


class CommandTestCase(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = self.tmp.name
        self.session = EditorSession(os.path.join(self.dir, "dmi_metadata.bin"))
        patcher = patch.object(commands, "TEMP_PNG_PATH", os.path.join(self.dir, "temp_dmi.png"))
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        self.tmp.cleanup()

    def write(self, name, data):
        path = os.path.join(self.dir, name)
        with open(path, "wb") as f:
            f.write(data)
        return path


class TestMetadataCommands(CommandTestCase):
    def test_status_cold_start(self):
        result = commands.status(self.session)
        self.assertEqual(result["status"], "success")
        self.assertFalse(result["metadata_loaded"])
        self.assertEqual(result["message"], "No DMI metadata loaded")

    def test_import_dmi(self):
        path = self.write("walk.dmi", make_dmi(64, 32))
        result = commands.import_dmi(self.session, path)

        self.assertEqual(result["status"], "imported")
        self.assertEqual(result["bytes"], len(make_ztxt()))
        self.assertEqual(self.session.metadata.chunk, make_ztxt())
        self.assertEqual(self.session.sprite.path, path)
        self.assertEqual(self.session.sprite.host.width, 64)

        status = commands.status(EditorSession(self.session.metadata.store.path))
        self.assertTrue(status["metadata_loaded"])
        self.assertEqual(status["metadata_bytes"], len(make_ztxt()))

    def test_import_without_chunk_still_opens_sprite(self):
        path = self.write("plain.png", make_png())
        result = commands.import_dmi(self.session, path)
        self.assertEqual(result["status"], "not_found")
        self.assertEqual(result["reason"], "No zTXt chunk found in file")
        self.assertIsNotNone(self.session.sprite)
        self.assertFalse(self.session.metadata.is_loaded)

    def test_import_missing_file(self):
        result = commands.import_dmi(self.session, os.path.join(self.dir, "missing.dmi"))
        self.assertEqual(result["status"], "error")
        self.assertIn("Could not open file", result["reason"])

    def test_import_malformed_still_opens_sprite(self):
        path = self.write("bad.dmi", b"zTXt" + make_png())
        host = FakeHost(32, 32, opaque(32, 32))
        with patch.object(commands.FileSprite, "open", return_value=host) as mock_open:
            result = commands.import_dmi(self.session, path)

        self.assertEqual(result["status"], "error")
        self.assertIn("could not determine length", result["reason"])
        mock_open.assert_called_once_with(path)
        self.assertIs(self.session.sprite.host, host)
        self.assertFalse(self.session.metadata.is_loaded)

    def test_import_truncated_chunk_keeps_previous_metadata(self):
        self.session.metadata.replace(make_ztxt())
        truncated = insert_before_idat(make_png(), struct.pack(">I", 1 << 20) + b"zTXt")
        path = self.write("truncated.dmi", truncated)
        with patch.object(commands.FileSprite, "open", return_value=FakeHost(32, 32, opaque(32, 32))):
            result = commands.import_dmi(self.session, path)

        self.assertEqual(result["status"], "error")
        self.assertEqual(result["sprite"], path)
        self.assertEqual(self.session.metadata.chunk, make_ztxt())

    def test_view_metadata(self):
        self.session.metadata.replace(make_ztxt())
        result = commands.view_metadata(self.session)
        self.assertEqual(result["status"], "success")
        self.assertTrue(result["hex"].startswith("00 00 00 "))
        self.assertIn("zTXtDescription", result["text"])

    def test_view_metadata_limit(self):
        self.session.metadata.replace(b"\x00" * 500)
        result = commands.view_metadata(self.session)
        self.assertEqual(len(result["text"]), 200)
        self.assertEqual(result["bytes"], 500)

    def test_view_without_metadata(self):
        self.assertEqual(commands.view_metadata(self.session)["status"], "empty")

    def test_clear_metadata(self):
        self.session.metadata.replace(make_ztxt())
        self.assertEqual(commands.clear_metadata(self.session)["status"], "cleared")
        self.assertFalse(self.session.metadata.is_loaded)
        self.assertIsNone(self.session.metadata.store.recall())
        self.assertFalse(commands.status(self.session)["metadata_loaded"])


class TestExport(CommandTestCase):
    def test_export_round_trip(self):
        source = self.write("walk.dmi", make_dmi())
        commands.import_dmi(self.session, source)
        output = os.path.join(self.dir, "out.dmi")

        result = commands.export_dmi(self.session, output, width=16, height=16)

        self.assertEqual(result["status"], "exported")
        self.assertEqual(result["frame_width"], 16)
        with open(output, "rb") as f:
            data = f.read()
        chunk = extract(data)
        self.assertEqual(chunk.data, make_ztxt())
        self.assertEqual(data[chunk.offset + len(chunk) + 4:chunk.offset + len(chunk) + 8], b"IDAT")
        self.assertEqual(os.path.getsize(commands.TEMP_PNG_PATH), 0)

    def test_export_without_sprite(self):
        self.session.metadata.replace(make_ztxt())
        result = commands.export_dmi(self.session, os.path.join(self.dir, "out.dmi"))
        self.assertEqual(result["status"], "error")
        self.assertEqual(result["reason"], "No sprite open to process")

    def test_export_without_metadata(self):
        commands.open_sprite(self.session, self.write("plain.png", make_png()))
        result = commands.export_dmi(self.session, os.path.join(self.dir, "out.dmi"))
        self.assertEqual(result["status"], "error")
        self.assertIn("import a DMI file first", result["reason"])

    def test_export_uses_stored_metadata(self):
        self.session.metadata.store.persist(make_ztxt())
        session = EditorSession(self.session.metadata.store.path)
        commands.open_sprite(session, self.write("plain.png", make_png()))
        output = os.path.join(self.dir, "out.dmi")

        self.assertEqual(commands.export_dmi(session, output)["status"], "exported")
        with open(output, "rb") as f:
            self.assertIn(make_ztxt(), f.read())

    def test_export_to_unwritable_path(self):
        self.session.metadata.replace(make_ztxt())
        commands.open_sprite(self.session, self.write("plain.png", make_png()))
        result = commands.export_dmi(self.session, self.dir)
        self.assertEqual(result["status"], "error")
        self.assertIn("Could not create output file", result["reason"])


class TestSpriteCommands(CommandTestCase):
    def open_fake(self, width, height):
        host = FakeHost(width, height, opaque(width, height))
        self.session.sprite = OpenSprite(path="fake.png", host=host)
        return host

    def test_mirror_commits_once(self):
        host = self.open_fake(64, 16)
        result = commands.mirror_east_to_west(self.session, 16, 16)
        self.assertEqual(result["status"], "mirrored")
        self.assertEqual(result["count"], 1)
        self.assertEqual(result["message"], "Mirrored 1 east-facing sprites to west-facing positions")
        self.assertEqual(host.commits, [0])
        # 서쪽 셀 첫 픽셀 = 동쪽 셀 마지막 열
        self.assertEqual(host.pixels[48], (47, 0, 1, 255))

    def test_mirror_no_pairs_does_not_commit(self):
        host = self.open_fake(32, 16)
        result = commands.mirror_east_to_west(self.session, 16, 16)
        self.assertEqual(result["status"], "unchanged")
        self.assertEqual(result["message"], "No east-facing sprites were found to process")
        self.assertEqual(host.commits, [])

    def test_mirror_invalid_geometry(self):
        host = self.open_fake(30, 32)
        before = list(host.pixels)
        result = commands.mirror_east_to_west(self.session, 32, 32)
        self.assertEqual(result["status"], "error")
        self.assertEqual(result["reason"], "Sprite dimensions must be multiples of the frame size")
        self.assertEqual(host.pixels, before)
        self.assertEqual(host.commits, [])

    def test_delete_west_frames(self):
        host = self.open_fake(32, 32)
        result = commands.delete_west_frames(self.session, 16, 16)
        self.assertEqual(result["status"], "deleted")
        self.assertEqual(result["message"], "Deleted 1 west-facing frames")
        self.assertEqual(host.pixels[16 * 32 + 16], TRANSPARENT)
        self.assertNotEqual(host.pixels[16 * 32 + 15], TRANSPARENT)

    def test_delete_custom_direction(self):
        host = self.open_fake(32, 32)
        result = commands.delete_west_frames(self.session, 16, 16, Direction.NORTH)
        self.assertEqual(result["count"], 1)
        self.assertEqual(host.pixels[16], TRANSPARENT)

    def test_delete_without_sprite(self):
        result = commands.delete_west_frames(self.session, 16, 16)
        self.assertEqual(result, {"status": "error", "reason": "No sprite open to process"})

    def test_unexpected_error_is_reported(self):
        host = MagicMock()
        host.width = 32
        host.height = 32
        host.get_frame_pixels.side_effect = RuntimeError("frame unavailable")
        self.session.sprite = OpenSprite(path="fake.png", host=host)
        with patch.object(commands, "error") as mock_error:
            result = commands.mirror_east_to_west(self.session, 16, 16)
        self.assertEqual(result, {"status": "failed", "reason": "frame unavailable"})
        mock_error.assert_called_once()

    def test_file_sprite_mirror_and_save(self):
        path = self.write("sheet.png", make_png(64, 16, (10, 20, 30, 255)))
        commands.open_sprite(self.session, path)
        sprite = self.session.sprite.host
        self.assertIsInstance(sprite, FileSprite)

        self.assertEqual(commands.delete_west_frames(self.session, 16, 16)["count"], 1)
        self.assertEqual(commands.save_sprite(self.session)["status"], "saved")

        reopened = FileSprite.open(path)
        self.assertEqual(reopened.image.getpixel((48, 0)), (0, 0, 0, 0))
        self.assertEqual(reopened.image.getpixel((0, 0)), (10, 20, 30, 255))

        self.assertTrue(sprite.undo())
        self.assertEqual(sprite.image.getpixel((48, 0)), (10, 20, 30, 255))
        self.assertFalse(sprite.undo())


if __name__ == "__main__":
    unittest.main()
