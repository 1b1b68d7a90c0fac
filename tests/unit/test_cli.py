"""Unit tests for the device-local converter CLI."""

from pathlib import Path

from app.cli import guess_mime, main, output_path


class TestHelpers:
    def test_guess_mime(self):
        assert guess_mime(Path("IMG_0001.HEIC")) == "image/heic"
        assert guess_mime(Path("a.heif")) == "image/heic"
        assert guess_mime(Path("a.png")) == "image/png"
        assert guess_mime(Path("noext")) == ""

    def test_output_path(self, tmp_path):
        target = output_path(Path("/photos/beach.jpg"), tmp_path)
        assert target.parent == tmp_path
        assert target.name.startswith("beach-")
        assert target.suffix == ".pdf"


class TestMain:
    def test_converts(self, tmp_path, make_image, capsys):
        src = tmp_path / "beach.png"
        src.write_bytes(make_image(300, 500, fmt="PNG"))
        out_dir = tmp_path / "out"

        assert main([str(src), "--out-dir", str(out_dir)]) == 0
        written = list(out_dir.glob("beach-*.pdf"))
        assert len(written) == 1
        assert written[0].read_bytes().startswith(b"%PDF-")
        assert str(written[0]) in capsys.readouterr().out

    def test_unsupported(self, tmp_path, capsys):
        src = tmp_path / "notes.txt"
        src.write_text("hello")
        assert main([str(src)]) == 2
        captured = capsys.readouterr()
        assert "UNSUPPORTED_INPUT_TYPE" in captured.err
        assert captured.out == ""
        assert list(tmp_path.glob("*.pdf")) == []

    def test_missing_file(self, tmp_path, capsys):
        assert main([str(tmp_path / "nope.jpg")]) == 1
        assert "no such file" in capsys.readouterr().err

    def test_unwritable_out_dir(self, tmp_path, make_image, capsys):
        src = tmp_path / "beach.jpg"
        src.write_bytes(make_image(120, 80))
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        assert main([str(src), "--out-dir", str(blocker)]) == 1
        captured = capsys.readouterr()
        assert captured.err.startswith("error:")
        assert "Traceback" not in captured.err
