"""Tests for the Click CLI."""

from __future__ import annotations

from click.testing import CliRunner
from PIL import Image

from emeraldviz.cli import main
from .conftest import OUTPUT_DIR


class TestCLI:
    def test_help(self):
        runner = CliRunner()
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "Dot matrix alignment viewer" in result.output

    def test_no_args_lists_commands(self):
        runner = CliRunner()
        result = runner.invoke(main, [])
        assert "export" in result.output
        assert "share-url" in result.output

    def test_export_png_and_svg(self, write_alignment):
        out = OUTPUT_DIR / "cli_export"
        runner = CliRunner()
        result = runner.invoke(main, [
            "export", str(write_alignment()),
            "-f", "png", "-f", "svg",
            "-o", str(out),
        ])
        assert result.exit_code == 0, result.output
        saved = [line.removeprefix("Saved: ") for line in result.output.splitlines()]
        assert len(saved) == 2
        assert saved[0].endswith(".png") and saved[1].endswith(".svg")
        with Image.open(saved[0]) as image:
            assert image.size == (800, 800)

    def test_export_scaled_with_hidden_layers(self, write_alignment, tmp_path):
        runner = CliRunner()
        result = runner.invoke(main, [
            "export", str(write_alignment()),
            "--scale", "2",
            "--zoom", "2", "--pan", "-100", "-100",
            "--hide", "minimap,grid",
            "-o", str(tmp_path),
        ])
        assert result.exit_code == 0, result.output
        (png,) = tmp_path.glob("*.png")
        with Image.open(png) as image:
            assert image.size == (1600, 1600)

    def test_export_unknown_layer(self, write_alignment, tmp_path):
        runner = CliRunner()
        result = runner.invoke(main, ["export", str(write_alignment()), "--hide", "legend", "-o", str(tmp_path)])
        assert result.exit_code != 0
        assert "Unknown layer" in result.output

    def test_export_scale_out_of_range(self, write_alignment, tmp_path):
        runner = CliRunner()
        result = runner.invoke(main, ["export", str(write_alignment()), "--scale", "0.5", "-o", str(tmp_path)])
        assert result.exit_code != 0

    def test_windows(self, write_alignment):
        runner = CliRunner()
        result = runner.invoke(main, ["windows", str(write_alignment())])
        assert result.exit_code == 0, result.output
        assert "A (sp|P02769|ALBU_BOVIN): 10-20" in result.output
        assert "B (sp|P02768|ALBU_HUMAN): 5-10" in result.output

    def test_windows_none(self, write_alignment):
        document = {"representative": "MKV", "member": "MKV", "alignments": []}
        runner = CliRunner()
        result = runner.invoke(main, ["windows", str(write_alignment(document))])
        assert result.exit_code == 0
        assert "A: none" in result.output

    def test_share_url(self, write_alignment):
        runner = CliRunner()
        result = runner.invoke(main, [
            "share-url", str(write_alignment()),
            "--base-url", "https://emerald.example.org/",
            "--alpha", "0.75", "--delta", "8",
        ])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "https://emerald.example.org/?seqA=P02769&seqB=P02768&alpha=0.75&delta=8"

    def test_share_url_requires_accessions(self, write_alignment):
        document = {"representative": "MKV", "member": "MKV", "alignments": []}
        runner = CliRunner()
        result = runner.invoke(main, [
            "share-url", str(write_alignment(document)),
            "--base-url", "https://emerald.example.org/",
            "--alpha", "0.75", "--delta", "8",
        ])
        assert result.exit_code != 0
        assert "UniProt accessions" in result.output

    def test_verbose_flag(self, write_alignment):
        runner = CliRunner()
        result = runner.invoke(main, ["-v", "windows", str(write_alignment())])
        assert result.exit_code == 0
