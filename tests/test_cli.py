import json

import pytest

from bayes_talk.cli import export_charts, main
from bayes_talk.slides import build_deck


class TestAnalyze:
    def test_prints_summary(self, capsys, small_env):
        code = main([
            "analyze",
            "--control-clicked", "425", "--control-sessions", "5000",
            "--treatment-clicked", "480", "--treatment-sessions", "5000",
        ])
        out = capsys.readouterr().out
        assert code == 0
        assert "P(treatment > control)" in out
        assert "Beta(426, 4576)" in out

    def test_invalid_counts(self, capsys, small_env):
        code = main([
            "analyze",
            "--control-clicked", "600", "--control-sessions", "500",
            "--treatment-clicked", "10", "--treatment-sessions", "500",
        ])
        assert code == 1
        assert "Error" in capsys.readouterr().err

    def test_zero_samples_rejected(self, capsys, small_env):
        code = main([
            "analyze",
            "--control-clicked", "425", "--control-sessions", "5000",
            "--treatment-clicked", "480", "--treatment-sessions", "5000",
            "--samples", "0",
        ])
        assert code == 1
        assert "n_samples" in capsys.readouterr().err


class TestPeekingCommand:
    def test_prints_table(self, capsys, small_env):
        code = main(["peeking", "--experiments", "10"])
        out = capsys.readouterr().out
        assert code == 0
        assert "p-value < 0.05" in out
        assert "Every day" in out

    @pytest.mark.parametrize("option", ["--experiments", "--days"])
    def test_zero_rejected(self, capsys, small_env, option):
        assert main(["peeking", option, "0"]) == 1
        assert "must be positive" in capsys.readouterr().err


class TestExport:
    def test_export_charts_writes_manifest(self, tmp_path, small_settings):
        deck = build_deck(small_settings)
        manifest_path = export_charts(deck, tmp_path)

        manifest = json.loads(manifest_path.read_text())
        assert [entry["key"] for entry in manifest["slides"]] == [slide.key for slide in deck]
        for entry in manifest["slides"]:
            if entry["chart"] is not None:
                assert (tmp_path / entry["chart"]).exists()

    def test_export_command(self, tmp_path, capsys, small_env):
        code = main(["export", "--output-dir", str(tmp_path / "charts")])
        assert code == 0
        assert (tmp_path / "charts" / "manifest.json").exists()
        assert "Exported" in capsys.readouterr().out


def test_missing_command_prints_help(capsys):
    assert main([]) == 1
    assert "usage" in capsys.readouterr().out
