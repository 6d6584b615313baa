"""
Tests for the command line entry point.
"""

import yaml

from meetscribe import main as cli


def write_config(temp_dir, **transcription):
    config_path = temp_dir / "config.yaml"
    config_path.write_text(yaml.safe_dump({
        "transcription": transcription,
        "output": {"transcripts_folder": str(temp_dir / "Meetings")},
        "misc": {"log_file": str(temp_dir / "meetscribe.log")},
    }))
    return str(config_path)


def test_check_ready(fresh_config, temp_dir, monkeypatch, capsys):
    monkeypatch.setattr(cli, "check_dependencies", lambda: {"ffmpeg": "/usr/bin/ffmpeg", "sox": "/usr/bin/sox"})
    monkeypatch.setenv("ASSEMBLYAI_API_KEY", "key")

    assert cli.main(["--config", write_config(temp_dir, backend="assemblyai"), "check"]) == 0

    output = capsys.readouterr().out
    assert "[ok]      ffmpeg" in output
    assert "AssemblyAI credentials found" in output
    assert "Ready to record." in output


def test_check_reports_missing(fresh_config, temp_dir, monkeypatch, capsys):
    monkeypatch.setattr(cli, "check_dependencies", lambda: {"ffmpeg": None, "sox": "/usr/bin/sox"})
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setattr(cli, "load_dotenv", lambda: None)

    assert cli.main(["--config", write_config(temp_dir, backend="openai"), "check"]) == 1

    output = capsys.readouterr().out
    assert "[missing] ffmpeg" in output
    assert "OPENAI_API_KEY" in output


def test_record_without_credentials(fresh_config, temp_dir, monkeypatch, capsys):
    monkeypatch.delenv("ASSEMBLYAI_API_KEY", raising=False)
    monkeypatch.setattr(cli, "load_dotenv", lambda: None)
    assert cli.main(["--config", write_config(temp_dir, backend="assemblyai"), "record"]) == 1
    assert "ASSEMBLYAI_API_KEY" in capsys.readouterr().err


def test_no_command_prints_help(fresh_config, temp_dir, monkeypatch, capsys):
    assert cli.main(["--config", write_config(temp_dir)]) == 1
    assert "usage" in capsys.readouterr().out
