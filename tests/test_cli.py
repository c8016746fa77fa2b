"""Tests for the command line interface."""

import json

from conftest import read_docx_paragraphs, write_docx
from docxlate.cli import build_parser, main, resolve_backend
from docxlate.providers import EchoProvider
from docxlate.structures import HostedApiConfig, LocalModelConfig


class TestParser:
    """Tests for argument parsing."""

    def test_translate_options(self):
        args = build_parser().parse_args(
            [
                "translate",
                "in.docx",
                "-t",
                "German",
                "-p",
                "local",
                "-m",
                "qwen2.5:7b",
                "--endpoint",
                "http://localhost:11434",
                "--split-sentences",
                "--dump-segments",
                "debug",
                "-f",
            ]
        )

        assert args.command == "translate"
        assert args.target_language == "German"
        assert args.provider == "local"
        assert args.split_sentences
        assert args.dump_segments == "debug"
        assert args.force


class TestResolveBackend:
    """Tests for choosing the backend from command line flags."""

    def parse(self, *flags):
        return build_parser().parse_args(["translate", "in.docx", "-t", "German", *flags])

    def test_echo_gets_a_provider(self):
        config, provider, defaults = resolve_backend(self.parse("-p", "mock"))

        assert isinstance(config, LocalModelConfig)
        assert isinstance(provider, EchoProvider)
        assert defaults == {}

    def test_local_alias_with_model(self):
        config, provider, _ = resolve_backend(self.parse("-p", "ollama", "-m", "llama3"))

        assert config == LocalModelConfig(endpoint="http://localhost:11434", model="llama3")
        assert provider is None

    def test_hosted_alias_with_key(self):
        config, provider, _ = resolve_backend(self.parse("-p", "hosted_api", "--api-key", "sk-test"))

        assert config == HostedApiConfig(api_key="sk-test")
        assert provider is None


class TestMain:
    """Tests for the CLI entry point."""

    def test_echo_translation(self, tmp_path, capsys):
        source = tmp_path / "source.docx"
        output = tmp_path / "out.docx"
        write_docx(source, ["Hello", "World"])

        exit_code = main(["translate", str(source), "-t", "French", "-p", "echo", "-o", str(output)])

        assert exit_code == 0
        assert read_docx_paragraphs(output) == ["Hello", "World"]
        assert "Translation complete." in capsys.readouterr().out

    def test_default_output_name(self, tmp_path):
        source = tmp_path / "source.docx"
        write_docx(source, ["Hello"])

        assert main(["translate", str(source), "-t", "French", "-p", "echo"]) == 0
        assert len(list(tmp_path.glob("source_French_*.docx"))) == 1

    def test_missing_target_language(self, tmp_path, capsys):
        source = tmp_path / "source.docx"
        write_docx(source, ["Hello"])

        assert main(["translate", str(source), "-p", "echo"]) == 1
        assert "target language" in capsys.readouterr().out

    def test_missing_input(self, tmp_path, capsys):
        exit_code = main(["translate", str(tmp_path / "absent.docx"), "-t", "French", "-p", "echo"])

        assert exit_code == 1
        assert "not found" in capsys.readouterr().out

    def test_unknown_provider(self, tmp_path, capsys):
        source = tmp_path / "source.docx"
        write_docx(source, ["Hello"])

        assert main(["translate", str(source), "-t", "French", "-p", "pigeon"]) == 1
        assert "pigeon" in capsys.readouterr().out

    def test_refuses_existing_output(self, tmp_path, capsys):
        source = tmp_path / "source.docx"
        output = tmp_path / "out.docx"
        write_docx(source, ["Hello"])
        write_docx(output, ["Old"])

        exit_code = main(["translate", str(source), "-t", "French", "-p", "echo", "-o", str(output)])

        assert exit_code == 1
        assert read_docx_paragraphs(output) == ["Old"]

    def test_inspect(self, tmp_path, capsys):
        source = tmp_path / "source.docx"
        write_docx(source, ["Hello", "World"])

        assert main(["inspect", str(source)]) == 0
        structure = json.loads(capsys.readouterr().out)
        assert structure["paragraphs"] == ["Hello", "World"]
        assert structure["has_document_xml"]

    def test_inspect_invalid_file(self, tmp_path):
        source = tmp_path / "broken.docx"
        source.write_bytes(b"nope")

        assert main(["inspect", str(source)]) == 1

    def test_no_command(self, capsys):
        assert main([]) == 1
