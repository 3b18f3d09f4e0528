import os

from pincer.agent.persona import DEFAULT_PERSONA, PersonaDocument


def test_missing_file_falls_back_to_default(tmp_path):
    persona = PersonaDocument(tmp_path / "SOUL.md")

    assert persona.get_content() == DEFAULT_PERSONA


def test_file_is_reloaded_when_modified(tmp_path):
    path = tmp_path / "SOUL.md"
    path.write_text("Version one", encoding="utf-8")
    persona = PersonaDocument(path)
    assert persona.get_content() == "Version one"

    path.write_text("Version two", encoding="utf-8")
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + 5))

    assert persona.get_content() == "Version two"


def test_file_created_after_start_is_picked_up(tmp_path):
    path = tmp_path / "SOUL.md"
    persona = PersonaDocument(path)
    assert persona.get_content() == DEFAULT_PERSONA

    path.write_text("Now with a soul", encoding="utf-8")

    assert persona.get_content() == "Now with a soul"
