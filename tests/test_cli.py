"""
Tests for the command-line interface in mock mode.
"""

import pytest
from rich.console import Console
from typer.testing import CliRunner

from tutorbooking import __version__
from tutorbooking.cli import app as cli_app
from tutorbooking.cli.app import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    """Keep table cells on one line so output assertions are stable."""
    monkeypatch.setattr(cli_app, "console", Console(width=200))


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "timezone: Europe/Berlin\n"
        "business_hours:\n"
        "  monday: {open: 15, close: 19}\n"
        "  tuesday: {open: 15, close: 19}\n"
        "  wednesday: {open: 15, close: 19}\n"
        "  thursday: {open: 15, close: 19}\n"
        "  friday: {open: 15, close: 19}\n"
        "  saturday: {open: 10, close: 15}\n",
        encoding="utf-8",
    )
    return str(path)


def _invoke(config_file, *args):
    return runner.invoke(app, ["--config", config_file, "--mock", *args])


def test_hours(config_file):
    result = runner.invoke(app, ["--config", config_file, "hours"])

    assert result.exit_code == 0
    assert "Mittwoch" in result.output
    assert "15:00 - 19:00" in result.output
    assert "geschlossen" in result.output


def test_slots_show_booked_and_free(config_file):
    result = _invoke(config_file, "slots", "2024-11-27")

    assert result.exit_code == 0
    assert "Mittwoch, 27.11.2024 | 15:00 – 16:00 Uhr" in result.output
    assert "belegt" in result.output
    assert "frei" in result.output


def test_slots_on_closed_day(config_file):
    result = _invoke(config_file, "slots", "2024-12-01")

    assert result.exit_code == 0
    assert "geschlossen" in result.output


def test_slots_invalid_date(config_file):
    result = _invoke(config_file, "slots", "2024-13-45")

    assert result.exit_code == 1


def test_student_books_free_slot(config_file):
    result = _invoke(
        config_file, "book",
        "--user", "student-max", "--role", "student", "--with", "teacher-anna",
        "--date", "2024-11-27", "--start", "15:00", "--end", "16:00",
    )

    assert result.exit_code == 0
    assert "Erfolgreich eingetragen!" in result.output
    assert "Anmeldung zur Nachhilfe" in result.output


def test_student_booking_conflict(config_file):
    result = _invoke(
        config_file, "book",
        "--user", "student-max", "--role", "student", "--with", "teacher-anna",
        "--date", "2024-11-27", "--start", "16:00", "--end", "17:00",
    )

    assert result.exit_code == 1
    assert "bereits belegt" in result.output


def test_student_booking_outside_hours(config_file):
    result = _invoke(
        config_file, "book",
        "--user", "student-max", "--role", "student", "--with", "teacher-anna",
        "--date", "2024-11-27", "--start", "14:00", "--end", "15:00",
    )

    assert result.exit_code == 1
    assert "Öffnungszeiten" in result.output


def test_teacher_books_sunday(config_file):
    result = _invoke(
        config_file, "book",
        "--user", "teacher-anna", "--role", "teacher", "--with", "student-max",
        "--title", "Klausurvorbereitung",
        "--date", "2024-12-01", "--start", "08:00", "--end", "09:00",
    )

    assert result.exit_code == 0
    assert "Termin erfolgreich gebucht!" in result.output


def test_list_appointments(config_file):
    result = _invoke(config_file, "list", "--user", "student-max", "--role", "student")

    assert result.exit_code == 0
    assert "Meine Termine" in result.output
    assert "Englisch Klausurvorbereitung" in result.output


def test_cancel_foreign_appointment(config_file):
    result = _invoke(
        config_file, "cancel", "a1f0c2de-0002-4c1e-9a61-3f5b1d7e0002",
        "--user", "student-max", "--role", "student",
    )

    assert result.exit_code == 1
    assert "nicht erlaubt" in result.output


def test_cancel_unknown_appointment(config_file):
    result = _invoke(config_file, "cancel", "missing", "--user", "student-max", "--role", "student")

    assert result.exit_code == 1
    assert "nicht gefunden" in result.output


def test_invalid_role(config_file):
    result = _invoke(config_file, "list", "--user", "x", "--role", "janitor")

    assert result.exit_code != 0


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.output
