"""
Tests for the command-line interface.
"""

import json

import pytest
from typer.testing import CliRunner

from learning_profiles.cli import app


runner = CliRunner()


def write_json(path, data):
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture
def analyze_input(tmp_path):
    return write_json(tmp_path / "analyze.json", {
        "evidence": {
            "task_title": "Mapa del ciclo del agua",
            "subject": "Ciencias",
            "evidence_type": "imagen",
            "time_spent": 20,
        },
        "perspective": {
            "attention_level": "Alta",
            "verbal_participation": "Activa",
            "preferred_modality": "Visual",
            "concentration_time": 25,
        },
    })


@pytest.fixture
def profile_input(tmp_path):
    return write_json(tmp_path / "profile.json", {
        "student": {
            "id": "s1",
            "teacher_id": "t1",
            "name": "Ana",
            "age": 9,
            "grade": "4º",
            "main_subjects": "Ciencias",
        },
        "perspective": {"preferred_modality": "Visual", "concentration_time": 20},
        "analyzed": [
            {"evidence": {"task_title": "Mapa", "subject": "Ciencias", "evidence_type": "imagen"}},
            {"evidence": {"task_title": "Texto", "subject": "Lengua"}},
        ],
    })


class TestCLI:

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "Learning Profiles" in result.stdout

    def test_analyze(self, analyze_input):
        result = runner.invoke(app, ["analyze", str(analyze_input)])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["adapted_score"] == 100.0
        assert data["competency_level"] == "Avanzado"
        assert data["analysis_source"] == "heuristic"

    def test_analyze_summary(self, analyze_input):
        result = runner.invoke(app, ["analyze", str(analyze_input), "--summary"])

        assert result.exit_code == 0
        assert "Avanzado" in result.stdout

    def test_analyze_rejects_unknown_category(self, tmp_path):
        path = write_json(tmp_path / "bad.json", {
            "evidence": {"task_title": "T", "subject": "S"},
            "perspective": {"attention_level": "Muy alta"},
        })

        result = runner.invoke(app, ["analyze", str(path)])

        assert result.exit_code == 1

    def test_analyze_unreadable_file(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        result = runner.invoke(app, ["analyze", str(path)])

        assert result.exit_code == 1

    def test_profile(self, profile_input):
        result = runner.invoke(app, ["profile", str(profile_input)])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["student_id"] == "s1"
        assert data["evidence_count"] == 2
        assert data["confidence_level"] == 0.6
        assert data["dominant_learning_pattern"].startswith("Patrón visual dominante")

    @pytest.mark.parametrize("entry", ["Mapa", ["Mapa"], {"evidence": "Mapa"}, {"analysis": {}}])
    def test_profile_rejects_malformed_entries(self, profile_input, entry):
        data = json.loads(profile_input.read_text(encoding="utf-8"))
        data["analyzed"].append(entry)
        write_json(profile_input, data)

        result = runner.invoke(app, ["profile", str(profile_input)])

        assert result.exit_code == 1
        assert "Invalid input" in result.stdout

    def test_profile_without_evidence(self, tmp_path):
        path = write_json(tmp_path / "empty.json", {
            "student": {
                "teacher_id": "t1",
                "name": "Ana",
                "age": 9,
                "grade": "4º",
                "main_subjects": "Ciencias",
            },
            "analyzed": [],
        })

        result = runner.invoke(app, ["profile", str(path)])

        assert result.exit_code == 1
        assert "No evidence available" in result.stdout
