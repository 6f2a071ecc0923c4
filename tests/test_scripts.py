from __future__ import annotations

from sqlalchemy import func, select

from core.models import User, Workout, WorkoutTemplate
from core.services.users import create_user
from db.seed import DEMO_TEMPLATES, DEMO_USERS, seed_templates, seed_users
from scripts.import_workouts import main as import_main


def _write_csv(tmp_path, body: str):
    path = tmp_path / "week.csv"
    path.write_text("Title,Date,Time\n" + body)
    return path


def test_import_script_dry_run_writes_nothing(db, tmp_path, capsys):
    path = _write_csv(tmp_path, "Monday WOD,2025-01-06,18:00\n")
    assert import_main([str(path), "--creator", "coach@wodboard.app", "--dry-run"]) == 0
    assert "parsed=1 failed=0 dry_run=true" in capsys.readouterr().out
    with db.session_scope() as s:
        assert s.execute(select(func.count(Workout.id))).scalar_one() == 0


def test_import_script_imports_and_reports_failures(db, tmp_path, capsys):
    with db.session_scope() as s:
        create_user(s, "coach@wodboard.app", "x", "Coach", is_admin=True)
    path = _write_csv(tmp_path, "Monday WOD,2025-01-06,18:00\nBroken,whenever,09:00\n")

    assert import_main([str(path), "--creator", "coach@wodboard.app"]) == 1
    out = capsys.readouterr().out
    assert "skipped: Row 2 (Broken)" in out
    assert "imported=1 failed=1" in out


def test_import_script_rejects_unknown_creator_and_bad_files(db, tmp_path):
    path = _write_csv(tmp_path, "Monday WOD,2025-01-06,18:00\n")
    assert import_main([str(path), "--creator", "ghost@wodboard.app"]) == 2

    other = tmp_path / "week.pdf"
    other.write_bytes(b"%PDF")
    assert import_main([str(other), "--creator", "coach@wodboard.app"]) == 2


def test_seed_is_idempotent(db, monkeypatch):
    monkeypatch.setenv("SEED_ADMIN_PASSWORD", "admin-secret")
    seed_users()
    seed_templates()
    seed_users()
    seed_templates()

    with db.session_scope() as s:
        users = s.execute(select(User).order_by(User.id)).scalars().all()
        assert [u.email for u in users] == [row[0] for row in DEMO_USERS]
        assert [u.is_admin for u in users] == [True, False, False]
        assert s.execute(select(func.count(WorkoutTemplate.id))).scalar_one() == len(DEMO_TEMPLATES)
