from app.models.projects import ProjectTask
from app.services.counters import counters
from scripts.reconcile_counters import reconcile_task_counters


def _import_task(db, project, number):
    db.add(ProjectTask(project_id=project.id, title=f"Imported {number}", number=number))
    db.commit()


def test_reconcile_raises_counters_to_highest_issued_number(db_session, project, uncoded_project):
    _import_task(db_session, project, "PROJ-TASK-00007")
    _import_task(db_session, project, "PROJ-TASK-00003")
    _import_task(db_session, uncoded_project, "TASK-00012")
    _import_task(db_session, uncoded_project, "legacy")
    _import_task(db_session, uncoded_project, "TASK-\u00b2")

    changes = reconcile_task_counters(db_session)

    assert changes == {
        "ProjectTask:PROJ-TASK": (None, 7),
        "ProjectTask:TASK": (None, 12),
    }
    assert counters.peek(db_session, "ProjectTask:PROJ-TASK") == 7
    assert counters.peek(db_session, "ProjectTask:TASK") == 12
    assert reconcile_task_counters(db_session) == {}


def test_reconcile_dry_run_writes_nothing(db_session, uncoded_project):
    _import_task(db_session, uncoded_project, "TASK-00004")

    changes = reconcile_task_counters(db_session, dry_run=True)

    assert changes == {"ProjectTask:TASK": (None, 4)}
    assert counters.peek(db_session, "ProjectTask:TASK") is None
