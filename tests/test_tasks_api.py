from datetime import date, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from taskflow.main import create_app
from taskflow.models import new_task
from taskflow.task_service import TaskService
from taskflow.utils import coerce_task_id

from .conftest import NOW, fixed_clock
from .fakes import FlakyRecordStore

TASKS = "/api/v1/tasks/"


def create_task_payload(
    title="Test Task",
    description="Do something",
    due_date=None,
    priority="medium",
    status="not-started",
    tags=None,
):
    payload = {
        "title": title,
        "description": description,
        "priority": priority,
        "status": status,
    }
    if due_date is not None:
        payload["due_date"] = due_date
    if tags is not None:
        payload["tags"] = tags
    return payload


def assert_task_shape(task: dict):
    # Basic structure validation
    for key in ["id", "title", "priority", "status", "tags", "overdue"]:
        assert key in task
    # Optional fields
    for key in ["description", "due_date", "completed_at", "owner", "created_on", "modified_on"]:
        assert key in task
    assert isinstance(task["id"], (int, str))
    assert isinstance(task["title"], str)
    assert isinstance(task["overdue"], bool)
    if task["due_date"] is not None:
        date.fromisoformat(task["due_date"])
    if task["created_on"] is not None:
        datetime.fromisoformat(task["created_on"])


def titles(body: dict):
    return [t["title"] for t in body["items"]]


class TestHealth:
    def test_health_check(self, client):
        res = client.get("/")
        assert res.status_code == 200
        data = res.json()
        assert data["message"] == "Healthy"
        assert data["backend"] == "memory"


class TestTasksCRUD:
    def test_create_task_minimal(self, client):
        payload = create_task_payload(title="Buy milk", description=None)
        res = client.post(TASKS, json=payload)
        assert res.status_code == 201
        task = res.json()
        assert_task_shape(task)
        assert task["title"] == "Buy milk"
        assert task["description"] is None
        assert task["priority"] == "medium"
        assert task["status"] == "not-started"
        assert task["completed_at"] is None
        assert task["owner"] is None

    def test_create_defaults_priority_and_status(self, client):
        res = client.post(TASKS, json={"title": "Defaults"})
        assert res.status_code == 201
        assert res.json()["priority"] == "medium"
        assert res.json()["status"] == "not-started"

    def test_create_task_with_due_date_and_tags(self, client):
        payload = create_task_payload(title="Pay bills", due_date="2099-12-25", tags=["home", " bills ", "home"])
        res = client.post(TASKS, json=payload)
        assert res.status_code == 201
        task = res.json()
        assert task["due_date"] == "2099-12-25"
        assert task["tags"] == ["home", "bills"]
        assert task["overdue"] is False

    def test_empty_due_date_means_none(self, client):
        res = client.post(TASKS, json=create_task_payload(title="No date", due_date=""))
        assert res.status_code == 201
        assert res.json()["due_date"] is None

    def test_get_task_and_not_found(self, client):
        tid = client.post(TASKS, json=create_task_payload(title="Read book")).json()["id"]

        res_get = client.get(f"{TASKS}{tid}")
        assert res_get.status_code == 200
        assert res_get.json()["title"] == "Read book"

        assert client.get(f"{TASKS}%C2%B2").status_code == 404

        res_404 = client.get(f"{TASKS}999999")
        assert res_404.status_code == 404
        body = res_404.json()
        assert body["error"] == "TaskNotFoundError"
        assert body["message"] == "Task 999999 not found"

    def test_put_replace_task(self, client):
        tid = client.post(TASKS, json=create_task_payload(title="Initial", description="A")).json()["id"]

        new_payload = create_task_payload(
            title="Replaced", description=None, due_date="2100-01-01", priority="urgent", status="blocked"
        )
        res_put = client.put(f"{TASKS}{tid}", json=new_payload)
        assert res_put.status_code == 200
        updated = res_put.json()
        assert updated["id"] == tid
        assert updated["title"] == "Replaced"
        assert updated["description"] is None
        assert updated["priority"] == "urgent"
        assert updated["status"] == "blocked"
        assert updated["due_date"] == "2100-01-01"

        assert client.get(f"{TASKS}{tid}").json()["title"] == "Replaced"

    def test_put_completed_stamps_completion(self, client):
        tid = client.post(TASKS, json=create_task_payload(title="Finish")).json()["id"]
        res = client.put(f"{TASKS}{tid}", json=create_task_payload(title="Finish", status="completed"))
        assert res.status_code == 200
        assert datetime.fromisoformat(res.json()["completed_at"]) == NOW

    def test_put_unknown_task_is_store_failure(self, client):
        res = client.put(f"{TASKS}424242", json=create_task_payload(title="Nope"))
        assert res.status_code == 502
        assert res.json()["error"] == "RecordStoreError"

    def test_status_change(self, client):
        tid = client.post(TASKS, json=create_task_payload(title="Toggle")).json()["id"]

        res_done = client.patch(f"{TASKS}{tid}/status", json={"status": "completed"})
        assert res_done.status_code == 200
        assert res_done.json()["status"] == "completed"
        assert datetime.fromisoformat(res_done.json()["completed_at"]) == NOW

        res_back = client.patch(f"{TASKS}{tid}/status", json={"status": "not-started"})
        assert res_back.status_code == 200
        assert res_back.json()["completed_at"] is None

    def test_status_change_unknown_task(self, client):
        res = client.patch(f"{TASKS}31337/status", json={"status": "completed"})
        assert res.status_code == 404
        assert res.json()["error"] == "TaskNotFoundError"

    def test_status_change_rejects_unknown_status(self, client):
        tid = client.post(TASKS, json=create_task_payload(title="Toggle")).json()["id"]
        res = client.patch(f"{TASKS}{tid}/status", json={"status": "done"})
        assert res.status_code == 422
        assert res.json()["error"] == "ValidationError"

    def test_delete_task(self, client):
        tid = client.post(TASKS, json=create_task_payload(title="ToDelete")).json()["id"]

        # Without confirmation nothing happens
        res_unconfirmed = client.delete(f"{TASKS}{tid}")
        assert res_unconfirmed.status_code == 400
        assert res_unconfirmed.json()["detail"] == "Deletion must be confirmed"
        assert client.get(f"{TASKS}{tid}").status_code == 200

        res_del = client.delete(f"{TASKS}{tid}", params={"confirm": "true"})
        assert res_del.status_code == 204
        assert res_del.text == ""

        assert client.get(f"{TASKS}{tid}").status_code == 404
        # Deleting again is refused by the record store
        res_del_again = client.delete(f"{TASKS}{tid}", params={"confirm": "true"})
        assert res_del_again.status_code == 502
        assert res_del_again.json()["error"] == "RecordStoreError"


class TestListFilteringSorting:
    def seed_tasks(self, client):
        seeds = [
            ("Write report", "2024-03-01", "completed", "high"),
            ("buy stamps", None, "not-started", "low"),
            ("Call plumber", "2024-01-15", "in-progress", "urgent"),
            ("Archive mail", "2024-02-10", "completed", "medium"),
            ("Fix bike", "2024-07-01", "blocked", "medium"),
        ]
        for title, due, status, priority in seeds:
            res = client.post(
                TASKS, json=create_task_payload(title=title, due_date=due, status=status, priority=priority)
            )
            assert res.status_code == 201

    def test_default_view_is_due_date_ascending(self, client):
        self.seed_tasks(client)
        res = client.get(TASKS)
        assert res.status_code == 200
        body = res.json()
        assert body["filter"] == "all"
        assert body["sort"] == "dueDate"
        assert body["direction"] == "asc"
        assert body["total"] == 5
        assert titles(body) == ["Call plumber", "Archive mail", "Write report", "Fix bike", "buy stamps"]
        assert body["submitting"] is False

    def test_filter_by_status(self, client):
        self.seed_tasks(client)
        res = client.get(TASKS, params={"status": "completed"})
        assert res.status_code == 200
        body = res.json()
        assert body["total"] == 2
        assert all(item["status"] == "completed" for item in body["items"])

    def test_sort_by_title_descending(self, client):
        self.seed_tasks(client)
        res = client.get(TASKS, params={"sort": "title", "direction": "desc"})
        assert titles(res.json()) == ["Write report", "Fix bike", "Call plumber", "buy stamps", "Archive mail"]

    def test_sort_by_priority_descending_is_text_order(self, client):
        self.seed_tasks(client)
        res = client.get(TASKS, params={"sort": "priority", "direction": "desc"})
        priorities = [t["priority"] for t in res.json()["items"]]
        assert priorities == ["urgent", "medium", "medium", "low", "high"]

    def test_overdue_flag_in_list(self, client):
        self.seed_tasks(client)
        items = {t["title"]: t for t in client.get(TASKS).json()["items"]}
        # NOW is 2024-06-15
        assert items["Call plumber"]["overdue"] is True
        assert items["Write report"]["overdue"] is False
        assert items["Fix bike"]["overdue"] is False
        assert items["buy stamps"]["overdue"] is False

    def test_invalid_sort_params(self, client):
        for params in ({"sort": "createdAt"}, {"direction": "sideways"}, {"status": "done"}):
            res = client.get(TASKS, params=params)
            assert res.status_code == 422
            assert res.json()["error"] == "ValidationError"

    def test_stats(self, client):
        self.seed_tasks(client)
        res = client.get(f"{TASKS}stats")
        assert res.status_code == 200
        assert res.json() == {"total": 5, "in_progress": 1, "completed": 2, "overdue": 1}


class TestValidationErrors:
    def test_create_validation_error_comma_in_tag(self, client):
        res = client.post(TASKS, json=create_task_payload(title="Tagged", tags=["red, blue"]))
        assert res.status_code == 422
        assert res.json()["error"] == "ValidationError"
        assert client.get(TASKS).json()["total"] == 0

    @pytest.mark.parametrize("title", ["", "  "])
    def test_create_validation_error_title_empty(self, client, title):
        res = client.post(TASKS, json={"title": title, "description": "x"})
        assert res.status_code == 422
        body = res.json()
        assert body.get("error") == "ValidationError"
        assert body.get("message") == "Request validation failed"
        assert isinstance(body.get("detail"), list)
        assert client.get(TASKS).json()["total"] == 0

    def test_put_validation_error_title_empty(self, client):
        tid = client.post(TASKS, json=create_task_payload(title="Keep")).json()["id"]
        res = client.put(f"{TASKS}{tid}", json={"title": "   "})
        assert res.status_code == 422
        assert client.get(f"{TASKS}{tid}").json()["title"] == "Keep"

    def test_create_validation_error_bad_due_date(self, client):
        res = client.post(TASKS, json=create_task_payload(title="Bad date", due_date="not-a-date"))
        assert res.status_code == 422
        assert res.json()["error"] == "ValidationError"

    def test_create_validation_error_bad_priority(self, client):
        res = client.post(TASKS, json=create_task_payload(title="Bad priority", priority="critical"))
        assert res.status_code == 422


class TestLoadAndNotifications:
    def test_startup_loads_existing_records(self, settings, store):
        TaskService(store).create_task(new_task("From before", due_date=date(2024, 1, 1)))
        app = create_app(settings=settings, store=store, clock=fixed_clock, configure_logging=False)
        with TestClient(app) as c:
            assert titles(c.get(TASKS).json()) == ["From before"]

    def test_reload_picks_up_remote_changes(self, client, store):
        TaskService(store).create_task(new_task("Added elsewhere"))
        assert client.get(TASKS).json()["total"] == 0
        res = client.post(f"{TASKS}load")
        assert res.status_code == 200
        assert titles(res.json()) == ["Added elsewhere"]

    def test_failed_reload_keeps_cache(self, client, store):
        client.post(TASKS, json=create_task_payload(title="Cached"))
        client.get("/api/v1/notifications")
        store.fail_ops.add("fetch")

        res = client.post(f"{TASKS}load")
        assert res.status_code == 502
        assert res.json()["error"] == "RecordStoreError"
        assert titles(client.get(TASKS).json()) == ["Cached"]

        notes = client.get("/api/v1/notifications").json()
        assert [(n["level"], n["message"]) for n in notes] == [("error", "Failed to load tasks")]

    def test_controller_reports_to_app_notifier(self, client):
        assert client.app.state.controller.notifier is client.app.state.notifier

    def test_notifications_are_one_shot(self, client):
        client.post(TASKS, json=create_task_payload(title="Buy milk"))
        first = client.get("/api/v1/notifications").json()
        assert [n["message"] for n in first] == ["Task added successfully"]
        assert client.get("/api/v1/notifications").json() == []

    def test_startup_survives_store_failure(self, settings):
        failing = FlakyRecordStore()
        failing.raise_ops.add("fetch")
        app = create_app(settings=settings, store=failing, clock=fixed_clock, configure_logging=False)
        with TestClient(app) as c:
            assert c.get("/").status_code == 200
            assert c.get(TASKS).json()["total"] == 0
            notes = c.get("/api/v1/notifications").json()
            assert [n["message"] for n in notes] == ["Failed to load tasks"]


class TestEndToEnd:
    def test_buy_milk_without_due_date(self, client):
        res = client.post(TASKS, json={"title": "Buy milk"})
        assert res.status_code == 201

        assert titles(client.get(TASKS, params={"status": "all"}).json()) == ["Buy milk"]
        assert titles(client.get(TASKS, params={"status": "not-started"}).json()) == ["Buy milk"]
        assert titles(client.get(TASKS, params={"status": "completed"}).json()) == []

    def test_yesterday_task_counts_as_overdue_until_completed(self, client):
        yesterday = (NOW.date() - timedelta(days=1)).isoformat()
        tid = client.post(
            TASKS, json=create_task_payload(title="Late", due_date=yesterday, status="in-progress")
        ).json()["id"]
        assert client.get(f"{TASKS}{tid}").json()["overdue"] is True
        assert client.get(f"{TASKS}stats").json()["overdue"] == 1

        client.patch(f"{TASKS}{tid}/status", json={"status": "completed"})
        assert client.get(f"{TASKS}{tid}").json()["overdue"] is False
        assert client.get(f"{TASKS}stats").json()["overdue"] == 0


class TestTaskIds:
    @pytest.mark.parametrize(
        "raw, expected",
        [("42", 42), (" 7 ", 7), ("abc-1", "abc-1"), ("²", "²"), ("٣", "٣")],
    )
    def test_coerce_task_id(self, raw, expected):
        assert coerce_task_id(raw) == expected
