from datetime import datetime, timezone

import pytest
from filelock import FileLock

from canteen import main
from canteen.celery_worker import celery_app
from canteen.services.ledger import LedgerLockTimeout, OrderLedger
from canteen.services.storage import OrderRecord
from canteen.tasks import clear_ledger, export_order_to_ledger


def make_order(number: str = "O1", received: bool = False) -> OrderRecord:
    return OrderRecord(
        account_name="A",
        identifier="S1",
        order_number=number,
        otp="123",
        items=[{"name": "Poori", "quantity": 1}],
        total_amount=35.0,
        received=received,
        created_at=datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc),
        id="1",
    )


@pytest.fixture
def eager_celery():
    celery_app.conf.update(task_always_eager=True, task_eager_propagates=True)
    yield celery_app
    celery_app.conf.update(task_always_eager=False, task_eager_propagates=False)


@pytest.fixture
def ledger_settings(settings_env, tmp_path):
    return settings_env(ledger_export_enabled="true", data_directory=tmp_path, ledger_filename="ledger.xlsx")


def test_append_and_read(tmp_path):
    ledger = OrderLedger(tmp_path / "data")

    first = ledger.append(make_order("O1").to_dict(), "placed")
    ledger.append(make_order("O2").to_dict(), "placed")
    ledger.append(make_order("O1", received=True).to_dict(), "received")

    assert first["success"] is True
    assert first["order_number"] == "O1"
    rows = ledger.read_all()
    assert [(r["order_number"], r["event"]) for r in rows] == [
        ("O1", "placed"), ("O2", "placed"), ("O1", "received"),
    ]
    assert rows[0]["srn"] == "S1"
    assert rows[0]["user_name"] == "A"
    assert rows[0]["total_amount"] == 35.0
    assert bool(rows[2]["received"]) is True
    assert [r["order_number"] for r in ledger.read_all(event="placed")] == ["O1", "O2"]


def test_read_missing_ledger(tmp_path):
    assert OrderLedger(tmp_path).read_all() == []


def test_clear(tmp_path):
    ledger = OrderLedger(tmp_path)
    ledger.append(make_order().to_dict(), "placed")

    ledger.clear()

    assert not ledger.path.exists()
    assert ledger.read_all() == []


def test_lock_timeout_reported(tmp_path):
    ledger = OrderLedger(tmp_path, lock_timeout=0)
    with FileLock(str(ledger.lock_path)):
        result = ledger.append(make_order().to_dict(), "placed")

    assert result["success"] is False
    assert "Lock timeout" in result["message"]


def test_export_task(ledger_settings, eager_celery, tmp_path):
    result = export_order_to_ledger.delay(make_order().to_dict(), "placed").get()

    assert result["success"] is True
    assert [r["order_number"] for r in OrderLedger(tmp_path, "ledger.xlsx").read_all()] == ["O1"]


def test_export_task_raises_when_ledger_locked(ledger_settings, settings_env, tmp_path):
    settings_env(ledger_lock_timeout=0)
    ledger = OrderLedger(tmp_path, "ledger.xlsx")

    with FileLock(str(ledger.lock_path)):
        with pytest.raises(LedgerLockTimeout):
            export_order_to_ledger(make_order().to_dict(), "placed")

    assert ledger.read_all() == []


def test_locked_ledger_export_is_retried_then_fails(ledger_settings, settings_env, tmp_path, monkeypatch):
    settings_env(ledger_lock_timeout=0)
    ledger = OrderLedger(tmp_path, "ledger.xlsx")
    attempts = []
    original_append = OrderLedger.append

    def counting_append(self, order_data, event):
        attempts.append(event)
        return original_append(self, order_data, event)

    monkeypatch.setattr(OrderLedger, "append", counting_append)

    with FileLock(str(ledger.lock_path)):
        result = export_order_to_ledger.apply((make_order().to_dict(), "placed"))

    assert result.failed()
    assert isinstance(result.result, LedgerLockTimeout)
    assert len(attempts) > 1
    assert ledger.read_all() == []


def test_export_task_rejects_unknown_event(ledger_settings, tmp_path):
    with pytest.raises(ValueError):
        export_order_to_ledger(make_order().to_dict(), "cancelled")

    assert OrderLedger(tmp_path, "ledger.xlsx").read_all() == []


def test_clear_task(ledger_settings, eager_celery, tmp_path):
    ledger = OrderLedger(tmp_path, "ledger.xlsx")
    ledger.append(make_order().to_dict(), "placed")

    clear_ledger.delay().get()

    assert not ledger.path.exists()


def test_api_exports_order_events(client, signed_up, ledger_settings, eager_celery, tmp_path):
    client.post("/api/orders", json={
        "userName": "A", "srn": "S1", "orderNumber": "O1", "otp": "1", "items": [], "totalAmount": 20,
    })
    client.patch("/api/orders/O1/received", json={"received": True})
    client.patch("/api/orders/O1/received", json={"received": False})

    rows = OrderLedger(tmp_path, "ledger.xlsx").read_all()
    assert [r["event"] for r in rows] == ["placed", "received", "unreceived"]


def test_api_succeeds_when_queueing_fails(client, signed_up, ledger_settings, monkeypatch):
    def broken_delay(*args, **kwargs):
        raise ConnectionError("broker unreachable")

    monkeypatch.setattr(main.export_order_to_ledger, "delay", broken_delay)

    response = client.post("/api/orders", json={
        "userName": "A", "srn": "S1", "orderNumber": "O1", "otp": "1", "items": [], "totalAmount": 20,
    })

    assert response.status_code == 201


def test_no_export_when_disabled(client, signed_up, monkeypatch):
    calls = []
    monkeypatch.setattr(main.export_order_to_ledger, "delay", lambda *a, **k: calls.append(a))

    client.post("/api/orders", json={
        "userName": "A", "srn": "S1", "orderNumber": "O1", "otp": "1", "items": [], "totalAmount": 20,
    })

    assert calls == []
